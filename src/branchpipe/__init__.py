from branchpipe.util.shortcircuit import (
    ShortCircuit, ControlFlow, Continue, Break, Result, Ok, Err, Option, Some, Nothing, UnwrapError
)
from branchpipe.util.buffer import ControlFlowBuffer, DequeBuffer, BoundedBuffer, BufferCapacityError, create_buffer
from branchpipe.util.iterators import (
    FilteredIterator, DefilteredIterator, BreakingIterator, ResultSlot,
    with_filtered, with_filtered_buf, with_folding, size_hint
)
from branchpipe.pipe.core import segment, fold, source, AbstractSegment, AbstractFold, AbstractSource, Pipeline
