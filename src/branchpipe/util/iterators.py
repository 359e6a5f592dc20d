"""Iterators that split a stream of short-circuit values and put it back together.

Two pipelines are built here:

``with_filtered(source, f)``
    Runs ``f`` over only the normal outputs of ``source``.  Divergent values
    are held in a divergence buffer while ``f`` works and are put back into the
    result stream in their original position relative to the outputs ``f``
    keeps.

``with_folding(source, f)``
    Runs a fold ``f`` over the normal outputs of ``source`` and returns its
    result wrapped as a normal value, unless a divergent value turns up first,
    in which case that divergent value is the result.

Example:
    >>> items = [Ok(1), Ok(2), Err("boom"), Ok(3)]
    >>> list(with_filtered(items, lambda outputs: (n * 10 for n in outputs)))
    [Ok(value=10), Ok(value=20), Err(error='boom'), Ok(value=30)]
    >>> with_folding(items, sum)
    Err(error='boom')
"""
import logging
import operator
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple

from branchpipe.util.buffer import ControlFlowBuffer, create_buffer
from branchpipe.util.shortcircuit import Break, Result, ShortCircuit, branch, family_of

logger = logging.getLogger(__name__)

SizeHint = Tuple[int, Optional[int]]


def size_hint(obj: Any) -> SizeHint:
    """Return (lower, upper) bounds on how many items ``obj`` will still produce.

    ``upper`` is None when no bound is known.  Objects with a ``size_hint()``
    method are asked directly; sized containers and built-in iterators that
    report a length hint are taken at their word.
    """
    if hasattr(obj, "size_hint"):
        return obj.size_hint()
    try:
        n = len(obj)
        return (n, n)
    except TypeError:
        pass
    if hasattr(type(obj), "__length_hint__"):
        n = operator.length_hint(obj)
        return (n, n)
    return (0, None)


class FilteredIterator:
    """Yields the outputs of the normal values of ``source``.

    Divergent values are pushed into ``buffer`` as they are skipped.
    """

    def __init__(self, source: Iterable[ShortCircuit], buffer: ControlFlowBuffer):
        self.source = iter(source)
        self.buffer = buffer

    def __iter__(self):
        return self

    def __next__(self) -> Any:
        return self.buffer.next_unwrapped(self.source)

    def size_hint(self) -> SizeHint:
        # every remaining item may be divergent
        _, upper = size_hint(self.source)
        return (0, upper)


class DefilteredIterator:
    """Merges transformed outputs with the divergent values held in ``buffer``.

    Divergent values come out in the order they were buffered, and each one
    comes out before any output that was produced after it was pulled.  The
    merged order matches the source only if the transformation feeding
    ``outputs`` keeps its outputs in source order.  It may drop or repeat
    outputs but must not reorder them; this is not checked.

    Attributes:
        outputs: The transformed output iterator.
        buffer: The buffer shared with the FilteredIterator upstream.
        original_upper: Upper size bound of the source before transformation.
    """

    def __init__(self, outputs: Iterator[Any], buffer: ControlFlowBuffer, original_upper: Optional[int]):
        self.outputs = outputs
        self.buffer = buffer
        self.original_upper = original_upper

    def __iter__(self):
        return self

    def __next__(self) -> ShortCircuit:
        return self.buffer.next_wrapped(self.outputs)

    def size_hint(self) -> SizeHint:
        # the transformation may repeat outputs, or divergent values may be
        # added back, so take the larger of the two bounds
        _, outputs_upper = size_hint(self.outputs)
        known = [bound for bound in (outputs_upper, self.original_upper) if bound is not None]
        return (0, max(known) if known else None)


_EMPTY = object()


class ResultSlot:
    """Holds the residual that stopped a BreakingIterator.

    Starts empty and can be filled once.  ``None`` is a valid residual, so
    emptiness is tracked separately from the value.
    """

    def __init__(self):
        self._residual = _EMPTY

    @property
    def filled(self) -> bool:
        return self._residual is not _EMPTY

    @property
    def residual(self) -> Any:
        if not self.filled:
            raise RuntimeError("ResultSlot is empty")
        return self._residual

    def put(self, residual: Any) -> None:
        if self.filled:
            raise RuntimeError(f"ResultSlot already holds {self._residual!r}")
        self._residual = residual

    def __repr__(self):
        return f"ResultSlot({self._residual!r})" if self.filled else "ResultSlot()"


class BreakingIterator:
    """Yields the outputs of ``source`` until the first divergent value.

    The residual of that divergent value goes into ``slot`` and the iterator
    stops for good.

    Attributes:
        family: Short-circuit family of the first value pulled, or None.
    """

    def __init__(self, source: Iterable[ShortCircuit], slot: ResultSlot):
        self.source = iter(source)
        self.slot = slot
        self.family = None

    def __iter__(self):
        return self

    def __next__(self) -> Any:
        if self.slot.filled:
            raise StopIteration
        value = next(self.source)
        if self.family is None:
            self.family = family_of(value)
        flow = branch(value)
        if isinstance(flow, Break):
            self.slot.put(flow.value)
            raise StopIteration
        return flow.value

    def size_hint(self) -> SizeHint:
        _, upper = size_hint(self.source)
        return (0, upper)


def with_filtered_buf(source: Iterable[ShortCircuit],
                      buffer: ControlFlowBuffer,
                      f: Callable[[FilteredIterator], Iterable[Any]]) -> DefilteredIterator:
    """Apply ``f`` to the normal outputs of ``source`` using the given buffer.

    Args:
        source: Iterable of short-circuit values.
        buffer: An empty divergence buffer.  Useful when a bounded buffer or a
            specific item family is needed.
        f: Receives an iterator of outputs and returns an iterable of outputs.
            It must not reorder the outputs it keeps.

    Returns:
        An iterator over the outputs of ``f`` wrapped as normal values, with
        the divergent values of ``source`` back in place.
    """
    _, original_upper = size_hint(source)
    filtered = FilteredIterator(iter(source), buffer.clone())
    return DefilteredIterator(iter(f(filtered)), buffer, original_upper)


def with_filtered(source: Iterable[ShortCircuit],
                  f: Callable[[FilteredIterator], Iterable[Any]],
                  item_type: Optional[type] = None) -> DefilteredIterator:
    """Apply ``f`` to the normal outputs of ``source``.

    The buffer is the one the configuration selects (an unbounded deque unless
    ``buffer_kind`` says otherwise).  See ``with_filtered_buf``.

    If ``f`` yields before pulling anything and no ``item_type`` is given, the
    result family is fixed to Result at that point.

    Args:
        source: Iterable of short-circuit values.
        f: Receives an iterator of outputs and returns an iterable of outputs.
        item_type: Family used to wrap outputs.  Learned from ``source`` if None.
    """
    return with_filtered_buf(source, create_buffer(item_type=item_type), f)


def with_folding(source: Iterable[ShortCircuit],
                 f: Callable[[BreakingIterator], Any],
                 item_type: Optional[type] = None) -> ShortCircuit:
    """Fold the normal outputs of ``source`` with ``f``, stopping at the first divergence.

    ``f`` is free to stop early (``itertools.islice``, ``next``, ``any``), in
    which case nothing past that point is pulled or inspected.

    Args:
        source: Iterable of short-circuit values.
        f: Receives an iterator of outputs and returns a plain value.
        item_type: Family of the result.  Defaults to the family of the first
            value pulled, or Result if nothing was pulled.

    Returns:
        The first divergent value of ``source``, rebuilt in the result family,
        or the return value of ``f`` wrapped as a normal value.
    """
    slot = ResultSlot()
    outputs = BreakingIterator(iter(source), slot)
    try:
        folded = f(outputs)
    except StopIteration:
        # f called next() on the outputs after they stopped at a divergent value
        if not slot.filled:
            raise
        folded = None
    family = item_type or outputs.family or Result
    if slot.filled:
        logger.debug(f"Fold stopped at divergent residual {slot.residual!r}")
        return family.from_residual(slot.residual)
    return family.from_output(folded)
