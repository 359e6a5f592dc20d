"""Divergence buffers.

A divergence buffer is the FIFO queue shared by the two halves of a
filter-recombine pipeline.  The filtering half pushes the divergent values it
skips; the recombining half releases them again, in order, ahead of whatever
normal output follows them.

Buffers are reached through handles.  ``clone()`` returns another handle onto
the same queue, so both halves of a pipeline see every push and pop.  Buffers
are not thread safe.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterator, Optional

from branchpipe.util.config import get_buffer_settings
from branchpipe.util.shortcircuit import Continue, Result, ShortCircuit, branch, family_of

logger = logging.getLogger(__name__)


class BufferCapacityError(RuntimeError):
    """Raised when a bounded buffer has no room for another divergent value."""


class _SharedState:
    """State every handle onto one buffer sees."""

    def __init__(self, queue: deque, item_type: Optional[type]):
        self.queue = queue
        self.item_type = item_type


class ControlFlowBuffer(ABC):
    """Base class for divergence buffers.

    Subclasses provide ``push``, ``pop`` and ``clone``; the pipeline operations
    ``push_and_pop``, ``next_unwrapped`` and ``next_wrapped`` are built on them.

    Attributes:
        item_type: The short-circuit family used to rebuild values.  Learned from
            the first value ``next_unwrapped`` sees when not given.
    """

    def __init__(self, item_type: Optional[type] = None, _state: Optional[_SharedState] = None):
        self._state = _state if _state is not None else _SharedState(deque(), item_type)

    @property
    def item_type(self) -> Optional[type]:
        return self._state.item_type

    @abstractmethod
    def push(self, value: ShortCircuit) -> None:
        """Add a value at the tail of the queue."""

    @abstractmethod
    def pop(self) -> Optional[ShortCircuit]:
        """Remove and return the head of the queue, or None if it is empty."""

    @abstractmethod
    def clone(self) -> 'ControlFlowBuffer':
        """Return another handle onto the same queue."""

    def __len__(self) -> int:
        return len(self._state.queue)

    def shares_with(self, other: 'ControlFlowBuffer') -> bool:
        """True if ``other`` is a handle onto the same queue."""
        return self._state is other._state

    def push_and_pop(self, value: ShortCircuit) -> ShortCircuit:
        """Push ``value`` and pop the head in one step.

        If the queue is empty the value is handed straight back without being
        queued.  Otherwise the oldest pending value is returned and ``value``
        waits behind everything else.
        """
        head = self.pop()
        if head is None:
            return value
        self.push(value)
        return head

    def next_unwrapped(self, source: Iterator[Any]) -> Any:
        """Advance ``source`` to its next normal value and return the output.

        Divergent values met on the way are converted to the buffer's family
        and queued.  Pulls no further than the first normal value.

        Raises:
            StopIteration: When ``source`` runs out before a normal value.
        """
        for value in source:
            if self._state.item_type is None:
                self._state.item_type = family_of(value)
            flow = branch(value)
            if isinstance(flow, Continue):
                return flow.value
            self.push(self._state.item_type.from_residual(flow.value))
        raise StopIteration

    def next_wrapped(self, outputs: Iterator[Any]) -> ShortCircuit:
        """Return the next value of the recombined stream.

        Pending divergent values are released first.  Otherwise one output is
        pulled from ``outputs`` and wrapped; if pulling it caused more
        divergent values to be queued, the oldest of those comes out and the
        wrapped output waits behind them.

        Divergent values queued by the pull that found ``outputs`` exhausted
        (a divergent tail of the source) are still released, one per call.

        Raises:
            StopIteration: When nothing is pending and ``outputs`` is exhausted.
        """
        pending = self.pop()
        if pending is not None:
            return pending
        try:
            output = next(outputs)
        except StopIteration:
            pending = self.pop()
            if pending is None:
                raise
            return pending
        return self.push_and_pop(self.wrap(output))

    def wrap(self, output: Any) -> ShortCircuit:
        """Build the normal value of the buffer's family around ``output``.

        If no family is known yet, Result is fixed as the family from here on,
        so later divergent values are rebuilt as Err and the stream stays in one
        family.
        """
        if self._state.item_type is None:
            self._state.item_type = Result
        return self._state.item_type.from_output(output)


class DequeBuffer(ControlFlowBuffer):
    """Unbounded buffer backed by a ``collections.deque``.  The default."""

    def push(self, value: ShortCircuit) -> None:
        self._state.queue.append(value)

    def pop(self) -> Optional[ShortCircuit]:
        queue = self._state.queue
        return queue.popleft() if queue else None

    def clone(self) -> 'DequeBuffer':
        return DequeBuffer(_state=self._state)

    def __repr__(self):
        return f"DequeBuffer(pending={len(self)}, item_type={getattr(self.item_type, '__name__', None)})"


class BoundedBuffer(ControlFlowBuffer):
    """Buffer that holds at most ``capacity`` pending divergent values.

    Pushing onto a full buffer raises BufferCapacityError rather than dropping
    divergent data.  ``push_and_pop`` never grows the queue, so only runs of
    divergent values longer than ``capacity`` can fail.
    """

    def __init__(self, capacity: int, item_type: Optional[type] = None, _state: Optional[_SharedState] = None):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        super().__init__(item_type=item_type, _state=_state)
        self.capacity = capacity

    def push(self, value: ShortCircuit) -> None:
        queue = self._state.queue
        if len(queue) >= self.capacity:
            logger.error(f"Divergence buffer full ({self.capacity} pending values), cannot queue {value!r}")
            raise BufferCapacityError(f"Divergence buffer capacity of {self.capacity} exceeded")
        queue.append(value)

    def pop(self) -> Optional[ShortCircuit]:
        queue = self._state.queue
        return queue.popleft() if queue else None

    def clone(self) -> 'BoundedBuffer':
        return BoundedBuffer(self.capacity, _state=self._state)

    def __repr__(self):
        return f"BoundedBuffer(capacity={self.capacity}, pending={len(self)})"


def create_buffer(settings=None, item_type: Optional[type] = None) -> ControlFlowBuffer:
    """Create the divergence buffer selected by ``settings``.

    Args:
        settings: A BufferSettings instance.  If None, read from the configuration.
        item_type: Short-circuit family for the new buffer, or None to learn it.

    Returns:
        A fresh, empty buffer.
    """
    if settings is None:
        settings = get_buffer_settings()

    if settings.kind == "bounded":
        logger.debug(f"Creating bounded divergence buffer with capacity {settings.capacity}")
        return BoundedBuffer(settings.capacity, item_type=item_type)
    return DequeBuffer(item_type=item_type)
