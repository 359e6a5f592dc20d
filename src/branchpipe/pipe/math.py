"""Stock sources, segments and folds."""

import itertools
import logging
from typing import Any, Callable, Iterable, Iterator, Optional, Union

from branchpipe.pipe import core
from branchpipe.util.shortcircuit import Break, Result, ShortCircuit, branch, family_of

logger = logging.getLogger(__name__)


@core.source()
def lift(values: Iterable[Any], item_type: type = Result) -> Iterator[ShortCircuit]:
    """Wrap each plain value as a normal value of ``item_type`` (Ok by default)."""
    for value in values:
        yield item_type.from_output(value)


@core.source()
def arange(lower: int = 0, upper: int = 10) -> Iterator[ShortCircuit]:
    """Generate Ok(i) for the integers between lower (inclusive) and upper (exclusive)."""
    for i in range(lower, upper):
        yield Result.from_output(i)


@core.segment(raw=True)
def attempt(items: Iterable[ShortCircuit], func: Callable[[Any], Any]) -> Iterator[ShortCircuit]:
    """Apply ``func`` to each output, turning exceptions into divergent values.

    Divergent inputs pass through unchanged.  If ``func`` raises, the exception
    becomes the residual of a new divergent value of the same family (an
    ``Err(exc)`` for results, ``Nothing()`` for options).

    Example:
        lift([1, 0, 4]) | attempt(func=lambda n: 8 // n)
        # Ok(8), Err(ZeroDivisionError(...)), Ok(2)
    """
    for value in items:
        flow = branch(value)
        if isinstance(flow, Break):
            yield value
            continue
        family = family_of(value)
        try:
            yield family.from_output(func(flow.value))
        except Exception as e:
            logger.debug(f"attempt: {func!r} raised {e!r} on {flow.value!r}")
            yield family.from_residual(e)


@core.segment()
def scale(items: Iterable[Union[int, float]], multiplier: Union[int, float] = 2) -> Iterator[Union[int, float]]:
    """Scale each output by the multiplier."""
    for x in items:
        yield x * multiplier


@core.segment()
def take(items: Iterable[Any], n: int = 1) -> Iterator[Any]:
    """Pass on only the first n outputs.

    Divergent values that come before the n-th output are still passed on;
    nothing after it is pulled.
    """
    yield from itertools.islice(items, n)


@core.segment()
def repeat_each(items: Iterable[Any], times: int = 2) -> Iterator[Any]:
    """Emit every output ``times`` times in a row."""
    for item in items:
        for _ in range(times):
            yield item


class AbstractComparisonFilter(core.AbstractSegment):
    """Abstract base class for comparison segments."""

    def __init__(self, n: Any, comparator: Callable[[Any, Any], bool], key: Optional[Callable[[Any], Any]] = None):
        super().__init__()
        self.n = n
        self.comparator = comparator
        self.key = key

    def transform(self, items: Iterable) -> Iterable:
        """Filter outputs based on the comparison."""
        for item in items:
            value = self.key(item) if self.key else item
            if self.comparator(value, self.n):
                yield item


class eq(AbstractComparisonFilter):
    """Keep outputs equal to n.

    Args:
        n: Value to compare against
        key: Optional function applied to each output before comparing
    """

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x == y, key)


class neq(AbstractComparisonFilter):
    """Keep outputs not equal to n."""

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x != y, key)


class gt(AbstractComparisonFilter):
    """Keep outputs greater than n.

    Args:
        n: Number to compare against
        key: Optional function applied to each output before comparing
    """

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x > y, key)


class gte(AbstractComparisonFilter):
    """Keep outputs greater than or equal to n."""

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x >= y, key)


class lt(AbstractComparisonFilter):
    """Keep outputs less than n."""

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x < y, key)


class lte(AbstractComparisonFilter):
    """Keep outputs less than or equal to n."""

    def __init__(self, n: Any, key: Optional[Callable[[Any], Any]] = None):
        super().__init__(n, lambda x, y: x <= y, key)


@core.fold()
def total(items: Iterator[Union[int, float]], start: Union[int, float] = 0) -> Union[int, float]:
    """Sum the outputs, or stop at the first divergent value."""
    return sum(items, start)


@core.fold
def count(items: Iterator[Any]) -> int:
    """Count the outputs, or stop at the first divergent value."""
    return sum(1 for _ in items)


@core.fold
def maximum(items: Iterator[Any]) -> Any:
    """Largest output (None if there are none), or the first divergent value."""
    return max(items, default=None)


@core.fold
def collect(items: Iterator[Any]) -> list:
    """Gather all outputs into a list, or stop at the first divergent value."""
    return list(items)
