"""Core definitions for composable pipelines over short-circuit values.

A pipeline is made of a source that produces short-circuit values (``Ok`` /
``Err``, ``Some`` / ``Nothing``, ...) followed by segments and folds chained
with ``|``.  A segment's ``transform`` sees only the normal outputs; divergent
values bypass it and reappear in the segment's output in their original
position.  A fold reduces the outputs to a single value, or to the first
divergent value it meets.
"""
import logging
from abc import ABC, abstractmethod
from typing import (
    Any, TypeVar, Generic, Iterable, Iterator, Union, Callable, Type, Concatenate, ParamSpec, Annotated
)
from branchpipe.util.iterators import with_filtered, with_folding
from branchpipe.util.shortcircuit import ShortCircuit

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')
P = ParamSpec('P')


class AbstractSegment(ABC, Generic[T, U]):
    """Abstract base class for all segments.

    A segment is an operation applied to a stream of short-circuit values,
    producing another stream of short-circuit values.

    Key characteristics:
    - transform() works on plain outputs (T -> U), never on Ok/Err wrappers
    - Number of output items may differ from the number of input items
    - Divergent values skip transform() and come back out in order
    - Can be chained together using the | operator
    - Lazy: nothing is pulled until the output is iterated

    Attributes:
        raw (bool): If True, transform() receives the short-circuit values
                    themselves and is responsible for passing divergent values on.
        item_type: Short-circuit family used to wrap outputs.  If None, the
                   family of the incoming values is used.
    """

    def __init__(self,
                 raw: Annotated[bool, "If True, transform() receives short-circuit values instead of plain outputs."] = False,
                 item_type: Annotated[type, "Family used to wrap outputs; learned from the input if None."] = None):
        self.raw = raw
        self.item_type = item_type

    @abstractmethod
    def transform(self, input_iter: Annotated[Iterable[T], "An iterable of outputs to process"]) -> Iterator[U]:
        """Transform outputs into outputs.

        Notes:
            - The number of output items need not equal the number of input items
            - The segment may consume only part of the input iterator
            - Kept items must stay in input order, or divergent values will be
              put back in the wrong place

        Examples:
            # Filtering (reducing items)
            def transform(self, input_iter):
                for item in input_iter:
                    if item > 0:
                        yield item

            # Expanding (increasing items)
            def transform(self, input_iter):
                for item in input_iter:
                    yield item
                    yield item * 2
        """

    def __or__(self, other: 'AbstractSegment[U, Any]') -> 'Pipeline':
        """Allows chaining operations using the | (or) operator."""
        return Pipeline(self, other)

    def __call__(self, input_iter: Iterable[ShortCircuit] = None) -> Iterator[ShortCircuit]:
        logger.debug(f"Running segment {self.__class__.__name__}")

        if input_iter is None:
            input_iter = iter([])

        if self.raw:
            return iter(self.transform(input_iter))
        return with_filtered(input_iter, self.transform, item_type=self.item_type)

    def as_function(self,
                    single_in: Annotated[bool, "If True, the function will expect a single input argument."] = False,
                    single_out: Annotated[bool, "If True, the function will return a single output."] = False) -> Callable:
        """Convert the segment to a callable function.

        By default, the function will expect and return an iterable.
        single_in and single_out can be set to True to expect a single input and return a single output.
        """
        def func(item=None):
            results = list(self([item] if single_in else item))
            if single_out:
                if len(results) != 1:
                    raise ValueError(f"Expected 1 result, got {len(results)}")
                return results[0]
            return results
        return func


class AbstractFold(AbstractSegment[T, U]):
    """Abstract base class for folds.

    A fold consumes the outputs of its input and yields exactly one
    short-circuit value: the result of fold() wrapped as a normal value, or the
    first divergent value of the input.  Inputs past that divergent value are
    not pulled.
    """

    def __init__(self, item_type: Annotated[type, "Family of the result; learned from the input if None."] = None):
        super().__init__(raw=True, item_type=item_type)

    @abstractmethod
    def fold(self, outputs: Iterator[T]) -> U:
        """Reduce the outputs to a single plain value."""

    def transform(self, input_iter: Iterable[ShortCircuit]) -> Iterator[ShortCircuit]:
        result = with_folding(input_iter, self.fold, item_type=self.item_type)
        logger.debug(f"Fold {self.__class__.__name__} finished with {result!r}")
        yield result


class AbstractSource(ABC, Generic[U]):
    """Abstract base class for data sources that can start a pipeline.

    Sources produce short-circuit values without requiring input from upstream
    segments.
    """

    @abstractmethod
    def generate(self) -> Iterator[ShortCircuit]:
        """Generate short-circuit values for the pipeline.

        Notes:
            - May generate finite or infinite sequences
            - Should use yield to produce items lazily
        """

    def __or__(self, other: 'AbstractSegment[U, Any]') -> 'Pipeline':
        """Allows chaining operations using the | (or) operator."""
        return Pipeline(self, other)

    def __call__(self) -> Iterator[ShortCircuit]:
        """Allows calling the instance to generate an iterator."""
        logger.debug(f"Running source {self.__class__.__name__}")
        return self.generate()


def source(*decorator_args: Annotated[Any, "Positional arguments for the source"],
           **decorator_kwargs: Annotated[Any, "Keyword arguments for the source"]):
    """Decorator to convert a generator function into a source class.

    Can be used with or without arguments:

        @source
        def readings():
            yield Ok(1)
            yield Err("sensor offline")

        @source(start=0)
        def counter(start, stop):
            for i in range(start, stop):
                yield Ok(i)

    Returns:
        A Source class that can be instantiated and chained into pipelines.
    """
    if len(decorator_args) == 1 and callable(decorator_args[0]):
        func = decorator_args[0]

        class FunctionSource(AbstractSource[U]):

            def __init__(self):
                self._original_func = func

            def generate(self) -> Iterator[ShortCircuit]:
                yield from func()

        FunctionSource.__name__ = f"{func.__name__}Source"
        FunctionSource.__doc__ = func.__doc__
        FunctionSource._original_func = func
        return FunctionSource

    def decorator(func: Callable[P, Iterable[ShortCircuit]]) -> Type[AbstractSource[U]]:
        class ParameterizedSource(AbstractSource[U]):
            def __init__(self, *init_args, **init_kwargs):
                # Constructor arguments take precedence
                merged_kwargs = {**decorator_kwargs, **init_kwargs}
                self._func = lambda: func(*init_args, **merged_kwargs)
                self._original_func = func

            def generate(self) -> Iterator[ShortCircuit]:
                return iter(self._func())

        ParameterizedSource.__name__ = f"{func.__name__}Source"
        ParameterizedSource.__doc__ = func.__doc__
        ParameterizedSource._original_func = func
        return ParameterizedSource

    return decorator


def segment(*decorator_args: Annotated[Any, "Positional arguments for the operation"],
            **decorator_kwargs: Annotated[Any, "Keyword arguments for the operation"]):
    """Decorator to convert a function into a segment class with optional parameters.

    The decorated function receives an iterator of outputs (plain values,
    divergent values already set aside) and yields outputs.

        @segment
        def doubled(items):
            for item in items:
                yield item * 2

        @segment(threshold=0)
        def above(items, threshold):
            for item in items:
                if item > threshold:
                    yield item

    ``raw`` and ``item_type`` may be given to the decorator or the constructor
    and are passed to AbstractSegment rather than to the function.

    Returns:
        A Segment class that can be instantiated and chained into pipelines.
    """
    if len(decorator_args) == 1 and callable(decorator_args[0]):
        func = decorator_args[0]

        class FunctionSegment(AbstractSegment[T, U]):

            def __init__(self, raw: bool = False, item_type: type = None):
                super().__init__(raw=raw, item_type=item_type)
                self._original_func = func

            def transform(self, input_iter: Iterable[T]) -> Iterator[U]:
                return func(input_iter)

        FunctionSegment.__name__ = f"{func.__name__}Segment"
        FunctionSegment.__doc__ = func.__doc__
        FunctionSegment._original_func = func
        return FunctionSegment

    def decorator(func: Callable[Concatenate[Iterable[T], P], Iterable[U]]) -> Type[AbstractSegment[T, U]]:
        class ParameterizedSegment(AbstractSegment[T, U]):
            def __init__(self, *init_args, **init_kwargs):
                # Constructor arguments take precedence
                raw = init_kwargs.pop('raw', decorator_kwargs.get('raw', False))
                item_type = init_kwargs.pop('item_type', decorator_kwargs.get('item_type', None))
                super().__init__(raw=raw, item_type=item_type)
                merged_kwargs = {k: v for k, v in {**decorator_kwargs, **init_kwargs}.items()
                                 if k not in ('raw', 'item_type')}
                self._func = lambda x: func(x, *init_args, **merged_kwargs)
                self._original_func = func

            def transform(self, input_iter: Iterable[T]) -> Iterator[U]:
                return self._func(input_iter)

        ParameterizedSegment.__name__ = f"{func.__name__}Segment"
        ParameterizedSegment.__doc__ = func.__doc__
        ParameterizedSegment._original_func = func
        return ParameterizedSegment

    return decorator


def fold(*decorator_args: Annotated[Any, "Positional arguments for the fold"],
         **decorator_kwargs: Annotated[Any, "Keyword arguments for the fold"]):
    """Decorator to convert a reducing function into a fold class.

    The decorated function receives an iterator of outputs that ends at the
    first divergent value, and returns a single plain value.

        @fold
        def product(items):
            return math.prod(items)

        @fold(n=3)
        def first_n(items, n):
            return list(itertools.islice(items, n))

    Returns:
        A Fold class that can be instantiated and chained at the end of pipelines.
    """
    if len(decorator_args) == 1 and callable(decorator_args[0]):
        func = decorator_args[0]

        class FunctionFold(AbstractFold[T, U]):

            def __init__(self, item_type: type = None):
                super().__init__(item_type=item_type)
                self._original_func = func

            def fold(self, outputs: Iterator[T]) -> U:
                return func(outputs)

        FunctionFold.__name__ = f"{func.__name__}Fold"
        FunctionFold.__doc__ = func.__doc__
        FunctionFold._original_func = func
        return FunctionFold

    def decorator(func: Callable[Concatenate[Iterator[T], P], U]) -> Type[AbstractFold[T, U]]:
        class ParameterizedFold(AbstractFold[T, U]):
            def __init__(self, *init_args, **init_kwargs):
                item_type = init_kwargs.pop('item_type', decorator_kwargs.get('item_type', None))
                super().__init__(item_type=item_type)
                merged_kwargs = {k: v for k, v in {**decorator_kwargs, **init_kwargs}.items() if k != 'item_type'}
                self._func = lambda x: func(x, *init_args, **merged_kwargs)
                self._original_func = func

            def fold(self, outputs: Iterator[T]) -> U:
                return self._func(outputs)

        ParameterizedFold.__name__ = f"{func.__name__}Fold"
        ParameterizedFold.__doc__ = func.__doc__
        ParameterizedFold._original_func = func
        return ParameterizedFold

    return decorator


class Pipeline(AbstractSegment):
    """A sequence of sources, segments and folds chained together.

    Each operation draws from the output of the previous one.  Every segment
    splits off and restores divergent values on its own, so a divergent value
    produced by the source travels through the whole pipeline untouched.

    Examples:
        pipeline = readings() | doubled() | above(threshold=3) | total()
        results = list(pipeline())
    """

    def __init__(self, *operations: Union[AbstractSource, AbstractSegment]):
        super().__init__(raw=True)
        self.operations = list(operations)

    def transform(self, input_iter: Iterable[ShortCircuit] = None) -> Iterator[ShortCircuit]:
        current_iter = input_iter
        for op in self.operations:
            if isinstance(op, AbstractSource):
                current_iter = op()
            else:
                current_iter = op(current_iter)
        yield from current_iter

    def __or__(self, other: Union[AbstractSource, AbstractSegment]) -> 'Pipeline':
        """Chain another operation onto this pipeline using the | operator."""
        return Pipeline(*self.operations, other)
