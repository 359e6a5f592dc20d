"""Short-circuit values.

A short-circuit value is either a normal payload (the *output*) or a divergent
signal (the *residual*) that stops further normal processing.  Every value can
be asked to ``branch()`` into ``Continue(output)`` or ``Break(residual)``, and
every family of values can be rebuilt from either side with the classmethods
``from_output`` and ``from_residual``.

Three families are provided:

    ControlFlow:  Continue(value) | Break(value)
    Result:       Ok(value)       | Err(error)
    Option:       Some(value)     | Nothing()

Any other class can take part in the pipelines by subclassing
``ShortCircuit`` and implementing the three operations.

Examples:
    >>> Ok(3).branch()
    Continue(value=3)
    >>> Err("boom").branch()
    Break(value='boom')
    >>> Result.from_residual(Nothing().branch().value)
    Err(error=None)
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar('T')
E = TypeVar('E')


class UnwrapError(ValueError):
    """Raised when a short-circuit value is unwrapped on the wrong side."""


class ShortCircuit(ABC):
    """Base class for values that are either a normal output or a divergent residual."""

    @abstractmethod
    def branch(self) -> 'ControlFlow':
        """Return Continue(output) for a normal value, Break(residual) for a divergent one."""

    @classmethod
    @abstractmethod
    def from_output(cls, output: Any) -> 'ShortCircuit':
        """Build the normal value of this family around ``output``."""

    @classmethod
    @abstractmethod
    def from_residual(cls, residual: Any) -> 'ShortCircuit':
        """Build the divergent value of this family from ``residual``."""

    @classmethod
    def family(cls) -> type:
        """The class whose constructors rebuild values of this type.

        For ``Ok`` and ``Err`` this is ``Result``, for ``Some`` and ``Nothing``
        it is ``Option``.
        """
        for klass in cls.__mro__:
            if ShortCircuit in klass.__bases__:
                return klass
        return cls

    def is_normal(self) -> bool:
        return isinstance(self.branch(), Continue)

    def is_divergent(self) -> bool:
        return isinstance(self.branch(), Break)

    def unwrap(self) -> Any:
        """Return the output, raising UnwrapError if the value is divergent."""
        flow = self.branch()
        if isinstance(flow, Break):
            raise UnwrapError(f"called unwrap() on a divergent value: {self!r}")
        return flow.value

    def unwrap_err(self) -> Any:
        """Return the residual, raising UnwrapError if the value is normal."""
        flow = self.branch()
        if isinstance(flow, Continue):
            raise UnwrapError(f"called unwrap_err() on a normal value: {self!r}")
        return flow.value


class ControlFlow(ShortCircuit):
    """Continue or Break.  Control flow values are themselves short-circuiting."""

    def branch(self) -> 'ControlFlow':
        return self

    @classmethod
    def from_output(cls, output: Any) -> 'Continue':
        return Continue(output)

    @classmethod
    def from_residual(cls, residual: Any) -> 'Break':
        return Break(residual)


@dataclass(frozen=True)
class Continue(ControlFlow, Generic[T]):
    value: T


@dataclass(frozen=True)
class Break(ControlFlow, Generic[E]):
    value: E


class Result(ShortCircuit):
    """Ok(value) or Err(error).

    The residual of a result is its error.  Any residual can be turned into an
    ``Err``, which lets divergent values of other families (``Nothing`` has the
    residual ``None``) be carried inside a stream of results.
    """

    @classmethod
    def from_output(cls, output: Any) -> 'Ok':
        return Ok(output)

    @classmethod
    def from_residual(cls, residual: Any) -> 'Err':
        return Err(residual)

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        return isinstance(self, Err)


@dataclass(frozen=True)
class Ok(Result, Generic[T]):
    value: T

    def branch(self) -> Continue:
        return Continue(self.value)


@dataclass(frozen=True)
class Err(Result, Generic[E]):
    error: E

    def branch(self) -> Break:
        return Break(self.error)


class Option(ShortCircuit):
    """Some(value) or Nothing().  The residual of Nothing is None."""

    @classmethod
    def from_output(cls, output: Any) -> 'Some':
        return Some(output)

    @classmethod
    def from_residual(cls, residual: Any) -> 'Nothing':
        return Nothing()

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def is_nothing(self) -> bool:
        return isinstance(self, Nothing)


@dataclass(frozen=True)
class Some(Option, Generic[T]):
    value: T

    def branch(self) -> Continue:
        return Continue(self.value)


@dataclass(frozen=True)
class Nothing(Option):

    def branch(self) -> Break:
        return Break(None)


def branch(value: Any) -> ControlFlow:
    """Branch any short-circuit value, rejecting anything else.

    Raises:
        TypeError: If ``value`` is not a ShortCircuit instance.
    """
    if not isinstance(value, ShortCircuit):
        raise TypeError(f"Expected a short-circuit value, got {type(value).__name__}: {value!r}")
    return value.branch()


def family_of(value: Any) -> type:
    """Return the family class (Result, Option, ControlFlow, ...) of a short-circuit value."""
    if not isinstance(value, ShortCircuit):
        raise TypeError(f"Expected a short-circuit value, got {type(value).__name__}: {value!r}")
    return type(value).family()
