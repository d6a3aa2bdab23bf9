"""Failures as values

A failure is just a value flowing through the same continuation as every
other result; it is distinguished only by its type.  `Action.next` skips
over failures and `Action.guard` catches them.  Nothing here is an
exception, except for `UnhandledFailure`, which is what `Action.go` raises
when a failure reaches the end of a chain with nobody left to handle it.

"""
from __future__ import annotations
from dataclasses import dataclass
import typing as t

__all__ = [
    'Failure',
    'is_failure',
    'UnhandledFailure',
    'throw',
]

@dataclass(frozen=True)
class Failure:
    """A result value which represents an error

    `reason` is whatever the producer wanted to say about the error; usually a
    string message or an exception object.  When a combinator gives up and
    replaces some failure with its own, the one it replaced is kept as `cause`.

    """
    reason: t.Any
    cause: t.Optional[Failure] = None

    def __str__(self) -> str:
        return f"Failure({self.reason!r})"

    def find_exception(self) -> t.Optional[BaseException]:
        "The first exception found walking this failure and its causes"
        failure: t.Optional[Failure] = self
        while failure is not None:
            if isinstance(failure.reason, BaseException):
                return failure.reason
            failure = failure.cause
        return None

def is_failure(data: t.Any) -> bool:
    "Is this result a failure value?"
    return isinstance(data, Failure)

class UnhandledFailure(Exception):
    """A failure reached the end of a chain fired with `go`.

    There was no `guard` to catch it, so we raise it rather than let it be
    silently dropped.

    """
    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.reason)
        self.failure = failure

def throw(failure: Failure) -> t.NoReturn:
    "Raise UnhandledFailure for this failure, chained to the underlying exception if it has one"
    exn = failure.find_exception()
    if exn is not None:
        raise UnhandledFailure(failure) from exn
    raise UnhandledFailure(failure)
