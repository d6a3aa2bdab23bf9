"""Helpers for bringing outside code into the failure-as-value world

Code outside of refire reports errors with exceptions, or with a separate
error callback.  These helpers turn both into Failure values.

"""
from __future__ import annotations
from dataclasses import dataclass, field
from refire.core import Action, Continuation
from refire.failure import Failure
import functools
import logging
import outcome
import threading
import typing as t

__all__ = [
    'from_callbacks',
    'safe',
    'to_failure',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

def to_failure(result: outcome.Outcome) -> t.Any:
    "Turn an outcome into a result value; an Error becomes a Failure holding the exception"
    if isinstance(result, outcome.Error):
        return Failure(result.error)
    return result.unwrap()

def safe(cb: t.Callable[..., T]) -> t.Callable[..., t.Any]:
    """Wrap a continuation step so that if it raises, it returns a Failure instead

    Only Exception is caught; KeyboardInterrupt and friends still propagate.

    """
    @functools.wraps(cb)
    def wrapper(*args: t.Any) -> t.Any:
        result = outcome.capture(cb, *args)
        if isinstance(result, outcome.Error) and not isinstance(result.error, Exception):
            result.unwrap()
        return to_failure(result)
    return wrapper

OnSuccess = t.Callable[[t.Any], None]
OnError = t.Callable[[t.Any], None]

@dataclass
class _CallbackState:
    called: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)

def from_callbacks(fn: t.Callable[[OnSuccess, OnError], None]) -> Action[t.Any]:
    """Make an action from an API which takes a success callback and an error callback

    Each firing calls `fn` again.  Calling the error callback delivers a
    Failure of whatever it was called with.  Only the first call to either
    callback is delivered; later calls are logged and dropped.

    """
    def executor(cont: Continuation) -> None:
        state = _CallbackState()
        def deliver(data: t.Any) -> None:
            with state.lock:
                if state.called:
                    logger.debug("from_callbacks(%s): dropping extra callback with %s", fn, data)
                    return
                state.called = True
            cont(data)
        fn(deliver, lambda error: deliver(Failure(error)))
    return Action(executor)
