"""Combinators which build new actions out of existing ones

Everything here is built on the public interface of Action: the
constructor, `_go`, `next` and `guard`.  We use `_go` rather than `go`
wherever we fan out, since we need to see failures as values to aggregate
them, rather than have them raised at us.

Each firing of a combinator's action gets its own small state object
holding its counters, result slots and latch.  Nothing is shared between
firings, so a combinator's action may be fired again while a previous
firing is still running.  The state objects take a lock around each
mutation, so completions may arrive from different threads; the
continuation itself is always called outside the lock.

None of these combinators cancel anything.  When `any_of` has a winner, the
other actions keep running, and their results are just dropped on arrival.

"""
from __future__ import annotations
from dataclasses import dataclass, field
from refire.core import Action, Continuation
from refire.failure import Failure, is_failure
import logging
import threading
import typing as t

__all__ = [
    'sequence',
    'any_of',
    'any_success',
    'all_of',
    'all_success',
    'retry',
    'gap_retry',
    'sequence_try',
    'RETRY_FOREVER',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')
In = t.TypeVar('In')

Factory = t.Callable[[t.Any], Action[t.Any]]
Timer = t.Callable[[int], Action[None]]
"Given a number of milliseconds, an action which delivers None after that long"

NO_ACTIONS = "no actions given"
ALL_FAILED = "all actions failed"
RETRY_LIMIT = "retry limit reached"
TRY_LIMIT = "try limit reached"
NO_ARGUMENTS = "no arguments for monadic"

RETRY_FOREVER = -1

def _deferred(factory: t.Callable[[In], Action[T]], data: In) -> Action[T]:
    "Call `factory` only when the resulting action is fired, and every time it's fired"
    return Action(lambda cont: factory(data)._go(cont))

#### Sequential composition
def sequence(factories: t.Sequence[Factory]) -> t.Callable[[t.Any], Action[t.Any]]:
    """Compose action factories end to end

    The returned function takes the input for the first factory; each later
    factory gets the output of the one before.  A failure skips the rest.

    """
    factories = list(factories)
    if not factories:
        return lambda data: Action.fail(NO_ACTIONS)
    def run(data: t.Any) -> Action[t.Any]:
        action = _deferred(factories[0], data)
        for factory in factories[1:]:
            action = action.next(factory)
        return action
    return run

#### Racing
@dataclass
class _RaceState:
    remaining: int
    delivered: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)

def any_of(actions: t.Sequence[Action[T]]) -> Action[T]:
    "Fire all the actions at once, and deliver whichever result comes first, failure or not"
    actions = list(actions)
    def executor(cont: Continuation) -> None:
        state = _RaceState(remaining=len(actions))
        def on_result(data: t.Any) -> None:
            with state.lock:
                if state.delivered:
                    logger.debug("any_of: discarding late result %s", data)
                    return
                state.delivered = True
            cont(data)
        for action in actions:
            action._go(on_result)
    return Action(executor)

def any_success(actions: t.Sequence[Action[T]]) -> Action[T]:
    """Fire all the actions at once, and deliver the first result which isn't a failure

    If every action fails, deliver a failure once the last one has.  If no
    actions are passed, nothing is ever delivered.

    """
    actions = list(actions)
    def executor(cont: Continuation) -> None:
        state = _RaceState(remaining=len(actions))
        def on_result(data: t.Any) -> None:
            with state.lock:
                if state.delivered:
                    logger.debug("any_success: discarding late result %s", data)
                    return
                if is_failure(data):
                    state.remaining -= 1
                    if state.remaining > 0:
                        return
                    data = Failure(ALL_FAILED, data)
                state.delivered = True
            cont(data)
        for action in actions:
            action._go(on_result)
    return Action(executor)

#### Fan-out/fan-in
@dataclass
class _GatherState:
    results: t.List[t.Any]
    remaining: int
    delivered: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)

def _gather(actions: t.List[Action[t.Any]], fail_fast: bool) -> Action[t.List[t.Any]]:
    def executor(cont: Continuation) -> None:
        count = len(actions)
        if count == 0:
            cont([])
            return
        state = _GatherState(results=[None]*count, remaining=count)
        def on_nth(n: int) -> Continuation:
            def on_result(data: t.Any) -> None:
                with state.lock:
                    if state.delivered:
                        logger.debug("gather: discarding result %s for slot %d", data, n)
                        return
                    if fail_fast and is_failure(data):
                        state.delivered = True
                        result = data
                    else:
                        state.results[n] = data
                        state.remaining -= 1
                        if state.remaining > 0:
                            return
                        state.delivered = True
                        result = list(state.results)
                cont(result)
            return on_result
        for i, action in enumerate(actions):
            action._go(on_nth(i))
    return Action(executor)

def all_of(actions: t.Sequence[Action[T]]) -> Action[t.List[T]]:
    """Fire all the actions at once, and deliver a list of their results in order

    The first failure is delivered immediately instead, and everything after
    it is ignored.

    """
    return _gather(list(actions), fail_fast=True)

def all_success(actions: t.Sequence[Action[T]]) -> Action[t.List[t.Any]]:
    """Fire all the actions at once, and deliver a list of their results in order

    Failures don't stop anything; a failed action's slot holds its failure.

    """
    return _gather(list(actions), fail_fast=False)

#### Retrying
def _check_limit(limit: int) -> None:
    if limit < RETRY_FOREVER:
        raise ValueError("retry limit must be non-negative, or RETRY_FOREVER", limit)

def _decrement(remaining: int) -> int:
    return remaining if remaining == RETRY_FOREVER else remaining - 1

def retry(limit: int, action: Action[T]) -> Action[T]:
    """Fire `action`, and fire it again on failure, up to `limit` more times

    So `retry(0, action)` makes one attempt, and `retry(1, action)` at most
    two.  With RETRY_FOREVER, we keep going until it succeeds.

    """
    _check_limit(limit)
    def attempt(remaining: int) -> Action[T]:
        def on_failure(failure: Failure) -> t.Any:
            if remaining == 0:
                logger.debug("retry: giving up after %s", failure)
                return Failure(RETRY_LIMIT, failure)
            logger.debug("retry: retrying after %s, %d retries left", failure, remaining)
            return attempt(_decrement(remaining))
        return action.guard(on_failure)
    return Action(lambda cont: attempt(limit)._go(cont))

def gap_retry(limit: int, interval_ms: int, action: Action[T], timer: Timer) -> Action[T]:
    """Like `retry`, but wait for `timer(interval_ms)` before each retry

    We don't own any clock; `timer` is provided by whatever is running us.

    """
    _check_limit(limit)
    if interval_ms < 0:
        raise ValueError("retry interval must be non-negative", interval_ms)
    def attempt(remaining: int) -> Action[T]:
        def on_failure(failure: Failure) -> t.Any:
            if remaining == 0:
                logger.debug("gap_retry: giving up after %s", failure)
                return Failure(RETRY_LIMIT, failure)
            logger.debug("gap_retry: retrying in %dms after %s, %d retries left",
                         interval_ms, failure, remaining)
            return timer(interval_ms).next(lambda _: attempt(_decrement(remaining)))
        return action.guard(on_failure)
    return Action(lambda cont: attempt(limit)._go(cont))

def sequence_try(inputs: t.Sequence[In], factory: t.Callable[[In], Action[T]]) -> Action[T]:
    """Try `factory` on each input in turn, until one of the resulting actions succeeds

    If they all fail, deliver a failure.

    """
    inputs = list(inputs)
    if not inputs:
        return Action.fail(NO_ARGUMENTS)
    def attempt(index: int) -> Action[T]:
        def on_failure(failure: Failure) -> t.Any:
            if index + 1 >= len(inputs):
                logger.debug("sequence_try: all %d inputs failed", len(inputs))
                return Failure(TRY_LIMIT, failure)
            logger.debug("sequence_try: input %d failed with %s, trying next", index, failure)
            return attempt(index + 1)
        return _deferred(factory, inputs[index]).guard(on_failure)
    return attempt(0)
