"""Running actions inside a trio program

refire has no event loop or clock of its own; something else has to deliver
results to continuations.  This module lets trio be that something.

`TrioHost` turns async functions into actions, running each firing as a
task in a nursery, and provides the timer that `gap_retry` needs.  `wait`
goes the other way: it lets a trio task fire an action and block until the
result arrives, in direct style.

```
async with trio.open_nursery() as nursery:
    host = TrioHost(nursery)
    fetch = host.action(fetch_url, "http://example.com")
    body = await wait(gap_retry(3, 500, fetch, host.timer))
```

The continuations here must be called from inside the same trio run, as
they are when the results come from a TrioHost.

"""
from __future__ import annotations
from dataclasses import dataclass
from refire.adapt import to_failure
from refire.core import Action, Continuation
from refire.failure import is_failure, throw
import logging
import outcome
import trio
import typing as t

__all__ = [
    'TrioHost',
    'wait',
    'wait_raw',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class TrioHost:
    "Runs the work of actions as tasks in a trio nursery"
    def __init__(self, nursery: trio.Nursery) -> None:
        self.nursery = nursery

    def action(self, async_fn: t.Callable[..., t.Awaitable[T]], *args: t.Any) -> Action[T]:
        """An action which calls `async_fn(*args)` in a new task each time it's fired

        If `async_fn` raises an Exception, a Failure holding it is delivered.
        Cancellation and other BaseExceptions propagate into the nursery.

        """
        def executor(cont: Continuation) -> None:
            async def run() -> None:
                result = await outcome.acapture(async_fn, *args)
                if isinstance(result, outcome.Error) and not isinstance(result.error, Exception):
                    result.unwrap()
                try:
                    cont(to_failure(result))
                except Exception:
                    logger.exception("TrioHost.action(%s): continuation raised exception", async_fn)
                    raise
            self.nursery.start_soon(run)
        return Action(executor)

    def timer(self, interval_ms: int) -> Action[None]:
        "An action which delivers None after `interval_ms` milliseconds"
        return self.action(trio.sleep, interval_ms / 1000)

@dataclass
class _Waiter:
    task: t.Any
    on_stack: bool = True
    cancelled: bool = False
    delivered: bool = False
    saved: t.Optional[outcome.Value] = None

    def send(self, data: t.Any) -> None:
        if self.cancelled:
            # nobody is waiting any more
            logger.debug("_Waiter(%s): result %s arrived after cancellation", self.task, data)
            return
        if self.delivered:
            logger.debug("_Waiter(%s): dropping second result %s", self.task, data)
            return
        self.delivered = True
        if self.on_stack:
            # The action delivered synchronously, before the task went to sleep;
            # wait_raw picks it up from here.
            self.saved = outcome.Value(data)
            return
        logger.debug("_Waiter(%s): resuming with %s", self.task, data)
        trio.lowlevel.reschedule(self.task, outcome.Value(data))

    def abort(self, raise_cancel: t.Any) -> trio.lowlevel.Abort:
        logger.debug("_Waiter(%s): cancelled", self.task)
        self.cancelled = True
        return trio.lowlevel.Abort.SUCCEEDED

async def wait_raw(action: Action[T]) -> t.Any:
    "Fire `action` and wait for its result, which may be a Failure"
    waiter = _Waiter(trio.lowlevel.current_task())
    action._go(waiter.send)
    waiter.on_stack = False
    if waiter.saved is not None:
        return waiter.saved.unwrap()
    return await trio.lowlevel.wait_task_rescheduled(waiter.abort)

async def wait(action: Action[T]) -> T:
    "Fire `action` and wait for its result, raising UnhandledFailure if it's a Failure"
    data = await wait_raw(action)
    if is_failure(data):
        throw(data)
    return data
