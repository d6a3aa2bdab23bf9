"Hand-driven stand-ins for an event loop, for testing actions without a real host"
from refire import Action, Continuation, Failure
import collections
import typing as t

import logging
logger = logging.getLogger(__name__)
# logging.basicConfig(level=logging.DEBUG)

class CallbackQueue:
    """Holds continuations until told to call them, in order

    Actions made with `later` don't deliver when fired; they queue their
    continuation, and `run` delivers everything queued so far, including
    anything queued while running.

    """
    def __init__(self) -> None:
        self._pending: t.Deque[t.Tuple[Continuation, t.Any]] = collections.deque()

    def later(self, data: t.Any) -> Action:
        def executor(cont: Continuation) -> None:
            logger.debug("CallbackQueue: queueing %s", data)
            self._pending.append((cont, data))
        return Action(executor)

    def later_fail(self, reason: t.Any) -> Action:
        return self.later(Failure(reason))

    def run_one(self) -> None:
        cont, data = self._pending.popleft()
        cont(data)

    def run(self) -> int:
        count = 0
        while self._pending:
            self.run_one()
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._pending)

class Held:
    """An action whose firings wait until the test delivers a result explicitly

    Each firing appends its continuation to `conts`, so a test can complete
    several actions in whatever order it likes.

    """
    def __init__(self) -> None:
        self.conts: t.List[Continuation] = []
        self.action = Action(self.conts.append)

    def deliver(self, data: t.Any, firing: int=-1) -> None:
        self.conts[firing](data)

class Flaky:
    "An action which fails the first `failures` times it's fired, then succeeds"
    def __init__(self, failures: int, value: t.Any="ok") -> None:
        self.failures = failures
        self.value = value
        self.attempts = 0
        self.action = Action(self._executor)

    def _executor(self, cont: Continuation) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            cont(Failure(f"attempt {self.attempts} failed"))
        else:
            cont(self.value)
