"""Actions: replayable deferred computations in continuation-passing style

An Action wraps an executor, which is a function taking a continuation (a
one-argument callback).  Firing the action calls the executor; the executor
does its work, synchronously or not, and eventually calls the continuation
exactly once with the result.

```
def read_config(cont):
    cont(open("config").read())
action = Action(read_config).next(parse).next(validate)
action.go(print)
```

Unlike a future, an Action holds no result.  Nothing happens when it's
constructed, and every time it's fired the executor runs again from scratch;
so an action may be kept around and fired again when the underlying state
it reads has changed.

Errors are plain values of type Failure, delivered down the same
continuation as everything else.  `next` steps skip over a failure;
`guard` steps are the only ones which see it.

"""
from __future__ import annotations
from dataclasses import dataclass
from refire.failure import Failure, is_failure, throw
import enum
import functools
import logging
import typing as t

__all__ = [
    'Action',
    'Continuation',
    'Executor',
    'Value',
    'Pending',
    'classify',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

Continuation = t.Callable[[t.Any], None]
"Receives a single result value, which may be a Failure"

Executor = t.Callable[[Continuation], None]
"Performs some work and passes the result to the continuation, exactly once"

@dataclass
class Value(t.Generic[T]):
    "A step produced an ordinary value"
    __slots__ = ('value',)
    value: T

@dataclass
class Pending(t.Generic[T]):
    "A step produced another action, whose result is the result of the step"
    __slots__ = ('action',)
    action: Action[T]

Step = t.Union[Value[T], Pending[T], Failure]

def classify(result: t.Any) -> Step:
    "Tag the return value of a continuation step, so we can dispatch on it"
    if isinstance(result, Action):
        return Pending(result)
    elif isinstance(result, Failure):
        return result
    else:
        return Value(result)

class Kind(enum.Enum):
    CHAIN = "chain"
    NEXT = "next"
    GUARD = "guard"

@dataclass
class _Link:
    "One `chain`/`next`/`guard` step applied on top of another action"
    __slots__ = ('kind', 'cb')
    kind: Kind
    cb: t.Callable[[t.Any], t.Any]

    def wants(self, data: t.Any) -> bool:
        if self.kind is Kind.NEXT:
            return not is_failure(data)
        elif self.kind is Kind.GUARD:
            return is_failure(data)
        return True

class _Firing:
    """The state of one firing of an action

    Rather than have each step fire the step before it and wait on its
    continuation, which would add stack frames for every step, we unwind the
    whole chain into a list of links and run through it in a loop.  When a
    link returns an action, its links are spliced in where we are, and its
    executor is fired with our own continuation.

    If an executor delivers synchronously, while we're still inside it, we
    just note the result and pick it up in the loop once the executor
    returns.  So a chain of any length, or a `retry` that fails synchronously
    any number of times, runs in constant stack depth.

    """
    __slots__ = ('cont', 'links', 'generation', 'accepted', 'running', 'ready', 'data')

    def __init__(self, cont: Continuation) -> None:
        self.cont = cont
        # the next link to run is at the end
        self.links: t.List[_Link] = []
        self.generation = 0
        self.accepted = 0
        self.running = False
        self.ready = False
        self.data: t.Any = None

    def fire(self, action: Action[t.Any]) -> None:
        self.running = True
        try:
            self._enter(action)
        finally:
            self.running = False
        if self.ready:
            self._run()

    def _enter(self, action: Action[t.Any]) -> None:
        links: t.List[_Link] = []
        while action.link is not None:
            links.append(action.link)
            action = action.parent
        self.links.extend(links)
        self.generation += 1
        action.executor(functools.partial(self._resume, self.generation))

    def _resume(self, generation: int, data: t.Any) -> None:
        if generation != self.generation or generation == self.accepted:
            logger.debug("_Firing: dropping extra result %s from executor", data)
            return
        self.accepted = generation
        self.data = data
        self.ready = True
        if not self.running:
            self._run()

    def _run(self) -> None:
        done = False
        self.running = True
        try:
            while self.ready:
                self.ready = False
                data = self.data
                while self.links:
                    link = self.links.pop()
                    if not link.wants(data):
                        continue
                    step = classify(link.cb(data))
                    if isinstance(step, Pending):
                        self._enter(step.action)
                        break
                    elif isinstance(step, Value):
                        data = step.value
                    else:
                        data = step
                else:
                    done = True
        finally:
            self.running = False
        if done:
            self.cont(data)

class Action(t.Generic[T]):
    """A reference to a deferred computation which can be fired any number of times

    The executor must call its continuation at most once per firing; any
    later calls are logged and dropped.  Combinators which fan out to several
    actions rely on this.

    An action made by `chain`, `next` or `guard` has no executor of its own;
    it holds the action it was made from and the link to apply on top.

    """
    __slots__ = ('executor', 'parent', 'link')

    def __init__(self, executor: Executor) -> None:
        self.executor = executor
        self.parent: t.Optional[Action[t.Any]] = None
        self.link: t.Optional[_Link] = None

    def _derive(self, kind: Kind, cb: t.Callable[[t.Any], t.Any]) -> Action[t.Any]:
        action: Action[t.Any] = Action(self._go)
        action.parent = self
        action.link = _Link(kind, cb)
        return action

    @staticmethod
    def value(data: T) -> Action[T]:
        "An action which immediately delivers `data`"
        return Action(lambda cont: cont(data))

    @staticmethod
    def fail(reason: t.Any) -> Action[t.Any]:
        "An action which immediately delivers a Failure with this reason"
        failure = Failure(reason)
        return Action(lambda cont: cont(failure))

    def chain(self, cb: t.Callable[[t.Any], t.Any]) -> Action[t.Any]:
        """Pass every result of this action to `cb`, failures included

        If `cb` returns an Action, that action is fired and its result is
        forwarded instead.

        """
        return self._derive(Kind.CHAIN, cb)

    def next(self, cb: t.Callable[[T], t.Any]) -> Action[t.Any]:
        """Pass the result of this action to `cb`, unless it's a failure

        Failures skip `cb` and are forwarded unchanged, so a failure anywhere
        in a chain of `next` steps skips all the remaining steps.

        """
        return self._derive(Kind.NEXT, cb)

    def guard(self, cb: t.Callable[[Failure], t.Any]) -> Action[t.Any]:
        """Pass a failure from this action to `cb`; let ordinary values through

        `cb` may recover by returning an ordinary value or an Action, or
        re-raise by returning a Failure.

        """
        return self._derive(Kind.GUARD, cb)

    def go(self, cb: t.Optional[t.Callable[[T], None]]=None) -> None:
        """Fire this action, raising UnhandledFailure if it ends in a failure

        The exception is raised from inside the final continuation, at the
        time the failure is delivered, which may be long after `go` returned.

        """
        def on_result(data: t.Any) -> None:
            if is_failure(data):
                throw(data)
            if cb is not None:
                cb(data)
        self._go(on_result)

    def _go(self, cb: Continuation) -> None:
        "Fire this action, passing the result to `cb` whether or not it's a failure"
        if not callable(cb):
            raise TypeError("_go requires a continuation", cb)
        _Firing(cb).fire(self)

    def __repr__(self) -> str:
        if self.link is not None:
            return f"Action(<{self.link.kind.value}> {self.link.cb!r})"
        return f"Action({self.executor!r})"
