"""Replayable actions in continuation-passing style, with failures as values

An Action is a reference to a deferred computation.  Firing it runs the
computation and passes the result to a callback; firing it again runs the
computation again.  Nothing is cached, and there is no hidden state machine
tracking whether an action is pending, resolved or rejected.  Compare this
to a future or a promise, which runs once and then remembers its result
forever.

Because an action can be fired any number of times, it can be kept around
and reused; for example, to read some resource again after it has changed,
or to retry an operation which failed.

```
def read_cb(cont):
    sock.recv_cb(cont)
line = Action(read_cb).next(bytes.decode).next(str.strip)
line.go(print)
```

Errors are represented by values of type Failure, passed down the same
callback as everything else.  There's no second "reject" channel, so there's
no second set of callbacks to forget to register.  A `next` step is skipped
when the value reaching it is a Failure; a `guard` step is only called when
the value reaching it is a Failure, and may recover from it, replace it, or
return an action to run instead.  If a Failure reaches `go` without passing
through a `guard`, `go` raises it as an exception; it can't be silently
dropped.

On top of this we build combinators: `sequence`, `any_of`/`any_success`
for racing, `all_of`/`all_success` for fanning out and collecting results,
`retry`/`gap_retry`, and `sequence_try`.  These use only the public
interface of Action, and never cancel anything: losers of a race run to
completion and their results are discarded.

We have no event loop and no clock.  Whatever calls the continuations, be
it a callback-based library, a thread pool, or trio via `refire.triohost`,
is in charge of scheduling.

"""
from refire.failure import Failure, UnhandledFailure, is_failure
from refire.core import Action, Continuation, Executor
from refire.combinators import (
    sequence, any_of, any_success, all_of, all_success,
    retry, gap_retry, sequence_try, RETRY_FOREVER,
)
from refire.adapt import from_callbacks, safe
