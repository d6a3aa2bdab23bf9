"A unittest.TestCase whose async test methods each run in their own trio.run"
import trio
import unittest
import contextlib
import functools
import inspect
import sys
import types
import typing as t
import warnings

@contextlib.contextmanager
def raise_unraisables() -> t.Iterator[None]:
    "Turn exceptions which would go to sys.unraisablehook, such as those raised in __del__, into test failures"
    unraisables: t.List[t.Any] = []
    orig_unraisablehook, sys.unraisablehook = sys.unraisablehook, unraisables.append
    try:
        yield
    finally:
        sys.unraisablehook = orig_unraisablehook
    if len(unraisables) == 1:
        raise unraisables[0].exc_value
    elif unraisables:
        raise BaseExceptionGroup("unraisable exceptions during test",
                                 [unr.exc_value for unr in unraisables])

class TrioTestCase(unittest.TestCase):
    """Async test methods get a nursery, asyncSetUp/asyncTearDown, and a clock of their choosing

    Synchronous test methods, and method names that don't exist at all (test
    runners sometimes probe for "runTest"), are left to unittest as usual.

    """
    nursery: trio.Nursery

    async def asyncSetUp(self) -> None:
        "Asynchronously set up resources for tests in this TestCase"
        pass

    async def asyncTearDown(self) -> None:
        "Asynchronously clean up resources for tests in this TestCase"
        pass

    def make_clock(self) -> t.Optional[trio.abc.Clock]:
        "Override to run each test under a different clock, such as trio.testing.MockClock"
        return None

    async def _run_with_setup(self, test: t.Callable[[t.Any], t.Awaitable[None]]) -> None:
        async with trio.open_nursery() as nursery:
            self.nursery = nursery
            await self.asyncSetUp()
            try:
                await test(self)
            except BaseException as exn:
                try:
                    await self.asyncTearDown()
                except BaseException as teardown_exn:
                    raise BaseExceptionGroup("test and teardown both failed", [exn, teardown_exn])
                raise
            await self.asyncTearDown()
            nursery.cancel_scope.cancel()

    def __init__(self, methodName: str='runTest') -> None:
        test = getattr(type(self), methodName, None)
        if inspect.iscoroutinefunction(test):
            @functools.wraps(test)
            def sync_test(self) -> None:
                # "coroutine was never awaited" is only a warning, raised from __del__;
                # make it an error, and make sure errors from __del__ fail the test.
                # See https://github.com/python-trio/pytest-trio/issues/86
                with raise_unraisables():
                    with warnings.catch_warnings():
                        warnings.filterwarnings('error', message='.*was never awaited', category=RuntimeWarning)
                        trio.run(self._run_with_setup, test, clock=self.make_clock())
            setattr(self, methodName, types.MethodType(sync_test, self))
        super().__init__(methodName)
