"""src/procguard/executor.py"""
import inspect

from procguard.errors import CleanupFailure, CleanupErrors
from procguard.logging import logger

async def execute_in_serial(funcs, param, continue_on_error=True) -> None:
    """Call every function in `funcs` with `param`, one after the other, in
    list order. If a function returns something awaitable it is awaited before
    the next function is called, otherwise its result counts as already
    settled. Results are discarded.

    If `continue_on_error` is True a failing function is logged and the
    remaining functions still run, and once the last one has settled a
    CleanupErrors holding every CleanupFailure is raised. Otherwise the first
    failure raises a CleanupFailure and the remaining functions are skipped.

    Only Exception subclasses count as failures. asyncio.CancelledError,
    KeyboardInterrupt and SystemExit propagate untouched.
    """
    failures = []
    for func in list(funcs):
        try:
            result = func(param)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            failure = CleanupFailure(func, exc)
            if not continue_on_error:
                raise failure from exc
            failure.__cause__ = exc
            logger().error(str(failure), exc_info=exc)
            failures.append(failure)
    if failures:
        raise CleanupErrors(failures)
