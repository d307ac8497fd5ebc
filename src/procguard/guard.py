"""src/procguard/guard.py"""
import asyncio
import enum

from procguard.errors import ConfigurationError, CleanupFailure, CleanupErrors
from procguard.executor import execute_in_serial
from procguard.host import ProcessHost
from procguard.logging import logger
from procguard.signals import resolve_signals, default_shutdown_timeout

class TerminatedVia(enum.Enum):
    """How a Guard ended the process after running its cleanups."""
    RERAISED_SIGNAL = "reraised_signal"
    EXIT_CODE = "exit_code"

class Guard:
    """Runs registered cleanups when the process receives a termination
    signal, hits an uncaught exception, or leaves an error from asynchronous
    work unhandled, then lets the process terminate.

    There are three kinds of cleanups, each run in registration order:

        * routine cleanups, called with the received Signal. Afterwards the
          Guard disarms and re-delivers that signal to its own process so the
          signal's normal disposition applies.

        * exception cleanups, called with the exception. Afterwards the Guard
          disarms and exits the process with status 1, as it is never safe
          to resume after an uncaught exception.

        * exit cleanups (off by default), called with the exit code, or None
          when the interpreter shuts down on its own. The routine cleanups run
          after them, with None as the signal.

    Only one shutdown sequence runs per arming. A signal that arrives while a
    signal or exception sequence is running is dropped, as is an exception
    that arrives while an exception sequence is running.
    """
    def __init__(self, routine_cleanup_enabled=True, exception_cleanup_enabled=True,
                 routine_cleanup_signals=None, routine_cleanups=None, exception_cleanups=None,
                 exit_cleanup_enabled=False, exit_cleanups=None, shutdown_timeout=None,
                 continue_on_error=True, host=None):
        self._routine_cleanup_enabled = bool(routine_cleanup_enabled)
        self._routine_cleanup_signals = tuple(resolve_signals(routine_cleanup_signals))
        self._routine_cleanups = routine_cleanups if routine_cleanups is not None else []

        self._exception_cleanup_enabled = bool(exception_cleanup_enabled)
        self._exception_cleanups = exception_cleanups if exception_cleanups is not None else []

        self._exit_cleanup_enabled = bool(exit_cleanup_enabled)
        self._exit_cleanups = exit_cleanups if exit_cleanups is not None else []

        for kind, enabled, cleanups in (("Routine", self._routine_cleanup_enabled, self._routine_cleanups),
                                        ("Exception", self._exception_cleanup_enabled, self._exception_cleanups),
                                        ("Exit", self._exit_cleanup_enabled, self._exit_cleanups)):
            if cleanups and not enabled:
                raise ConfigurationError(f"{kind}-Cleanup not enabled.")

        if shutdown_timeout is not None and shutdown_timeout < 0:
            raise ConfigurationError(f"shutdown_timeout must not be negative, got {shutdown_timeout}")
        self._shutdown_timeout = shutdown_timeout
        self._continue_on_error = continue_on_error
        self._host = host if host is not None else ProcessHost()

        self._armed = False
        self._signal_handler = None
        self._signal_handler_running = False
        self._exception_handler = None
        self._exception_handler_running = False
        self._exit_handler = None
        self._exit_handler_running = False
        self.terminated_via = None

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def routine_cleanup_enabled(self) -> bool:
        return self._routine_cleanup_enabled

    @property
    def routine_cleanup_signals(self) -> tuple:
        return self._routine_cleanup_signals

    @property
    def exception_cleanup_enabled(self) -> bool:
        return self._exception_cleanup_enabled

    @property
    def exit_cleanup_enabled(self) -> bool:
        return self._exit_cleanup_enabled

    @property
    def shutdown_timeout(self):
        return self._shutdown_timeout

    @property
    def continue_on_error(self) -> bool:
        return self._continue_on_error

    def on_routine(self, cleanup) -> "Guard":
        """Append `cleanup` to the routine cleanups and return the Guard, so calls
        chain. Raises ConfigurationError if routine cleanup is disabled.
        """
        if not self._routine_cleanup_enabled:
            raise ConfigurationError("Routine-Cleanup not enabled.")
        self._routine_cleanups.append(cleanup)
        return self

    def on_exception(self, cleanup) -> "Guard":
        """Append `cleanup` to the exception cleanups and return the Guard.
        Raises ConfigurationError if exception cleanup is disabled.
        """
        if not self._exception_cleanup_enabled:
            raise ConfigurationError("Exception-Cleanup not enabled.")
        self._exception_cleanups.append(cleanup)
        return self

    def on_exit(self, cleanup) -> "Guard":
        """Like on_exception(), for the exit cleanups."""
        if not self._exit_cleanup_enabled:
            raise ConfigurationError("Exit-Cleanup not enabled.")
        self._exit_cleanups.append(cleanup)
        return self

    def validate(self) -> None:
        """Raise ConfigurationError if this Guard cannot be armed."""
        if self._routine_cleanup_enabled and not self._routine_cleanup_signals:
            raise ConfigurationError("You have to handle at least 1 process signal in order to use Routine-Cleanup.")

    def up(self) -> None:
        """Install the Guard's listeners on its host. Does nothing if the Guard
        is already armed. Arming resets the bookkeeping of any earlier
        shutdown sequence.
        """
        if self._armed:
            return
        self.validate()

        self._signal_handler_running = False
        self._exception_handler_running = False
        self._exit_handler_running = False
        self.terminated_via = None

        if self._routine_cleanup_enabled:
            # one shared handler, so down() removes exactly what was installed
            self._signal_handler = self._handle_signal
            for sig in self._routine_cleanup_signals:
                self._host.subscribe_signal(sig, self._signal_handler)

        if self._exception_cleanup_enabled:
            self._exception_handler = self._handle_exception
            self._host.subscribe_exception(self._exception_handler)
            self._host.subscribe_rejection(self._exception_handler)

        if self._exit_cleanup_enabled:
            self._exit_handler = self._handle_exit
            self._host.subscribe_exit(self._exit_handler)

        self._armed = True
        logger().debug("guard up")

    def down(self) -> None:
        """Remove every listener installed by up(). Does nothing if the Guard
        is not armed.
        """
        if not self._armed:
            return

        if self._signal_handler is not None:
            for sig in self._routine_cleanup_signals:
                self._host.unsubscribe_signal(sig, self._signal_handler)
            self._signal_handler = None

        if self._exception_handler is not None:
            self._host.unsubscribe_exception(self._exception_handler)
            self._host.unsubscribe_rejection(self._exception_handler)
            self._exception_handler = None

        if self._exit_handler is not None:
            self._host.unsubscribe_exit(self._exit_handler)
            self._exit_handler = None

        self._armed = False
        logger().debug("guard down")

    def attach_loop(self, loop=None) -> None:
        """Pick up unhandled errors of `loop`, the running event loop by default.
        Only needed when up() ran before that loop started, for example when
        the Guard is armed at import time and the program then calls
        asyncio.run().
        """
        if self._exception_cleanup_enabled:
            self._host.attach_loop(loop)

    def shutdown_timeout_for(self, sig):
        """Seconds to wait for the routine cleanups run on `sig`, or None to
        wait for as long as they take.
        """
        if self._shutdown_timeout is None:
            return default_shutdown_timeout(sig)
        return self._shutdown_timeout or None

    def _handle_signal(self, sig):
        if self._signal_handler_running or self._exception_handler_running:
            logger().warning(f"received {sig} while already shutting down, ignoring it")
            return
        self._signal_handler_running = True
        logger().info(f"received {sig}, running {len(self._routine_cleanups)} routine cleanup(s)")
        self._host.spawn(self._shutdown_on_signal(sig))

    def _handle_exception(self, error):
        if self._exception_handler_running:
            logger().warning(f"ignoring {error!r}, already handling an earlier exception")
            return
        self._exception_handler_running = True
        logger().info(f"unhandled {error!r}, running {len(self._exception_cleanups)} exception cleanup(s)")
        self._host.spawn(self._shutdown_on_exception(error))

    def _handle_exit(self, code):
        if self._signal_handler_running or self._exception_handler_running or self._exit_handler_running:
            return
        self._exit_handler_running = True
        logger().debug(f"process exiting with code {code}, running {len(self._exit_cleanups)} exit cleanup(s)")
        self.down()
        self._host.spawn(self._cleanup_on_exit(code))

    async def _shutdown_on_signal(self, sig):
        timeout = self.shutdown_timeout_for(sig)
        if timeout is None:
            await self._execute(self._routine_cleanups, sig)
        else:
            # asyncio.wait leaves the run going on timeout, nothing is cancelled
            run = asyncio.ensure_future(self._execute(self._routine_cleanups, sig))
            done, _ = await asyncio.wait({run}, timeout=timeout)
            if not done:
                logger().warning(f"routine cleanups did not finish within {timeout}s, terminating anyway")
        self.down()
        self.terminated_via = TerminatedVia.RERAISED_SIGNAL
        logger().debug(f"re-raising {sig}")
        self._host.kill(self._host.pid, sig)

    async def _shutdown_on_exception(self, error):
        await self._execute(self._exception_cleanups, error)
        self.down()
        self.terminated_via = TerminatedVia.EXIT_CODE
        self._host.exit(1)

    async def _cleanup_on_exit(self, code):
        await self._execute(self._exit_cleanups, code)
        if self._routine_cleanup_enabled:
            await self._execute(self._routine_cleanups, None)

    async def _execute(self, cleanups, param):
        try:
            await execute_in_serial(cleanups, param, continue_on_error=self._continue_on_error)
        except CleanupErrors as exc:
            logger().error(f"{len(exc.failures)} of {len(cleanups)} cleanup(s) failed for {param!r}")
        except CleanupFailure as exc:
            logger().error(f"{exc}, skipping the remaining cleanups", exc_info=exc.error)
