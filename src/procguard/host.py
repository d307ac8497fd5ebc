"""src/procguard/host.py"""
import abc
import asyncio
import atexit
import contextlib
import os
import signal
import sys
import threading

from procguard.logging import logger
from procguard.signals import Signal

class _TerminationGate:
    """Holds back the action that ends the process while a shutdown sequence
    or a dispatch of a process event to its listeners is still underway.

    One gate is shared by every ProcessHost, so when several Guards react to
    the same event each of them runs its cleanups before the first requested
    kill or exit happens. Later requests are dropped in favour of the first.
    """
    def __init__(self):
        self._lock = threading.RLock()
        self._holds = 0
        self._action = None

    def acquire(self):
        with self._lock:
            self._holds += 1

    def release(self):
        with self._lock:
            self._holds -= 1
            ready = self._holds == 0 and self._action is not None
        if ready:
            self._perform()

    @contextlib.contextmanager
    def hold(self):
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def request(self, action):
        with self._lock:
            if self._action is None:
                self._action = action
            ready = self._holds == 0
        if ready:
            self._perform()

    def _perform(self):
        with self._lock:
            action, self._action = self._action, None
        if action is not None:
            action()

_termination_gate = _TerminationGate()

class Host(abc.ABC):
    """Abstract base class for the process events a Guard listens to and the
    process actions it takes once its cleanups have run. A Guard only ever
    talks to the process through a Host, so tests can hand it a fake one.

    Handlers subscribed here are called with a single argument: the Signal for
    signal handlers, the exception object for exception and rejection
    handlers, and the exit code (or None) for exit handlers.
    """
    @property
    @abc.abstractmethod
    def pid(self) -> int:
        ...

    @abc.abstractmethod
    def subscribe_signal(self, sig:Signal, handler) -> None:
        ...

    @abc.abstractmethod
    def unsubscribe_signal(self, sig:Signal, handler) -> None:
        ...

    @abc.abstractmethod
    def subscribe_exception(self, handler) -> None:
        """Call `handler` for every exception nothing else caught."""
        ...

    @abc.abstractmethod
    def unsubscribe_exception(self, handler) -> None:
        ...

    @abc.abstractmethod
    def subscribe_rejection(self, handler) -> None:
        """Call `handler` for every error raised by asynchronous work that no
        one awaited.
        """
        ...

    @abc.abstractmethod
    def unsubscribe_rejection(self, handler) -> None:
        ...

    @abc.abstractmethod
    def subscribe_exit(self, handler) -> None:
        ...

    @abc.abstractmethod
    def unsubscribe_exit(self, handler) -> None:
        ...

    @abc.abstractmethod
    def spawn(self, coro):
        """Run the coroutine `coro` to completion, either right away or by
        scheduling it on an already running event loop.
        """
        ...

    @abc.abstractmethod
    def kill(self, pid:int, sig:Signal) -> None:
        ...

    @abc.abstractmethod
    def exit(self, code:int) -> None:
        ...

    def attach_loop(self, loop=None) -> None:
        """Start handing unhandled errors of `loop`, the running event loop by
        default, to the rejection handlers. Hosts that have no notion of an
        event loop ignore this.
        """

class ProcessHost(Host):
    """The Host backed by the running Python process.

    Signal handlers are installed with `signal.signal()`, so subscribing and
    unsubscribing signals must happen in the main thread. Several listeners may
    share a signal: one dispatching handler is installed for the first
    listener, and the disposition that was in place before it is restored when
    the last listener goes away.

    Uncaught exceptions are picked up through `sys.excepthook` and
    `threading.excepthook`. Unhandled errors from asynchronous work are picked
    up through the exception handler of an asyncio event loop: the loop passed
    as `loop`, the loop running when the first rejection handler is
    subscribed, or the loop given to attach_loop(). Rejection handlers
    subscribed before any loop runs are kept and installed on the first loop
    the host sees, either through attach_loop() or when a signal or a spawned
    coroutine finds one running.

    kill() and exit() wait until every shutdown sequence spawned through any
    ProcessHost has finished, so independent Guards reacting to the same event
    all get to run their cleanups.
    """
    def __init__(self, loop=None):
        self._loop = loop
        self._signal_listeners = {}
        self._previous_signal_handlers = {}
        self._exception_listeners = []
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._rejection_listeners = []
        self._rejection_loop = None
        self._previous_loop_handler = None
        self._exit_listeners = []
        self._atexit_registered = False

    @property
    def pid(self) -> int:
        return os.getpid()

    def subscribe_signal(self, sig, handler):
        if not sig.available:
            logger().debug(f"{sig} does not exist on this platform, not listening for it")
            return
        listeners = self._signal_listeners.setdefault(sig, [])
        if not listeners:
            self._previous_signal_handlers[sig] = signal.signal(sig.signum, self._dispatch_signal)
        listeners.append(handler)

    def unsubscribe_signal(self, sig, handler):
        listeners = self._signal_listeners.get(sig)
        if not listeners or handler not in listeners:
            return
        listeners.remove(handler)
        if not listeners:
            del self._signal_listeners[sig]
            previous = self._previous_signal_handlers.pop(sig)
            # None means the previous handler was not installed from Python
            signal.signal(sig.signum, signal.SIG_DFL if previous is None else previous)

    def subscribe_exception(self, handler):
        if not self._exception_listeners:
            self._previous_excepthook = sys.excepthook
            self._previous_threading_excepthook = threading.excepthook
            sys.excepthook = self._dispatch_excepthook
            threading.excepthook = self._dispatch_threading_excepthook
        self._exception_listeners.append(handler)

    def unsubscribe_exception(self, handler):
        if handler not in self._exception_listeners:
            return
        self._exception_listeners.remove(handler)
        if not self._exception_listeners:
            if sys.excepthook == self._dispatch_excepthook:
                sys.excepthook = self._previous_excepthook
            if threading.excepthook == self._dispatch_threading_excepthook:
                threading.excepthook = self._previous_threading_excepthook
            self._previous_excepthook = None
            self._previous_threading_excepthook = None

    def subscribe_rejection(self, handler):
        self._rejection_listeners.append(handler)
        if self._rejection_loop is not None:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            loop = _running_loop()
        if loop is None:
            logger().warning("no event loop is running, unhandled errors of asynchronous work "
                             "are picked up once a loop is attached")
            return
        self._install_rejection_handler(loop)

    def unsubscribe_rejection(self, handler):
        if handler not in self._rejection_listeners:
            return
        self._rejection_listeners.remove(handler)
        if not self._rejection_listeners:
            self._uninstall_rejection_handler()

    def attach_loop(self, loop=None):
        loop = loop if loop is not None else _running_loop()
        if loop is None:
            return
        self._loop = loop
        if self._rejection_listeners and loop is not self._rejection_loop:
            self._uninstall_rejection_handler()
            self._install_rejection_handler(loop)

    def subscribe_exit(self, handler):
        # The atexit hook stays registered once installed, unregistering from
        # inside a running exit hook is not something to rely on.
        if not self._atexit_registered:
            atexit.register(self._dispatch_exit)
            self._atexit_registered = True
        self._exit_listeners.append(handler)

    def unsubscribe_exit(self, handler):
        if handler in self._exit_listeners:
            self._exit_listeners.remove(handler)

    def spawn(self, coro):
        loop = _running_loop()
        if loop is None and self._loop is not None and self._loop.is_running():
            loop = self._loop
        if loop is not None:
            self._attach_pending_rejections(loop)
        _termination_gate.acquire()
        if loop is None:
            return asyncio.run(_released_when_done(coro))
        try:
            return asyncio.run_coroutine_threadsafe(_released_when_done(coro), loop)
        except RuntimeError:
            # the loop is closed and the coroutine never starts
            _termination_gate.release()
            raise

    def kill(self, pid, sig):
        _termination_gate.request(lambda: os.kill(pid, sig.signum))

    def exit(self, code):
        """Run the exit listeners with `code` and terminate the process right
        away, or as soon as every other running shutdown sequence is done.
        Works from any thread and from inside interpreter hooks, which
        sys.exit() does not.
        """
        _termination_gate.request(lambda: self._exit_now(code))

    def _exit_now(self, code):
        self._dispatch_exit(code)
        for stream in (sys.stdout, sys.stderr):
            try:
                if stream is not None:
                    stream.flush()
            except (OSError, ValueError):
                pass
        os._exit(code)

    def _install_rejection_handler(self, loop):
        self._rejection_loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._dispatch_rejection)

    def _uninstall_rejection_handler(self):
        loop = self._rejection_loop
        if loop is None:
            return
        if not loop.is_closed() and loop.get_exception_handler() == self._dispatch_rejection:
            loop.set_exception_handler(self._previous_loop_handler)
        self._rejection_loop = None
        self._previous_loop_handler = None

    def _attach_pending_rejections(self, loop):
        attached = self._rejection_loop
        if self._rejection_listeners and (attached is None or attached.is_closed()):
            self.attach_loop(loop)

    def _dispatch_signal(self, signum, _frame):
        sig = Signal.from_signum(signum)
        loop = _running_loop()
        if loop is not None:
            self._attach_pending_rejections(loop)
        with _termination_gate.hold():
            for handler in list(self._signal_listeners.get(sig, [])):
                handler(sig)

    def _dispatch_excepthook(self, exc_type, exc, tb):
        with _termination_gate.hold():
            if self._previous_excepthook is not None:
                self._previous_excepthook(exc_type, exc, tb)
            if issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
                return
            for handler in list(self._exception_listeners):
                handler(exc)

    def _dispatch_threading_excepthook(self, args):
        with _termination_gate.hold():
            if self._previous_threading_excepthook is not None:
                self._previous_threading_excepthook(args)
            if issubclass(args.exc_type, (KeyboardInterrupt, SystemExit)):
                return
            for handler in list(self._exception_listeners):
                handler(args.exc_value)

    def _dispatch_rejection(self, loop, context):
        with _termination_gate.hold():
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            exc = context.get("exception")
            if exc is None:
                return
            for handler in list(self._rejection_listeners):
                handler(exc)

    def _dispatch_exit(self, code=None):
        for handler in list(self._exit_listeners):
            handler(code)

async def _released_when_done(coro):
    try:
        return await coro
    finally:
        _termination_gate.release()

def _running_loop():
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
