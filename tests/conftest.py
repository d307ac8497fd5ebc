### conftest.py is implicitly imported into all pytest test files. This file
### can be thought of as a collection of globally available pytest fixtures.

import asyncio
import subprocess
import sys
import textwrap

import pytest

import procguard.logging
from procguard.host import Host

class FakeHost(Host):
    """A Host that records what a Guard asks of it instead of touching the
    process. Every subscription, kill and exit lands in `events`, in order, so
    tests can assert on the sequence a Guard went through. Cleanups under test
    append to the same list through `record()`.
    """
    def __init__(self, pid=4242):
        self._pid = pid
        self.signal_listeners = {}
        self.exception_listeners = []
        self.rejection_listeners = []
        self.exit_listeners = []
        self.events = []
        self.tasks = []

    @property
    def pid(self):
        return self._pid

    def record(self, *event):
        self.events.append(event)

    def subscribe_signal(self, sig, handler):
        self.signal_listeners.setdefault(sig, []).append(handler)
        self.record("subscribe", sig)

    def unsubscribe_signal(self, sig, handler):
        listeners = self.signal_listeners.get(sig, [])
        if handler in listeners:
            listeners.remove(handler)
            if not listeners:
                del self.signal_listeners[sig]
            self.record("unsubscribe", sig)

    def subscribe_exception(self, handler):
        self.exception_listeners.append(handler)
        self.record("subscribe", "exception")

    def unsubscribe_exception(self, handler):
        if handler in self.exception_listeners:
            self.exception_listeners.remove(handler)
            self.record("unsubscribe", "exception")

    def subscribe_rejection(self, handler):
        self.rejection_listeners.append(handler)
        self.record("subscribe", "rejection")

    def unsubscribe_rejection(self, handler):
        if handler in self.rejection_listeners:
            self.rejection_listeners.remove(handler)
            self.record("unsubscribe", "rejection")

    def subscribe_exit(self, handler):
        self.exit_listeners.append(handler)
        self.record("subscribe", "exit")

    def unsubscribe_exit(self, handler):
        if handler in self.exit_listeners:
            self.exit_listeners.remove(handler)
            self.record("unsubscribe", "exit")

    def spawn(self, coro):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        task = loop.create_task(coro)
        self.tasks.append(task)
        return task

    def attach_loop(self, loop=None):
        self.record("attach_loop", loop)

    def kill(self, pid, sig):
        self.record("kill", pid, sig)

    def exit(self, code):
        self.record("exit", code)

    def deliver_signal(self, sig):
        for handler in list(self.signal_listeners.get(sig, [])):
            handler(sig)

    def raise_exception(self, exc):
        for handler in list(self.exception_listeners):
            handler(exc)

    def reject(self, exc):
        for handler in list(self.rejection_listeners):
            handler(exc)

    def interpreter_exit(self, code=None):
        for handler in list(self.exit_listeners):
            handler(code)

    async def settle(self):
        """Wait for every coroutine spawned so far, including ones spawned
        while waiting.
        """
        while pending := [t for t in self.tasks if not t.done()]:
            await asyncio.gather(*pending)

    def events_of(self, kind):
        return [e for e in self.events if e[0] == kind]

@pytest.fixture
def fake_host():
    """Fixture providing a fresh FakeHost."""
    return FakeHost()

@pytest.fixture
def recorder(fake_host):
    """Fixture for generating cleanups that record their calls in the
    events of `fake_host`. The generator takes the name of the cleanup and an
    optional delay in seconds; with a delay the cleanup is a coroutine
    function that sleeps before recording.
    """
    def generator(name, delay=None, error=None):
        if delay is None:
            def cleanup(param):
                fake_host.record("cleanup", name, param)
                if error is not None:
                    raise error
        else:
            async def cleanup(param):
                await asyncio.sleep(delay)
                fake_host.record("cleanup", name, param)
                if error is not None:
                    raise error
        cleanup.__qualname__ = name
        return cleanup
    return generator

@pytest.fixture(autouse=True)
def reset_logging():
    """Leave procguard's logging the way each test found it."""
    yield
    procguard.logging.disable_logging()

@pytest.fixture
def run_script(tmp_path):
    """Fixture to run a snippet of python in a fresh interpreter. Returns the
    completed subprocess with stdout and stderr decoded.
    """
    def runner(source, timeout=30):
        script = tmp_path / "script.py"
        script.write_text(textwrap.dedent(source), encoding="utf-8")
        return subprocess.run([sys.executable, str(script)], capture_output=True, encoding="utf-8", timeout=timeout)
    return runner
