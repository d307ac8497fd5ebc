"""src/procguard/errors.py"""

class ProcguardError(Exception):
    """Base class for all procguard errors."""
    ...

class ConfigurationError(ProcguardError):
    """Invalid or incomplete guard configuration. If more than one problem was
    found they are all available in `errors`, in the order they were found.
    """
    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]

class CleanupFailure(ProcguardError):
    """A cleanup callback raised, or the awaitable it returned raised."""
    def __init__(self, cleanup, error):
        name = getattr(cleanup, "__qualname__", repr(cleanup))
        super().__init__(f"cleanup {name} failed: {error!r}")
        self.cleanup = cleanup
        self.error = error

class CleanupErrors(ProcguardError):
    """One or more cleanups of a single run failed. Raised only after every
    cleanup of the run has been given its turn.
    """
    def __init__(self, failures):
        super().__init__(f"{len(failures)} cleanup(s) failed")
        self.failures = failures
