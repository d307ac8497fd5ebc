"""src/procguard/factory.py"""
from procguard.config import GuardSchema, validate
from procguard.guard import Guard

def create_guard(options: dict) -> Guard:
    """Build a Guard from a friendlier options dict:

        { "routine_cleanup_enabled": True,
          "signals": "extended",           # "default", "extended" or a list of names
          "routine_cleanups": [...],
          "exception_cleanup_enabled": True,
          "exception_cleanups": [...] }

    Optional keys are 'exit_cleanup_enabled', 'exit_cleanups',
    'shutdown_timeout', 'continue_on_error' and 'host'. Missing 'signals' means
    the "default" preset. When routine cleanup is disabled no signals are
    handled at all.

    Raises ConfigurationError if `options` is invalid.
    """
    options = validate(GuardSchema.options_schema(), options)
    return Guard(
        routine_cleanup_enabled=options["routine_cleanup_enabled"],
        routine_cleanup_signals=get_routine_signals_for_options(options),
        routine_cleanups=options.get("routine_cleanups", []),
        exception_cleanup_enabled=options["exception_cleanup_enabled"],
        exception_cleanups=options.get("exception_cleanups", []),
        exit_cleanup_enabled=options.get("exit_cleanup_enabled", False),
        exit_cleanups=options.get("exit_cleanups", []),
        shutdown_timeout=options.get("shutdown_timeout"),
        continue_on_error=options.get("continue_on_error", True),
        host=options.get("host")
    )

def get_routine_signals_for_options(options: dict) -> list:
    """Returns the Signals a Guard built from validated `options` handles."""
    if not options["routine_cleanup_enabled"]:
        return []
    return GuardSchema.are_valid_signals(options.get("signals"))
