# This module is a wrapper over pythons logging module. All logging in procguard
# should happen through the functions defined in this module.
#
# procguard is a library, so unlike an application it never touches the root
# logger. Everything is attached to the 'procguard' logger, and until
# init_logging() is called that logger only carries a NullHandler so that the
# host application's own logging configuration decides what gets printed.

import logging
import logging.handlers
import inspect

PACKAGE_LOGGER_NAME = "procguard"

_package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
_package_logger.addHandler(logging.NullHandler())
_logging_initialized = False

def init_logging(stderr=True, logfile=None, syslog=False, syslog_address="/dev/log", level=logging.INFO):
    """Initialize procguard's own log output. procguard can log to any and all
    of stderr, syslog, and a file. Calling this function multiple times fully
    re-initializes the handlers. If none of 'stderr', 'logfile', or 'syslog'
    are True, then 'stderr' is set to True.

    Once initialized, records stop propagating to the root logger so they are
    not printed twice.
    """
    if not (stderr or logfile or syslog):
        stderr = True
    formatter = logging.Formatter("procguard - %(asctime)s - %(levelname)s - %(message)s", "%Y-%m-%d %H:%M:%S")
    handlers = []
    if syslog:
        syslog_handler = logging.handlers.SysLogHandler(address=syslog_address)
        handlers.append(syslog_handler)
    if stderr:
        handlers.append(logging.StreamHandler()) # defaults to sys.stderr
    if logfile:
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))
    _remove_handlers()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        _package_logger.addHandler(handler)
    _package_logger.setLevel(level)
    _package_logger.propagate = False
    global _logging_initialized
    _logging_initialized = True

def disable_logging():
    """Undo init_logging(). The package logger goes back to a NullHandler and
    propagates to the root logger again.
    """
    _remove_handlers()
    _package_logger.addHandler(logging.NullHandler())
    _package_logger.setLevel(logging.NOTSET)
    _package_logger.propagate = True
    global _logging_initialized
    _logging_initialized = False

def logging_initialized():
    return _logging_initialized

def logger(name=None):
    """Return a logger with the specified name. If name is None then it defaults
    to the name of the callers module. Names outside of the 'procguard'
    namespace are nested under it, so every logger handed out here is a child
    of the package logger.
    """
    if name is None:
        module = inspect.getmodule(inspect.stack()[1][0])
        name = module.__name__ if module is not None else PACKAGE_LOGGER_NAME
    if name != PACKAGE_LOGGER_NAME and not name.startswith(PACKAGE_LOGGER_NAME + "."):
        name = f"{PACKAGE_LOGGER_NAME}.{name}" if name else PACKAGE_LOGGER_NAME
    return logging.getLogger(name)

def _remove_handlers():
    for handler in _package_logger.handlers[:]:
        _package_logger.removeHandler(handler)
        handler.close()
