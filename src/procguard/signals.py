"""src/procguard/signals.py"""
import enum
import signal
import sys

from procguard.errors import ConfigurationError

class Signal(enum.Enum):
    """The process signals a Guard can clean up on. Not every platform has
    every one of these, see `Signal.signum`.
    """
    TERM = "SIGTERM"
    INT = "SIGINT"
    HUP = "SIGHUP"
    QUIT = "SIGQUIT"
    BREAK = "SIGBREAK" # Windows only (Ctrl+Break)

    @property
    def signum(self):
        """The platform signal number, or None if this platform lacks the signal."""
        return getattr(signal, self.value, None)

    @property
    def available(self) -> bool:
        return self.signum is not None

    @classmethod
    def from_name(cls, name) -> "Signal":
        """Look up a Signal from a name such as 'SIGTERM', 'sigterm' or 'TERM'.
        Raises ConfigurationError for names that are not supported.
        """
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            normalized = name.strip().upper()
            if not normalized.startswith("SIG"):
                normalized = "SIG" + normalized
            for sig in cls:
                if sig.value == normalized:
                    return sig
        supported = ", ".join(sig.value for sig in cls)
        raise ConfigurationError(f"Unsupported signal {name!r} (should be one of: {supported})")

    @classmethod
    def from_signum(cls, signum) -> "Signal":
        for sig in cls:
            if sig.signum is not None and sig.signum == signum:
                return sig
        raise ValueError(f"signal number {signum} is not a supported Signal")

    def __str__(self):
        return self.value

DEFAULT_SIGNALS = (Signal.TERM, Signal.HUP, Signal.INT)
EXTENDED_SIGNALS = (Signal.TERM, Signal.INT, Signal.HUP, Signal.QUIT)

SIGNAL_PRESETS = {
    "default": DEFAULT_SIGNALS,
    "extended": EXTENDED_SIGNALS,
}

def available_signals() -> list:
    """Return every Signal that exists on the running platform."""
    return [sig for sig in Signal if sig.available]

def resolve_signals(value) -> list:
    """Translate `value` into a list of Signals, keeping the given order and
    dropping duplicates.

    `value` may be None (the default preset), the name of a preset ('default'
    or 'extended'), the name of a single signal, a Signal, or an iterable of
    signal names and/or Signals. An unknown preset or signal name raises
    ConfigurationError.
    """
    if value is None:
        return list(DEFAULT_SIGNALS)
    if isinstance(value, Signal):
        return [value]
    if isinstance(value, str):
        preset = SIGNAL_PRESETS.get(value.strip().lower())
        if preset is not None:
            return list(preset)
        try:
            return [Signal.from_name(value)]
        except ConfigurationError:
            presets = ", ".join(f"`{name}`" for name in SIGNAL_PRESETS)
            raise ConfigurationError(f"Undefined signal preset {value!r} (should be one of: {presets})") from None
    try:
        names = list(value)
    except TypeError:
        raise ConfigurationError(f"Expected a signal preset or a list of signals, got {value!r}") from None
    signals = []
    for name in names:
        sig = Signal.from_name(name)
        if sig not in signals:
            signals.append(sig)
    return signals

def default_shutdown_timeout(sig, platform=None):
    """How long the signal path waits for routine cleanups before giving up, in
    seconds, or None to wait for as long as they take.

    Windows unconditionally terminates a console process about 10 seconds after
    delivering SIGHUP (console window closed), so cleanups get 6 seconds there.
    """
    platform = sys.platform if platform is None else platform
    if platform == "win32" and sig == Signal.HUP:
        return 6.0
    return None
