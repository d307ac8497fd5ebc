"""src/procguard/config.py"""
import yaml
import voluptuous as vlp

from procguard.errors import ConfigurationError
from procguard.host import Host
from procguard.signals import resolve_signals

class GuardSchema():
    """Voluptuous schemas and validator functions for guard options.

    Guard options are a plain dict. Everything but the cleanup lists and the
    host can also come from a YAML file, see `parse_yaml_string()`.
    """

    class ErrMsg:
        SIGNALS_INVALID = "Not a signal preset or a list of signal names"
        CLEANUPS_INVALID = "Not a list of callables"
        HOST_INVALID = "Not a procguard.host.Host"
        TIMEOUT_INVALID = "Not a non-negative number of seconds"
        NOT_A_MAPPING = "The guard configuration must be a mapping of option names to values"
        YAML_MALFORMED = "Not valid YAML"

    @staticmethod
    def file_schema() -> vlp.Schema:
        """Schema for the options that can be written down in a config file.
        The returned dict has 'signals' resolved to a list of Signals.
        """
        return vlp.Schema(
            { vlp.Required("routine_cleanup_enabled"): bool,
              vlp.Optional("signals"): GuardSchema.are_valid_signals,
              vlp.Required("exception_cleanup_enabled"): bool,
              vlp.Optional("exit_cleanup_enabled"): bool,
              vlp.Optional("shutdown_timeout"): GuardSchema.is_valid_timeout,
              vlp.Optional("continue_on_error"): bool
            },
            required=True)

    @staticmethod
    def options_schema() -> vlp.Schema:
        """Schema for the options dict given to `procguard.factory.create_guard()`.
        This is `file_schema()` plus the cleanup lists and the host.
        """
        return GuardSchema.file_schema().extend(
            { vlp.Optional("routine_cleanups"): GuardSchema.are_cleanups,
              vlp.Optional("exception_cleanups"): GuardSchema.are_cleanups,
              vlp.Optional("exit_cleanups"): GuardSchema.are_cleanups,
              vlp.Optional("host"): GuardSchema.is_host
            })

    @staticmethod
    def are_valid_signals(value) -> list:
        """Validator to resolve a signal preset name or a list of signal names
        into a list of Signals.
        """
        try:
            return resolve_signals(value)
        except ConfigurationError as exc:
            raise vlp.Invalid(f"{GuardSchema.ErrMsg.SIGNALS_INVALID}: {exc}")

    @staticmethod
    def is_valid_timeout(value):
        """Validator for a shutdown timeout in seconds. None is let through and
        means 'use the platform default'.
        """
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise vlp.Invalid(f"{GuardSchema.ErrMsg.TIMEOUT_INVALID}, got {value!r}")
        return float(value)

    @staticmethod
    def are_cleanups(value) -> list:
        """Validator to ensure `value` is a list of callables. The very same
        list is returned, the Guard appends to it.
        """
        if not isinstance(value, list) or not all(callable(c) for c in value):
            raise vlp.Invalid(GuardSchema.ErrMsg.CLEANUPS_INVALID)
        return value

    @staticmethod
    def is_host(value) -> Host:
        if not isinstance(value, Host):
            raise vlp.Invalid(GuardSchema.ErrMsg.HOST_INVALID)
        return value

def validate(schema, data) -> dict:
    """Apply `schema` to `data`, turning every voluptuous error into one
    ConfigurationError that lists all of them.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(GuardSchema.ErrMsg.NOT_A_MAPPING)
    try:
        return schema(data)
    except vlp.MultipleInvalid as exc:
        errors = [_format_invalid(err) for err in exc.errors]
        raise ConfigurationError("invalid guard configuration: " + "; ".join(errors), errors=errors) from exc

def _format_invalid(err) -> str:
    if err.path:
        return f"{'.'.join(str(p) for p in err.path)}: {err.msg}"
    return err.msg

def parse_yaml_string(string: str) -> dict:
    """Returns validated guard options, given a YAML string.

    Example:

        routine_cleanup_enabled: true
        signals: extended
        exception_cleanup_enabled: true
        shutdown_timeout: 5

    Raises ConfigurationError if the YAML is malformed or the options are
    invalid.
    """
    try:
        data = yaml.safe_load(string)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{GuardSchema.ErrMsg.YAML_MALFORMED}: {exc}") from exc
    return validate(GuardSchema.file_schema(), data)

def parse_file(config_path) -> dict:
    """Returns validated guard options, given a YAML config file.

    Throws `OSError` if unable to open `config_path`."""
    with open(config_path, "r", encoding="utf-8") as f:
        return parse_yaml_string(f.read())
