import argparse
from pathlib import Path

from procguard.subcommand.subcommandbase import SubcommandBase
from procguard.logging import logger
import procguard.config
import procguard.factory

class CheckSubcommand(SubcommandBase):
    """Validate a guard config file and print what a Guard built from it would do.

    Raises ConfigurationError for invalid configs, which main() reports.
    """
    def main(self, parsed_args) -> int:
        options = procguard.config.parse_file(parsed_args.config)
        guard = procguard.factory.create_guard(options)
        guard.validate()
        logger().debug(f"config {parsed_args.config} is valid")

        print(f"config: {parsed_args.config}")
        if guard.routine_cleanup_enabled:
            print("routine cleanup: enabled")
            for sig in guard.routine_cleanup_signals:
                note = "" if sig.available else " (not available on this platform)"
                print(f"  {sig}{note}")
        else:
            print("routine cleanup: disabled")
        print(f"exception cleanup: {_enabled(guard.exception_cleanup_enabled)}")
        print(f"exit cleanup: {_enabled(guard.exit_cleanup_enabled)}")
        if guard.shutdown_timeout is None:
            print("shutdown timeout: platform default")
        elif guard.shutdown_timeout == 0:
            print("shutdown timeout: none")
        else:
            print(f"shutdown timeout: {guard.shutdown_timeout:g}s")
        print(f"continue on error: {'yes' if guard.continue_on_error else 'no'}")
        return 0

    @classmethod
    def add_argparser_arguments(cls, parser:argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-c", "--config",
            type=Path,
            required=True,
            help="path to guard configuration file"
        )

def _enabled(flag) -> str:
    return "enabled" if flag else "disabled"
