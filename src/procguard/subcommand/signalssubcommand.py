import argparse

from procguard.subcommand.subcommandbase import SubcommandBase
from procguard.signals import SIGNAL_PRESETS, Signal

class SignalsSubcommand(SubcommandBase):
    """List the signal presets and which of their signals exist on this platform."""
    def main(self, parsed_args) -> int:
        for name, signals in SIGNAL_PRESETS.items():
            print(f"{name}: {' '.join(_describe(sig) for sig in signals)}")
        if parsed_args.all:
            print(f"supported: {' '.join(_describe(sig) for sig in Signal)}")
        return 0

    @classmethod
    def add_argparser_arguments(cls, parser:argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--all",
            action="store_true",
            help="also list every supported signal"
        )

def _describe(sig) -> str:
    return str(sig) if sig.available else f"{sig}(unavailable)"
