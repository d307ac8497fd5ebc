import abc
from typing import final
import argparse

class SubcommandBase(abc.ABC):
    """Abstract base class for subcommand classes such as CheckSubcommand and
    SignalsSubcommand. Implementers must provide `add_argparser_arguments()`
    and `main()`.
    """
    @abc.abstractmethod
    def main(self, parsed_args) -> int:
        """Execute the subcommand with the arguments parsed by this
        subcommand's arg parser (see `add_argparser_arguments()`).

        Returns program exit status.
        """
        ...

    @classmethod
    @abc.abstractmethod
    def add_argparser_arguments(cls, parser:argparse.ArgumentParser) -> None:
        """Add this subcommand's CLI arguments to `parser`. Mutates `parser`."""
        ...

    @final
    @classmethod
    def name(cls) -> str:
        """Derive the subcommand name from the class name, 'CheckSubcommand' -> 'check'."""
        return cls.__name__.removesuffix("Subcommand").lower()
