#!/usr/bin/env python3

import sys
import argparse
import importlib.metadata
from pathlib import Path

import procguard.logging
import procguard.subcommand
from procguard.errors import ConfigurationError
from procguard.subcommand.subcommandbase import SubcommandBase

def main(argv=None) -> int:
    """This is the main function of the procguard command line tool."""
    if argv is None:
        argv = sys.argv[1:]

    # procguard.subcommand modules are loaded eagerly from their __init__.py
    subcommand_name_class_map = {cls.name(): cls for cls in SubcommandBase.__subclasses__()}

    parser = argparse.ArgumentParser(
        prog="procguard",
        description="procguard runs ordered cleanups when a process is told to terminate",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    subparsers = parser.add_subparsers(title="subcommands", dest="subcommand", required=True)
    for name, cls in subcommand_name_class_map.items():
        subparser = subparsers.add_parser(name, help=cls.__doc__.splitlines()[0])
        cls.add_argparser_arguments(subparser)
    parser.add_argument(
        "--version",
        action="version",
        version=f'%(prog)s {importlib.metadata.version("procguard")}'
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="set the logging level",
    )
    parser.add_argument(
        "--log-stderr",
        action="store_true",
        help="log to STDERR"
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        metavar="FILE",
        help="log to file FILE"
    )
    parsed_args = parser.parse_args(argv)

    if parsed_args.log_stderr or parsed_args.log_file:
        procguard.logging.init_logging(
            level=parsed_args.log_level,
            stderr=parsed_args.log_stderr,
            logfile=parsed_args.log_file
        )

    try:
        return subcommand_name_class_map[parsed_args.subcommand]().main(parsed_args)
    except ConfigurationError as exc:
        for err in exc.errors:
            print(f"procguard: config error: {err}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"procguard: error: {exc}", file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
