# Eagerly import all modules in this package so that any SubcommandBase
# subclasses they define are registered. main.py finds the program subcommands
# by asking for the subclasses of SubcommandBase, which only reports classes
# from modules that have already been imported.

import pkgutil
import importlib

for m in pkgutil.iter_modules(__path__):
    importlib.import_module(f"{__name__}.{m.name}")
