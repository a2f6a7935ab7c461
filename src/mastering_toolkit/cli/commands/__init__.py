"""CLI command modules."""

from ..failure_table import print_failure_table
from .master import MasterCommands
from .utils import UtilityCommands

__all__ = ["MasterCommands", "UtilityCommands", "print_failure_table"]
