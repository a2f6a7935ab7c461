"""CLI module for the mastering toolkit."""

from .commands import MasterCommands, UtilityCommands
from .main import MasteringToolkitCLI

__all__ = [
    "MasterCommands",
    "MasteringToolkitCLI",
    "UtilityCommands",
]
