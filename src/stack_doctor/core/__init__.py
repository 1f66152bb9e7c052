"""Core modules for stack-doctor"""

from .config import Config, ConfigurationError
from .files import tail_lines
from .runner import CommandError, CommandResult, CommandRunner

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "Config",
    "ConfigurationError",
    "tail_lines",
]
