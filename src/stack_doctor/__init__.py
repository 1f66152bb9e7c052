"""Stack-Doctor: PHP-FPM deployment server toolkit"""

__version__ = "0.1.0"

# Import core modules for easier access
from stack_doctor.core.config import Config
from stack_doctor.core.runner import CommandRunner
from stack_doctor.hooks import HookInstaller

__all__ = [
    "CommandRunner",
    "Config",
    "HookInstaller",
]
