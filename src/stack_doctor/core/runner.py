"""External command wrapper for stack-doctor

Every probe talks to the system through a CommandRunner so that the
parsing logic can be exercised against canned output.
"""
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of an external command"""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Check if the command exited cleanly"""
        return self.returncode == 0 and not self.timed_out

    @property
    def lines(self) -> List[str]:
        """Non-empty stdout lines with trailing whitespace removed"""
        return [line.rstrip() for line in self.stdout.splitlines() if line.strip()]


class CommandError(Exception):
    """Exception raised when an external command cannot be started"""

    pass


def _to_text(output: Union[bytes, str, None]) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class CommandRunner:
    """Runs external commands with captured output and optional timeout"""

    def which(self, name: str) -> Optional[str]:
        """Find an executable on PATH

        Args:
            name: Executable name

        Returns:
            Full path or None
        """
        return shutil.which(name)

    def is_executable(self, path: str) -> bool:
        """Check if an explicit path is an executable file"""
        return os.path.isfile(path) and os.access(path, os.X_OK)

    def run(
        self,
        args: List[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output

        A command that exceeds its timeout is killed; whatever it printed
        before that is still returned with timed_out set.

        Args:
            args: Command and arguments
            timeout: Wall-clock limit in seconds
            env: Extra environment variables
            merge_stderr: Send stderr into stdout

        Returns:
            CommandResult

        Raises:
            CommandError: If the executable cannot be started
        """
        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)

        logger.debug(f"Running: {' '.join(args)} (timeout={timeout})")

        try:
            completed = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                timeout=timeout,
                env=run_env,
                text=True,
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            logger.debug(f"Command timed out after {timeout}s: {args[0]}")
            return CommandResult(
                args=list(args),
                returncode=-1,
                stdout=_to_text(e.stdout),
                stderr=_to_text(e.stderr),
                timed_out=True,
            )
        except FileNotFoundError:
            raise CommandError(f"Command not found: {args[0]}")
        except PermissionError as e:
            raise CommandError(f"Command not executable: {args[0]}") from e

        return CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
