"""Shared fixtures for stack-doctor tests"""
from typing import Dict, List, Optional, Tuple

import pytest

from stack_doctor.core.runner import CommandError, CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """CommandRunner answering from canned output

    Responses are matched on the longest registered argument prefix, so
    ("ps", "-C", "mysqld") wins over ("ps",).
    """

    def __init__(self):
        self.responses: Dict[Tuple[str, ...], CommandResult] = {}
        self.tools: Dict[str, str] = {}
        self.executables: List[str] = []
        self.calls: List[List[str]] = []

    def add(self, args, stdout: str = "", returncode: int = 0, stderr: str = "", timed_out: bool = False):
        prefix = tuple(args)
        self.responses[prefix] = CommandResult(
            args=list(prefix), returncode=returncode, stdout=stdout, stderr=stderr, timed_out=timed_out
        )
        self.tools.setdefault(prefix[0], f"/usr/bin/{prefix[0]}")
        return self

    def which(self, name: str) -> Optional[str]:
        return self.tools.get(name)

    def is_executable(self, path: str) -> bool:
        return path in self.executables

    def run(self, args, timeout=None, env=None, merge_stderr=False) -> CommandResult:
        self.calls.append(list(args))
        best = None
        for prefix, result in self.responses.items():
            if tuple(args[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            raise CommandError(f"Command not found: {args[0]}")
        return self.responses[best]


PS_PHP = """\
 2101  12.5  1.2 51200 00:01:10 php-fpm
 2102   3.0  1.0 40960 00:00:30 php-fpm
 2100   0.0  0.4 10240 00:00:02 php-fpm
 2103   1.5  1.1 45056 00:00:12 php-fpm
"""

FREE_M = """\
              total        used        free      shared  buff/cache   available
Mem:           7820        3120         900         120        3800        4300
Swap:          2047           0        2047
"""


@pytest.fixture
def fake_runner():
    """A runner with a running PHP-FPM pool and nothing else installed"""
    runner = FakeRunner()
    runner.add(["ps", "-C", "php-fpm"], PS_PHP)
    runner.add(["free", "-m"], FREE_M)
    runner.add(["df", "-h"], "Filesystem Size Used Avail Use% Mounted on\n")
    runner.add(["pgrep"], returncode=1)
    # Only the commands above are available
    runner.tools = {}
    return runner


@pytest.fixture
def temp_git_project(tmp_path):
    """Create a temporary Git repository"""
    project = tmp_path / "test_project"
    project.mkdir()

    (project / ".git").mkdir()
    return project


@pytest.fixture
def isolated_config(tmp_path):
    """Config with every filesystem location pointed inside tmp_path"""
    from stack_doctor.core.config import Config

    config_file = tmp_path / "stack-doctor.yml"
    config_file.write_text(
        f"""
system:
  release_files: ["{tmp_path / 'centos-release'}"]
php_fpm:
  pool_configs: ["{tmp_path / 'php-fpm.d' / 'www.conf'}"]
traffic:
  log_dirs: ["{tmp_path / 'nginx'}"]
  fallback_dirs: []
trace:
  output_file: "{tmp_path / 'fpm_trace.log'}"
"""
    )
    return Config(str(tmp_path), config_file=str(config_file))
