"""Package and operating system information"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from stack_doctor.core.runner import CommandError, CommandRunner

logger = logging.getLogger(__name__)

RPM_QUERY_FORMAT = "%{NAME}-%{VERSION}-%{RELEASE}.%{ARCH}\\n"


@dataclass
class SystemInfo:
    """OS release and installed PHP-FPM build

    packages is None when rpm is unavailable; binary_version is None when
    the binary is not on PATH.
    """

    os_name: str
    packages: Optional[List[str]]
    binary_version: Optional[str]


def read_os_release(release_files: List[str]) -> str:
    """Return the first readable release file's content"""
    for name in release_files:
        try:
            content = Path(name).read_text().strip()
        except OSError:
            continue
        if content:
            return content
    return "Unknown OS"


def installed_packages(runner: CommandRunner, name_filter: str) -> Optional[List[str]]:
    """List installed RPMs whose name contains name_filter"""
    if not runner.which("rpm"):
        return None

    try:
        result = runner.run(["rpm", "-qa", "--qf", RPM_QUERY_FORMAT])
    except CommandError as e:
        logger.debug(str(e))
        return None

    return sorted(line for line in result.lines if name_filter in line)


def binary_version(runner: CommandRunner, binary: str) -> Optional[str]:
    """First line of `<binary> -v`"""
    if not runner.which(binary):
        return None

    try:
        result = runner.run([binary, "-v"], merge_stderr=True)
    except CommandError as e:
        logger.debug(str(e))
        return None

    lines = result.lines
    return lines[0] if lines else ""


def collect_system_info(runner: CommandRunner, release_files: List[str], binary: str, package_filter: str) -> SystemInfo:
    return SystemInfo(
        os_name=read_os_release(release_files),
        packages=installed_packages(runner, package_filter),
        binary_version=binary_version(runner, binary),
    )
