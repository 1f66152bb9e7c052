"""System memory and worker capacity estimate"""
from dataclasses import dataclass
from typing import Optional

from stack_doctor.core.runner import CommandRunner
from stack_doctor.probes.base import to_int


@dataclass
class MemoryInfo:
    """Output of `free -m`, in MB"""

    total_mb: int
    available_mb: int


def parse_free_output(text: str) -> Optional[MemoryInfo]:
    """Read the Mem: row of `free -m`

    The available column is used when present, the free column otherwise
    (procps before 3.3.10 has no available column).
    """
    headers = []
    for line in text.splitlines():
        if "total" in line.split() and not headers:
            headers = line.split()
            continue
        if not line.startswith("Mem:"):
            continue
        values = line.split()[1:]
        column = "available" if "available" in headers else "free"
        if column not in headers or len(values) <= headers.index(column):
            return None
        return MemoryInfo(
            total_mb=to_int(values[headers.index("total")]),
            available_mb=to_int(values[headers.index(column)]),
        )
    return None


def read_memory(runner: CommandRunner) -> Optional[MemoryInfo]:
    result = runner.run(["free", "-m"])
    if not result.ok:
        return None
    return parse_free_output(result.stdout)


def estimate_max_children(total_mb: int, avg_process_mb: int, reserved_mb: int = 500) -> Optional[int]:
    """How many workers of the average size fit in RAM minus the reserve"""
    if avg_process_mb <= 0:
        return None
    return max(0, (total_mb - reserved_mb) // avg_process_mb)
