"""Process table parsing"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from stack_doctor.core.runner import CommandRunner
from stack_doctor.probes.base import to_float, to_int

logger = logging.getLogger(__name__)

PS_COLUMNS = "pid,pcpu,pmem,rss,time,comm"


@dataclass
class ProcessInfo:
    """One row of the process table"""

    pid: int
    cpu: float
    mem: float
    rss_kb: int
    time: str
    command: str


@dataclass
class ProcessSnapshot:
    """All processes of one name, highest CPU first"""

    name: str
    processes: List[ProcessInfo] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.processes)

    @property
    def total_cpu(self) -> float:
        return round(sum(p.cpu for p in self.processes), 1)

    @property
    def total_rss_mb(self) -> int:
        return sum(p.rss_kb for p in self.processes) // 1024

    @property
    def avg_rss_mb(self) -> int:
        """Average resident memory per process in whole MB"""
        if not self.processes:
            return 0
        return int(sum(p.rss_kb for p in self.processes) / self.count / 1024)

    def top(self, limit: int = 3) -> List[ProcessInfo]:
        return self.processes[:limit]

    @property
    def top_pid(self) -> Optional[int]:
        return self.processes[0].pid if self.processes else None


def parse_ps_output(text: str) -> List[ProcessInfo]:
    """Parse `ps -o pid,pcpu,pmem,rss,time,comm` rows without headers"""
    processes = []
    for line in text.splitlines():
        parts = line.split(None, 5)
        if len(parts) < 6 or not parts[0].isdigit():
            continue
        processes.append(
            ProcessInfo(
                pid=int(parts[0]),
                cpu=to_float(parts[1]),
                mem=to_float(parts[2]),
                rss_kb=to_int(parts[3]),
                time=parts[4],
                command=parts[5].strip(),
            )
        )
    return processes


def snapshot_processes(runner: CommandRunner, name: str) -> ProcessSnapshot:
    """Collect every process called `name`

    Raises:
        CommandError: If ps is unavailable
    """
    result = runner.run(
        ["ps", "-C", name, "--no-headers", "-o", PS_COLUMNS, "--sort=-pcpu"]
    )
    # ps exits 1 when nothing matched
    processes = parse_ps_output(result.stdout)
    processes.sort(key=lambda p: p.cpu, reverse=True)
    logger.debug(f"Found {len(processes)} {name} processes")
    return ProcessSnapshot(name=name, processes=processes)


def is_running(runner: CommandRunner, name: str) -> bool:
    """Check for a process with exactly this name via pgrep"""
    return runner.run(["pgrep", "-x", name]).returncode == 0
