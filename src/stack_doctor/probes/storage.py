"""Disk usage and I/O wait"""
from dataclasses import dataclass
from typing import List, Optional

from stack_doctor.core.runner import CommandRunner
from stack_doctor.probes.base import WARNING, Finding, to_int


@dataclass
class DiskUsage:
    device: str
    used_percent: str
    available: str


@dataclass
class CpuSample:
    idle: int
    iowait: int


def parse_df(text: str, rows: int = 3) -> List[DiskUsage]:
    """Block devices from `df -h`"""
    disks = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 6 or not parts[0].startswith("/dev/"):
            continue
        disks.append(DiskUsage(device=parts[0], used_percent=parts[4], available=parts[3]))
    return disks[:rows]


def parse_vmstat(text: str) -> List[CpuSample]:
    """CPU idle and wait columns from `vmstat <delay> <count>`

    Column positions are taken from the header row since they differ
    between procps versions.
    """
    idle_col = wait_col = None
    samples = []

    for line in text.splitlines():
        parts = line.split()
        if "id" in parts and "wa" in parts:
            idle_col, wait_col = parts.index("id"), parts.index("wa")
            continue
        if idle_col is None or not parts or not parts[0].isdigit():
            continue
        if len(parts) > max(idle_col, wait_col):
            samples.append(CpuSample(idle=to_int(parts[idle_col]), iowait=to_int(parts[wait_col])))

    return samples


def disk_usage(runner: CommandRunner, rows: int = 3) -> List[DiskUsage]:
    return parse_df(runner.run(["df", "-h"]).stdout, rows)


def cpu_samples(runner: CommandRunner, samples: int = 3) -> List[CpuSample]:
    result = runner.run(["vmstat", "1", str(samples)], timeout=samples + 5)
    return parse_vmstat(result.stdout)


def iowait_finding(samples: List[CpuSample], threshold: int = 15) -> Optional[Finding]:
    """Flag the most recent sample when its wait exceeds threshold"""
    if not samples or samples[-1].iowait <= threshold:
        return None
    return Finding(
        WARNING,
        f"High Disk I/O Wait detected ({samples[-1].iowait}%).",
        ["This often causes PHP-FPM to hang while waiting for files/DB."],
    )
