"""Time-bounded strace of a single worker"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from stack_doctor.core.runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass
class TraceResult:
    pid: int
    output_file: Path
    preview: List[str]
    line_count: int
    idle: bool


def trace_process(
    runner: CommandRunner,
    pid: int,
    seconds: float,
    output_file: Path,
    preview_lines: int = 15,
) -> TraceResult:
    """Attach strace to `pid` until the timeout kills it

    The full transcript is written to `output_file`; output captured before
    the timeout is kept.

    Raises:
        CommandError: If strace is not installed
    """
    result = runner.run(
        ["strace", "-s", "200", "-f", "-p", str(pid)],
        timeout=seconds,
        merge_stderr=True,
    )

    output_file.write_text(result.stdout)
    lines = result.stdout.splitlines()
    logger.debug(f"Trace of {pid}: {len(lines)} lines, timed_out={result.timed_out}")

    return TraceResult(
        pid=pid,
        output_file=output_file,
        preview=lines[:preview_lines],
        line_count=len(lines),
        idle="accept(" in result.stdout,
    )
