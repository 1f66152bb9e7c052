"""MySQL/MariaDB and MongoDB checks"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stack_doctor.core.runner import CommandError, CommandResult, CommandRunner
from stack_doctor.probes.base import TIP, Finding, to_float
from stack_doctor.probes.processes import is_running, snapshot_processes

logger = logging.getLogger(__name__)

SLOW_QUERY_SQL = (
    "SHOW VARIABLES WHERE Variable_name IN "
    "('slow_query_log', 'slow_query_log_file', 'long_query_time');"
)

MONGOSTAT_FIELDS = {"insert": 0, "query": 1, "update": 2, "delete": 3, "locked": 15}


@dataclass
class SlowQuerySettings:
    enabled: bool
    log_file: str
    long_query_time: Optional[float]

    def findings(self, tip_threshold: float = 1.0) -> List[Finding]:
        if not self.enabled or self.long_query_time is None:
            return []
        if self.long_query_time < tip_threshold:
            return []
        return [
            Finding(
                TIP,
                f"Threshold is high ({self.long_query_time:g}). "
                "Queries taking 0.1s-0.9s are ignored.",
                ['Consider running: mysql -e "SET GLOBAL long_query_time = 0.5;"'],
            )
        ]


@dataclass
class MysqlStatus:
    """What could be learned about the local MySQL server

    status_items and slow_query stay None when the corresponding client is
    missing or could not authenticate.
    """

    running: bool
    cpu: float = 0.0
    admin_available: bool = False
    status_items: Optional[List[str]] = None
    client_available: bool = False
    slow_query: Optional[SlowQuerySettings] = None


@dataclass
class MongoStatus:
    running: bool
    cpu: float = 0.0
    tool: Optional[str] = None
    stat: Dict[str, str] = field(default_factory=dict)
    server_ok: Optional[str] = None


def parse_mysqladmin_status(text: str) -> List[str]:
    """Split the one-line `mysqladmin status` output into its fields"""
    line = text.strip().splitlines()[0] if text.strip() else ""
    return [item.strip() for item in re.split(r"\s{2,}", line) if item.strip()]


def parse_slow_query_variables(text: str) -> Optional[SlowQuerySettings]:
    """Parse `mysql -N -B` rows of (Variable_name, Value)"""
    values = {}
    for line in text.splitlines():
        parts = line.split(None, 1)
        if len(parts) == 2:
            values[parts[0]] = parts[1].strip()
        elif len(parts) == 1:
            values[parts[0]] = ""

    if not values:
        return None

    threshold = values.get("long_query_time")
    return SlowQuerySettings(
        enabled=values.get("slow_query_log", "").upper() == "ON",
        log_file=values.get("slow_query_log_file", ""),
        long_query_time=to_float(threshold) if threshold else None,
    )


def parse_mongostat(line: str) -> Dict[str, str]:
    """Pick insert/query/update/delete/locked columns of a mongostat row"""
    parts = line.split()
    return {name: (parts[index] if index < len(parts) else "n/a")
            for name, index in MONGOSTAT_FIELDS.items()}


def _run_quiet(runner: CommandRunner, args: List[str], timeout: float) -> Optional[CommandResult]:
    try:
        return runner.run(args, timeout=timeout)
    except CommandError as e:
        logger.debug(str(e))
        return None


def check_mysql(runner: CommandRunner, timeout: float = 2) -> MysqlStatus:
    if not is_running(runner, "mysqld"):
        return MysqlStatus(running=False)

    status = MysqlStatus(running=True, cpu=snapshot_processes(runner, "mysqld").total_cpu)

    if runner.which("mysqladmin"):
        status.admin_available = True
        result = _run_quiet(runner, ["mysqladmin", "status"], timeout)
        if result is not None and result.ok and result.stdout.strip():
            status.status_items = parse_mysqladmin_status(result.stdout)

    if runner.which("mysql"):
        status.client_available = True
        result = _run_quiet(runner, ["mysql", "-N", "-B", "-e", SLOW_QUERY_SQL], timeout)
        if result is not None and result.ok:
            status.slow_query = parse_slow_query_variables(result.stdout)

    return status


def check_mongo(runner: CommandRunner, timeout: float = 2) -> MongoStatus:
    if not is_running(runner, "mongod"):
        return MongoStatus(running=False)

    status = MongoStatus(running=True, cpu=snapshot_processes(runner, "mongod").total_cpu)

    if runner.which("mongostat"):
        status.tool = "mongostat"
        result = _run_quiet(runner, ["mongostat", "-n", "1", "--noheaders"], timeout)
        if result is not None and result.lines:
            status.stat = parse_mongostat(result.lines[0])
    elif runner.which("mongo"):
        status.tool = "mongo"
        result = _run_quiet(runner, ["mongo", "--eval", "db.serverStatus().ok", "--quiet"], timeout)
        if result is not None and result.lines:
            status.server_ok = result.lines[-1]

    return status
