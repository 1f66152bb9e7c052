"""Redis INFO snapshot"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from stack_doctor.core.runner import CommandError, CommandRunner
from stack_doctor.probes.base import CAUTION, WARNING, Finding, to_int

logger = logging.getLogger(__name__)


@dataclass
class RedisSnapshot:
    uptime_days: str
    used_memory: str
    max_memory: str
    clients: str
    ops_per_sec: str
    evicted_keys: int
    rejected_connections: int

    @property
    def max_memory_label(self) -> str:
        if not self.max_memory or self.max_memory == "0B":
            return "Unlimited"
        return self.max_memory

    def findings(self) -> List[Finding]:
        findings = []
        if self.evicted_keys > 0:
            findings.append(
                Finding(
                    CAUTION,
                    f"Evicted Keys: {self.evicted_keys}",
                    ["Redis is running out of RAM and removing data."],
                )
            )
        if self.rejected_connections > 0:
            findings.append(
                Finding(
                    WARNING,
                    f"Rejected Connections: {self.rejected_connections}",
                    ["Hit maxclients limit. Increase 'maxclients' in redis.conf."],
                )
            )
        return findings


def parse_info(text: str) -> Dict[str, str]:
    """Parse `redis-cli info` into a flat dict; section headers are dropped"""
    info = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, _, value = line.partition(":")
        info[key] = value
    return info


def snapshot_from_info(info: Dict[str, str]) -> RedisSnapshot:
    return RedisSnapshot(
        uptime_days=info.get("uptime_in_days", ""),
        used_memory=info.get("used_memory_human", ""),
        max_memory=info.get("maxmemory_human", ""),
        clients=info.get("connected_clients", ""),
        ops_per_sec=info.get("instantaneous_ops_per_sec", ""),
        evicted_keys=to_int(info.get("evicted_keys")),
        rejected_connections=to_int(info.get("rejected_connections")),
    )


def find_redis_cli(runner: CommandRunner, cli_paths: List[str]) -> Optional[str]:
    """Configured redis-cli locations first, then PATH"""
    for path in cli_paths:
        if runner.is_executable(path):
            return path
    return runner.which("redis-cli")


def redis_snapshot(runner: CommandRunner, cli: str, timeout: float = 2) -> Optional[RedisSnapshot]:
    """Run INFO against the default local instance

    Returns:
        RedisSnapshot, or None when Redis did not answer
    """
    try:
        result = runner.run([cli, "info"], timeout=timeout)
    except CommandError as e:
        logger.debug(str(e))
        return None

    info = parse_info(result.stdout)
    if not info:
        return None
    return snapshot_from_info(info)
