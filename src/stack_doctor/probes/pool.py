"""PHP-FPM pool configuration and status page"""
import glob
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from stack_doctor.core.runner import CommandError, CommandRunner
from stack_doctor.probes.base import CAUTION, WARNING, Finding, to_int

logger = logging.getLogger(__name__)

DEFAULT_PM = "dynamic (default)"
DEFAULT_MAX_CHILDREN = 5
DEFAULT_START_SERVERS = 2

STATUS_LINE_RE = re.compile(
    r"pool:|process manager|start time|accepted conn|listen queue|active processes|slow requests"
)


@dataclass
class PoolConfig:
    """Settings read from a pool file such as www.conf"""

    path: Path
    pm: str = DEFAULT_PM
    max_children: int = DEFAULT_MAX_CHILDREN
    start_servers: int = DEFAULT_START_SERVERS
    status_path: str = ""
    listen: str = ""
    slowlog: str = ""
    settings: Dict[str, str] = field(default_factory=dict)

    @property
    def listens_on_socket(self) -> bool:
        return self.listen.startswith("/")


def parse_pool_settings(text: str) -> Dict[str, str]:
    """Parse `key = value` lines, ignoring ; and # comments and [sections]"""
    settings = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in ";#[" or "=" not in line:
            continue
        key, _, value = line.partition("=")
        settings[key.strip()] = value.strip()
    return settings


def parse_pool_config(text: str, path: Path) -> PoolConfig:
    settings = parse_pool_settings(text)
    return PoolConfig(
        path=path,
        pm=settings.get("pm") or DEFAULT_PM,
        max_children=to_int(settings.get("pm.max_children"), DEFAULT_MAX_CHILDREN),
        start_servers=to_int(settings.get("pm.start_servers"), DEFAULT_START_SERVERS),
        status_path=settings.get("pm.status_path", ""),
        listen=settings.get("listen", ""),
        slowlog=settings.get("slowlog", ""),
        settings=settings,
    )


def find_pool_config(patterns: List[str]) -> Optional[Path]:
    """First existing file matching the configured glob patterns"""
    for pattern in patterns:
        for candidate in sorted(glob.glob(pattern)):
            path = Path(candidate)
            if path.is_file():
                return path
    return None


def load_pool_config(patterns: List[str]) -> Optional[PoolConfig]:
    path = find_pool_config(patterns)
    if path is None:
        return None

    try:
        text = path.read_text(errors="replace")
    except OSError as e:
        logger.warning(f"Cannot read {path}: {e}")
        return None

    return parse_pool_config(text, path)


def capacity_findings(active: int, pool: PoolConfig, estimated: Optional[int]) -> List[Finding]:
    """Compare running workers and RAM capacity with pm.max_children"""
    if active >= pool.max_children:
        return [
            Finding(
                WARNING,
                f"Active processes ({active}) reached Max Children ({pool.max_children}).",
                ["Requests are likely queuing. Consider increasing pm.max_children if RAM allows."],
            )
        ]
    if estimated is not None and estimated < pool.max_children:
        return [
            Finding(
                CAUTION,
                f"pm.max_children ({pool.max_children}) is higher than estimated RAM capacity ({estimated}).",
                ["Risk of OOM (Out of Memory) if traffic spikes."],
            )
        ]
    return []


def fetch_status_page(runner: CommandRunner, pool: PoolConfig, timeout: float = 2) -> Optional[List[str]]:
    """Query the pool status page over FastCGI

    Returns:
        Interesting status lines, or None when cgi-fcgi is not installed
    """
    if not runner.which("cgi-fcgi"):
        return None

    env = {
        "SCRIPT_NAME": pool.status_path,
        "SCRIPT_FILENAME": pool.status_path,
        "REQUEST_METHOD": "GET",
    }
    try:
        result = runner.run(["cgi-fcgi", "-bind", "-connect", pool.listen], timeout=timeout, env=env)
    except CommandError as e:
        logger.debug(str(e))
        return None

    return [line for line in result.lines if STATUS_LINE_RE.search(line)]


def status_url_path(status_path: str) -> str:
    return "/" + status_path.lstrip("/")


def fastcgi_pass(listen: str) -> str:
    """fastcgi_pass value for a pool listen address"""
    return f"unix:{listen}" if listen.startswith("/") else listen


def nginx_location_snippet(pool: PoolConfig) -> List[str]:
    """Server-block lines exposing the status page through nginx"""
    url_path = status_url_path(pool.status_path)
    return [
        f"location ~ ^{url_path}$ {{",
        "    access_log off;",
        "    include fastcgi_params;",
        f"    fastcgi_pass {fastcgi_pass(pool.listen)};",
        "}",
    ]
