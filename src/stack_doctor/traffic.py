"""Access log traffic analysis for stack-doctor

Counts the requests an nginx access log received within a trailing time
window and derives requests-per-second figures from them.
"""
import glob
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from stack_doctor.core.config import Config, ConfigurationError
from stack_doctor.core.files import tail_lines

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 600

# Longest accepted timeframe, ten years
MAX_DURATION_SECONDS = 3650 * 86400

UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

UNIT_NAMES = {
    "s": "second",
    "m": "minute",
    "h": "hour",
    "d": "day",
}

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

DURATION_RE = re.compile(r"^([0-9]{1,12})([smhd]?)$")

TIMESTAMP_RE = re.compile(
    r"\[(\d{1,2})/([A-Za-z]{3})/(\d{4}):(\d{2}):(\d{2}):(\d{2})(?:\s+([+-])(\d{2})(\d{2}))?\]"
)

REQUEST_RE = re.compile(r'"[A-Z]+\s+(\S+)')


class LogReadError(Exception):
    """Exception raised when an access log cannot be read"""

    pass


@dataclass
class DurationSpec:
    """A parsed analysis timeframe"""

    token: str
    seconds: int
    fallback: bool = False

    @property
    def label(self) -> str:
        """Human readable form, e.g. "10 minutes" """
        match = DURATION_RE.match(self.token)
        if match and not self.fallback:
            count, unit = int(match.group(1)), match.group(2) or "s"
        else:
            count, unit = self.seconds, "s"
            for candidate in ("d", "h", "m"):
                if self.seconds % UNIT_SECONDS[candidate] == 0:
                    count, unit = self.seconds // UNIT_SECONDS[candidate], candidate
                    break
        name = UNIT_NAMES[unit]
        return f"{count} {name}" if count == 1 else f"{count} {name}s"


def parse_duration(token: Optional[str], default: int = DEFAULT_DURATION_SECONDS) -> DurationSpec:
    """Parse a timeframe token into seconds

    A bare number is seconds; a number followed by s, m, h or d is seconds,
    minutes, hours or days. Anything else, zero and timeframes longer than
    MAX_DURATION_SECONDS included, is replaced by `default` and flagged as
    a fallback.

    Args:
        token: User supplied token
        default: Seconds used when the token is invalid

    Returns:
        DurationSpec
    """
    cleaned = (token or "").strip().lower()
    match = DURATION_RE.match(cleaned)

    if match:
        seconds = int(match.group(1)) * UNIT_SECONDS[match.group(2) or "s"]
        if 0 < seconds <= MAX_DURATION_SECONDS:
            return DurationSpec(token=cleaned, seconds=seconds)

    logger.debug(f"Invalid duration {token!r}, using {default}s")
    return DurationSpec(token=cleaned, seconds=default, fallback=True)


@dataclass
class TrafficWindow:
    """The trailing interval [start, end] a log scan counts requests in"""

    start: datetime
    end: datetime

    @classmethod
    def trailing(cls, seconds: int, now: Optional[datetime] = None) -> "TrafficWindow":
        """Build the window ending at `now` (defaults to the current time)"""
        end = now or datetime.now().astimezone()
        return cls(start=end - timedelta(seconds=seconds), end=end)

    @property
    def seconds(self) -> int:
        return int((self.end - self.start).total_seconds())

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


@dataclass
class TrafficResult:
    """Request counts for one access log within a window"""

    source: str
    seconds: int
    total: int = 0
    matched: int = 0
    skipped: int = 0

    @property
    def other(self) -> int:
        return self.total - self.matched

    @property
    def rps(self) -> float:
        """Overall requests per second"""
        return round(self.total / self.seconds, 2)

    @property
    def matched_rps(self) -> float:
        """Matched requests per second"""
        return round(self.matched / self.seconds, 2)

    @property
    def is_idle(self) -> bool:
        """True when no request fell inside the window"""
        return self.total == 0


def parse_log_timestamp(line: str) -> Optional[datetime]:
    """Extract the request time from an access log line

    Lines without a zone offset are read as local time.

    Returns:
        Timezone aware datetime, or None when the line has no usable timestamp
    """
    match = TIMESTAMP_RE.search(line)
    if not match:
        return None

    day, month_name, year, hour, minute, second, sign, off_h, off_m = match.groups()
    month = MONTHS.get(month_name.capitalize())
    if month is None:
        return None

    try:
        if sign:
            offset = timedelta(hours=int(off_h), minutes=int(off_m))
            tz = timezone(-offset if sign == "-" else offset)
            return datetime(int(year), month, int(day), int(hour), int(minute), int(second), tzinfo=tz)
        return datetime(int(year), month, int(day), int(hour), int(minute), int(second)).astimezone()
    except ValueError:
        return None


def request_target(line: str) -> str:
    """Return the request path of an access log line, or "" when absent"""
    match = REQUEST_RE.search(line)
    return match.group(1) if match else ""


def aggregate(
    lines: Iterable[str],
    window: TrafficWindow,
    marker: str = "index.php",
    source: str = "-",
) -> TrafficResult:
    """Count the requests of `lines` that fall inside `window`

    Lines whose timestamp cannot be parsed are skipped and counted in
    `skipped`; the scan never stops on them.

    Args:
        lines: Access log lines in file order
        window: Interval to count in
        marker: Substring of the request path counted as matched
        source: Name reported with the result

    Returns:
        TrafficResult

    Raises:
        ConfigurationError: If the window is empty
    """
    seconds = window.seconds
    if seconds <= 0:
        raise ConfigurationError(f"Analysis window must be positive, got {seconds}s")

    result = TrafficResult(source=source, seconds=seconds)

    for line in lines:
        instant = parse_log_timestamp(line)
        if instant is None:
            result.skipped += 1
            continue

        if not window.contains(instant):
            continue

        result.total += 1
        if marker in request_target(line):
            result.matched += 1

    if result.skipped:
        logger.debug(f"{source}: skipped {result.skipped} unparseable lines")

    return result


def analyze_file(
    path: Path,
    window: TrafficWindow,
    marker: str = "index.php",
    max_lines: int = 200000,
) -> TrafficResult:
    """Aggregate the trailing segment of one access log

    Raises:
        LogReadError: If the file cannot be read
    """
    try:
        lines = tail_lines(path, max_lines)
    except OSError as e:
        raise LogReadError(f"Cannot read {path}: {e.strerror or e}") from e

    return aggregate(lines, window, marker=marker, source=Path(path).name)


def find_site_logs(config: Config) -> List[Path]:
    """Site access logs matching the configured pattern under the log directories"""
    pattern = config.get("traffic.log_pattern", "*.access.log")
    found: List[Path] = []

    for log_dir in config.get("traffic.log_dirs", []):
        found.extend(sorted(Path(p) for p in glob.glob(str(Path(log_dir) / "**" / pattern), recursive=True)))

    return [p for p in found if p.is_file()]


def find_standard_log(config: Config) -> Optional[Path]:
    """First standard nginx/httpd access.log, if any"""
    name = config.get("traffic.fallback_name", "access.log")
    for log_dir in config.get("traffic.fallback_dirs", []):
        for candidate in sorted(glob.glob(str(Path(log_dir) / "**" / name), recursive=True)):
            if Path(candidate).is_file():
                return Path(candidate)
    return None


def find_access_logs(config: Config) -> List[Path]:
    """Locate the access logs to analyze

    Site logs matching the configured pattern win; without them the first
    standard nginx/httpd access.log is used.
    """
    found = find_site_logs(config)
    if found:
        return found

    logger.debug("No site access logs found, checking standard paths")
    standard = find_standard_log(config)
    return [standard] if standard else []
