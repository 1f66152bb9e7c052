"""PHP-FPM stack diagnostic report

Runs each probe in turn and renders its section. Sections that lack an
input (missing tool, unreadable file) say so and the run goes on; only
the privilege check and an absent PHP-FPM pool stop it.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

import click

from stack_doctor.core.config import Config
from stack_doctor.core.files import tail_lines
from stack_doctor.core.runner import CommandError, CommandRunner
from stack_doctor.probes import database, memory, pool as pool_probe, redis, storage, system, trace
from stack_doctor.probes.base import INFO, Finding
from stack_doctor.probes.database import MysqlStatus
from stack_doctor.probes.pool import PoolConfig
from stack_doctor.probes.processes import ProcessSnapshot, snapshot_processes
from stack_doctor.report import INDENT, Report
from stack_doctor.traffic import (
    LogReadError,
    TrafficResult,
    TrafficWindow,
    analyze_file,
    find_site_logs,
    find_standard_log,
    parse_duration,
)

logger = logging.getLogger(__name__)


class PrivilegeError(Exception):
    """Exception raised when the report is not run as root"""

    pass


class NoProcessesError(Exception):
    """Exception raised when no PHP-FPM worker is running"""

    pass


def require_root(geteuid: Optional[Callable[[], int]] = None) -> None:
    """Abort unless running with effective uid 0

    Raises:
        PrivilegeError: If not root
    """
    if (geteuid or os.geteuid)() != 0:
        raise PrivilegeError("Please run as root (sudo).")


class Diagnostics:
    """Builds the health report of a PHP-FPM web stack

    Values learned by one section (worker snapshot, pool file, MySQL slow
    log location) are returned and handed to the sections that need them.
    """

    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        report: Optional[Report] = None,
        prompt: Optional[Callable[..., str]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        interactive: Optional[bool] = None,
    ):
        """Initialize diagnostics

        Args:
            config: Loaded configuration
            runner: Command runner (real system commands by default)
            report: Output target
            prompt: Asks for the traffic timeframe (click.prompt by default)
            confirm: Asks before tracing (click.confirm by default)
            interactive: Whether stdin is a terminal; the trace is only
                offered when it is
        """
        self.config = config
        self.runner = runner or CommandRunner()
        self.report = report or Report()
        self.prompt = prompt or click.prompt
        self.confirm = confirm or click.confirm
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    # Profiles

    def run_performance(self) -> None:
        """Full stack report: PHP-FPM, Redis, storage, databases, traffic, logs"""
        self.report.banner("PHP-FPM DEEP DIVE DIAGNOSTIC")
        self.system_info(1)
        procs = self.processes(2)
        estimate = self.memory(3, procs)
        pool = self.pool_config(4, procs, estimate)
        self.redis(5)
        self.storage(6)
        mysql = self.databases(7)
        self.traffic(8)
        self.status_page(9, pool)
        self.log_inspector(10, pool, mysql)
        self.deep_trace(11, procs)
        self.report.line()

    def run_fpm(self) -> None:
        """PHP-FPM only report"""
        self.report.banner("PHP-FPM DEEP DIVE DIAGNOSTIC")
        self.system_info(1)
        procs = self.processes(2)
        estimate = self.memory(3, procs)
        pool = self.pool_config(4, procs, estimate)
        self.status_page(5, pool, nginx_hint=True)
        self.deep_trace(6, procs)
        self.report.line()

    # Sections

    def system_info(self, number: int) -> None:
        report = self.report
        report.section(number, "Package & System Information")

        binary = self.config.process_name
        info = system.collect_system_info(
            self.runner,
            self.config.get("system.release_files", []),
            binary,
            self.config.get("php_fpm.package_filter", "php-fpm"),
        )

        report.line(f"OS: {info.os_name}")
        report.line("Installed RPMs:")
        if info.packages is None:
            report.problem("'rpm' command not found.")
        elif not info.packages:
            report.problem(f"No '{binary}' RPM found (might be compiled from source).")
        else:
            report.lines(info.packages, prefix="- ")

        report.line("Binary Version:")
        if info.binary_version is None:
            report.problem(f"'{binary}' binary not found in PATH.")
        else:
            report.line(f"- {info.binary_version}")

    def processes(self, number: int) -> ProcessSnapshot:
        """CPU usage of the PHP-FPM workers

        Raises:
            NoProcessesError: If no worker is running
        """
        report = self.report
        report.section(number, "CPU & Process Check")
        name = self.config.process_name

        try:
            procs = snapshot_processes(self.runner, name)
        except CommandError as e:
            logger.debug(str(e))
            procs = ProcessSnapshot(name=name)

        if procs.count == 0:
            raise NoProcessesError(f"No {name} processes found running.")

        report.line(f"Active PHP-FPM Processes: {procs.count}")
        report.line(f"Total CPU Usage (all processes): {procs.total_cpu:g}%")

        limit = int(self.config.get("php_fpm.top_processes", 3))
        report.subheading(f"Top {limit} CPU-Consuming PHP Processes:")
        for proc in procs.top(limit):
            report.line(
                f"PID: {proc.pid:<6} CPU: {proc.cpu:<4g} MEM: {proc.mem:<4g} "
                f"TIME: {proc.time:<6} CMD: {proc.command}"
            )
        return procs

    def memory(self, number: int, procs: ProcessSnapshot) -> Optional[int]:
        """Memory totals; returns the estimated max_children"""
        report = self.report
        report.section(number, "Memory Analysis & Capacity Planning")

        try:
            mem = memory.read_memory(self.runner)
        except CommandError as e:
            logger.debug(str(e))
            mem = None

        if mem is None:
            report.problem("Could not read system memory ('free' unavailable).")
        else:
            report.item("System Total RAM", f"{mem.total_mb} MB")
            report.item("System Available RAM", f"{mem.available_mb} MB")
        report.item("Total RAM used by PHP", f"{procs.total_rss_mb} MB")
        report.item("Avg RAM per PHP Process", f"~{procs.avg_rss_mb} MB", width=25)

        estimate = None
        if mem is not None:
            estimate = memory.estimate_max_children(
                mem.total_mb, procs.avg_rss_mb, self.config.reserved_memory_mb
            )

        if estimate is None:
            report.problem("Could not calculate average memory.")
        else:
            report.good(f"Theoretical Max Children (based on total RAM): ~{estimate}")
        return estimate

    def pool_config(self, number: int, procs: ProcessSnapshot, estimate: Optional[int]) -> Optional[PoolConfig]:
        report = self.report
        report.section(number, "Configuration Inspection")

        pool = pool_probe.load_pool_config(self.config.pool_configs)
        if pool is None:
            report.problem("Could not locate www.conf.")
            return None

        report.line(f"Config File: {pool.path}")
        report.separator()
        report.item("Process Manager (pm)", pool.pm, width=26)
        report.item("Max Children", pool.max_children, width=26)
        report.item("Start Servers", pool.start_servers, width=26)
        report.item("Listen Address", pool.listen, width=26)
        report.separator()

        for finding in pool_probe.capacity_findings(procs.count, pool, estimate):
            report.finding(finding)
        return pool

    def redis(self, number: int) -> None:
        report = self.report
        report.section(number, "Redis Performance Snapshot")

        cli_paths = self.config.get("redis.cli_paths", [])
        cli = redis.find_redis_cli(self.runner, cli_paths)
        if cli is None:
            report.skip(f"'redis-cli' not found in PATH or at {', '.join(cli_paths)}.")
            return

        snap = redis.redis_snapshot(self.runner, cli, timeout=self.config.get("redis.timeout", 2))
        if snap is None:
            report.problem(
                "Could not connect to Redis (running? password protected?).",
                f"Try running: {cli} info",
            )
            return

        report.item("Redis Uptime", f"{snap.uptime_days} days")
        report.item("Memory Used", f"{snap.used_memory} / {snap.max_memory_label}")
        report.item("Connected Clients", snap.clients)
        report.item("Ops Per Second", snap.ops_per_sec)
        report.separator()

        if not snap.evicted_keys:
            report.item("Evicted Keys", "0 (Healthy)")
        if not snap.rejected_connections:
            report.item("Rejected Conn", "0 (Healthy)")
        for finding in snap.findings():
            report.finding(finding)

    def storage(self, number: int) -> None:
        report = self.report
        report.section(number, "Storage & Disk I/O Check")

        report.line("Disk Usage:")
        try:
            disks = storage.disk_usage(self.runner, int(self.config.get("storage.disk_rows", 3)))
        except CommandError as e:
            logger.debug(str(e))
            disks = []
        for disk in disks:
            report.line(f"{disk.device} : {disk.used_percent} used ({disk.available} free)")

        if not self.runner.which("vmstat"):
            report.skip("'vmstat' not found. Install 'sysstat' for detailed I/O stats.")
            return

        count = int(self.config.get("storage.vmstat_samples", 3))
        report.line(f"Disk Wait (wa) Analysis (sampling {count}s):")
        try:
            samples = storage.cpu_samples(self.runner, count)
        except CommandError as e:
            logger.debug(str(e))
            samples = []
        for sample in samples:
            report.line(f"CPU Idle: {sample.idle}% | IO Wait (wa): {sample.iowait}%")

        finding = storage.iowait_finding(samples, int(self.config.get("storage.iowait_threshold", 15)))
        if finding:
            report.finding(finding)
        else:
            report.item("Disk IO Wait", "OK")

    def databases(self, number: int) -> Optional[MysqlStatus]:
        """MySQL and MongoDB status; returns the MySQL status for the log inspector"""
        report = self.report
        report.section(number, "Database Checks")
        timeout = self.config.get("database.timeout", 2)

        try:
            mysql = database.check_mysql(self.runner, timeout)
        except CommandError as e:
            report.skip(f"Cannot check MySQL: {e}")
            mysql = None

        if mysql is not None:
            self._render_mysql(mysql)

        report.line()

        try:
            mongo = database.check_mongo(self.runner, timeout)
        except CommandError as e:
            report.skip(f"Cannot check MongoDB: {e}")
            return mysql

        if not mongo.running:
            report.line(f"{'[MongoDB]':<16}Not Running")
            return mysql

        report.line(f"{'[MongoDB]':<16}Running (CPU: {mongo.cpu:g}%)")
        if mongo.tool == "mongostat":
            report.line("Snapshot (mongostat):")
            if mongo.stat:
                s = mongo.stat
                report.line(
                    f"Insert: {s['insert']} | Query: {s['query']} | Update: {s['update']} "
                    f"| Delete: {s['delete']} | Locked: {s['locked']}"
                )
        elif mongo.tool == "mongo":
            report.line("Checking connection...")
            if mongo.server_ok is not None:
                report.line(f"Server Status OK: {mongo.server_ok}")
        else:
            report.skip("'mongostat' or 'mongo' tools not found.")
        return mysql

    def _render_mysql(self, mysql: MysqlStatus) -> None:
        report = self.report
        if not mysql.running:
            report.line("[MySQL/MariaDB] Not Running")
            return

        report.line(f"[MySQL/MariaDB] Running (CPU: {mysql.cpu:g}%)")
        if mysql.admin_available:
            if mysql.status_items:
                report.lines(mysql.status_items, prefix="- ")
            else:
                report.problem("Could not fetch 'mysqladmin status' (password required).")

        if not mysql.client_available:
            return

        report.line("Checking Slow Query Log configuration...")
        slow = mysql.slow_query
        if slow is None:
            report.problem("Could not fetch MySQL variables (Access denied or mysql down).")
        elif slow.enabled:
            report.line(f"{'Slow Query Log:':<23}" + click.style("ENABLED", fg="green"))
            report.item("Log File", slow.log_file)
            threshold = f"{slow.long_query_time:g}" if slow.long_query_time is not None else "?"
            report.item("Threshold", f"{threshold} seconds")
            for finding in slow.findings(float(self.config.get("database.long_query_tip", 1.0))):
                report.finding(finding)
        else:
            report.line(f"{'Slow Query Log:':<23}" + click.style("DISABLED", fg="red"))
            report.skip(
                "To enable, add to /etc/my.cnf under [mysqld]:",
                "slow_query_log = 1",
                "slow_query_log_file = /var/log/mysql-slow.log",
                "long_query_time = 2",
                "(Then restart mysqld)",
            )

    def traffic(self, number: int, logs: Optional[List[Path]] = None) -> List[TrafficResult]:
        """Request counts per access log over an operator chosen window"""
        report = self.report
        report.section(number, "Nginx Traffic Analysis")

        if logs is None:
            logs = self._locate_logs()
        if not logs:
            report.problem("Could not locate any access logs.")
            return []

        default_token = self.config.default_duration
        token = str(self.prompt(
            f"{INDENT}Enter analysis timeframe (e.g. 10m, 2h, 300)", default=default_token
        ))
        duration = parse_duration(token, default=parse_duration(default_token).seconds)

        if duration.fallback:
            report.problem(f"Invalid time format '{token}'. Defaulting to {duration.label}.")
        elif duration.token.isdigit():
            report.skip(f"Assuming '{duration.token}' is seconds.")

        window = TrafficWindow.trailing(duration.seconds)
        report.line(f"Analyzing last {duration.label} (~{window.seconds} seconds)...")

        marker = self.config.traffic_marker
        results = []
        for path in logs:
            report.separator()
            report.line(f"Analyzing: {path.name}")
            try:
                result = analyze_file(path, window, marker=marker, max_lines=self.config.tail_lines)
            except LogReadError as e:
                report.problem(str(e))
                continue
            self._render_traffic(result, marker)
            results.append(result)
        return results

    def _locate_logs(self) -> List[Path]:
        logs = find_site_logs(self.config)
        if logs:
            return logs

        dirs = ", ".join(str(d) for d in self.config.get("traffic.log_dirs", []))
        pattern = self.config.get("traffic.log_pattern", "*.access.log")
        self.report.problem(f"No '{pattern}' files found in {dirs}.", "Checking standard paths...")
        standard = find_standard_log(self.config)
        return [standard] if standard else []

    def _render_traffic(self, result: TrafficResult, marker: str) -> None:
        report = self.report
        if result.is_idle:
            report.skip("No requests found in this timeframe.")
            return
        report.item("Total Requests", result.total)
        report.item(f"With {marker}", result.matched)
        report.item("Other Requests", result.other)
        report.item("Overall RPS", f"{result.rps:.2f} req/sec")
        report.item(f"{marker.capitalize()} RPS", f"{result.matched_rps:.2f} req/sec")

    def status_page(self, number: int, pool: Optional[PoolConfig], nginx_hint: bool = False) -> None:
        report = self.report
        report.section(number, "Real-Time Status Page")

        if pool is None or not pool.status_path:
            report.problem("Status page is NOT enabled in config (pm.status_path).")
            if nginx_hint and pool is not None:
                report.line(
                    f"    Enable it in {pool.path} to see 'Listen Queue' and 'Active Processes' in real-time."
                )
                report.line("    Add/Uncomment: pm.status_path = /status")
            return

        report.line(f"[OK] Status Path is enabled: {pool.status_path}")

        lines = pool_probe.fetch_status_page(self.runner, pool, timeout=self.config.get("php_fpm.status_timeout", 2))
        if lines is not None:
            report.line("Fetching status via cgi-fcgi...")
            report.separator()
            report.lines(lines)
            report.separator()
            return

        url_path = pool_probe.status_url_path(pool.status_path)
        report.skip("'cgi-fcgi' tool not found. Install it to query status from CLI:", "yum install fcgi")
        report.line()
        report.line("Alternatively, view via web browser (if web server configured):")
        report.line(f"http://localhost{url_path}")
        if nginx_hint:
            report.line()
            report.line("[?] To configure Nginx for this URL, add this to your server block:")
            report.lines(pool_probe.nginx_location_snippet(pool), prefix="    ")

    def log_inspector(self, number: int, pool: Optional[PoolConfig], mysql: Optional[MysqlStatus]) -> None:
        report = self.report
        report.section(number, "Log Inspector")
        count = int(self.config.get("logs.slow_log_lines", 10))

        slowlog = pool.slowlog if pool else ""
        if not slowlog:
            report.line("[PHP-FPM] Slow log not detected in config.")
        else:
            self._show_log_tail("[PHP-FPM] Slow Log", slowlog, count)

        mysql_log = ""
        if mysql is not None and mysql.slow_query is not None and mysql.slow_query.enabled:
            mysql_log = mysql.slow_query.log_file
        if not mysql_log or not Path(mysql_log).is_file():
            report.line("[MySQL] Slow log not detected/enabled or file unreadable.")
        else:
            self._show_log_tail("[MySQL] Slow Log", mysql_log, count)

    def _show_log_tail(self, title: str, path: str, count: int) -> None:
        report = self.report
        try:
            lines = tail_lines(path, count)
        except OSError:
            report.line(f"{title} configured ({path}) but file not found/readable.")
            return
        report.line(f"{title} ({path}) - Last {count} lines:")
        report.separator()
        report.raw(lines)
        report.separator()

    def deep_trace(self, number: int, procs: ProcessSnapshot) -> None:
        """Offer an strace of the busiest worker (interactive runs only)"""
        if not self.interactive:
            return

        report = self.report
        report.section(number, "Deep Trace (strace)")

        pid = procs.top_pid
        if pid is None:
            return

        seconds = self.config.trace_seconds
        if not self.confirm(f"{INDENT}Trace top process PID {pid} for {seconds:g} seconds?"):
            return

        if not self.runner.which("strace"):
            report.problem("strace not installed. Install with: yum install strace")
            return

        report.line(f"Tracing... (Wait {seconds:g}s)")
        try:
            result = trace.trace_process(
                self.runner,
                pid,
                seconds,
                self.config.trace_file,
                int(self.config.get("trace.preview_lines", 15)),
            )
        except CommandError as e:
            report.problem(str(e))
            return
        except OSError as e:
            report.problem(f"Cannot write {self.config.trace_file}: {e}")
            return

        report.raw(result.preview)
        report.line()
        report.line("... trace output truncated.")
        report.line(f"Full log saved to: {result.output_file}")
        if result.idle:
            report.finding(Finding(INFO, "'accept(...)' seen? The process was idle waiting for requests."))
