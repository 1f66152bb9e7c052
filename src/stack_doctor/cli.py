"""Command-line interface for stack-doctor

Provides commands for the stack health report, traffic analysis, and
deployment hook installation.
"""
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from stack_doctor import __version__
from stack_doctor.core.config import Config, ConfigurationError
from stack_doctor.core.runner import CommandRunner
from stack_doctor.diagnostics import Diagnostics, NoProcessesError, PrivilegeError, require_root
from stack_doctor.hooks import HookInstaller, HookInstallError
from stack_doctor.report import Report


@click.group()
@click.version_option(version=__version__, prog_name="stack-doctor")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """Stack-Doctor: PHP-FPM deployment server toolkit

    Prints a health report of the PHP-FPM web stack and installs Git hooks
    that keep a deployment checkout safe to roll back.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.setdefault("runner", CommandRunner())


def _load_config(config_file: Optional[str], project: str = ".") -> Config:
    """Load and validate configuration, exiting on errors"""
    try:
        return Config(project, config_file=config_file).ensure_valid()
    except ConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)


def _require_root() -> None:
    try:
        require_root()
    except PrivilegeError as e:
        click.echo(str(e), err=True)
        sys.exit(1)


def _run_profile(ctx, config_file: Optional[str], profile: str) -> None:
    _require_root()
    config = _load_config(config_file)
    report = Report()
    diagnostics = Diagnostics(config, runner=ctx.obj["runner"], report=report)

    try:
        if profile == "fpm":
            diagnostics.run_fpm()
        else:
            diagnostics.run_performance()
    except NoProcessesError as e:
        report.fatal(str(e), f"Check service status: systemctl status {config.process_name}")
        sys.exit(1)


@cli.command()
@click.option(
    "--config", "config_file", type=click.Path(dir_okay=False), help="Path to .stack-doctor.yml"
)
@click.pass_context
def diagnose(ctx, config_file: Optional[str]):
    """Print the full stack health report

    Covers PHP-FPM workers, memory, pool settings, Redis, storage,
    databases, nginx traffic and slow logs. Must run as root.
    """
    _run_profile(ctx, config_file, "performance")


@cli.command()
@click.option(
    "--config", "config_file", type=click.Path(dir_okay=False), help="Path to .stack-doctor.yml"
)
@click.pass_context
def fpm(ctx, config_file: Optional[str]):
    """Print the PHP-FPM only report

    Workers, memory, pool settings and the status page. Must run as root.
    """
    _run_profile(ctx, config_file, "fpm")


@cli.command()
@click.argument("logs", nargs=-1, type=click.Path(dir_okay=False))
@click.option(
    "--config", "config_file", type=click.Path(dir_okay=False), help="Path to .stack-doctor.yml"
)
@click.pass_context
def traffic(ctx, logs: Tuple[str, ...], config_file: Optional[str]):
    """Count recent requests in nginx access logs

    LOGS: Access log files (defaults to the configured log directories)
    """
    config = _load_config(config_file)
    diagnostics = Diagnostics(config, runner=ctx.obj["runner"])
    diagnostics.traffic(1, logs=[Path(p) for p in logs] if logs else None)


@cli.command("install-hooks")
@click.option(
    "--project", "-p", default=".", help="Path to repository root"
)
def install_hooks(project: str):
    """Install backup-tag and push-blocking Git hooks

    post-merge tags the state before and after every pull;
    pre-push refuses pushes from this server.
    """
    project_path = Path(project).resolve()
    installer = HookInstaller(str(project_path), _load_config(None, str(project_path)))

    try:
        installer.install()
    except HookInstallError:
        _not_a_repo()

    click.echo("Installed post-merge hook (Auto-Tagging)")
    click.echo("Installed pre-push hook (Push Blocker)")
    click.echo("✅ Setup Complete!")
    click.echo("   - Auto-tagging enabled for 'git pull' (Pre & Post tags).")
    click.echo("   - 'git push' is now disabled on this server.")


@cli.command("disable-push")
@click.option(
    "--project", "-p", default=".", help="Path to repository root"
)
def disable_push(project: str):
    """Install only the push-blocking pre-push hook"""
    project_path = Path(project).resolve()
    installer = HookInstaller(str(project_path), _load_config(None, str(project_path)))

    try:
        paths = installer.install_push_blocker()
    except HookInstallError:
        _not_a_repo()

    click.echo(f"Created pre-push hook at {paths[0]}")
    click.echo("✅ 'pre-push' hook installed successfully!")
    click.echo("   Any attempt to 'git push' from this server will now be rejected.")


def _not_a_repo() -> None:
    click.echo("❌ Error: .git directory not found.", err=True)
    click.echo("   Please run this from the root of your Git repository.", err=True)
    sys.exit(1)


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
