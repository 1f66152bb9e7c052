"""Colourised terminal report output"""
from typing import Iterable, Optional

import click

from stack_doctor.probes.base import CAUTION, INFO, TIP, WARNING, Finding

RULE = "=" * 78
SEPARATOR = "-" * 45
INDENT = "    "

LEVEL_COLORS = {
    WARNING: "red",
    CAUTION: "yellow",
    TIP: "yellow",
    INFO: "yellow",
}


class Report:
    """Writes report sections to stdout with click styling

    Every line is indented the same way so sections line up regardless of
    which probes produced output.
    """

    def __init__(self, color: Optional[bool] = None):
        self.color = color

    def _echo(self, text: str = "", fg: Optional[str] = None, bold: bool = False, err: bool = False) -> None:
        if fg or bold:
            text = click.style(text, fg=fg, bold=bold)
        click.echo(text, color=self.color, err=err)

    def banner(self, title: str) -> None:
        self._echo(RULE, fg="cyan")
        self._echo(f" {title}", fg="cyan")
        self._echo(RULE, fg="cyan")

    def section(self, number: int, title: str) -> None:
        self._echo()
        self._echo(f"[{number}] {title}", fg="yellow", bold=True)

    def subheading(self, title: str) -> None:
        self._echo()
        self._echo(f"{INDENT}{title}", fg="cyan")

    def line(self, text: str = "", fg: Optional[str] = None) -> None:
        self._echo(f"{INDENT}{text}" if text else "", fg=fg)

    def lines(self, texts: Iterable[str], prefix: str = "") -> None:
        for text in texts:
            self.line(f"{prefix}{text}")

    def raw(self, texts: Iterable[str]) -> None:
        """Lines copied verbatim from a log file"""
        for text in texts:
            self._echo(text)

    def item(self, label: str, value, width: int = 23, fg: Optional[str] = None) -> None:
        self.line(f"{label + ':':<{width}}{value}", fg=fg)

    def separator(self) -> None:
        self.line(SEPARATOR)

    def problem(self, text: str, *details: str) -> None:
        """Missing input or failed query; the run continues"""
        self.line(f"[!] {text}")
        for detail in details:
            self.line(f"    {detail}")

    def skip(self, text: str, *details: str) -> None:
        """Optional tool not installed"""
        self.line(f"[i] {text}")
        for detail in details:
            self.line(f"    {detail}")

    def good(self, text: str) -> None:
        self.line(text, fg="green")

    def finding(self, finding: Finding) -> None:
        self.line(f"{finding.tag} {finding.message}", fg=LEVEL_COLORS.get(finding.level))
        pad = " " * (len(finding.tag) + 1)
        for detail in finding.details:
            self.line(f"{pad}{detail}")

    def fatal(self, text: str, *details: str) -> None:
        self._echo(f"[!] {text}", fg="red", err=True)
        for detail in details:
            self._echo(f"{INDENT}{detail}", err=True)
