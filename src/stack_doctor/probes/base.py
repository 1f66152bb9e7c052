"""Shared types for probes"""
from dataclasses import dataclass, field
from typing import List

WARNING = "warning"
CAUTION = "caution"
TIP = "tip"
INFO = "info"


@dataclass
class Finding:
    """An observation worth flagging in the report

    Attributes:
        level: One of warning, caution, tip, info
        message: Headline shown with the level tag
        details: Follow-up lines (advice, commands to run)
    """

    level: str
    message: str
    details: List[str] = field(default_factory=list)

    @property
    def tag(self) -> str:
        return f"[{self.level.upper()}]"


def to_int(value, default: int = 0) -> int:
    """Lenient int conversion for tool output fields"""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def to_float(value, default: float = 0.0) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default
