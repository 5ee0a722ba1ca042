"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    MockConsole,
    RichConsole,
    Style,
)
from .trace import ProgressTrace, StepStatus

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "ProgressTrace",
    "RichConsole",
    "StepStatus",
    "Style",
]
