"""Console output abstraction.

Pipelines report progress through ``ConsoleProtocol`` so they never depend
on Rich directly. Production uses ``RichConsole``; tests use
``MockConsole`` and assert on what would have been printed.

Messages routinely carry text from docker and aws (stderr, image refs,
``[step]`` prefixes), so nothing passed to a console is parsed as markup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from rich.text import Text

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Where pipeline and command output goes."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None:
        """Report a failure on standard error."""
        ...

    def warning(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def log(self, text: str, *, err: bool = False) -> None:
        """Print raw process output (container logs) verbatim.

        Args:
            text: Output to print.
            err: Write to standard error instead of standard output.
        """
        ...


_RICH_STYLES = {
    Style.DEFAULT: None,
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.HEADER: "blue bold",
}


class RichConsole:
    """Console backed by Rich; errors and ``log(err=True)`` go to stderr."""

    def __init__(self) -> None:
        # Import Rich lazily to avoid import-time dependency
        from rich.console import Console
        from rich.text import Text

        self._text = Text
        self._out = Console(highlight=False)
        self._err = Console(stderr=True, highlight=False)

    def _labelled(self, label: str, label_style: str, message: str) -> Text:
        return self._text.assemble((label, label_style), " ", message)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._out.print(message, style=_RICH_STYLES[style], markup=False)

    def success(self, message: str) -> None:
        self._out.print(self._labelled("OK", "green", message))

    def error(self, message: str) -> None:
        self._err.print(self._labelled("error:", "red bold", message))

    def warning(self, message: str) -> None:
        self._out.print(self._labelled("warning:", "yellow", message))

    def header(self, message: str) -> None:
        self._out.print()
        self._out.print(f"=== {message} ===", style=_RICH_STYLES[Style.HEADER], markup=False)

    def log(self, text: str, *, err: bool = False) -> None:
        target = self._err if err else self._out
        target.print(text.rstrip("\n"), markup=False, style="dim")


@dataclass
class OutputRecord:
    message: str
    style: Style
    err: bool = False


@dataclass
class MockConsole:
    """Records output instead of printing it."""

    outputs: list[OutputRecord] = field(default_factory=lambda: list[OutputRecord]())

    def _add(self, message: str, style: Style, *, err: bool = False) -> None:
        self.outputs.append(OutputRecord(message, style, err))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(message, style)

    def success(self, message: str) -> None:
        self._add(f"OK {message}", Style.SUCCESS)

    def error(self, message: str) -> None:
        self._add(f"error: {message}", Style.ERROR, err=True)

    def warning(self, message: str) -> None:
        self._add(f"warning: {message}", Style.WARNING)

    def header(self, message: str) -> None:
        self._add(message, Style.HEADER)

    def log(self, text: str, *, err: bool = False) -> None:
        self._add(text.rstrip("\n"), Style.DIM, err=err)

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    @property
    def stderr_text(self) -> str:
        return "\n".join(o.message for o in self.outputs if o.err)

    def has_error(self) -> bool:
        return any(o.style is Style.ERROR for o in self.outputs)

    def has_success(self) -> bool:
        return any(o.style is Style.SUCCESS for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
