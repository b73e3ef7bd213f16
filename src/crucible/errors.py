"""Diagnostics, their Rust-style rendering, and compiler exceptions.

Diagnostic codes:

    E001  source file could not be read or decoded
    E100  syntax error
    E101  unparsed input left at the end of a file
    E200  field assigned more than once
    E201  signature-only field assigned in a body
    E202  literal of the wrong type for a known field
    E203  duplicate entry in a keyed list
    E204  conflicting or repeated ``unique`` statements
    E205  single-use statement repeated
    E206  more than one default card in a deck
    E207  value outside a closed enumeration
    E208  required key missing
    E209  probability outside 0..=100
    E210  slot modifier repeated
    E211  too many entries
    E300  component defined more than once
    E301  inheritance target not found
    E302  inheritance cycle
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from crucible.source import SourceFile

if TYPE_CHECKING:
    from crucible.source import Span


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
    Severity.NOTE: "\033[1;36m",     # bold cyan
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points to a specific source location."""

    span: Span
    message: str
    style: str = "primary"  # "primary" or "secondary"


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def file(self) -> str | None:
        """The file of the primary label, if any."""
        for label in self.labels:
            if label.style == "primary":
                return label.span.file
        return self.labels[0].span.file if self.labels else None


def error(code: str, message: str, span: Span | None = None, *, notes: list[str] | None = None) -> Diagnostic:
    """Build an error diagnostic with an optional primary label."""
    labels = [DiagnosticLabel(span=span, message="")] if span is not None else []
    return Diagnostic(
        severity=Severity.ERROR,
        code=code,
        message=message,
        labels=labels,
        notes=list(notes or []),
    )


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color
        self._file_cache: dict[str, SourceFile | None] = {}

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        """Load and cache source file, return the 1-indexed line."""
        if filename not in self._file_cache:
            path = Path(filename)
            try:
                self._file_cache[filename] = SourceFile(path) if path.is_file() else None
            except (OSError, UnicodeDecodeError):
                self._file_cache[filename] = None
        source = self._file_cache[filename]
        if source is None or not 1 <= line_num <= len(source.lines):
            return None
        return source.line_at(line_num)

    def _highlight(self, line: str) -> str:
        if not self.color:
            return line
        from crucible.highlight import highlight_line

        return highlight_line(line)

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E200]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            loc = f"{span.file}:{span.start_line}:{span.start_col}"
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} {loc}"
            )
            gutter = f"{span.start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

            source_line = self._get_source_line(span.file, span.start_line)
            if source_line is not None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} "
                    f"{self._highlight(source_line)}"
                )

            if span.start_line == span.end_line:
                caret_len = max(1, span.end_col - span.start_col + 1)
                padding = " " * (span.start_col - 1)
                marker = "^" if label.style == "primary" else "-"
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                    f"{padding}{self._c(color)}{marker * caret_len}{self._c(_RESET)}"
                )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)


class CompileError(Exception):
    """Batch compilation error carrying multiple diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")


class InvalidProbability(ValueError):
    """Raised when a probability is constructed outside 0..=100."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(
            f"a probability must be an integer in the range 0..=100, got {value!r}"
        )
