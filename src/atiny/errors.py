"""Diagnostics, parse errors and Rust-style colored rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from atiny.source import SourceFile, Span


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


class ErrorKind(Enum):
    """Why a parse failed. The value is the diagnostic code."""

    UNEXPECTED_TOKEN = "E200"
    UNTERMINATED_SEQUENCE = "E201"
    MALFORMED_LITERAL = "E202"
    INCOMPLETE_DECLARATION = "E203"
    NESTING_TOO_DEEP = "E204"


class SyntaxCategory(Enum):
    """The syntactic category the parser was working on when it failed."""

    EXPRESSION = "expression"
    PATTERN = "pattern"
    TYPE = "type"
    DECLARATION = "declaration"


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


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color
        self._sources: dict[str, SourceFile | None] = {}

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def add_source(self, filename: str, content: str) -> None:
        """Register source text so spans in ``filename`` can be resolved."""
        self._sources[filename] = SourceFile(filename, content)

    def _get_source(self, filename: str) -> SourceFile | None:
        """Load and cache a source file, or None if it cannot be read."""
        if filename not in self._sources:
            try:
                path = Path(filename)
                if path.is_file():
                    self._sources[filename] = SourceFile.from_path(path)
                else:
                    self._sources[filename] = None
            except (OSError, UnicodeDecodeError):
                self._sources[filename] = None
        return self._sources[filename]

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
            source = self._get_source(span.file)
            if source is None:
                lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}")
                if label.message:
                    lines.append(
                        f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                        f"{self._c(color)}{label.message}{self._c(_RESET)}"
                    )
                continue

            start_line, start_col = source.location(span.start)
            end_line, end_col = source.location(span.end)
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} "
                f"{span.file}:{start_line}:{start_col}"
            )
            gutter = f"{start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")
            lines.append(
                f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} "
                f"{source.line_at(start_line)}"
            )

            # Carets only when the span stays on one line
            if start_line == end_line:
                caret_len = max(1, end_col - start_col)
                padding = " " * (start_col - 1)
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                    f"{padding}{self._c(color)}{'^' * caret_len}{self._c(_RESET)}"
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
    """Batch error carrying multiple diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")


class ParseError(CompileError):
    """The first syntax error of a parse. Parsing stops here."""

    def __init__(
        self,
        kind: ErrorKind,
        category: SyntaxCategory,
        message: str,
        span: Span,
    ) -> None:
        self.kind = kind
        self.category = category
        self.span = span
        diag = Diagnostic(
            severity=Severity.ERROR,
            code=kind.value,
            message=message,
            labels=[DiagnosticLabel(span=span, message="")],
            notes=[f"while parsing {category.value}"],
        )
        super().__init__([diag])

    @property
    def offset(self) -> int:
        """Byte offset at which parsing stopped."""
        return self.span.start
