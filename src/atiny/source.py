"""Source file representation and byte-range spans for diagnostics."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Span:
    """A half-open byte range ``[start, end)`` within a source file."""

    file: str
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start}..{self.end}"

    def contains(self, other: Span) -> bool:
        return self.start <= other.start and other.end <= self.end


class SourceFile:
    """A loaded source file with line access for diagnostics."""

    def __init__(self, name: str, content: str) -> None:
        self.name = name
        self.content = content
        self.data = content.encode("utf-8")
        # Lines break on "\n" only, matching _line_starts
        self.lines = [line.removesuffix("\r") for line in content.split("\n")]
        # Byte offset at which each line starts
        self._line_starts = [0]
        for i, byte in enumerate(self.data):
            if byte == 0x0A:
                self._line_starts.append(i + 1)

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        return cls(str(path), path.read_text())

    def line_at(self, n: int) -> str:
        """Return the 1-indexed line, or empty string if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return ""

    def location(self, offset: int) -> tuple[int, int]:
        """Convert a byte offset to a 1-indexed (line, column) pair.

        Columns count characters, not bytes.
        """
        offset = max(0, min(offset, len(self.data)))
        index = bisect_right(self._line_starts, offset) - 1
        line_start = self._line_starts[index]
        prefix = self.data[line_start:offset].decode("utf-8", errors="replace")
        return index + 1, len(prefix) + 1

