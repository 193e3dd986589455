"""
files.py

File identity and the per-file blank-line index.

Functions and feature references refer to their file through a ``FilePath``
rather than a raw string, so that "same file" is decided on one normalized
key. The ``LineIndex`` is filled in the indexing phase and is read-only
while functions are being analyzed.
"""

from __future__ import annotations

import os
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Tuple

from ..errors import InternalConsistencyError

# srcML output starts with a one-line XML declaration ahead of the code
XML_DECLARATION_LINES = 1


@dataclass(frozen=True, order=True)
class FilePath:
    """Strongly-typed identifier of an analyzed file."""
    key: str

    @classmethod
    def of(cls, path: str, root: Optional[str] = None) -> "FilePath":
        """
        Build the identifier for ``path``.

        Args:
            path (str): File path, absolute or relative.
            root (str | None): If given, the key is made relative to it.

        Returns:
            FilePath: Identifier with a normalized, case-normalized,
            ``/``-separated key.
        """
        p = os.path.normpath(path)
        if root is not None:
            p = os.path.relpath(os.path.abspath(p), os.path.abspath(root))
        p = os.path.normcase(p)
        return cls(p.replace(os.sep, "/"))

    def __str__(self) -> str:
        return self.key


@dataclass
class SourceFile:
    """Line bookkeeping for one analyzed file."""
    path: FilePath
    line_count: int
    blank_lines: Tuple[int, ...] = ()
    display_path: Optional[str] = None
    _blank_set: frozenset = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        self.blank_lines = tuple(sorted(set(self.blank_lines)))
        self._blank_set = frozenset(self.blank_lines)
        if self.display_path is None:
            self.display_path = self.path.key

    @classmethod
    def from_text(cls, path: FilePath, text: str, display_path: Optional[str] = None) -> "SourceFile":
        """Index the blank lines (empty or whitespace-only) of ``text``."""
        lines = text.split("\n")
        blanks = [n for n, line in enumerate(lines, start=1) if not line.strip()]
        # A trailing newline does not start another line
        if text.endswith("\n"):
            lines = lines[:-1]
            blanks = [n for n in blanks if n <= len(lines)]
        return cls(path, len(lines), tuple(blanks), display_path)

    def is_blank(self, line: int) -> bool:
        return line in self._blank_set

    def count_blank_lines(self, first: int, last: int) -> int:
        """Number of blank lines in ``[first, last]``, both inclusive."""
        if last < first:
            return 0
        return bisect_right(self.blank_lines, last) - bisect_left(self.blank_lines, first)

    def count_blank_lines_between(self, lower: int, upper: int) -> int:
        """Number of blank lines strictly between ``lower`` and ``upper``."""
        if upper - lower < 2:
            return 0
        return bisect_left(self.blank_lines, upper) - bisect_right(self.blank_lines, lower)

    def non_blank_lines(self, first: int, last: int) -> Iterator[int]:
        for line in range(first, last + 1):
            if line not in self._blank_set:
                yield line


class LineIndex:
    """Maps files to their blank lines and srcML nodes to source lines."""

    def __init__(self, files: Iterable[SourceFile] = ()):
        self._files: Dict[FilePath, SourceFile] = {}
        for f in files:
            self.add(f)

    def add(self, source_file: SourceFile) -> None:
        if source_file.path in self._files:
            raise InternalConsistencyError(f"File indexed twice: {source_file.path}")
        self._files[source_file.path] = source_file

    def find_file(self, path: FilePath) -> SourceFile:
        """Return the record for ``path``; an unknown file is fatal."""
        try:
            return self._files[path]
        except KeyError:
            raise InternalConsistencyError(f"No line index for file {path}") from None

    def blank_lines(self, path: FilePath) -> Tuple[int, ...]:
        return self.find_file(path).blank_lines

    def count_blank_lines(self, path: FilePath, first: int, last: int) -> int:
        return self.find_file(path).count_blank_lines(first, last)

    def count_blank_lines_between(self, path: FilePath, lower: int, upper: int) -> int:
        return self.find_file(path).count_blank_lines_between(lower, upper)

    def __contains__(self, path: FilePath) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(self._files.values())

    @staticmethod
    def source_line_of(node) -> int:
        """
        1-based source line of a srcML element.

        The XML line number is off by the XML declaration that the
        transducer writes in front of the code.
        """
        return node.sourceline - XML_DECLARATION_LINES
