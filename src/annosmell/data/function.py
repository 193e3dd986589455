"""
function.py

Representation of one C function definition and the feature-annotation
metrics accumulated for it.

A ``Function`` owns a line range. Feature references whose start line lies
inside that range are fed to ``add_feature_reference`` while a file is
processed; once every reference of the file has been ingested, the
``recompute_*`` methods derive the aggregate metrics. Line information comes
from a ``LineIndex``, canonical reference data from a ``FeatureRegistry``;
both are passed in explicitly.
"""

from __future__ import annotations

import uuid
from typing import Dict, Optional, Set, Tuple

from ..errors import InternalConsistencyError, UninitializedMetricError
from .features import FeatureReference, FeatureRegistry
from .files import FilePath, LineIndex


class Function:
    """
    A function definition in an analyzed file.

    Two functions are equal iff they live in the same file and have the same
    (normalized) signature.
    """

    def __init__(self, signature: str, file_path: FilePath, start_line: int, gross_line_count: int,
                 display_path: Optional[str] = None):
        """
        Args:
            signature (str): Normalized function signature.
            file_path (FilePath): The file the function is defined in.
            start_line (int): First line of the function, counted from 1.
            gross_line_count (int): Length of the function in lines,
                including blank lines.
            display_path (str | None): Path shown in diagnostics; defaults to
                the key of ``file_path``.
        """
        if gross_line_count < 1:
            raise ValueError(f"Function {signature!r} must span at least one line, got {gross_line_count}")
        self.signature = signature
        self.file_path = file_path
        self.display_path = display_path if display_path is not None else str(file_path)
        self.start_line = start_line
        self._gross_line_count = gross_line_count
        self.end_line = start_line + gross_line_count - 1
        # None until recompute_net_line_count() ran
        self._net_line_count = None

        self.lines_of_feature_code = 0
        self.max_nesting_depth = 0
        self.nesting_sum = 0
        self.distinct_feature_constant_count = 0
        self.feature_location_count = 0
        self.negation_count = 0
        self.lines_of_annotated_code = 0
        # reference id -> feature name, in order of appearance
        self.feature_references: Dict[uuid.UUID, str] = {}
        self._annotated_lines: Set[int] = set()

    # ------------------------------------------------------------------
    # Line counts
    # ------------------------------------------------------------------

    @property
    def gross_line_count(self) -> int:
        return self._gross_line_count

    @property
    def net_line_count(self) -> int:
        """Lines of the function without blank lines."""
        if self._net_line_count is None:
            raise UninitializedMetricError(f"Attempt to read net LOC of {self} before initializing it.")
        return self._net_line_count

    def recompute_net_line_count(self, line_index: LineIndex) -> int:
        blanks = line_index.count_blank_lines(self.file_path, self.start_line, self.end_line)
        self._net_line_count = self._gross_line_count - blanks
        return self._net_line_count

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_feature_reference(self, ref: FeatureReference, line_index: LineIndex) -> bool:
        """
        Account for a feature reference that starts inside this function.

        Args:
            ref (FeatureReference): The reference to ingest.
            line_index (LineIndex): Provides the blank lines of the file.

        Returns:
            bool: False if the reference had already been ingested, else True.

        Raises:
            InternalConsistencyError: If the reference does not start inside
                this function, belongs to a different file or is already
                owned by another function. The function is left unchanged.
        """
        if ref.id in self.feature_references:
            return False

        lofc_end = min(ref.end_line, self.end_line)
        if ref.start_line < self.start_line:
            raise InternalConsistencyError(
                "Internal error: attempt to assign feature reference that starts before the function's start. "
                f"function={self}; featureRef={ref}")
        if ref.start_line > lofc_end:
            raise InternalConsistencyError(
                "Internal error: attempt to assign feature reference that starts behind its clipped end. "
                f"function={self}; featureRef={ref}; lofcStart={ref.start_line}; lofcEnd={lofc_end}")

        source_file = line_index.find_file(self.file_path)
        ref_file = line_index.find_file(ref.file_path)
        if ref_file is not source_file:
            raise InternalConsistencyError(
                f"Looking at two different files (should be identical): {ref_file.path}, {source_file.path}; "
                f"function={self}; featureRef={ref}")
        if ref.owning_function is not None and ref.owning_function is not self:
            raise InternalConsistencyError(
                f"Feature reference {ref} already belongs to {ref.owning_function}; cannot assign to {self}")

        increment = lofc_end - ref.start_line + 1
        # Blank lines never count as feature code
        upper = self.end_line if ref.end_line > self.end_line else ref.end_line
        increment -= source_file.count_blank_lines_between(ref.start_line, upper)
        self.lines_of_feature_code += increment

        if ref.nesting_depth > self.max_nesting_depth:
            self.max_nesting_depth = ref.nesting_depth

        self._annotated_lines.update(source_file.non_blank_lines(ref.start_line, lofc_end))

        ref.owning_function = self
        self.feature_references[ref.id] = ref.feature_name
        return True

    @property
    def feature_constant_count(self) -> int:
        """Number of ingested feature references, duplicates included."""
        return len(self.feature_references)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _resolved(self, registry: FeatureRegistry):
        for ref_id, name in self.feature_references.items():
            yield registry.resolve(name, ref_id)

    def recompute_distinct_feature_constant_count(self, registry: FeatureRegistry) -> int:
        names = {ref.feature_name for ref in self._resolved(registry)}
        self.distinct_feature_constant_count = len(names)
        return self.distinct_feature_constant_count

    def recompute_feature_location_count(self, registry: FeatureRegistry) -> int:
        """Count distinct start lines; also fixes the lines of annotated code."""
        starts = {ref.start_line for ref in self._resolved(registry)}
        self.lines_of_annotated_code = len(self._annotated_lines)
        self.feature_location_count = len(starts)
        return self.feature_location_count

    def recompute_negation_count(self, registry: FeatureRegistry) -> int:
        self.negation_count = sum(1 for ref in self._resolved(registry) if ref.negated)
        return self.negation_count

    def recompute_nesting_sum(self, registry: FeatureRegistry) -> int:
        """
        Sum of nesting depths relative to the shallowest reference.

        Nesting depths are counted per file, so the minimum depth found in
        this function is subtracted once per reference.
        """
        depths = [ref.nesting_depth for ref in self._resolved(registry)]
        self.nesting_sum = sum(depths) - len(depths) * min(depths) if depths else 0
        return self.nesting_sum

    def recompute_all(self, line_index: LineIndex, registry: FeatureRegistry) -> None:
        self.recompute_net_line_count(line_index)
        self.recompute_distinct_feature_constant_count(registry)
        self.recompute_feature_location_count(registry)
        self.recompute_negation_count(registry)
        self.recompute_nesting_sum(registry)

    def metrics(self) -> Dict[str, int]:
        """Metric values for reporting; requires recompute_all() to have run."""
        return {
            "start line": self.start_line,
            "end line": self.end_line,
            "gross lines of code": self.gross_line_count,
            "net lines of code": self.net_line_count,
            "lines of feature code": self.lines_of_feature_code,
            "lines of annotated code": self.lines_of_annotated_code,
            "number of feature constants": self.feature_constant_count,
            "number of distinct feature constants": self.distinct_feature_constant_count,
            "number of feature locations": self.feature_location_count,
            "number of negations": self.negation_count,
            "nesting sum": self.nesting_sum,
            "max nesting depth": self.max_nesting_depth,
        }

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def sort_key(self) -> Tuple[FilePath, int, str]:
        return (self.file_path, self.start_line, self.signature)

    def __lt__(self, other):
        if not isinstance(other, Function):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Function):
            return NotImplemented
        return self.file_path == other.file_path and self.signature == other.signature

    def __hash__(self):
        return hash((self.file_path, self.signature))

    def __str__(self):
        return f"Function [{self.signature} /* {self.display_path}:{self.start_line},{self.end_line} */]"

    __repr__ = __str__


def by_occurrence(function: Function) -> Tuple[FilePath, int, str]:
    """Sort key ordering functions by file, then start line, then signature."""
    return function.sort_key()
