"""
features.py

Feature references (one occurrence of a feature constant in a preprocessor
condition) and the registry that resolves them to their canonical record.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from ..errors import InternalConsistencyError
from .files import FilePath

if TYPE_CHECKING:
    from .function import Function


@dataclass(eq=False)
class FeatureReference:
    """One feature constant referenced by one annotation branch."""
    feature_name: str
    file_path: FilePath
    start_line: int
    end_line: int
    nesting_depth: int = 0
    negated: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    owning_function: Optional["Function"] = field(default=None, repr=False)

    def __str__(self) -> str:
        return (f"FeatureReference [{self.feature_name} /* {self.file_path}:{self.start_line},{self.end_line}"
                f" negated={self.negated} depth={self.nesting_depth} */]")


@dataclass
class Feature:
    """A feature constant together with all of its references."""
    name: str
    references: Dict[uuid.UUID, FeatureReference] = field(default_factory=dict)

    @property
    def reference_count(self) -> int:
        return len(self.references)


class FeatureRegistry:
    """
    Canonical store of feature references, keyed by feature name and id.

    Functions only remember ``id -> feature name`` and resolve everything
    else through this registry when their aggregate metrics are computed.
    """

    def __init__(self):
        self._features: Dict[str, Feature] = {}
        self._by_file: Dict[FilePath, List[FeatureReference]] = {}

    def register(self, ref: FeatureReference) -> FeatureReference:
        feature = self._features.setdefault(ref.feature_name, Feature(ref.feature_name))
        if ref.id in feature.references:
            raise InternalConsistencyError(f"Feature reference registered twice: {ref}")
        feature.references[ref.id] = ref
        self._by_file.setdefault(ref.file_path, []).append(ref)
        return ref

    def resolve(self, feature_name: str, reference_id: uuid.UUID) -> FeatureReference:
        """
        Return the canonical reference for a ``(feature name, id)`` pair.

        Raises:
            InternalConsistencyError: If the pair was never registered.
        """
        feature = self._features.get(feature_name)
        ref = feature.references.get(reference_id) if feature is not None else None
        if ref is None:
            raise InternalConsistencyError(
                f"Unknown feature reference: feature={feature_name!r}; id={reference_id}")
        return ref

    def get_feature(self, name: str) -> Optional[Feature]:
        return self._features.get(name)

    def features(self) -> List[Feature]:
        return sorted(self._features.values(), key=lambda f: f.name)

    def references_in_file(self, path: FilePath) -> List[FeatureReference]:
        """References of one file, ordered by start line."""
        return sorted(self._by_file.get(path, []), key=lambda r: (r.start_line, r.end_line))

    def __iter__(self) -> Iterator[FeatureReference]:
        for feature in self._features.values():
            yield from feature.references.values()

    def __len__(self) -> int:
        return sum(f.reference_count for f in self._features.values())
