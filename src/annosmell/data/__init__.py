"""
data package for the entities the analysis works on.

Files and their blank lines, feature references and their registry, and
functions with their accumulated annotation metrics.
"""

from .features import Feature, FeatureReference, FeatureRegistry
from .files import FilePath, LineIndex, SourceFile
from .function import Function, by_occurrence

__all__ = [
    "Feature",
    "FeatureReference",
    "FeatureRegistry",
    "FilePath",
    "Function",
    "LineIndex",
    "SourceFile",
    "by_occurrence",
]
