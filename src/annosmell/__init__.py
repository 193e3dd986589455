"""
annosmell: feature-annotation metrics for srcML representations of C code.

The package extracts normalized function signatures from srcML function
nodes and accumulates per-function metrics about the preprocessor
annotations (#if/#ifdef/...) that overlap each function.
"""

__version__ = "0.3.0"

__all__ = [
    "calculate_metrics",
    "config",
    "data",
    "errors",
    "signature",
    "srcml_reader",
]
