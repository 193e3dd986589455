"""
calculate_metrics.py

Per-file pipeline that computes feature-annotation metrics for every
function of a directory of srcML files, and serializes the results to JSON.

The run has two phases:

1. Indexing: every srcML file is parsed, its blank lines are indexed and
   the feature references of its preprocessor conditionals are collected.
   The results are merged into one ``LineIndex`` and one ``FeatureRegistry``,
   which are read-only from then on.
2. Analysis: each file is handled by a worker thread. The file is parsed
   again, function signatures are extracted, every feature reference is attributed to the function
   whose line range contains its start, and once all references of the file
   are ingested the aggregate metrics are recomputed.

A failure in one file is logged to the ``metrics_error_logger`` and does not
affect the other files.
"""

from __future__ import annotations

import logging
import os
import traceback
from bisect import bisect_right
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import ujson as json

from .config import AnalysisConfig
from .data.features import FeatureReference, FeatureRegistry
from .data.files import FilePath, LineIndex, SourceFile
from .data.function import Function, by_occurrence
from .signature.function_signature_parser import parse_function_signature
from .srcml_reader import (
    collect_feature_references,
    function_gross_line_count,
    iter_function_nodes,
    parse_srcml,
    source_file_of,
)

LOG = logging.getLogger(__name__)
FILE_METRICS_KEY = "__file_metrics__"


@dataclass
class IndexedFile:
    """Result of the indexing phase for one srcML file; the XML tree is not kept."""
    xml_path: str
    source_file: SourceFile
    references: List[FeatureReference] = field(default_factory=list)

    @property
    def path(self) -> FilePath:
        return self.source_file.path


@dataclass
class FileAnalysis:
    """Functions of one file with their final metrics."""
    source_file: SourceFile
    functions: List[Function]
    reference_count: int = 0
    unattributed_reference_count: int = 0


@dataclass
class RunSummary:
    solution: Dict[str, Dict[str, dict]]
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def get_srcml_files(input_dir: str, extensions: Sequence[str] = (".xml",)) -> List[str]:
    """
    Recursively collect all srcML files under the given directory.

    Args:
        input_dir (str): Root directory of the srcML files.
        extensions (Sequence[str]): File name extensions to accept.

    Returns:
        list[str]: Sorted absolute paths.
    """
    input_dir = os.path.abspath(input_dir)
    found = []
    for root, dirs, files in os.walk(input_dir, followlinks=False):
        dirs.sort()
        for f in files:
            if not f.endswith(tuple(extensions)):
                continue
            path = os.path.join(root, f)
            if os.path.isfile(path):
                found.append(path)
    return sorted(found)


# ---------------------------------------------------------------------------
# Phase 1: indexing
# ---------------------------------------------------------------------------

def index_file(xml_path: str, root_dir: Optional[str] = None) -> IndexedFile:
    """
    Parse a srcML file and collect its blank lines and feature references.

    Raises:
        SrcMLError: If the file is not readable srcML.
    """
    tree = parse_srcml(xml_path)
    root = tree.getroot()
    path = FilePath.of(xml_path, root_dir)
    source_file = source_file_of(root, path)
    references = collect_feature_references(root, path, last_line=source_file.line_count)
    LOG.debug("Indexed %s: %d lines, %d blank, %d feature references",
              path, source_file.line_count, len(source_file.blank_lines), len(references))
    return IndexedFile(xml_path, source_file, references)


def build_index(indexed_files: Sequence[IndexedFile]) -> Tuple[LineIndex, FeatureRegistry]:
    """Merge indexing results into the shared line index and feature registry."""
    line_index = LineIndex()
    registry = FeatureRegistry()
    for indexed in indexed_files:
        line_index.add(indexed.source_file)
        for ref in indexed.references:
            registry.register(ref)
    return line_index, registry


# ---------------------------------------------------------------------------
# Phase 2: per-file analysis
# ---------------------------------------------------------------------------

def extract_functions(root, path: FilePath, display_path: Optional[str] = None) -> List[Function]:
    """
    Create a ``Function`` for every function node of a srcML unit.

    When two definitions share a signature (e.g. alternatives selected by
    #ifdef), the first one is kept.
    """
    functions: Dict[Function, Function] = {}
    for node in iter_function_nodes(root):
        signature = parse_function_signature(node, path)
        function = Function(signature.text, path, signature.start_line, function_gross_line_count(node),
                            display_path=display_path)
        if function in functions:
            LOG.warning("Ignoring duplicate definition of %s (first defined at line %d)",
                        function, functions[function].start_line)
            continue
        functions[function] = function
    return sorted(functions, key=by_occurrence)


def attribute_references(functions: Sequence[Function],
                         references: Sequence[FeatureReference]) -> List[Tuple[Function, FeatureReference]]:
    """
    Pair each reference with the function whose line range contains its start.

    Args:
        functions (Sequence[Function]): Functions of one file, ordered by start line.
        references (Sequence[FeatureReference]): References of the same file.

    Returns:
        list[tuple[Function, FeatureReference]]: References outside every
        function are left out.
    """
    starts = [f.start_line for f in functions]
    pairs = []
    for ref in references:
        i = bisect_right(starts, ref.start_line) - 1
        if i >= 0 and ref.start_line <= functions[i].end_line:
            pairs.append((functions[i], ref))
    return pairs


def analyze_file(indexed: IndexedFile, line_index: LineIndex, registry: FeatureRegistry) -> FileAnalysis:
    """
    Compute the metrics of all functions of one indexed file.

    Raises:
        SrcMLError: If the file can no longer be parsed.
        InternalConsistencyError: If a reference cannot be accounted for
            consistently; the file's results are discarded by the caller.
    """
    path = indexed.path
    # Phase 1 does not keep the tree
    root = parse_srcml(indexed.xml_path).getroot()
    functions = extract_functions(root, path, indexed.source_file.display_path)
    references = registry.references_in_file(path)

    pairs = attribute_references(functions, references)
    for function, ref in pairs:
        function.add_feature_reference(ref, line_index)

    # All references of this file are in; aggregates can be derived now
    for function in functions:
        function.recompute_all(line_index, registry)

    return FileAnalysis(
        source_file=indexed.source_file,
        functions=functions,
        reference_count=len(references),
        unattributed_reference_count=len(references) - len(pairs),
    )


def file_entry(analysis: FileAnalysis) -> Dict[str, dict]:
    """Report entry of one file: file-level metrics, then one entry per function."""
    sf = analysis.source_file
    entry: Dict[str, dict] = {
        FILE_METRICS_KEY: {
            "source file": sf.display_path,
            "lines of code": sf.line_count,
            "blank lines": len(sf.blank_lines),
            "number of functions": len(analysis.functions),
            "number of feature references": analysis.reference_count,
            "unattributed feature references": analysis.unattributed_reference_count,
        }
    }
    for function in analysis.functions:
        entry[function.signature] = function.metrics()
    return entry


def print_json(solution, output_path: str) -> None:
    """
    Serialize the metrics solution to a JSON file.

    Args:
        solution (dict): Mapping of file keys to function signatures to metrics.
        output_path (str): Destination file; parent directories are created.
    """
    parent = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(parent, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        # Serialize with dumps, avoid escaped forward slashes
        json_str = json.dumps(solution, indent=2, ensure_ascii=False)
        json_str = json_str.replace('\\/', '/')
        f.write(json_str)


def _report_failure(failures: Dict[str, str], xml_path: str, e: Exception) -> None:
    failures[xml_path] = f"{type(e).__name__}: {e}"
    logging.getLogger("metrics_error_logger").error(
        "Failed to process %s: %s\n%s", xml_path, e, traceback.format_exc())


def run(config: AnalysisConfig) -> RunSummary:
    """
    Compute the metrics for every srcML file of ``config.input_dir``.

    The result is written to ``config.output_path`` when one is configured.

    Args:
        config (AnalysisConfig): Validated analysis configuration.

    Returns:
        RunSummary: The solution plus the files that failed and why.
    """
    xml_files = get_srcml_files(config.input_dir, config.extensions)
    LOG.info("Found %d srcML files in %s", len(xml_files), config.input_dir)
    workers = max(1, int(config.workers))

    failures: Dict[str, str] = {}
    indexed_files: List[IndexedFile] = []
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futures = {ex.submit(index_file, p, config.input_dir): p for p in xml_files}
        for fut in as_completed(futures):
            try:
                indexed_files.append(fut.result())
            except Exception as e:
                _report_failure(failures, futures[fut], e)

    indexed_files.sort(key=lambda i: i.path)
    line_index, registry = build_index(indexed_files)
    LOG.info("Indexed %d files with %d feature references", len(line_index), len(registry))

    results: Dict[str, Dict[str, dict]] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futures = {ex.submit(analyze_file, i, line_index, registry): i for i in indexed_files}
        for fut in as_completed(futures):
            indexed = futures[fut]
            try:
                results[indexed.path.key] = file_entry(fut.result())
            except Exception as e:
                _report_failure(failures, indexed.xml_path, e)

    solution = {key: results[key] for key in sorted(results)}
    LOG.info("Analyzed %d files (%d failed)", len(solution), len(failures))

    if config.output_path:
        print_json(solution, config.output_path)
        LOG.info("Metrics written to %s", config.output_path)

    return RunSummary(solution, failures)
