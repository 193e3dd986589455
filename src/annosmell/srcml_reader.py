"""
srcml_reader.py

Reading srcML documents (XML representations of C files produced by
src2srcml) with lxml.

Provides the tree-level helpers the rest of the package needs:
namespace discovery, text content, source line numbers, the function nodes
of a unit, the blank-line index of the unit's source text and the feature
references of its preprocessor conditionals (#if/#ifdef/#ifndef/#elif/
#else/#endif).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union

import pyparsing as pypa
from lxml import etree

from .data.features import FeatureReference
from .data.files import FilePath, LineIndex, SourceFile
from .errors import SrcMLError
from .signature.comment_scanner import remove_comments

LOG = logging.getLogger(__name__)
pypa.ParserElement.enable_packrat()

SRC_NAMESPACES = (
    "http://www.srcML.org/srcML/src",
    "http://www.sdml.info/srcML/src",
)
CPP_NAMESPACES = (
    "http://www.srcML.org/srcML/cpp",
    "http://www.sdml.info/srcML/cpp",
)

_CONDITIONALS = ("if", "ifdef", "ifndef")
_CONDITIONALS_ALL = _CONDITIONALS + ("elif", "else", "endif")

# `#' + directive keyword at the start of a directive's text
_DIRECTIVE_RE = re.compile(r"^\s*#\s*[A-Za-z_]+")
_OPERATORS = {"defined", "__has_include", "__has_include_next"}


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------

def is_element(node) -> bool:
    """True for elements, False for XML comments and processing instructions."""
    return isinstance(node.tag, str)


def local_name(node) -> Optional[str]:
    if not is_element(node):
        return None
    return etree.QName(node).localname


def namespace_of(node) -> Optional[str]:
    if not is_element(node):
        return None
    return etree.QName(node).namespace


def text_content(node) -> str:
    """Concatenated text of ``node`` and its descendants, without its tail."""
    return etree.tostring(node, method="text", encoding="unicode", with_tail=False)


def source_line_of(node) -> int:
    return LineIndex.source_line_of(node)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def parse_srcml(path: str):
    """
    Parse a srcML file.

    Args:
        path (str): Path of the .xml file.

    Returns:
        lxml.etree._ElementTree: The parsed document.

    Raises:
        SrcMLError: If the file cannot be read or is not well-formed XML.
    """
    parser = etree.XMLParser(remove_blank_text=False, huge_tree=True)
    try:
        return etree.parse(path, parser)
    except (OSError, etree.XMLSyntaxError) as e:
        raise SrcMLError(f"Cannot parse srcML file {path}: {e}") from e


def unit_namespaces(root) -> Tuple[Optional[str], Optional[str]]:
    """Return the ``(src, cpp)`` namespace URIs used by a srcML unit."""
    src_ns = namespace_of(root)
    cpp_ns = None
    for uri in (root.nsmap or {}).values():
        if uri in CPP_NAMESPACES or (uri and uri.rstrip("/").endswith("/cpp")):
            cpp_ns = uri
            break
    return src_ns, cpp_ns


def _qualified(namespace: Optional[str], name: str) -> str:
    return f"{{{namespace}}}{name}" if namespace else name


def iter_function_nodes(root) -> Iterator:
    """Yield the function definitions of a unit in document order."""
    src_ns, _ = unit_namespaces(root)
    yield from root.iter(_qualified(src_ns, "function"))


def function_gross_line_count(node) -> int:
    """Physical lines covered by a function node."""
    return text_content(node).count("\n") + 1


def source_text(root) -> str:
    """The C source text a srcML unit was produced from."""
    return text_content(root)


def source_file_of(root, path: FilePath) -> SourceFile:
    """Build the blank-line index for a parsed srcML unit."""
    display = root.get("filename")
    return SourceFile.from_text(path, source_text(root), display_path=display)


# ---------------------------------------------------------------------------
# Feature annotations
# ---------------------------------------------------------------------------

@dataclass
class _Constant:
    name: str


@dataclass
class _Operation:
    operator: Optional[str]
    operands: List[Union[_Constant, "_Operation"]] = field(default_factory=list)


def _constant(t):
    return _Constant(t[0])


def _literal(t):
    return _Operation("literal")


def _call(t):
    # Function-like macros count as one constant; `__has_include(...)' is an operator
    name = t[0]
    if name in _OPERATORS:
        return _Operation("call")
    return _Constant(name)


def _unary(t):
    tokens = list(t[0])
    node = tokens[-1]
    for op in reversed(tokens[:-1]):
        node = _Operation(op, [node])
    return node


def _binary(t):
    tokens = list(t[0])
    return _Operation(tokens[1], tokens[0::2])


_WORD = pypa.Word(pypa.alphas + "_", pypa.alphanums + "_")
_NAME = ~pypa.Keyword("defined") + _WORD
_NUMBER = pypa.Regex(r"(0[xX][0-9a-fA-F]+|\d+(\.\d*)?([eE][-+]?\d+)?)[uUlLfF]*")
_CHAR = pypa.QuotedString("'", esc_char="\\")

_OPERAND = (
    (_NUMBER | _CHAR).set_parse_action(_literal)
    | (_NAME + pypa.nested_expr()).set_parse_action(_call)
    | _NAME.copy().set_parse_action(_constant)
)

_LEFT = pypa.OpAssoc.LEFT
_CONDITION = pypa.infix_notation(_OPERAND, [
    (pypa.one_of("! ~ - +") | pypa.Keyword("defined"), 1, pypa.OpAssoc.RIGHT, _unary),
    (pypa.one_of("* / %"), 2, _LEFT, _binary),
    (pypa.one_of("+ -"), 2, _LEFT, _binary),
    (pypa.one_of("<< >>"), 2, _LEFT, _binary),
    (pypa.one_of("<= >= < >"), 2, _LEFT, _binary),
    (pypa.one_of("== !="), 2, _LEFT, _binary),
    (pypa.Regex(r"&(?!&)"), 2, _LEFT, _binary),
    ("^", 2, _LEFT, _binary),
    (pypa.Regex(r"\|(?!\|)"), 2, _LEFT, _binary),
    ("&&", 2, _LEFT, _binary),
    ("||", 2, _LEFT, _binary),
    (("?", ":"), 3, pypa.OpAssoc.RIGHT, _binary),
])

# Identifiers of a condition the grammar cannot handle
_IDENTIFIER = pypa.WordStart(pypa.alphanums + "_") + _WORD


def condition_text(directive_node) -> str:
    """The condition of a conditional directive, without ``#`` and keyword."""
    text = _DIRECTIVE_RE.sub("", text_content(directive_node), count=1)
    text = text.replace("\\\n", " ")
    return remove_comments(text, strip_literals=False).strip()


def _collect_constants(node, negated: bool, out: List[Tuple[str, bool]]) -> None:
    if isinstance(node, _Constant):
        out.append((node.name, negated))
        return
    # `!' flips everything below it, `defined' and the other operators keep it
    if node.operator == "!":
        negated = not negated
    for operand in node.operands:
        _collect_constants(operand, negated, out)


def feature_constants(condition: str, negate_all: bool = False) -> List[Tuple[str, bool]]:
    """
    Feature constants named in a preprocessor condition.

    A constant is negated when an odd number of ``!`` operators apply to
    it, e.g. both ``A`` and ``B`` in ``!(defined(A) || B)``.

    Args:
        condition (str): Condition text, e.g. ``defined(A) && !B``.
        negate_all (bool): Flip the negation of every constant (``#ifndef``).

    Returns:
        list[tuple[str, bool]]: ``(name, negated)`` in order of appearance.
    """
    condition = condition.strip()
    if not condition:
        return []
    try:
        tree = _CONDITION.parse_string(condition, parse_all=True)[0]
    except pypa.ParseBaseException as e:
        LOG.warning("Cannot parse preprocessor condition `%s' (column %d); using its identifiers",
                    condition, e.column)
        return [(t[0], negate_all) for t in _IDENTIFIER.search_string(condition) if t[0] not in _OPERATORS]
    result: List[Tuple[str, bool]] = []
    _collect_constants(tree, negate_all, result)
    return result



@dataclass
class _Branch:
    start_line: int
    constants: List[Tuple[str, bool]]


@dataclass
class _Conditional:
    depth: int
    first_constants: List[Tuple[str, bool]]
    branch: Optional[_Branch] = None


def collect_feature_references(root, path: FilePath, last_line: Optional[int] = None) -> List[FeatureReference]:
    """
    Collect one feature reference per feature constant per conditional branch.

    A branch spans from its directive's line to the line of the directive
    that ends it (#elif, #else or #endif). Nesting depth counts the
    enclosing conditionals, starting at 0.

    Args:
        root: Root element of a srcML unit.
        path (FilePath): Identifier of the file the unit belongs to.
        last_line (int | None): Last line of the file; closes unbalanced
            conditionals.

    Returns:
        list[FeatureReference]: References in document order.
    """
    _, cpp_ns = unit_namespaces(root)
    if cpp_ns is None:
        return []
    tags = {_qualified(cpp_ns, t): t for t in _CONDITIONALS_ALL}

    refs: List[FeatureReference] = []
    stack: List[_Conditional] = []

    def close_branch(cond: _Conditional, end_line: int) -> None:
        branch = cond.branch
        if branch is None:
            return
        for name, negated in branch.constants:
            refs.append(FeatureReference(
                feature_name=name,
                file_path=path,
                start_line=branch.start_line,
                end_line=max(end_line, branch.start_line),
                nesting_depth=cond.depth,
                negated=negated,
            ))
        cond.branch = None

    for elem in root.iter(*tags.keys()):
        directive = tags[elem.tag]
        line = source_line_of(elem)

        if directive in _CONDITIONALS:
            constants = feature_constants(condition_text(elem), negate_all=(directive == "ifndef"))
            cond = _Conditional(depth=len(stack), first_constants=constants)
            cond.branch = _Branch(line, constants)
            stack.append(cond)
            continue

        if not stack:
            LOG.warning("Unbalanced #%s in %s:%d", directive, path, line)
            continue

        cond = stack[-1]
        close_branch(cond, line)
        if directive == "elif":
            cond.branch = _Branch(line, feature_constants(condition_text(elem)))
        elif directive == "else":
            flipped = [(name, not negated) for name, negated in cond.first_constants]
            cond.branch = _Branch(line, flipped)
        else:
            stack.pop()

    if stack:
        end = last_line if last_line is not None else source_text(root).count("\n") + 1
        LOG.warning("%d unclosed conditional(s) in %s; closing at line %d", len(stack), path, end)
        while stack:
            close_branch(stack.pop(), end)

    refs.sort(key=lambda r: (r.start_line, r.end_line))
    return refs
