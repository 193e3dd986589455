"""
function_signature_parser.py

Extracts a normalized function signature from a srcML function node.

The structural strategy walks the srcML elements of the return type, the
function name and the parameter list. When any of them is missing, or the
definition is K&R style, the quick-and-dirty strategy takes the text of the
node up to the opening brace of the body and strips comments and literals
from it. Either way the caller gets a ``ParsedFunctionSignature``.

A srcML function definition looks like this::

    <function>
        <type><specifier>static</specifier> <specifier>const</specifier> <name>char</name> *</type>
        <name>add_setenvif</name><parameter_list>(
            <parameter><decl><type><name>cmd_parms</name> *</type><name>cmd</name></decl></parameter>,
            <parameter><decl><type><name>void</name> *</type><name>mconfig</name></decl></parameter>,
            <parameter><decl><type><specifier>const</specifier> <name>char</name> *</type><name>args</name></decl></parameter>)
        </parameter_list>
        <block>{ ... }</block>
    </function>
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from lxml import etree

from ..data.files import FilePath
from ..errors import FunctionSignatureParseError
from ..srcml_reader import is_element, local_name, namespace_of, source_line_of, text_content
from .comment_scanner import remove_comments
from .normalizer import normalize_signature

LOG = logging.getLogger(__name__)

# Compiled XPath expressions are not shared between threads
_tl = threading.local()


def _xpath(expression: str, namespace: Optional[str]) -> etree.XPath:
    """Per-thread compiled XPath; ``{ns}`` in the expression marks src elements."""
    cache = getattr(_tl, "xpaths", None)
    if cache is None:
        cache = _tl.xpaths = {}
    key = (expression, namespace)
    compiled = cache.get(key)
    if compiled is None:
        if namespace:
            compiled = etree.XPath(expression.replace("{ns}", "src:"), namespaces={"src": namespace})
        else:
            compiled = etree.XPath(expression.replace("{ns}", ""))
        cache[key] = compiled
    return compiled


@dataclass(frozen=True)
class ParsedFunctionSignature:
    """A normalized signature and the lines it occupies."""
    text: str
    start_line: int
    line_count: int

    @property
    def end_line(self) -> int:
        return self.start_line + self.line_count - 1


class FunctionSignatureParser:
    """Parses the signature of one srcML function node."""

    def __init__(self, function_node, file_path: FilePath):
        self.function_node = function_node
        self.file_path = file_path
        self._namespace = namespace_of(function_node)
        self._text_content = text_content(function_node)
        self._parts: List[str] = []
        self.debug_parse_errors = LOG.isEnabledFor(logging.DEBUG)

    def enable_debug_parse_errors(self) -> None:
        """Put the offending node into parse error messages (slower)."""
        self.debug_parse_errors = True

    def parse(self) -> ParsedFunctionSignature:
        """
        Parse the signature, falling back to the text-based strategy.

        Returns:
            ParsedFunctionSignature: Never fails for a function node.
        """
        try:
            signature = self._parse_regular_signature()
            if self.debug_parse_errors:
                LOG.debug("Successfully parsed function signature using XPath: `%s' parsed from %s",
                          signature.text, self._pretty_print(self.function_node))
            return signature
        except FunctionSignatureParseError as e:
            if self.debug_parse_errors:
                LOG.debug("Could not parse function signature (going to fallback): %s", e)
        return self._parse_quick_and_dirty()

    # ------------------------------------------------------------------
    # Structural strategy
    # ------------------------------------------------------------------

    def _parse_regular_signature(self) -> ParsedFunctionSignature:
        self._parts = []
        self._reject_kandr_definition()
        self._parse_up_to_including_function_name()

        self._parts.append("(")
        last_node = self._parse_parameter_list()
        self._parts.append(")")

        start = source_line_of(self.function_node)
        end = source_line_of(last_node)
        signature = "".join(self._parts)
        line_count = self._clamp_line_count(end - start + 1, signature)
        return ParsedFunctionSignature(normalize_signature(signature), start, line_count)

    def _reject_kandr_definition(self) -> None:
        # Old-style parameter declarations sit between parameter list and body
        if self._optional_node(self.function_node, "./{ns}decl_stmt") is not None:
            raise self._parse_error("K&R-style parameter declarations")

    def _parse_up_to_including_function_name(self) -> None:
        return_type = self._node_or_die(self.function_node, "./{ns}type")
        self._node_or_die(return_type, "./{ns}name")
        self._parts.append(self._type_text(return_type))
        function_name = self._node_or_die(self.function_node, "./{ns}name")
        self._parts.append(" ")
        self._parts.append(text_content(function_name))

    def _parse_parameter_list(self):
        parameter_list = self._node_or_die(self.function_node, "./{ns}parameter_list")
        last_node = parameter_list
        params = self._node_list(parameter_list, "./{ns}parameter | ./{ns}param")
        for i, param in enumerate(params):
            if i > 0:
                self._parts.append(", ")
            last_node = self._parse_param(param)
        return last_node

    def _parse_param(self, param):
        type_node = self._optional_node(param, "./{ns}decl/{ns}type")
        if type_node is None:
            # Old srcML versions put a bare `...' into the parameter
            raw = text_content(param).strip()
            if raw == "...":
                self._parts.append(raw)
                return param
            raise self._parse_error("parameter without type", param)
        if self._optional_node(param, "./{ns}decl/{ns}parameter_list") is not None:
            raise self._parse_error("function pointer parameter", param)

        param_name = self._optional_node(param, "./{ns}decl/{ns}name")
        if param_name is None:
            # Anonymous parameters, `void', `...'
            self._parts.append(text_content(type_node))
            return type_node
        self._parts.append(self._type_text(type_node))
        self._parts.append(" ")
        self._parts.append(text_content(param_name))
        return param_name

    @staticmethod
    def _type_text(type_node) -> str:
        """Specifiers, type name and modifiers of a type, space-separated."""
        tokens = []
        if type_node.text and type_node.text.strip():
            tokens.append(type_node.text.strip())
        for child in type_node:
            if is_element(child) and local_name(child) != "comment":
                content = text_content(child).strip()
                if content:
                    tokens.append(content)
            if child.tail and child.tail.strip():
                tokens.append(child.tail.strip())
        return " ".join(tokens)

    # ------------------------------------------------------------------
    # Quick-and-dirty strategy
    # ------------------------------------------------------------------

    def _parse_quick_and_dirty(self) -> ParsedFunctionSignature:
        open_brace = self._text_content.find("{")
        if open_brace == -1:
            LOG.warning("Encountered strange function node (no opening `{' found) at %s: %s",
                        self._location(), self._text_content)
            no_body = self._text_content
        else:
            no_body = self._text_content[:open_brace]

        # Comments do occur inside signatures
        no_comments = remove_comments(no_body, strip_literals=True)
        # Line breaks inside comments still count
        line_count = self._clamp_line_count(no_body.count("\n"), no_comments)
        start = source_line_of(self.function_node)
        return ParsedFunctionSignature(normalize_signature(no_comments), start, line_count)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clamp_line_count(self, line_count: int, signature: str) -> int:
        if line_count >= 1:
            return line_count
        if line_count < 0:
            LOG.warning("Computed signature LOC %d for function %s at %s. Adjusting to 1.",
                        line_count, signature, self._location())
        else:
            LOG.info("Computed signature LOC %d for function %s. Adjusting to 1.", line_count, signature)
        return 1

    def _optional_node(self, node, expression: str):
        result = _xpath(expression, self._namespace)(node)
        return result[0] if result else None

    def _node_list(self, node, expression: str) -> list:
        return list(_xpath(expression, self._namespace)(node))

    def _node_or_die(self, node, expression: str):
        result = self._optional_node(node, expression)
        if result is None:
            raise self._parse_error(f"missing node `{expression.replace('{ns}', '')}'", node)
        return result

    def _parse_error(self, reason: str, node=None) -> FunctionSignatureParseError:
        if not self.debug_parse_errors:
            return FunctionSignatureParseError(reason)
        node = self.function_node if node is None else node
        return FunctionSignatureParseError(f"{reason} in {self._pretty_print(node)} ({self._location()})")

    def _location(self) -> str:
        return f"{self.file_path}:{source_line_of(self.function_node)}"

    def _pretty_print(self, node) -> str:
        """XML of ``node`` without comments and function bodies."""
        node = copy.deepcopy(node)
        for removable in _xpath(".//{ns}comment | .//{ns}block", self._namespace)(node):
            parent = removable.getparent()
            if parent is not None:
                parent.remove(removable)
        return etree.tostring(node, pretty_print=True, encoding="unicode")


def parse_function_signature(function_node, file_path: FilePath) -> ParsedFunctionSignature:
    """Shorthand for ``FunctionSignatureParser(function_node, file_path).parse()``."""
    return FunctionSignatureParser(function_node, file_path).parse()
