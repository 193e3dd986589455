"""
comment_scanner.py

Single-pass removal of C comments (and optionally string/character literal
contents) from raw signature text.

Literals are tracked even when they are kept, so that ``/*`` inside
``"a/*b"`` is never mistaken for the start of a comment. Malformed input
(unterminated comments or literals, a dangling escape) is logged and
scanned on a best-effort basis; the scanner never raises.
"""

import logging

LOG = logging.getLogger(__name__)

# Scanner states
_NORMAL = 0
_BLOCK_COMMENT = 1
_LINE_COMMENT = 2
_STRING = 3
_CHAR = 4

_QUOTES = {_STRING: '"', _CHAR: "'"}
_LITERAL_NAMES = {_STRING: "string", _CHAR: "character"}


def may_need_scanning(text: str, strip_literals: bool) -> bool:
    """Return True if ``text`` contains anything remove_comments would change."""
    if "/*" in text or "//" in text:
        return True
    return strip_literals and ('"' in text or "'" in text)


def remove_comments(text: str, strip_literals: bool = True) -> str:
    """
    Remove block and line comments from ``text``.

    Args:
        text (str): Raw C text, usually a function definition up to its body.
        strip_literals (bool): If True, string and character literals are
            removed as well, including their delimiters.

    Returns:
        str: The scanned text. When there is nothing to remove, ``text``
        itself is returned.

    A line comment is removed up to, but not including, its terminating
    newline, so the physical line structure of the input survives.
    """
    if not may_need_scanning(text, strip_literals):
        return text

    keep_literals = not strip_literals
    out = []
    state = _NORMAL
    n = len(text)
    i = 0
    while i < n:
        c = text[i]
        i += 1

        if state == _NORMAL:
            if c == "/" and i < n and text[i] == "*":
                state = _BLOCK_COMMENT
                i += 1
            elif c == "/" and i < n and text[i] == "/":
                state = _LINE_COMMENT
                i += 1
            elif c == '"' or c == "'":
                state = _STRING if c == '"' else _CHAR
                if keep_literals:
                    out.append(c)
            else:
                out.append(c)

        elif state == _BLOCK_COMMENT:
            if c == "*" and i < n and text[i] == "/":
                state = _NORMAL
                i += 1

        elif state == _LINE_COMMENT:
            if c == "\n":
                out.append(c)
                state = _NORMAL

        else:
            if keep_literals:
                out.append(c)
            if c == _QUOTES[state]:
                state = _NORMAL
            elif c == "\\":
                if i < n:
                    if keep_literals:
                        out.append(text[i])
                    i += 1
                else:
                    LOG.warning("Possibly malformed escape sequence in %s literal in function %s",
                                _LITERAL_NAMES[state], text)

    if state == _BLOCK_COMMENT:
        LOG.warning("Possibly malformed block comment in function %s", text)
    elif state in _QUOTES:
        LOG.warning("Possibly non-ending %s literal in function %s", _LITERAL_NAMES[state], text)

    return "".join(out)
