"""
normalizer.py

Canonical whitespace/punctuation form of C function signatures.

Two signatures that differ only in layout (line breaks, indentation,
``char *p`` vs. ``char* p``) normalize to the same string, so the result
can be used as an identity key for functions.
"""

# Characters after which a pending space is dropped
_NO_SPACE_AFTER = (" ", "(")


def normalize_signature(signature: str) -> str:
    """
    Normalize a raw signature string.

    Args:
        signature (str): Signature text, possibly spanning several lines.

    Returns:
        str: The normalized signature. ``normalize_signature`` is idempotent.

    Rules:
        - trailing whitespace and backslashes are trimmed
        - runs of whitespace collapse to one space; backslash-newline is
          deleted (line continuation)
        - no space after ``(`` and none before ``(``, ``,`` or ``)``
        - exactly one space after ``,`` and ``)`` unless at the end
        - ``*`` is surrounded by single spaces unless at the start or end
    """
    if not signature:
        return signature

    last = len(signature) - 1
    while last >= 0 and (signature[last].isspace() or signature[last] == "\\"):
        last -= 1

    out = []
    # Last character appended to out; a leading space is never emitted
    last_char = " "
    i = 0
    while i <= last:
        c = signature[i]
        i += 1

        if c == "\\" and i <= last and signature[i] == "\n":
            i += 1
            continue

        if c.isspace():
            c = " "

        require_space = False
        if c == " ":
            if last_char in _NO_SPACE_AFTER:
                continue
            out.append(c)
            last_char = c
        elif c == "(":
            if last_char == " " and out:
                out.pop()
            out.append(c)
            last_char = c
        elif c in ",)":
            if last_char == " " and out:
                out.pop()
            out.append(c)
            last_char = c
            require_space = True
        elif c == "*":
            if last_char != " ":
                out.append(" ")
            out.append(c)
            last_char = c
            require_space = True
        else:
            out.append(c)
            last_char = c

        if require_space and i <= last:
            out.append(" ")
            last_char = " "

    return "".join(out)
