import logging

from annosmell.signature.comment_scanner import may_need_scanning, remove_comments


def test_nothing_to_remove_returns_input():
    """
    Text without comment markers (and without literals, when stripping them)
    is returned as the very same object.
    """
    text = "static int\nnewerf (f1, f2)\n"
    assert remove_comments(text) is text
    assert not may_need_scanning(text, strip_literals=True)
    keep = 'f("abc")'
    assert remove_comments(keep, strip_literals=False) is keep


def test_block_comment_removed():
    assert remove_comments("int f()/* x */") == "int f()"
    assert remove_comments("int /* ret */ h(a)") == "int  h(a)"


def test_line_comment_keeps_newline():
    """
    Removing a line comment keeps the newline that ends it.
    """
    result = remove_comments("int f(int a, // first\n int b)")
    assert result == "int f(int a, \n int b)", f"Unexpected result {result!r}"
    assert result.count("\n") == 1


def test_comment_markers_inside_string_literal():
    """
    `/*` inside a string literal does not open a comment.
    """
    text = 'f("a/*b") /* c */'
    assert remove_comments(text, strip_literals=False) == 'f("a/*b") '
    assert remove_comments(text, strip_literals=True) == "f() "


def test_character_literal():
    assert remove_comments("c = '/' /* slash */", strip_literals=False) == "c = '/' "
    assert remove_comments("c = '\"' + x", strip_literals=True) == "c =  + x"


def test_escaped_quote_in_string():
    text = '"a\\"/*b" x'
    assert remove_comments(text, strip_literals=False) == text
    assert remove_comments(text, strip_literals=True) == " x"


def test_unterminated_block_comment(caplog):
    caplog.set_level(logging.WARNING)
    assert remove_comments("int f() /* oops") == "int f() "
    assert "malformed block comment" in caplog.text


def test_unterminated_string_literal(caplog):
    caplog.set_level(logging.WARNING)
    assert remove_comments('f("abc', strip_literals=True) == "f("
    assert "non-ending string literal" in caplog.text


def test_dangling_escape(caplog):
    caplog.set_level(logging.WARNING)
    assert remove_comments('f("ab\\', strip_literals=False) == 'f("ab\\'
    assert "malformed escape sequence" in caplog.text


def test_unterminated_character_literal(caplog):
    caplog.set_level(logging.WARNING)
    assert remove_comments("c = 'x", strip_literals=True) == "c = "
    assert "non-ending character literal" in caplog.text
