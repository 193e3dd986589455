import os

import pytest

from annosmell.data.files import FilePath, LineIndex, SourceFile
from annosmell.errors import InternalConsistencyError


def test_file_path_relative_to_root(tmp_path):
    path = FilePath.of(os.path.join(str(tmp_path), "src", ".", "a.c.xml"), str(tmp_path))
    assert path == FilePath("src/a.c.xml")
    assert str(path) == "src/a.c.xml"
    assert FilePath("a") < FilePath("b")


def test_source_file_from_text():
    """
    Whitespace-only lines are blank; a trailing newline does not add a line.
    """
    sf = SourceFile.from_text(FilePath("a.c"), "int x;\n\n  \t\nint y;\n\n")
    assert sf.line_count == 5
    assert sf.blank_lines == (2, 3, 5)
    assert sf.display_path == "a.c"
    assert sf.is_blank(3) and not sf.is_blank(4)
    assert list(sf.non_blank_lines(1, 5)) == [1, 4]


def test_blank_line_counts():
    sf = SourceFile(FilePath("a.c"), 30, blank_lines=(15, 5, 20, 15))
    assert sf.blank_lines == (5, 15, 20)
    assert sf.count_blank_lines(5, 20) == 3
    assert sf.count_blank_lines(6, 19) == 1
    assert sf.count_blank_lines(20, 5) == 0
    assert sf.count_blank_lines_between(5, 20) == 1
    assert sf.count_blank_lines_between(14, 16) == 1
    assert sf.count_blank_lines_between(15, 16) == 0


def test_line_index():
    a = SourceFile(FilePath("a.c"), 10, blank_lines=(3, 4))
    index = LineIndex([a])
    assert FilePath("a.c") in index
    assert len(index) == 1
    assert list(index) == [a]
    assert index.find_file(FilePath("a.c")) is a
    assert index.blank_lines(FilePath("a.c")) == (3, 4)
    assert index.count_blank_lines(FilePath("a.c"), 1, 10) == 2
    assert index.count_blank_lines_between(FilePath("a.c"), 3, 5) == 1

    with pytest.raises(InternalConsistencyError):
        index.find_file(FilePath("b.c"))
    with pytest.raises(InternalConsistencyError):
        index.add(SourceFile(FilePath("a.c"), 1))
