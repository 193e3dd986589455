import os
import sys

# Add the src directory to the import path so that the annosmell package can be
# imported when running the tests directly from the repository root.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

import pytest
from lxml import etree

SRC_NS = "http://www.srcML.org/srcML/src"
CPP_NS = "http://www.srcML.org/srcML/cpp"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'

# f() with two nested conditionals, preceded by a top-level #ifdef (source lines 1-12)
NESTED_UNIT = (
    '<cpp:ifdef>#<cpp:directive>ifdef</cpp:directive> <name>A</name></cpp:ifdef>\n'
    '<decl_stmt><decl><type><name>int</name></type> <name>g</name></decl>;</decl_stmt>\n'
    '<cpp:endif>#<cpp:directive>endif</cpp:directive></cpp:endif>\n'
    '<function><type><name>int</name></type> <name>f</name><parameter_list>(<parameter><decl><type>'
    '<name>void</name></type></decl></parameter>)</parameter_list>\n'
    '<block>{<block_content>\n'
    '<cpp:if>#<cpp:directive>if</cpp:directive> <expr><name>defined</name><argument_list>(<argument><expr>'
    '<name>B</name></expr></argument>)</argument_list></expr></cpp:if>\n'
    '    <expr_stmt><expr><call><name>x</name><argument_list>()</argument_list></call></expr>;</expr_stmt>\n'
    '<cpp:ifndef>#<cpp:directive>ifndef</cpp:directive> <name>C</name></cpp:ifndef>\n'
    '    <expr_stmt><expr><call><name>y</name><argument_list>()</argument_list></call></expr>;</expr_stmt>\n'
    '<cpp:endif>#<cpp:directive>endif</cpp:directive></cpp:endif>\n'
    '<cpp:endif>#<cpp:directive>endif</cpp:directive></cpp:endif>\n'
    '</block_content>}</block></function>\n'
)


def make_unit_xml(body, src_ns=SRC_NS, cpp_ns=CPP_NS, filename="t.c"):
    """srcML document text whose first code line is `body`'s first line."""
    return (XML_DECLARATION
            + f'<unit xmlns="{src_ns}" xmlns:cpp="{cpp_ns}" revision="1.0.0" language="C" filename="{filename}">'
            + body + '</unit>\n')


@pytest.fixture
def srcml_unit():
    """Parse a srcML unit from a code body and return its root element."""
    def parse(body, src_ns=SRC_NS, cpp_ns=CPP_NS, filename="t.c"):
        return etree.fromstring(make_unit_xml(body, src_ns, cpp_ns, filename).encode("utf-8"))
    return parse


@pytest.fixture
def setenvif_xml():
    """Path of the srcML fixture of setenvif.c."""
    return os.path.join(os.path.dirname(__file__), "src", "setenvif.c.xml")
