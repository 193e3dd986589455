import pytest

from annosmell.data.features import FeatureReference, FeatureRegistry
from annosmell.data.files import FilePath, LineIndex, SourceFile
from annosmell.data.function import Function, by_occurrence
from annosmell.errors import InternalConsistencyError, UninitializedMetricError

A_C = FilePath("a.c")
B_C = FilePath("b.c")


def _line_index(blank_lines=(15,)):
    return LineIndex([
        SourceFile(A_C, line_count=30, blank_lines=blank_lines),
        SourceFile(B_C, line_count=30),
    ])


def _function(start=10, gross=11, signature="int f(void)", path=A_C):
    return Function(signature, path, start, gross)


def _ref(name="A", start=12, end=18, depth=0, negated=False, path=A_C):
    return FeatureReference(name, path, start, end, nesting_depth=depth, negated=negated)


def _snapshot(function):
    return (function.lines_of_feature_code, function.max_nesting_depth, len(function.feature_references),
            len(function._annotated_lines))


def test_lines_of_feature_code_skip_blank_lines():
    """
    Function 10-20 with a blank line 15; a reference spanning 12-18 covers
    6 non-blank lines.
    """
    function = _function()
    assert function.end_line == 20
    assert function.add_feature_reference(_ref(), _line_index())
    assert function.lines_of_feature_code == 6, f"Expected LOFC 6 but got {function.lines_of_feature_code}"


def test_reference_extending_past_function_end_is_clipped():
    function = _function()
    ref = _ref(start=18, end=25)
    function.add_feature_reference(ref, _line_index(blank_lines=(19, 22)))
    # Lines 18 and 20; 19 is blank, 21-25 lie behind the function
    assert function.lines_of_feature_code == 2


def test_nesting_sum_relative_to_shallowest_reference():
    line_index = _line_index()
    registry = FeatureRegistry()
    function = _function()
    for name, depth in (("A", 2), ("B", 3), ("C", 2)):
        ref = registry.register(_ref(name=name, start=11, end=12, depth=depth))
        function.add_feature_reference(ref, line_index)

    assert function.recompute_nesting_sum(registry) == 1
    assert function.max_nesting_depth == 3


def test_nesting_sum_without_references():
    assert _function().recompute_nesting_sum(FeatureRegistry()) == 0


def test_ingestion_is_idempotent():
    line_index = _line_index()
    function = _function()
    ref = _ref()
    assert function.add_feature_reference(ref, line_index) is True
    before = _snapshot(function)
    assert function.add_feature_reference(ref, line_index) is False
    assert _snapshot(function) == before
    assert function.feature_constant_count == 1


def test_reference_starting_behind_clipped_end_is_fatal():
    """
    A reference that starts after the function's end is rejected without
    touching the function.
    """
    line_index = _line_index()
    function = _function()
    function.add_feature_reference(_ref(name="OK"), line_index)
    before = _snapshot(function)

    bad = _ref(start=22, end=25)
    with pytest.raises(InternalConsistencyError):
        function.add_feature_reference(bad, line_index)
    assert _snapshot(function) == before
    assert bad.owning_function is None
    assert bad.id not in function.feature_references


def test_reference_ending_before_its_start_is_fatal():
    function = _function()
    with pytest.raises(InternalConsistencyError):
        function.add_feature_reference(_ref(start=15, end=12), _line_index())
    assert function.lines_of_feature_code == 0


def test_reference_starting_before_function_is_fatal():
    function = _function()
    with pytest.raises(InternalConsistencyError):
        function.add_feature_reference(_ref(start=8, end=12), _line_index())
    assert function.feature_references == {}


def test_reference_from_other_file_is_fatal():
    function = _function()
    with pytest.raises(InternalConsistencyError):
        function.add_feature_reference(_ref(path=B_C), _line_index())
    assert function.lines_of_feature_code == 0


def test_reference_from_unknown_file_is_fatal():
    function = _function()
    with pytest.raises(InternalConsistencyError):
        function.add_feature_reference(_ref(path=FilePath("unknown.c")), _line_index())


def test_reference_owned_by_other_function_is_fatal():
    line_index = _line_index()
    ref = _ref()
    first = _function(signature="int f(void)")
    second = _function(signature="int g(void)")
    first.add_feature_reference(ref, line_index)
    assert ref.owning_function is first

    with pytest.raises(InternalConsistencyError):
        second.add_feature_reference(ref, line_index)
    assert ref.owning_function is first
    assert second.lines_of_feature_code == 0


def test_net_line_count_requires_recompute():
    function = _function()
    with pytest.raises(UninitializedMetricError):
        _ = function.net_line_count
    assert function.recompute_net_line_count(_line_index()) == 10
    assert function.net_line_count == 10
    assert function.gross_line_count == 11


def test_function_must_span_a_line():
    with pytest.raises(ValueError):
        Function("int f(void)", A_C, 1, 0)


def test_aggregates_after_recompute():
    """
    Distinct constants, locations, negations and annotated lines are derived
    from the ingested references.
    """
    line_index = _line_index()
    registry = FeatureRegistry()
    function = _function()
    refs = [
        _ref(name="A", start=12, end=14),
        _ref(name="B", start=12, end=14, negated=True),
        _ref(name="A", start=14, end=18, negated=True),
        _ref(name="C", start=17, end=20, depth=1),
    ]
    for ref in refs:
        function.add_feature_reference(registry.register(ref), line_index)
    function.recompute_all(line_index, registry)

    assert function.feature_constant_count == 4
    assert function.distinct_feature_constant_count == 3
    assert function.feature_location_count == 3
    assert function.negation_count == 2
    # Lines 12-20 without the blank line 15, each counted once
    assert function.lines_of_annotated_code == 8
    # 3 + 3 + 4 (one blank) + 4
    assert function.lines_of_feature_code == 14
    assert function.nesting_sum == 1

    metrics = function.metrics()
    assert metrics["net lines of code"] == 10
    assert metrics["number of distinct feature constants"] == 3
    assert metrics["lines of annotated code"] == 8


def test_recompute_with_unregistered_reference_is_fatal():
    function = _function()
    function.add_feature_reference(_ref(), _line_index())
    with pytest.raises(InternalConsistencyError):
        function.recompute_negation_count(FeatureRegistry())


def test_equality_and_ordering():
    f1 = _function(start=10, signature="int f(void)")
    f1_again = _function(start=40, signature="int f(void)")
    g = _function(start=1, signature="int g(void)")
    other_file = _function(start=10, signature="int f(void)", path=B_C)

    assert f1 == f1_again
    assert hash(f1) == hash(f1_again)
    assert f1 != other_file
    assert len({f1, f1_again, g, other_file}) == 3
    assert sorted([other_file, f1, g], key=by_occurrence) == [g, f1, other_file]
    assert sorted([f1_again, g]) == [g, f1_again]
    assert str(f1) == "Function [int f(void) /* a.c:10,20 */]"


def test_display_path_in_diagnostics():
    function = Function("int f(void)", FilePath("src/a.c.xml"), 3, 2, display_path="a.c")
    assert str(function) == "Function [int f(void) /* a.c:3,4 */]"
    assert function.file_path == FilePath("src/a.c.xml")


def test_reference_str():
    ref = _ref(name="B", start=4, end=9, depth=2, negated=True)
    assert str(ref) == "FeatureReference [B /* a.c:4,9 negated=True depth=2 */]"
