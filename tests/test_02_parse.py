"""Pytest-based parser tests."""

import signal
from pathlib import Path

import pytest

from glyph.errors import ParseError
from glyph.frontend.parse import parse, position

PARSE_TIMEOUT = 5


def _timeout_handler(signum, frame):
    raise TimeoutError("parse() timed out")


signal.signal(signal.SIGALRM, _timeout_handler)

PARSE_DIR = Path(__file__).parent / "02_parse"


def parse_test_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse .tests file into (name, input, expected) tuples.

    Expected is one of: 'ok', 'error: <message substring>'
    """
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_parse_tests() -> list[tuple[str, str, str]]:
    """Find all parse tests, returns (test_id, input, expected)."""
    results = []
    for test_file in sorted(PARSE_DIR.glob("*.tests")):
        tests = parse_test_file(test_file)
        for name, input_code, expected in tests:
            test_id = f"{test_file.stem}/{name}"
            results.append((test_id, input_code, expected))
    return results


def pytest_generate_tests(metafunc):
    """Parametrize tests over parse test files."""
    if "parse_input" in metafunc.fixturenames:
        tests = discover_parse_tests()
        params = [
            pytest.param(input_code, expected, id=test_id)
            for test_id, input_code, expected in tests
        ]
        metafunc.parametrize("parse_input,parse_expected", params)


def test_parse(parse_input: str, parse_expected: str):
    """Verify parser produces expected result."""
    parse_error: ParseError | None = None
    try:
        signal.alarm(PARSE_TIMEOUT)
        parse(parse_input)
    except ParseError as e:
        parse_error = e
    finally:
        signal.alarm(0)

    if parse_expected == "ok":
        if parse_error is not None:
            pytest.fail(f"Expected ok, got parse error: {parse_error}")
    elif parse_expected.startswith("error:"):
        expected_msg = parse_expected[6:].strip()
        if parse_error is None:
            pytest.fail(f"Expected error containing '{expected_msg}', but parsing succeeded")
        assert expected_msg.lower() in str(parse_error).lower()
    else:
        pytest.fail(f"Unknown expected format: {parse_expected}")


# ============================================================
# tree shape
# ============================================================


def test_precedence_multiplication_binds_tighter():
    tree = parse("exscribe 1 + 2 * 3;")
    expr = tree.children[0].children[1]
    assert expr.data == "binary"
    assert str(expr.children[1]) == "+"
    assert expr.children[2].data == "binary"
    assert str(expr.children[2].children[1]) == "*"


def test_power_is_right_associative():
    tree = parse("exscribe 2 ** 3 ** 2;")
    expr = tree.children[0].children[1]
    assert str(expr.children[1]) == "**"
    assert expr.children[0].data == "int_literal"
    assert expr.children[2].data == "binary"


def test_subtraction_is_left_associative():
    tree = parse("exscribe 10 - 4 - 3;")
    expr = tree.children[0].children[1]
    assert expr.children[0].data == "binary"
    assert expr.children[2].data == "int_literal"


def test_else_if_nests_an_if():
    tree = parse("if a { } else if b { } else { }")
    if_stmt = tree.children[0]
    assert if_stmt.data == "if_stmt"
    assert if_stmt.children[2].data == "if_stmt"
    assert if_stmt.children[2].children[2].data == "block"


def test_keywords_stay_distinct_from_names():
    tree = parse("let whiled = 1;")
    decl = tree.children[0]
    assert decl.data == "var_decl"
    assert str(decl.children[1]) == "whiled"


def test_optional_pointer_grouping():
    tree = parse("let d: (*int32)? = null;")
    typ = tree.children[0].children[2]
    assert typ.data == "optional_type"
    assert typ.children[0].data == "pointer_type"


def test_pointer_to_optional():
    tree = parse("let f: *int32? = null;")
    typ = tree.children[0].children[2]
    assert typ.data == "pointer_type"
    assert typ.children[1].data == "optional_type"


def test_comments_are_skipped():
    tree = parse("/@ a comment\nover two lines @/ let x = 1; /@ tail @/")
    assert len(tree.children) == 1


def test_positions_are_one_indexed():
    tree = parse("let x = 1;\n  exscribe x;")
    assert position(tree.children[0]) == (1, 1)
    assert position(tree.children[1]) == (2, 3)


def test_error_position():
    with pytest.raises(ParseError) as info:
        parse("let x = 1;\nlet y = ;")
    assert (info.value.line, info.value.col) == (2, 9)


def test_error_at_end_reports_last_line():
    with pytest.raises(ParseError) as info:
        parse("main = {\n  exscribe 1;")
    assert info.value.line == 2
    assert "end of input" in info.value.msg
