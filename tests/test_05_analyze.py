"""Semantic analysis tests.

Test cases live in 05_analyze/*.tests files. Expected is one of:
'ok', or 'error: <Kind>' where Kind is the CompileError subclass name.
"""

from pathlib import Path

import pytest

from glyph.ast import (
    Apply,
    BinaryExpression,
    Conjure,
    ExpressionStatement,
    ExscribeStatement,
    FunctionCall,
    FunctionDeclaration,
    FunctionReference,
    GlyphLiteral,
    IfStatement,
    MainStatement,
    NumericLiteral,
    StringLiteral,
    Supplant,
    TypeOf,
    VariableDeclaration,
    VariableReference,
)
from glyph.errors import CompileError, TypeMismatch
from glyph.frontend import analyze
from glyph.types import (
    BOOL,
    FLOAT32,
    INT32,
    INT64,
    STRING,
    VOID,
    ArrayType,
    FunctionType,
    Numeric,
)

ANALYZE_DIR = Path(__file__).parent / "05_analyze"


def parse_test_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse .tests file into (name, input, expected) tuples."""
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


def discover_analyze_tests() -> list[tuple[str, str, str]]:
    results = []
    for test_file in sorted(ANALYZE_DIR.glob("*.tests")):
        for name, input_code, expected in parse_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_code, expected))
    return results


def pytest_generate_tests(metafunc):
    """Parametrize tests over analyze test files."""
    if "analyze_input" in metafunc.fixturenames:
        params = [
            pytest.param(input_code, expected, id=test_id)
            for test_id, input_code, expected in discover_analyze_tests()
        ]
        metafunc.parametrize("analyze_input,analyze_expected", params)


def test_analyze(analyze_input: str, analyze_expected: str):
    """Verify the analyzer accepts or rejects with the expected error kind."""
    error: CompileError | None = None
    try:
        analyze(analyze_input)
    except CompileError as e:
        error = e
    if analyze_expected == "ok":
        if error is not None:
            pytest.fail(f"Expected ok, got {error.kind}: {error}")
    elif analyze_expected.startswith("error:"):
        kind = analyze_expected[6:].strip()
        if error is None:
            pytest.fail(f"Expected {kind}, but analysis succeeded")
        assert error.kind == kind, f"expected {kind}, got {error.kind}: {error}"
    else:
        pytest.fail(f"Unknown expected format: {analyze_expected}")


# ============================================================
# typed AST
# ============================================================


def _value(source: str, index: int = -1):
    """The initializer of the index-th top-level declaration."""
    stmt = analyze(source).body[index]
    assert isinstance(stmt, VariableDeclaration)
    return stmt.value


def test_integer_literals_take_the_smallest_signed_type():
    assert _value("let x = 42;").typ == INT32
    assert _value("let x = 4294967296;").typ == INT64


def test_float_literals_are_float32():
    assert _value("let x = 3.5;").typ == FLOAT32


def test_single_quoted_text():
    glyph = _value("let x = 'a';")
    assert isinstance(glyph, GlyphLiteral)
    text = _value("let x = 'ab';")
    assert isinstance(text, StringLiteral)
    assert text.value == "ab"


def test_escapes_are_resolved():
    text = _value('let x = "a\\"b\\n";')
    assert text.value == 'a"b\n'


def test_binary_result_takes_the_left_type():
    program = analyze("let a: uint8 = 1;\nlet b = a + 1;\nlet c = 1 < 2;")
    assert program.body[1].variable.typ == Numeric("uint", 8)
    assert program.body[2].variable.typ == BOOL


def test_text_concatenation_is_string():
    assert _value("let s = 'a' + 'b';").typ == STRING


def test_references_share_the_declared_entity():
    program = analyze("let x = 1;\nlet y = x;\nx = y;")
    decl = program.body[0]
    ref = program.body[1].value
    assert isinstance(ref, VariableReference)
    assert ref.variable is decl.variable
    assert program.body[2].target is decl.variable


def test_shadowed_names_are_distinct_entities():
    program = analyze("let x = 1;\n{\n    let x = 2;\n    exscribe x;\n}")
    outer = program.body[0].variable
    inner_exscribe = program.body[1].body[1]
    assert isinstance(inner_exscribe, ExscribeStatement)
    assert inner_exscribe.value.variable is not outer


def test_call_arguments_take_the_parameter_type():
    program = analyze("evoke f(a: uint8) -> uint8 = a;\nexscribe f(3);")
    call = program.body[1].value
    assert isinstance(call, FunctionCall)
    assert isinstance(call.callee, FunctionReference)
    assert call.args[0].typ == Numeric("uint", 8)
    assert call.typ == Numeric("uint", 8)


def test_function_type_is_recorded():
    program = analyze("evoke f(a: int32, b: string) -> bool = true;")
    decl = program.body[0]
    assert isinstance(decl, FunctionDeclaration)
    assert decl.function.typ == FunctionType((INT32, STRING), BOOL)
    assert [p.name for p in decl.function.params] == ["a", "b"]


def test_inferred_return_type():
    program = analyze("evoke f() { return 1.5; }\nevoke g() { exscribe 1; }")
    assert program.body[0].function.typ == FunctionType((), FLOAT32)
    assert program.body[1].function.typ == FunctionType((), VOID)


def test_expression_body_becomes_a_return():
    decl = analyze("evoke f() -> int32 = 1;").body[0]
    assert len(decl.body) == 1
    assert decl.body[0].value == NumericLiteral(1, typ=INT32)


def test_conjure_binding_is_a_function():
    program = analyze("seven: int32 = conjure { return 7; }\nexscribe seven();")
    decl = program.body[0]
    assert isinstance(decl, FunctionDeclaration)
    assert decl.function.typ == FunctionType((), INT32)


def test_conjure_expression_type():
    value = _value("let x = conjure { return 'a' + 'b'; };")
    assert isinstance(value, Conjure)
    assert value.typ == STRING


def test_main_wraps_its_statements():
    program = analyze("main = {\n    exscribe 1;\n    exscribe 2;\n}")
    main = program.body[0]
    assert isinstance(main, MainStatement)
    assert len(main.body) == 2


def test_else_if_is_a_nested_if():
    program = analyze("let x = 1;\nif x > 1 { } else if x < 0 { } else { exscribe x; }")
    stmt = program.body[1]
    assert isinstance(stmt, IfStatement)
    assert isinstance(stmt.alternative[0], IfStatement)
    assert len(stmt.alternative[0].alternative) == 1


def test_typeof_records_the_described_type():
    source = (
        "affix typing@typeof;\n"
        "evoke add(a: int32, b: int32) -> int32 = a + b;\n"
        "exscribe typeof(add(1, 2));"
    )
    node = analyze(source).body[2].value
    assert isinstance(node, TypeOf)
    assert node.described == FunctionType((INT32, INT32), INT32)
    assert node.typ == STRING


def test_apply_result_type():
    source = (
        "affix function@apply;\n"
        "evoke even(x: int32) -> bool = x % 2 == 0;\n"
        "exscribe apply(even, [1, 2]);"
    )
    node = analyze(source).body[2].value
    assert isinstance(node, Apply)
    assert node.typ == ArrayType(BOOL)


def test_supplant_node():
    source = 'affix string@supplant;\nexscribe supplant("a-b", "-", "+");'
    node = analyze(source).body[1].value
    assert isinstance(node, Supplant)
    assert node.typ == STRING


def test_invoke_exscribe_becomes_a_statement():
    program = analyze("affix io@exscribe;\ninvoke exscribe(1);")
    assert isinstance(program.body[1], ExscribeStatement)


def test_void_call_is_an_expression_statement():
    program = analyze("evoke f() { }\nf();")
    assert isinstance(program.body[1], ExpressionStatement)


def test_error_locations():
    with pytest.raises(TypeMismatch) as info:
        analyze("let x = 1;\nlet y: string = x;")
    assert (info.value.line, info.value.col) == (2, 1)
    assert info.value.msg == "cannot convert int32 to string"


def test_argument_error_points_at_the_argument():
    with pytest.raises(TypeMismatch) as info:
        analyze("evoke f(a: uint8) -> uint8 = a;\nexscribe f(256);")
    assert (info.value.line, info.value.col) == (2, 12)


def test_binary_is_built_for_comparison():
    value = _value("let b = 1 == 2;")
    assert isinstance(value, BinaryExpression)
    assert value.op == "=="


def test_call_before_declaration_takes_the_inferred_type():
    program = analyze("evoke a() {\n    let y = b();\n    exscribe y;\n}\nevoke b() { return 1.5; }")
    call = program.body[0].body[0].value
    assert isinstance(call, FunctionCall)
    assert call.typ == FLOAT32


def test_void_call_before_declaration_points_at_the_call():
    with pytest.raises(TypeMismatch) as info:
        analyze("evoke a() {\n    let y = b();\n}\nevoke b() { }")
    assert (info.value.line, info.value.col) == (2, 13)
