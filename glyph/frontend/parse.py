"""Glyph grammar and parse-tree construction (Lark, LALR, contextual lexer)."""

from __future__ import annotations

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from ..errors import ParseError

GRAMMAR: str = r"""
start: _item*

_item: statement
     | main_stmt

main_stmt: "main" "=" statement

?statement: import_stmt
          | function_decl
          | var_decl
          | conjure_binding
          | assignment
          | increment
          | decrement
          | if_stmt
          | while_stmt
          | break_stmt
          | return_stmt
          | exscribe_stmt
          | invoke_stmt
          | call_stmt
          | block

import_stmt: "affix" NAME "@" _symbol ";"
_symbol: NAME | EXSCRIBE

function_decl: "evoke" NAME "(" [params] ")" ["->" type] _function_body
_function_body: block | expr_body
expr_body: "=" expr ";"?
params: param ("," param)*
param: NAME ":" type

var_decl: mutability NAME [":" type] "=" expr ";"
!mutability: "let" | "const"

conjure_binding: NAME ":" type "=" conjure ";"?
assignment: NAME "=" expr ";"
increment: NAME "++" ";"
decrement: NAME "--" ";"

if_stmt: "if" expr block [else_clause]
?else_clause: "else" block
            | "else" if_stmt
while_stmt: "while" expr block
break_stmt: "break" ";"
return_stmt: "return" [expr] ";"?
exscribe_stmt: EXSCRIBE expr ";"
invoke_stmt: "invoke" _symbol "(" [args] ")" ";"
call_stmt: call ";"
block: "{" statement* "}"

// ---- expressions, lowest precedence first ----

?expr: or_expr

?or_expr: or_expr OR and_expr -> binary
        | and_expr

?and_expr: and_expr AND cmp_expr -> binary
         | cmp_expr

?cmp_expr: add_expr CMP_OP add_expr -> binary
         | add_expr

?add_expr: add_expr (PLUS | MINUS) mul_expr -> binary
         | mul_expr

?mul_expr: mul_expr (STAR | SLASH | PERCENT) unary_expr -> binary
         | unary_expr

?unary_expr: (MINUS | BANG) unary_expr -> unary
           | AMP unary_expr -> address_of
           | STAR unary_expr -> dereference
           | pow_expr

?pow_expr: postfix_expr POW unary_expr -> binary
         | postfix_expr

?postfix_expr: postfix_expr "[" expr "]" -> subscript
             | call
             | atom

call: NAME "(" [args] ")"
args: expr ("," expr)*

?atom: INT -> int_literal
     | FLOAT -> float_literal
     | DQ_STRING -> string_literal
     | SQ_STRING -> quoted_literal
     | CODEPOINT -> codepoint_literal
     | TRUE -> true_literal
     | FALSE -> false_literal
     | NULL -> null_literal
     | NAME -> name
     | "(" expr ")"
     | "[" [args] "]" -> array_literal
     | conjure

conjure: CONJURE block

// ---- types ----

?type: STAR type -> pointer_type
     | postfix_type

?postfix_type: postfix_type "?" -> optional_type
             | atom_type

?atom_type: "[" type "]" -> array_type
          | "(" type ")"
          | CONJURE "(" type ("," type)* ["->" type] ")" -> function_type
          | NAME -> named_type

// ---- terminals ----

EXSCRIBE: "exscribe"
CONJURE: "conjure"
TRUE: "true"
FALSE: "false"
NULL: "null"

OR: "||"
AND: "&&"
CMP_OP: /==|!=|<=|>=|<|>/
PLUS: "+"
MINUS: "-"
STAR: "*"
POW: "**"
SLASH: "/"
PERCENT: "%"
BANG: "!"
AMP: "&"

NAME: /[a-zA-Z_][a-zA-Z0-9_]*/
FLOAT.2: /\d+\.\d+/
INT: /\d+/
CODEPOINT.2: /U\+[0-9A-Fa-f]{4,6}/
DQ_STRING: /"(\\.|[^"\\\n])*"/
SQ_STRING: /'(\\.|[^'\\\n])*'/

COMMENT: /\/@[\s\S]*?@\//

%import common.WS
%ignore WS
%ignore COMMENT
"""

_parser = Lark(
    GRAMMAR,
    parser="lalr",
    lexer="contextual",
    propagate_positions=True,
    maybe_placeholders=True,
)


def parse(source: str) -> Tree:
    """Parse Glyph source into a Lark tree rooted at `start`."""
    try:
        return _parser.parse(source)
    except UnexpectedInput as err:
        line, col = _error_position(err, source)
        raise ParseError(_describe(err), line, col) from err


def position(node: Tree | Token) -> tuple[int, int]:
    """(line, col) of a tree or token, 1-indexed; (1, 1) for an empty tree."""
    if isinstance(node, Token):
        return (node.line or 1, node.column or 1)
    if node.meta.empty:
        return (1, 1)
    return (node.meta.line, node.meta.column)


def _error_position(err: UnexpectedInput, source: str) -> tuple[int, int]:
    line = getattr(err, "line", -1)
    col = getattr(err, "column", -1)
    if line is None or line < 1:
        lines = source.split("\n")
        return (len(lines), len(lines[-1]) + 1)
    return (line, col)


def _describe(err: UnexpectedInput) -> str:
    if isinstance(err, UnexpectedCharacters):
        return "unexpected character " + repr(err.char)
    if isinstance(err, UnexpectedToken):
        if err.token.type == "$END":
            return "unexpected end of input"
        expected = sorted(err.expected)
        msg = "unexpected " + repr(str(err.token))
        if 0 < len(expected) <= 6:
            msg += ", expected one of " + ", ".join(expected)
        return msg
    if isinstance(err, UnexpectedEOF):
        return "unexpected end of input"
    return "syntax error"
