"""Semantic analysis: Lark parse tree -> validated, fully-typed AST.

One recursive pass. Scope, loop and function context travel down the
calls as an explicit Context; the first failed check raises.
"""

from __future__ import annotations

from typing import assert_never

from lark import Token, Tree

from ..ast import (
    AddressOf,
    Apply,
    ArrayExpression,
    Assignment,
    BinaryExpression,
    Block,
    BooleanLiteral,
    BreakStatement,
    CodepointLiteral,
    Conjure,
    Decrement,
    Dereference,
    ExpressionStatement,
    Expr,
    ExscribeStatement,
    Function,
    FunctionCall,
    FunctionDeclaration,
    FunctionReference,
    GlyphLiteral,
    IfStatement,
    ImportedFunction,
    ImportStatement,
    Increment,
    Loc,
    MainStatement,
    NullLiteral,
    NumericLiteral,
    Program,
    ReturnStatement,
    Stmt,
    StringLiteral,
    Subscript,
    Supplant,
    TypeOf,
    UnaryExpression,
    Variable,
    VariableDeclaration,
    VariableReference,
    WhileStatement,
)
from ..errors import (
    ArityMismatch,
    AssignToConstant,
    BreakOutsideLoop,
    DivisionByZero,
    DuplicateBinding,
    DuplicateDeclaration,
    IndexOutOfRange,
    MissingReturn,
    NegativeIndex,
    NotAnArray,
    NotCallable,
    ReturnOutsideFunction,
    TypeMismatch,
    UndeclaredIdentifier,
    UnknownModule,
    UnknownSymbol,
    UnknownType,
)
from ..evaluate import EQUALITY_OPS, LOGICAL_OPS, ORDER_OPS, static_value
from ..middleend.returns import always_returns, contains_return
from ..stdlib import Intrinsic, has_module, lookup
from ..types import (
    ANY,
    BOOL,
    FLOAT32,
    STRING,
    VOID,
    ArrayType,
    FunctionType,
    OptionalType,
    PointerType,
    Type,
    are_compatible,
    can_convert,
    is_number_value,
    is_numeric,
    is_text,
    lookup_type_name,
    smallest_int_type,
    type_name,
)
from .parse import parse, position
from .scope import Context

MAX_CODEPOINT = 0x10FFFF

_ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


def analyze(source: str | Tree) -> Program:
    """Analyze Glyph source text, or a tree from parse(), into a Program."""
    if isinstance(source, str):
        tree = parse(source)
    else:
        tree = source
    return Analyzer().program(tree)


def loc_of(node: Tree | Token) -> Loc:
    line, col = position(node)
    return Loc(line, col)


def unescape(body: str) -> str:
    """Resolve backslash escapes in the text between a literal's quotes."""
    result: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            result.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        result.append(c)
        i += 1
    return "".join(result)


def _is_numeric_or_any(t: Type) -> bool:
    return t == ANY or is_numeric(t)


def _both_numeric(lt: Type, rt: Type) -> bool:
    return _is_numeric_or_any(lt) and _is_numeric_or_any(rt)


def _is_bool_or_any(t: Type) -> bool:
    return t == ANY or t == BOOL


def _is_text_or_any(t: Type) -> bool:
    return t == ANY or is_text(t)


class Analyzer:
    def __init__(self) -> None:
        self._main_seen: bool = False
        # function_decl/conjure_binding trees entered into scope ahead of their bodies
        self._predeclared: dict[int, Function] = {}
        # functions whose return type is final, or fixed by a return statement
        self._returned: set[int] = set()
        # uses of a function seen before its return type was known: a call used
        # as a value (target None) or a reference flowing into a function type
        self._deferred: list[tuple[Expr, Function, Type | None]] = []

    # ============================================================
    # PROGRAM AND STATEMENT LISTS
    # ============================================================

    def program(self, tree: Tree) -> Program:
        ctx = Context()
        body = self.statements(tree.children, ctx)
        self._resolve_deferred()
        return Program(body, loc=loc_of(tree))

    def _pending(self, fn: Function) -> bool:
        """True while an inferred return type is still unknown."""
        return not fn.declared_return and id(fn) not in self._returned

    def _resolve_deferred(self) -> None:
        """Recheck early uses now that every function body has been analyzed."""
        for expr, fn, target in self._deferred:
            assert isinstance(fn.typ, FunctionType)
            loc = expr.loc
            if target is None:
                if fn.typ.ret == VOID:
                    raise TypeMismatch(
                        "'" + fn.name + "' returns void and has no value", loc.line, loc.col
                    )
                if expr.typ == ANY:
                    expr.typ = fn.typ.ret
            elif not can_convert(fn.typ, target):
                raise TypeMismatch(
                    "cannot convert " + type_name(fn.typ) + " to " + type_name(target),
                    loc.line,
                    loc.col,
                )

    def statements(self, trees: list[Tree], ctx: Context) -> list[Stmt]:
        for tree in trees:
            if tree.data in ("function_decl", "conjure_binding"):
                self._predeclare(tree, ctx)
        result: list[Stmt] = []
        for tree in trees:
            result.append(self.statement(tree, ctx))
        return result

    def _predeclare(self, tree: Tree, ctx: Context) -> None:
        loc = loc_of(tree)
        name_tok = tree.children[0]
        name = str(name_tok)
        if tree.data == "function_decl":
            params_tree, ret_tree = tree.children[1], tree.children[2]
            params: list[Variable] = []
            if params_tree is not None:
                for p in params_tree.children:
                    pname, ptype = p.children
                    params.append(
                        Variable(str(pname), self.resolve_type(ptype), True, loc=loc_of(pname))
                    )
            if ret_tree is not None:
                ret = self.resolve_type(ret_tree)
                declared = True
            else:
                ret = ANY
                declared = False
            typ = FunctionType(tuple(p.typ for p in params), ret)
            fn = Function(name, params, typ, declared, loc=loc)
        else:
            annotation = self.resolve_type(tree.children[1])
            if isinstance(annotation, FunctionType):
                if len(annotation.params) > 0:
                    raise TypeMismatch(
                        "conjure takes no parameters, but '" + name + "' is annotated "
                        + type_name(annotation),
                        loc.line,
                        loc.col,
                    )
                ret = annotation.ret
            else:
                ret = annotation
            fn = Function(name, [], FunctionType((), ret), True, loc=loc)
        ctx.declare(name, fn, loc)
        self._predeclared[id(tree)] = fn

    # ============================================================
    # STATEMENTS
    # ============================================================

    def statement(self, tree: Tree, ctx: Context) -> Stmt:
        loc = loc_of(tree)
        match tree.data:
            case "main_stmt":
                return self._main(tree, ctx, loc)
            case "import_stmt":
                return self._import(tree, ctx, loc)
            case "function_decl":
                return self._function_decl(tree, ctx, loc)
            case "conjure_binding":
                return self._conjure_binding(tree, ctx, loc)
            case "var_decl":
                return self._var_decl(tree, ctx, loc)
            case "assignment":
                name_tok, value_tree = tree.children
                target = self._mutable_target(name_tok, ctx)
                value = self.value_expression(value_tree, ctx)
                self._check_convert(value, target.typ, loc)
                return Assignment(target, value, loc=loc)
            case "increment" | "decrement":
                target = self._mutable_target(tree.children[0], ctx)
                if not _is_numeric_or_any(target.typ):
                    raise TypeMismatch(
                        "cannot step '" + target.name + "' of type " + type_name(target.typ),
                        loc.line,
                        loc.col,
                    )
                if tree.data == "increment":
                    return Increment(target, loc=loc)
                return Decrement(target, loc=loc)
            case "if_stmt":
                return self._if(tree, ctx, loc)
            case "while_stmt":
                cond_tree, body_tree = tree.children
                condition = self._condition(cond_tree, ctx)
                body = self.statements(body_tree.children, ctx.loop())
                return WhileStatement(condition, body, loc=loc)
            case "break_stmt":
                if not ctx.in_loop:
                    raise BreakOutsideLoop("'break' outside of a loop", loc.line, loc.col)
                return BreakStatement(loc=loc)
            case "return_stmt":
                return self._return(tree.children[0], ctx, loc)
            case "exscribe_stmt":
                value = self.value_expression(tree.children[1], ctx)
                return ExscribeStatement(value, loc=loc)
            case "invoke_stmt":
                name_tok, args_tree = tree.children
                return self._as_statement(self._call(name_tok, args_tree, ctx, loc), loc)
            case "call_stmt":
                call = tree.children[0]
                name_tok, args_tree = call.children
                return self._as_statement(self._call(name_tok, args_tree, ctx, loc), loc)
            case "block":
                return Block(self.statements(tree.children, ctx.block()), loc=loc)
            case _:
                raise NotImplementedError("statement: " + tree.data)

    def _main(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        if self._main_seen:
            raise DuplicateDeclaration("'main' is already declared", loc.line, loc.col)
        self._main_seen = True
        inner = tree.children[0]
        if inner.data == "block":
            body = self.statements(inner.children, ctx.block())
        else:
            body = self.statements([inner], ctx)
        return MainStatement(body, loc=loc)

    def _import(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        module, symbol = str(tree.children[0]), str(tree.children[1])
        if not has_module(module):
            raise UnknownModule("no library module '" + module + "'", loc.line, loc.col)
        sym = lookup(module, symbol)
        if sym is None:
            raise UnknownSymbol(
                "module '" + module + "' has no symbol '" + symbol + "'", loc.line, loc.col
            )
        imported = ImportedFunction(module, symbol, sym.typ, sym.intrinsic, loc=loc)
        ctx.declare(symbol, imported, loc, DuplicateBinding)
        return ImportStatement(imported, loc=loc)

    def _function_decl(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        fn = self._predeclared.pop(id(tree))
        inner = ctx.function_body(fn)
        for p in fn.params:
            inner.declare(p.name, p, p.loc)
        body_tree = tree.children[3]
        if body_tree.data == "block":
            body = self.statements(body_tree.children, inner)
        else:
            body = [self._return(body_tree.children[0], inner, loc_of(body_tree))]
        self._finish_function(fn, body, loc, require_all_paths=True)
        return FunctionDeclaration(fn, body, loc=loc)

    def _conjure_binding(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        fn = self._predeclared.pop(id(tree))
        conjure_tree = tree.children[2]
        body_tree = conjure_tree.children[1]
        body = self.statements(body_tree.children, ctx.function_body(fn))
        self._finish_function(fn, body, loc, require_all_paths=False)
        return FunctionDeclaration(fn, body, loc=loc)

    def _finish_function(
        self, fn: Function, body: list[Stmt], loc: Loc, require_all_paths: bool
    ) -> None:
        assert isinstance(fn.typ, FunctionType)
        if not fn.declared_return:
            if id(fn) not in self._returned:
                fn.typ = FunctionType(fn.typ.params, VOID)
                self._returned.add(id(fn))
            return
        if fn.typ.ret == VOID:
            return
        if require_all_paths:
            complete = always_returns(body)
        else:
            complete = contains_return(body)
        if not complete:
            raise MissingReturn(
                "'" + fn.name + "' must return " + type_name(fn.typ.ret) + " on every path",
                loc.line,
                loc.col,
            )

    def _var_decl(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        mutability, name_tok, type_tree, value_tree = tree.children
        mutable = str(mutability.children[0]) == "let"
        value = self.value_expression(value_tree, ctx)
        if type_tree is not None:
            typ = self.resolve_type(type_tree)
            self._check_convert(value, typ, loc)
        elif isinstance(value, NullLiteral):
            raise TypeMismatch(
                "'" + str(name_tok) + "' needs an optional type to hold null",
                loc.line,
                loc.col,
            )
        else:
            typ = value.typ
        variable = Variable(str(name_tok), typ, mutable, value, loc=loc_of(name_tok))
        ctx.declare(variable.name, variable, loc)
        return VariableDeclaration(variable, value, loc=loc)

    def _if(self, tree: Tree, ctx: Context, loc: Loc) -> Stmt:
        cond_tree, then_tree, else_tree = tree.children
        condition = self._condition(cond_tree, ctx)
        consequent = self.statements(then_tree.children, ctx.block())
        alternative: list[Stmt] = []
        if else_tree is not None:
            if else_tree.data == "block":
                alternative = self.statements(else_tree.children, ctx.block())
            else:
                alternative = [self.statement(else_tree, ctx.block())]
        return IfStatement(condition, consequent, alternative, loc=loc)

    def _return(self, value_tree: Tree | None, ctx: Context, loc: Loc) -> Stmt:
        fn = ctx.function
        if fn is None:
            raise ReturnOutsideFunction("'return' outside of a function", loc.line, loc.col)
        assert isinstance(fn.typ, FunctionType)
        ret = fn.typ.ret
        if value_tree is None:
            if fn.declared_return or id(fn) in self._returned:
                if ret != VOID and ret != ANY:
                    raise TypeMismatch(
                        "'" + fn.name + "' must return " + type_name(ret), loc.line, loc.col
                    )
            else:
                fn.typ = FunctionType(fn.typ.params, VOID)
                self._returned.add(id(fn))
            return ReturnStatement(None, loc=loc)
        value = self.value_expression(value_tree, ctx)
        if fn.declared_return or id(fn) in self._returned:
            if ret == VOID:
                raise TypeMismatch(
                    "'" + fn.name + "' returns void but a value is returned", loc.line, loc.col
                )
            self._check_convert(value, ret, loc)
        else:
            fn.typ = FunctionType(fn.typ.params, value.typ)
            self._returned.add(id(fn))
        return ReturnStatement(value, loc=loc)

    def _as_statement(self, result: Stmt | Expr, loc: Loc) -> Stmt:
        if isinstance(result, Stmt):
            return result
        return ExpressionStatement(result, loc=loc)

    def _mutable_target(self, name_tok: Token, ctx: Context) -> Variable:
        loc = loc_of(name_tok)
        name = str(name_tok)
        entity = ctx.lookup(name)
        if entity is None:
            raise UndeclaredIdentifier("'" + name + "' is not declared", loc.line, loc.col)
        if not isinstance(entity, Variable):
            raise TypeMismatch("cannot assign to function '" + name + "'", loc.line, loc.col)
        if not entity.mutable:
            raise AssignToConstant("cannot assign to const '" + name + "'", loc.line, loc.col)
        return entity

    def _condition(self, tree: Tree, ctx: Context) -> Expr:
        condition = self.expression(tree, ctx)
        if condition.typ != BOOL:
            loc = condition.loc
            raise TypeMismatch(
                "condition must be bool, not " + type_name(condition.typ), loc.line, loc.col
            )
        return condition

    def _check_convert(self, value: Expr, target: Type, loc: Loc) -> None:
        if isinstance(value, FunctionReference) and self._pending(value.function):
            self._deferred.append((value, value.function, target))
        if not can_convert(value.typ, target, static_value(value)):
            raise TypeMismatch(
                "cannot convert " + type_name(value.typ) + " to " + type_name(target),
                loc.line,
                loc.col,
            )

    # ============================================================
    # EXPRESSIONS
    # ============================================================

    def value_expression(self, tree: Tree, ctx: Context) -> Expr:
        """An expression whose value is used; void is rejected."""
        expr = self.expression(tree, ctx)
        if isinstance(expr, FunctionCall) and isinstance(expr.callee, FunctionReference):
            fn = expr.callee.function
            if self._pending(fn):
                self._deferred.append((expr, fn, None))
        if expr.typ == VOID:
            loc = expr.loc
            raise TypeMismatch("void expression has no value", loc.line, loc.col)
        return expr

    def expression(self, tree: Tree, ctx: Context) -> Expr:
        loc = loc_of(tree)
        match tree.data:
            case "int_literal":
                value = int(str(tree.children[0]))
                return NumericLiteral(value, typ=smallest_int_type(value), loc=loc)
            case "float_literal":
                return NumericLiteral(float(str(tree.children[0])), typ=FLOAT32, loc=loc)
            case "string_literal":
                return StringLiteral(unescape(str(tree.children[0])[1:-1]), loc=loc)
            case "quoted_literal":
                text = unescape(str(tree.children[0])[1:-1])
                if len(text) == 1:
                    return GlyphLiteral(text, loc=loc)
                return StringLiteral(text, loc=loc)
            case "codepoint_literal":
                value = int(str(tree.children[0])[2:], 16)
                if value > MAX_CODEPOINT:
                    raise TypeMismatch(
                        str(tree.children[0]) + " is not a Unicode code point", loc.line, loc.col
                    )
                return CodepointLiteral(value, loc=loc)
            case "true_literal":
                return BooleanLiteral(True, loc=loc)
            case "false_literal":
                return BooleanLiteral(False, loc=loc)
            case "null_literal":
                return NullLiteral(loc=loc)
            case "name":
                return self._reference(tree.children[0], ctx)
            case "binary":
                return self._binary(tree, ctx, loc)
            case "unary":
                return self._unary(tree, ctx, loc)
            case "address_of":
                operand = tree.children[1]
                if not (isinstance(operand, Tree) and operand.data == "name"):
                    raise TypeMismatch("'&' needs a variable operand", loc.line, loc.col)
                ref = self._reference(operand.children[0], ctx)
                if not isinstance(ref, VariableReference):
                    raise TypeMismatch("'&' needs a variable operand", loc.line, loc.col)
                return AddressOf(ref, typ=PointerType(ref.typ), loc=loc)
            case "dereference":
                operand = self.expression(tree.children[1], ctx)
                if not isinstance(operand.typ, PointerType):
                    raise TypeMismatch(
                        "cannot dereference " + type_name(operand.typ), loc.line, loc.col
                    )
                return Dereference(operand, typ=operand.typ.target, loc=loc)
            case "subscript":
                return self._subscript(tree, ctx, loc)
            case "call":
                name_tok, args_tree = tree.children
                result = self._call(name_tok, args_tree, ctx, loc)
                if isinstance(result, Stmt):
                    raise TypeMismatch(
                        "'" + str(name_tok) + "' has no value", loc.line, loc.col
                    )
                return result
            case "array_literal":
                return self._array(tree.children[0], ctx, loc)
            case "conjure":
                return self._conjure(tree, ctx, loc)
            case _:
                raise NotImplementedError("expression: " + tree.data)

    def _reference(self, name_tok: Token, ctx: Context) -> Expr:
        loc = loc_of(name_tok)
        name = str(name_tok)
        entity = ctx.lookup(name)
        if entity is None:
            raise UndeclaredIdentifier("'" + name + "' is not declared", loc.line, loc.col)
        if isinstance(entity, Variable):
            return VariableReference(entity, typ=entity.typ, loc=loc)
        if isinstance(entity, Function):
            return FunctionReference(entity, typ=entity.typ, loc=loc)
        raise TypeMismatch(
            "library function '" + name + "' can only be called", loc.line, loc.col
        )

    def _binary(self, tree: Tree, ctx: Context, loc: Loc) -> Expr:
        left_tree, op_tok, right_tree = tree.children
        op = str(op_tok)
        left = self.value_expression(left_tree, ctx)
        right = self.value_expression(right_tree, ctx)
        lt, rt = left.typ, right.typ
        lv, rv = static_value(left), static_value(right)
        if op in LOGICAL_OPS:
            ok = _is_bool_or_any(lt) and _is_bool_or_any(rt)
            result = BOOL
        elif op in EQUALITY_OPS:
            ok = are_compatible(lt, rt, lv, rv)
            result = BOOL
        elif op in ORDER_OPS:
            ok = _both_numeric(lt, rt) and are_compatible(lt, rt, lv, rv)
            result = BOOL
        elif op == "+" and (is_text(lt) or is_text(rt)):
            ok = _is_text_or_any(lt) and _is_text_or_any(rt)
            result = STRING
        else:
            ok = _both_numeric(lt, rt) and are_compatible(lt, rt, lv, rv)
            result = rt if lt == ANY else lt
            if op in ("/", "%") and is_number_value(rv) and rv == 0:
                raise DivisionByZero("division by literal zero", loc.line, loc.col)
        if not ok:
            raise TypeMismatch(
                "operator '" + op + "' cannot combine " + type_name(lt) + " and " + type_name(rt),
                loc.line,
                loc.col,
            )
        return BinaryExpression(op, left, right, typ=result, loc=loc)

    def _unary(self, tree: Tree, ctx: Context, loc: Loc) -> Expr:
        op = str(tree.children[0])
        operand = self.value_expression(tree.children[1], ctx)
        if op == "-":
            ok = _is_numeric_or_any(operand.typ)
            result = operand.typ
        else:
            ok = _is_bool_or_any(operand.typ)
            result = BOOL
        if not ok:
            raise TypeMismatch(
                "operator '" + op + "' cannot apply to " + type_name(operand.typ),
                loc.line,
                loc.col,
            )
        return UnaryExpression(op, operand, typ=result, loc=loc)

    def _subscript(self, tree: Tree, ctx: Context, loc: Loc) -> Expr:
        base = self.value_expression(tree.children[0], ctx)
        index = self.value_expression(tree.children[1], ctx)
        if not isinstance(base.typ, ArrayType):
            raise NotAnArray("cannot index " + type_name(base.typ), loc.line, loc.col)
        if not _is_numeric_or_any(index.typ):
            raise TypeMismatch(
                "index must be numeric, not " + type_name(index.typ), loc.line, loc.col
            )
        iv = static_value(index)
        if is_number_value(iv):
            assert isinstance(iv, (int, float))
            if iv < 0:
                raise NegativeIndex("negative index " + str(iv), loc.line, loc.col)
            elements = _static_elements(base)
            if elements is not None and iv >= len(elements):
                raise IndexOutOfRange(
                    "index " + str(iv) + " out of range for length " + str(len(elements)),
                    loc.line,
                    loc.col,
                )
        return Subscript(base, index, typ=base.typ.element, loc=loc)

    def _array(self, args_tree: Tree | None, ctx: Context, loc: Loc) -> Expr:
        if args_tree is None:
            return ArrayExpression([], typ=ArrayType(ANY), loc=loc)
        elements = [self.value_expression(t, ctx) for t in args_tree.children]
        element_type = elements[0].typ
        for e in elements[1:]:
            if e.typ != element_type:
                raise TypeMismatch(
                    "array elements mix " + type_name(element_type) + " and " + type_name(e.typ),
                    e.loc.line,
                    e.loc.col,
                )
        return ArrayExpression(elements, typ=ArrayType(element_type), loc=loc)

    def _conjure(self, tree: Tree, ctx: Context, loc: Loc) -> Expr:
        fn = Function("conjure", [], FunctionType((), ANY), False, loc=loc)
        body = self.statements(tree.children[1].children, ctx.function_body(fn))
        if not contains_return(body):
            raise MissingReturn("conjure body never returns a value", loc.line, loc.col)
        assert isinstance(fn.typ, FunctionType)
        return Conjure(body, typ=fn.typ.ret, loc=loc)

    # ============================================================
    # CALLS
    # ============================================================

    def _call(
        self, name_tok: Token, args_tree: Tree | None, ctx: Context, loc: Loc
    ) -> Stmt | Expr:
        name = str(name_tok)
        arg_trees: list[Tree] = [] if args_tree is None else list(args_tree.children)
        entity = ctx.lookup(name)
        if entity is None:
            raise UndeclaredIdentifier("'" + name + "' is not declared", loc.line, loc.col)
        if isinstance(entity, ImportedFunction):
            return self._intrinsic(entity, arg_trees, ctx, loc)
        callee: Expr
        if isinstance(entity, Function):
            callee = FunctionReference(entity, typ=entity.typ, loc=loc_of(name_tok))
        elif isinstance(entity.typ, FunctionType):
            callee = VariableReference(entity, typ=entity.typ, loc=loc_of(name_tok))
        else:
            raise NotCallable(
                "'" + name + "' of type " + type_name(entity.typ) + " is not callable",
                loc.line,
                loc.col,
            )
        ftype = callee.typ
        assert isinstance(ftype, FunctionType)
        self._check_arity(name, len(ftype.params), len(arg_trees), loc)
        args: list[Expr] = []
        for arg_tree, param in zip(arg_trees, ftype.params):
            arg = self.value_expression(arg_tree, ctx)
            self._check_convert(arg, param, arg.loc)
            if param != ANY:
                arg.typ = param
            args.append(arg)
        return FunctionCall(callee, args, typ=ftype.ret, loc=loc)

    def _check_arity(self, name: str, expected: int, got: int, loc: Loc) -> None:
        if expected != got:
            raise ArityMismatch(
                "'" + name + "' expects " + str(expected) + " argument(s), got " + str(got),
                loc.line,
                loc.col,
            )

    def _intrinsic(
        self, fn: ImportedFunction, arg_trees: list[Tree], ctx: Context, loc: Loc
    ) -> Stmt | Expr:
        assert isinstance(fn.typ, FunctionType)
        self._check_arity(fn.name, len(fn.typ.params), len(arg_trees), loc)
        match fn.intrinsic:
            case Intrinsic.EXSCRIBE:
                return ExscribeStatement(self.value_expression(arg_trees[0], ctx), loc=loc)
            case Intrinsic.TYPEOF:
                return TypeOf(self._described_type(arg_trees[0], ctx), loc=loc)
            case Intrinsic.APPLY:
                return self._apply(arg_trees, ctx, loc)
            case Intrinsic.SUPPLANT:
                parts = [self.value_expression(t, ctx) for t in arg_trees]
                for part in parts:
                    if not _is_text_or_any(part.typ):
                        raise TypeMismatch(
                            "supplant needs text, not " + type_name(part.typ),
                            part.loc.line,
                            part.loc.col,
                        )
                return Supplant(parts[0], parts[1], parts[2], typ=STRING, loc=loc)
            case _:
                assert_never(fn.intrinsic)

    def _described_type(self, tree: Tree, ctx: Context) -> Type:
        """typeof(f(x)) describes f itself; anything else describes its own type."""
        if tree.data != "call":
            return self.expression(tree, ctx).typ
        name_tok = tree.children[0]
        entity = ctx.lookup(str(name_tok))
        if entity is None:
            loc = loc_of(name_tok)
            raise UndeclaredIdentifier(
                "'" + str(name_tok) + "' is not declared", loc.line, loc.col
            )
        if not isinstance(entity.typ, FunctionType):
            loc = loc_of(name_tok)
            raise NotCallable("'" + str(name_tok) + "' is not callable", loc.line, loc.col)
        args_tree = tree.children[1]
        if args_tree is not None:
            # arguments are only resolved; the callee is described, not called
            for arg_tree in args_tree.children:
                self.expression(arg_tree, ctx)
        return entity.typ

    def _apply(self, arg_trees: list[Tree], ctx: Context, loc: Loc) -> Expr:
        function = self.value_expression(arg_trees[0], ctx)
        array = self.value_expression(arg_trees[1], ctx)
        ftype = function.typ
        if not isinstance(array.typ, ArrayType):
            raise NotAnArray(
                "apply needs an array, not " + type_name(array.typ), loc.line, loc.col
            )
        if ftype == ANY:
            return Apply(function, array, typ=ArrayType(ANY), loc=loc)
        if not isinstance(ftype, FunctionType) or len(ftype.params) != 1:
            raise TypeMismatch(
                "apply needs a one-parameter function, not " + type_name(ftype),
                loc.line,
                loc.col,
            )
        if not can_convert(array.typ.element, ftype.params[0]):
            raise TypeMismatch(
                "cannot apply " + type_name(ftype) + " to " + type_name(array.typ),
                loc.line,
                loc.col,
            )
        return Apply(function, array, typ=ArrayType(ftype.ret), loc=loc)

    # ============================================================
    # TYPES
    # ============================================================

    def resolve_type(self, tree: Tree) -> Type:
        match tree.data:
            case "named_type":
                tok = tree.children[0]
                t = lookup_type_name(str(tok))
                if t is None:
                    loc = loc_of(tok)
                    raise UnknownType("unknown type '" + str(tok) + "'", loc.line, loc.col)
                return t
            case "pointer_type":
                return PointerType(self.resolve_type(tree.children[-1]))
            case "optional_type":
                return OptionalType(self.resolve_type(tree.children[0]))
            case "array_type":
                return ArrayType(self.resolve_type(tree.children[0]))
            case "function_type":
                ret_tree = tree.children[-1]
                listed = [self.resolve_type(t) for t in tree.children[1:-1]]
                if ret_tree is not None:
                    return FunctionType(tuple(listed), self.resolve_type(ret_tree))
                if len(listed) != 1:
                    loc = loc_of(tree)
                    raise UnknownType(
                        "function type with parameters needs '-> R'", loc.line, loc.col
                    )
                return FunctionType((), listed[0])
            case _:
                raise NotImplementedError("type: " + tree.data)


def _static_elements(expr: Expr) -> list[Expr] | None:
    """Elements of an array whose length is fixed at compile time, else None."""
    match expr:
        case ArrayExpression(elements=elements):
            return elements
        case VariableReference(variable=variable):
            if variable.mutable or variable.initializer is None:
                return None
            return _static_elements(variable.initializer)
        case Subscript(base=base, index=index):
            outer = _static_elements(base)
            iv = static_value(index)
            if outer is None or not isinstance(iv, int) or isinstance(iv, bool):
                return None
            if iv < 0 or iv >= len(outer):
                return None
            return _static_elements(outer[iv])
        case _:
            return None


