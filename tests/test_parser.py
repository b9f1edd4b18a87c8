"""Tests for the atiny parser."""

from __future__ import annotations

import dataclasses

import pytest

from atiny import parse_expression, parse_pattern, parse_program, parse_type
from atiny.ast_nodes import (
    Abstraction,
    Annotation,
    Application,
    Arrow,
    Block,
    Boolean,
    ConstructorPattern,
    ExprAtom,
    ExprStatement,
    FieldAccess,
    FnDecl,
    Forall,
    Identifier,
    IfLet,
    LetStatement,
    Located,
    Match,
    Number,
    PatternAtom,
    Product,
    RecordCreation,
    Sum,
    Tuple,
    TypeApplication,
    TypeAtom,
    TypeDecl,
    TypeVariable,
    Unit,
    Wildcard,
)
from atiny.errors import CompileError, ErrorKind, ParseError, SyntaxCategory
from atiny.lexer import Lexer
from atiny.parser import Parser
from atiny.source import Span


def parse(source: str):
    """Helper: lex and parse source, return the Program."""
    return parse_program(source, "test.at")


def parse_decl(source: str):
    """Helper: parse and return the first declaration's payload."""
    program = parse(source)
    assert len(program.declarations) >= 1
    return program.declarations[0].data


def expr(source: str):
    return parse_expression(source, "test.at")


def body_expr(source: str):
    """Helper: the single expression in the body of the first function."""
    fn = parse_decl(source)
    assert isinstance(fn, FnDecl)
    [stmt] = fn.body.data.statements
    assert isinstance(stmt.data, ExprStatement)
    return stmt.data.expr


def shape(value):
    """Structure of an AST value with every span removed."""
    if isinstance(value, Located):
        return shape(value.data)
    if isinstance(value, list):
        return [shape(v) for v in value]
    if dataclasses.is_dataclass(value):
        return (type(value).__name__,
                *(shape(getattr(value, f.name)) for f in dataclasses.fields(value)))
    return value


def infix(node):
    """Helper: split ``op left right`` into (op name, left, right)."""
    assert isinstance(node.data, Application)
    partial = node.data.callee
    assert isinstance(partial.data, Application)
    op = partial.data.callee.data
    assert isinstance(op, ExprAtom)
    return op.atom.name, partial.data.argument, node.data.argument


def located_children(value):
    """Yield the Located nodes directly beneath ``value``."""
    if isinstance(value, Located):
        yield value
    elif isinstance(value, list):
        for item in value:
            yield from located_children(item)
    elif dataclasses.is_dataclass(value) and not isinstance(value, Span):
        for f in dataclasses.fields(value):
            yield from located_children(getattr(value, f.name))


def assert_nested(node: Located) -> int:
    """Assert every child range lies within its parent's; return node count."""
    count = 1
    for child in located_children(node.data):
        assert node.span.contains(child.span), (
            f"{type(child.data).__name__} {child.span} escapes "
            f"{type(node.data).__name__} {node.span}"
        )
        count += assert_nested(child)
    return count


def parse_error(source: str) -> ParseError:
    with pytest.raises(ParseError) as exc_info:
        parse(source)
    return exc_info.value


# ── Atoms ─────────────────────────────────────────────────────────


def atom_shape(node: Located):
    """Family-independent shape of a parsed atom."""
    data = node.data
    if isinstance(data, (ExprAtom, PatternAtom, TypeAtom)):
        atom = data.atom
    elif isinstance(data, (TypeVariable, ConstructorPattern)):
        assert not getattr(data, "args", [])
        atom = Identifier(data.name)
    else:
        raise AssertionError(f"not an atom: {data!r}")
    if isinstance(atom, Tuple):
        return ("Tuple", [atom_shape(e) for e in atom.elements])
    return shape(atom)


class TestAtoms:
    @pytest.mark.parametrize("source", [
        "_", "42", "x", "Foo", "()", "(a, _)", "(1,)", "((x, 2), ())",
    ])
    def test_same_shape_in_every_family(self, source):
        as_expr = parse_expression(source)
        as_pattern = parse_pattern(source)
        as_type = parse_type(source)
        assert atom_shape(as_expr) == atom_shape(as_pattern) == atom_shape(as_type)
        assert as_expr.span == as_pattern.span == as_type.span

    def test_number(self):
        assert expr("42").data == ExprAtom(Number(42))

    def test_largest_number(self):
        assert expr("18446744073709551615").data == ExprAtom(Number(2 ** 64 - 1))

    def test_booleans_in_expressions(self):
        assert expr("true").data == ExprAtom(Boolean(True))
        assert expr("false").data == ExprAtom(Boolean(False))

    def test_booleans_in_patterns(self):
        assert parse_pattern("true").data == PatternAtom(Boolean(True))

    def test_wildcard_pattern(self):
        assert parse_pattern("_").data == PatternAtom(Wildcard())

    def test_uppercase_pattern_is_nullary_constructor(self):
        assert parse_pattern("None").data == ConstructorPattern("None", [])

    def test_identifier_type_is_variable(self):
        assert parse_type("a").data == TypeVariable("a")


class TestSequences:
    def test_empty_parens_are_unit(self):
        node = expr("()")
        assert node.data == ExprAtom(Unit())
        assert (node.span.start, node.span.end) == (0, 2)

    def test_single_element_collapses(self):
        node = expr("(x)")
        assert node.data == ExprAtom(Identifier("x"))
        assert (node.span.start, node.span.end) == (1, 2)

    def test_trailing_comma_makes_one_tuple(self):
        node = expr("(x,)")
        assert isinstance(node.data.atom, Tuple)
        assert shape(node.data.atom.elements) == [("ExprAtom", ("Identifier", "x"))]

    def test_pair(self):
        node = expr("(x, y)")
        assert isinstance(node.data.atom, Tuple)
        assert len(node.data.atom.elements) == 2
        assert (node.span.start, node.span.end) == (0, 6)

    def test_tuple_elements_are_full_expressions(self):
        node = expr("(f x, 1 + 2)")
        first, second = node.data.atom.elements
        assert isinstance(first.data, Application)
        assert infix(second)[0] == "add"

    def test_nested_parens(self):
        assert shape(expr("((x))")) == shape(expr("x"))


# ── Expressions ───────────────────────────────────────────────────


class TestOperators:
    def test_subtraction_is_left_associative(self):
        node = expr("1 - 2 - 3")
        assert shape(node) == shape(expr("(1 - 2) - 3"))
        assert shape(node) != shape(expr("1 - (2 - 3)"))

    def test_operators_lower_to_curried_calls(self):
        op, left, right = infix(expr("1 - 2 - 3"))
        assert op == "sub"
        assert right.data == ExprAtom(Number(3))
        inner_op, inner_left, inner_right = infix(left)
        assert inner_op == "sub"
        assert inner_left.data == ExprAtom(Number(1))
        assert inner_right.data == ExprAtom(Number(2))

    def test_multiplication_binds_tighter(self):
        op, left, right = infix(expr("1 + 2 * 3"))
        assert op == "add"
        assert left.data == ExprAtom(Number(1))
        assert infix(right)[0] == "mul"

    def test_division_left_associative(self):
        assert shape(expr("a / b * c")) == shape(expr("(a / b) * c"))

    def test_application_binds_tighter_than_operators(self):
        op, left, right = infix(expr("f x + g y"))
        assert op == "add"
        assert isinstance(left.data, Application)
        assert isinstance(right.data, Application)

    def test_infix_spans(self):
        node = expr("1 - 2 - 3")
        assert (node.span.start, node.span.end) == (0, 9)
        _, left, _ = infix(node)
        assert (left.span.start, left.span.end) == (0, 5)

    def test_operator_atom_uses_operator_span(self):
        node = expr("a * b")
        op = node.data.callee.data.callee
        assert op.data == ExprAtom(Identifier("mul"))
        assert (op.span.start, op.span.end) == (2, 3)


class TestApplication:
    def test_left_associative(self):
        node = expr("f x y")
        assert isinstance(node.data, Application)
        assert node.data.argument.data == ExprAtom(Identifier("y"))
        inner = node.data.callee
        assert inner.data.callee.data == ExprAtom(Identifier("f"))
        assert inner.data.argument.data == ExprAtom(Identifier("x"))

    def test_parenthesized_argument_span(self):
        node = expr("f (x)")
        assert (node.span.start, node.span.end) == (0, 5)
        assert (node.data.argument.span.start, node.data.argument.span.end) == (3, 4)

    def test_field_access_argument(self):
        node = expr("f x.y")
        argument = node.data.argument.data
        assert isinstance(argument, FieldAccess)
        assert argument.field == "y"
        assert argument.receiver.data == ExprAtom(Identifier("x"))

    def test_record_argument(self):
        node = expr("f Pair { fst = 1 }")
        assert isinstance(node.data.argument.data, RecordCreation)

    def test_application_as_match_scrutinee(self):
        node = expr("match f x { y => 0 }")
        assert isinstance(node.data, Match)
        assert isinstance(node.data.scrutinee.data, Application)
        assert node.data.clauses[0].data.pattern.data == PatternAtom(Identifier("y"))


class TestPostfix:
    def test_chained_field_access(self):
        node = expr("p.fst.snd")
        assert isinstance(node.data, FieldAccess)
        assert node.data.field == "snd"
        assert node.data.receiver.data.field == "fst"
        assert (node.span.start, node.span.end) == (0, 9)

    def test_record_creation(self):
        node = expr("Pair { fst = 1, snd = x }")
        assert isinstance(node.data, RecordCreation)
        assert node.data.constructor.data == ExprAtom(Identifier("Pair"))
        names = [f.data.name for f in node.data.fields]
        assert names == ["fst", "snd"]
        assert node.data.fields[1].data.expr.data == ExprAtom(Identifier("x"))

    def test_record_trailing_comma(self):
        node = expr("Pair { fst = 1, }")
        assert len(node.data.fields) == 1

    def test_field_of_record(self):
        node = expr("Pair { fst = 1 }.fst")
        assert isinstance(node.data, FieldAccess)
        assert isinstance(node.data.receiver.data, RecordCreation)


class TestLambdaAndAnnotation:
    def test_lambda(self):
        node = expr("|x| x + 1")
        assert isinstance(node.data, Abstraction)
        assert node.data.param == "x"
        assert infix(node.data.body)[0] == "add"

    def test_lambda_application(self):
        node = expr("(|x| x) 1")
        assert isinstance(node.data, Application)
        assert isinstance(node.data.callee.data, Abstraction)

    def test_annotation(self):
        node = expr("x : Int")
        assert isinstance(node.data, Annotation)
        assert node.data.expr.data == ExprAtom(Identifier("x"))
        assert node.data.type.data == TypeVariable("Int")
        assert (node.span.start, node.span.end) == (0, 7)

    def test_annotation_is_lowest(self):
        node = expr("f x + 1 : Int -> Int")
        assert isinstance(node.data, Annotation)
        assert infix(node.data.expr)[0] == "add"
        assert isinstance(node.data.type.data, Arrow)

    def test_annotation_does_not_chain(self):
        with pytest.raises(ParseError) as exc_info:
            expr("x : A : B")
        assert exc_info.value.offset == 6
        assert exc_info.value.kind == ErrorKind.UNEXPECTED_TOKEN


class TestControlFlow:
    def test_match_clauses(self):
        node = body_expr("fn f (x : Option) { match x { Some y => y, None => 0 } }")
        assert isinstance(node.data, Match)
        assert node.data.scrutinee.data == ExprAtom(Identifier("x"))
        first, second = node.data.clauses
        assert first.data.pattern.data == ConstructorPattern(
            "Some", [first.data.pattern.data.args[0]],
        )
        assert first.data.pattern.data.args[0].data == PatternAtom(Identifier("y"))
        assert second.data.pattern.data == ConstructorPattern("None", [])
        assert second.data.expr.data == ExprAtom(Number(0))

    def test_match_trailing_comma(self):
        node = expr("match x { _ => 1, }")
        assert len(node.data.clauses) == 1

    def test_empty_match(self):
        assert expr("match x {}").data.clauses == []

    def test_nested_constructor_pattern(self):
        node = expr("match x { Cons (Pair a _) rest => a }")
        pattern = node.data.clauses[0].data.pattern.data
        assert pattern.name == "Cons"
        inner, rest = pattern.args
        assert inner.data.name == "Pair"
        assert shape(inner.data.args) == [
            ("PatternAtom", ("Identifier", "a")),
            ("PatternAtom", ("Wildcard",)),
        ]
        assert rest.data == PatternAtom(Identifier("rest"))

    def test_if_let(self):
        node = expr("if let Some y = x { y } else { 0 }")
        assert isinstance(node.data, IfLet)
        assert node.data.pattern.data.name == "Some"
        assert node.data.scrutinee.data == ExprAtom(Identifier("x"))
        assert isinstance(node.data.then_block.data, Block)
        assert isinstance(node.data.else_block.data, Block)


class TestBlocks:
    def test_empty_block_is_unit_statement(self):
        fn = parse_decl("fn main {}")
        block = fn.body
        [stmt] = block.data.statements
        assert isinstance(stmt.data, ExprStatement)
        assert stmt.data.expr.data == ExprAtom(Unit())
        assert (block.span.start, block.span.end) == (8, 10)
        assert stmt.data.expr.span == block.span

    def test_statements_in_order(self):
        node = expr("{ let x = 1; let y = 2; x + y }")
        stmts = node.data.statements
        assert len(stmts) == 3
        assert isinstance(stmts[0].data, LetStatement)
        assert stmts[0].data.pattern.data == PatternAtom(Identifier("x"))
        assert stmts[1].data.value.data == ExprAtom(Number(2))
        assert isinstance(stmts[2].data, ExprStatement)

    def test_trailing_semicolon(self):
        node = expr("{ x; }")
        assert len(node.data.statements) == 1

    def test_let_with_constructor_pattern(self):
        node = expr("{ let Pair a b = p; a }")
        pattern = node.data.statements[0].data.pattern.data
        assert pattern.name == "Pair"
        assert len(pattern.args) == 2


# ── Types ─────────────────────────────────────────────────────────


class TestTypes:
    def test_arrow_is_right_associative(self):
        node = parse_type("A -> B -> C")
        assert shape(node) == shape(parse_type("A -> (B -> C)"))
        assert shape(node) != shape(parse_type("(A -> B) -> C"))
        assert node.data.domain.data == TypeVariable("A")
        assert isinstance(node.data.codomain.data, Arrow)

    def test_type_application(self):
        node = parse_type("Map k (List v)")
        assert isinstance(node.data, TypeApplication)
        assert node.data.name == "Map"
        key, value = node.data.args
        assert key.data == TypeVariable("k")
        assert value.data.name == "List"

    def test_application_in_arrow(self):
        node = parse_type("Option a -> a")
        assert isinstance(node.data.domain.data, TypeApplication)
        assert node.data.codomain.data == TypeVariable("a")

    def test_forall(self):
        node = parse_type("forall a b. a -> b")
        assert isinstance(node.data, Forall)
        assert node.data.args == ["a", "b"]
        assert isinstance(node.data.body.data, Arrow)

    def test_unit_and_tuple_types(self):
        assert parse_type("()").data == TypeAtom(Unit())
        node = parse_type("(Int, a)")
        assert shape(node.data.atom.elements) == [
            ("TypeVariable", "Int"), ("TypeVariable", "a"),
        ]


# ── Declarations ──────────────────────────────────────────────────


class TestDeclarations:
    def test_function(self):
        fn = parse_decl("fn add (x : Int) (y : Int) : Int { x + y }")
        assert isinstance(fn, FnDecl)
        assert fn.name == "add"
        assert [p.data.pattern.data.atom.name for p in fn.params] == ["x", "y"]
        assert fn.return_type.data == TypeVariable("Int")
        assert isinstance(fn.body.data, Block)

    def test_function_without_params_or_return(self):
        fn = parse_decl("fn main { 1 }")
        assert fn.params == []
        assert fn.return_type is None

    def test_param_with_constructor_pattern(self):
        fn = parse_decl("fn fst (Pair a _ : Pair) { a }")
        assert fn.params[0].data.pattern.data.name == "Pair"

    def test_product_type(self):
        td = parse_decl("type Pair = { fst : A, snd : B }")
        assert isinstance(td, TypeDecl)
        assert td.name == "Pair"
        assert td.params == []
        assert isinstance(td.body, Product)
        assert [(f.data.name, f.data.type.data) for f in td.body.fields] == [
            ("fst", TypeVariable("A")),
            ("snd", TypeVariable("B")),
        ]

    def test_empty_product(self):
        td = parse_decl("type Empty = {}")
        assert td.body == Product([])

    def test_sum_type(self):
        td = parse_decl("type Option a = | Some a | None")
        assert td.params == ["a"]
        assert isinstance(td.body, Sum)
        some, none = td.body.constructors
        assert some.data.name == "Some"
        assert some.data.args[0].data == TypeVariable("a")
        assert none.data.name == "None"
        assert none.data.args == []

    def test_constructor_arguments_are_atomic(self):
        td = parse_decl("type List a = | Cons a (List a) | Nil")
        cons = td.body.constructors[0].data
        assert len(cons.args) == 2
        assert isinstance(cons.args[1].data, TypeApplication)

    def test_declaration_order(self):
        program = parse("type T = | A\nfn f { 1 }\nfn g { 2 }")
        names = [d.data.name for d in program.declarations]
        assert names == ["T", "f", "g"]


class TestProgram:
    def test_empty_program(self):
        program = parse("")
        assert program.declarations == []
        assert (program.span.start, program.span.end) == (0, 0)

    def test_program_span_covers_input(self):
        source = "fn main { 1 }\n\n"
        program = parse(source)
        assert (program.span.start, program.span.end) == (0, len(source))

    def test_comments_ignored(self):
        program = parse("// header\nfn main { 1 } // trailing\n")
        assert len(program.declarations) == 1

    def test_parser_takes_filename_from_tokens(self):
        tokens = Lexer("fn main { 1 }", "demo.at").lex()
        program = Parser(tokens).parse()
        assert program.declarations[0].span.file == "demo.at"

    def test_child_ranges_nest(self):
        source = (
            "type Option a = | Some a | None\n"
            "type Pair a b = { fst : a, snd : b }\n"
            "fn swap (Pair x y : Pair a b) : forall c. Pair b a -> c {\n"
            "    let p = Pair { fst = y, snd = (x, ()) };\n"
            "    let f = |v| v.fst * (2 - v.snd) / 3;\n"
            "    match f p { Some (q, _) => q : Int, None => if let _ = p { {} } else { 0 } }\n"
            "}\n"
        )
        program = parse(source)
        total = 0
        for decl in program.declarations:
            assert program.span.contains(decl.span)
            total += assert_nested(decl)
        assert total > 50


# ── Errors ────────────────────────────────────────────────────────


class TestErrors:
    def test_missing_param_type(self):
        err = parse_error("fn f ( x : ) { x }")
        assert err.kind == ErrorKind.UNEXPECTED_TOKEN
        assert err.category == SyntaxCategory.TYPE
        assert err.offset == 11
        assert "expected type" in err.diagnostics[0].message

    def test_error_is_a_compile_error(self):
        err = parse_error("fn f ( x : ) { x }")
        assert isinstance(err, CompileError)
        [diag] = err.diagnostics
        assert diag.code == "E200"
        assert diag.notes == ["while parsing type"]

    def test_unclosed_tuple(self):
        with pytest.raises(ParseError) as exc_info:
            expr("(1, 2")
        err = exc_info.value
        assert err.kind == ErrorKind.UNTERMINATED_SEQUENCE
        assert err.category == SyntaxCategory.EXPRESSION
        assert err.offset == 5

    def test_unclosed_block(self):
        err = parse_error("fn f { 1")
        assert err.kind == ErrorKind.UNTERMINATED_SEQUENCE
        assert err.category == SyntaxCategory.EXPRESSION

    def test_block_opened_at_end_of_input(self):
        err = parse_error("fn main {")
        assert err.kind == ErrorKind.UNTERMINATED_SEQUENCE
        assert err.category == SyntaxCategory.EXPRESSION
        assert err.offset == 9
        assert err.diagnostics[0].code == "E201"

    def test_unclosed_param(self):
        err = parse_error("fn f (x : Int { x }")
        assert err.kind == ErrorKind.UNEXPECTED_TOKEN
        assert err.category == SyntaxCategory.DECLARATION
        assert err.offset == 14

    def test_number_too_large(self):
        with pytest.raises(ParseError) as exc_info:
            expr("18446744073709551616")
        err = exc_info.value
        assert err.kind == ErrorKind.MALFORMED_LITERAL
        assert err.diagnostics[0].code == "E202"

    def test_type_without_body(self):
        err = parse_error("type T = x")
        assert err.kind == ErrorKind.INCOMPLETE_DECLARATION
        assert err.category == SyntaxCategory.DECLARATION
        assert err.offset == 9

    def test_junk_at_top_level(self):
        err = parse_error("let x = 1")
        assert err.kind == ErrorKind.UNEXPECTED_TOKEN
        assert err.category == SyntaxCategory.DECLARATION
        assert err.offset == 0

    def test_boolean_is_not_a_type(self):
        err = parse_error("fn f (x : true) { x }")
        assert err.category == SyntaxCategory.TYPE
        assert err.offset == 10

    def test_bad_pattern(self):
        with pytest.raises(ParseError) as exc_info:
            expr("match x { + => 1 }")
        assert exc_info.value.category == SyntaxCategory.PATTERN
        assert exc_info.value.offset == 10

    def test_trailing_input_after_expression(self):
        with pytest.raises(ParseError) as exc_info:
            expr("x )")
        assert exc_info.value.offset == 2
        assert "expected end of input" in exc_info.value.diagnostics[0].message

    def test_lambda_is_not_an_argument(self):
        with pytest.raises(ParseError) as exc_info:
            expr("f |x| x")
        assert exc_info.value.offset == 2

    def test_lexer_errors_are_not_parse_errors(self):
        with pytest.raises(CompileError) as exc_info:
            parse("fn main { 1 @ 2 }")
        assert not isinstance(exc_info.value, ParseError)
        assert exc_info.value.diagnostics[0].code == "E100"


# ── Nesting depth ─────────────────────────────────────────────────


class TestNesting:
    def test_moderate_nesting(self):
        node = expr("(" * 30 + "1" + ")" * 30)
        assert node.data == ExprAtom(Number(1))

    def test_long_arrow_chain(self):
        source = " -> ".join(["A"] * 2000)
        node = parse_type(source)
        assert node.span == Span("<stdin>", 0, len(source))
        arrows = 0
        while isinstance(node.data, Arrow):
            assert node.data.domain.data == TypeVariable("A")
            node = node.data.codomain
            arrows += 1
        assert arrows == 1999
        assert node.data == TypeVariable("A")

    def test_deep_expression_is_a_parse_error(self):
        depth = 5000
        err = parse_error("fn f { " + "(" * depth + "1" + ")" * depth + " }")
        assert err.kind == ErrorKind.NESTING_TOO_DEEP
        assert err.category == SyntaxCategory.EXPRESSION
        assert err.diagnostics[0].code == "E204"

    def test_deep_type_is_a_parse_error(self):
        depth = 5000
        with pytest.raises(ParseError) as exc_info:
            parse_type("(" * depth + "A" + ")" * depth)
        assert exc_info.value.kind == ErrorKind.NESTING_TOO_DEEP
        assert exc_info.value.category == SyntaxCategory.TYPE
