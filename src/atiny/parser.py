"""Parser for the atiny language.

Transforms a token stream into a located AST. Expressions use precedence
climbing over binding powers; everything else is recursive descent. Atoms
(wildcards, literals, identifiers and parenthesized sequences) are parsed
by one routine shared by expressions, patterns and types.

The first syntax error aborts the parse with a ``ParseError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, NoReturn, TypeVar

from atiny.ast_nodes import (
    OPERATOR_NAMES,
    Abstraction,
    Annotation,
    Application,
    Arrow,
    AtomKind,
    Block,
    Boolean,
    Clause,
    Constructor,
    ConstructorPattern,
    Expr,
    ExprAtom,
    ExprField,
    ExprStatement,
    Field,
    FieldAccess,
    FnDecl,
    Forall,
    Identifier,
    IfLet,
    LetStatement,
    Located,
    Match,
    Number,
    Param,
    Pattern,
    PatternAtom,
    PatternKind,
    Product,
    Program,
    RecordCreation,
    Statement,
    Sum,
    TopLevel,
    Tuple,
    Type,
    TypeApplication,
    TypeAtom,
    TypeDecl,
    TypeKind,
    TypeVariable,
    Unit,
    Wildcard,
)
from atiny.errors import ErrorKind, ParseError, SyntaxCategory
from atiny.source import Span
from atiny.tokens import Token, TokenKind, describe

T = TypeVar("T")

# ── Binding powers for infix operators ──────────────────────────

# (left_bp, right_bp); left_bp < right_bp makes a level left-associative
_INFIX_BP: dict[TokenKind, tuple[int, int]] = {
    TokenKind.PLUS: (1, 2),
    TokenKind.MINUS: (1, 2),
    TokenKind.STAR: (3, 4),
    TokenKind.SLASH: (3, 4),
}

_ATOM_START = frozenset({
    TokenKind.UNDERSCORE,
    TokenKind.INTEGER_LIT,
    TokenKind.BOOLEAN_LIT,
    TokenKind.IDENTIFIER,
    TokenKind.TYPE_IDENTIFIER,
    TokenKind.LPAREN,
})

# Token kinds whose text is shown alongside their description in errors
_VALUED = frozenset({
    TokenKind.INTEGER_LIT,
    TokenKind.BOOLEAN_LIT,
    TokenKind.IDENTIFIER,
    TokenKind.TYPE_IDENTIFIER,
})

_U64_MAX = 2 ** 64 - 1


@dataclass(frozen=True)
class AtomFamily:
    """What the shared atom grammar needs to know about one AST family.

    ``element`` parses one full element of the family (used inside
    parentheses) and ``build`` turns an atom into the family's node.
    """

    category: SyntaxCategory
    element: Callable[[], Located]
    build: Callable[[AtomKind], object]
    booleans: bool = True


def _pattern_node(atom: AtomKind) -> PatternKind:
    # Uppercase names in pattern position are always constructors
    if isinstance(atom, Identifier) and atom.name[:1].isupper():
        return ConstructorPattern(atom.name, [])
    return PatternAtom(atom)


def _type_node(atom: AtomKind) -> TypeKind:
    if isinstance(atom, Identifier):
        return TypeVariable(atom.name)
    return TypeAtom(atom)


class Parser:
    """Parses a list of tokens into an atiny AST."""

    def __init__(self, tokens: list[Token], filename: str | None = None) -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename if filename is not None else tokens[-1].span.file
        self._prev_end = tokens[0].span.start
        self._category = SyntaxCategory.DECLARATION
        self._overflow_category: SyntaxCategory | None = None

        self._expr_family = AtomFamily(
            SyntaxCategory.EXPRESSION, self._parse_expr, ExprAtom,
        )
        self._pattern_family = AtomFamily(
            SyntaxCategory.PATTERN, self._parse_pattern, _pattern_node,
        )
        self._type_family = AtomFamily(
            SyntaxCategory.TYPE, self._parse_type, _type_node, booleans=False,
        )

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        self._prev_end = tok.span.end
        return tok

    def _expect(self, kind: TokenKind) -> Token:
        if self._at(kind):
            return self._advance()
        self._unexpected(describe(kind))

    def _expect_closing(self, kind: TokenKind, opener: Token) -> Token:
        """Consume the delimiter that closes ``opener``."""
        if self._at(kind):
            return self._advance()
        if self._at(TokenKind.EOF):
            self._fail(
                ErrorKind.UNTERMINATED_SEQUENCE,
                f"unclosed {describe(opener.kind)}: expected {describe(kind)}"
                f" before end of input",
                self._current().span,
            )
        self._unexpected(describe(kind))

    def _expect_end(self) -> None:
        if not self._at(TokenKind.EOF):
            self._unexpected("end of input")

    # ── Errors ───────────────────────────────────────────────────

    def _fail(self, kind: ErrorKind, message: str, span: Span) -> NoReturn:
        raise ParseError(kind, self._category, message, span)

    def _unexpected(self, expected: str) -> NoReturn:
        tok = self._current()
        if tok.kind in _VALUED:
            found = f"{describe(tok.kind)} {tok.value!r}"
        else:
            found = describe(tok.kind)
        self._fail(
            ErrorKind.UNEXPECTED_TOKEN, f"expected {expected}, found {found}", tok.span,
        )

    # ── Combinators ──────────────────────────────────────────────

    def _located(self, parse: Callable[[], T]) -> Located[T]:
        """Run ``parse`` and wrap its result with the byte range it consumed."""
        start = self._current().span.start
        data = parse()
        return Located(data, Span(self.filename, start, self._prev_end))

    def _within(self, category: SyntaxCategory, parse: Callable[[], T]) -> T:
        """Run ``parse`` with ``category`` reported by any error it raises."""
        outer = self._category
        self._category = category
        try:
            return parse()
        except RecursionError:
            # Keep the innermost category for the error raised after unwinding
            if self._overflow_category is None:
                self._overflow_category = category
            raise
        finally:
            self._category = outer

    def _nested(self, category: SyntaxCategory, parse: Callable[[], T]) -> T:
        """Run an entry point, turning interpreter stack exhaustion into a ParseError."""
        try:
            return parse()
        except RecursionError:
            self._category = self._overflow_category or category
            self._fail(
                ErrorKind.NESTING_TOO_DEEP,
                "input nests too deeply to parse",
                self._current().span,
            )

    def _span_from(self, start: int) -> Span:
        """Span from byte offset ``start`` to the end of the last consumed token."""
        return Span(self.filename, start, self._prev_end)

    # ── Entry points ─────────────────────────────────────────────

    def parse(self) -> Program:
        """Parse the entire token stream into a Program."""
        declarations: list[TopLevel] = []
        while not self._at(TokenKind.EOF):
            declarations.append(
                self._nested(SyntaxCategory.DECLARATION, self._parse_declaration),
            )
        end = self._current().span.end
        return Program(declarations, Span(self.filename, 0, end))

    def parse_expression(self) -> Expr:
        """Parse a token stream holding exactly one expression."""
        expr = self._nested(SyntaxCategory.EXPRESSION, self._parse_expr)
        self._within(SyntaxCategory.EXPRESSION, self._expect_end)
        return expr

    def parse_pattern(self) -> Pattern:
        """Parse a token stream holding exactly one pattern."""
        pattern = self._nested(SyntaxCategory.PATTERN, self._parse_pattern)
        self._within(SyntaxCategory.PATTERN, self._expect_end)
        return pattern

    def parse_type(self) -> Type:
        """Parse a token stream holding exactly one type."""
        typ = self._nested(SyntaxCategory.TYPE, self._parse_type)
        self._within(SyntaxCategory.TYPE, self._expect_end)
        return typ

    # ── Shared atom grammar ──────────────────────────────────────

    def _starts_atom(self, family: AtomFamily) -> bool:
        kind = self._current().kind
        if kind == TokenKind.BOOLEAN_LIT:
            return family.booleans
        return kind in _ATOM_START

    def _parse_atom(self, family: AtomFamily) -> Located:
        tok = self._current()
        if tok.kind == TokenKind.LPAREN:
            return self._parse_sequence(family)
        atom = self._parse_leaf(family)
        return Located(family.build(atom), tok.span)

    def _parse_leaf(self, family: AtomFamily) -> AtomKind:
        tok = self._current()

        if tok.kind == TokenKind.UNDERSCORE:
            self._advance()
            return Wildcard()

        if tok.kind == TokenKind.INTEGER_LIT:
            self._advance()
            return Number(self._number_value(tok))

        if tok.kind == TokenKind.BOOLEAN_LIT and family.booleans:
            self._advance()
            return Boolean(tok.value == "true")

        if tok.kind in (TokenKind.IDENTIFIER, TokenKind.TYPE_IDENTIFIER):
            self._advance()
            return Identifier(tok.value)

        self._unexpected(family.category.value)

    def _number_value(self, tok: Token) -> int:
        text = tok.value
        if text.isascii() and text.isdigit():
            value = int(text)
            if value <= _U64_MAX:
                return value
        self._fail(
            ErrorKind.MALFORMED_LITERAL,
            f"integer literal {text!r} is not an unsigned 64-bit number",
            tok.span,
        )

    def _parse_sequence(self, family: AtomFamily) -> Located:
        """Parse ``( e, ... )`` and collapse it to unit, the element, or a tuple."""
        opener = self._advance()  # (
        elements: list[Located] = []
        trailing_comma = False
        while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
            elements.append(family.element())
            trailing_comma = self._at(TokenKind.COMMA)
            if not trailing_comma:
                break
            self._advance()
        self._expect_closing(TokenKind.RPAREN, opener)

        if len(elements) == 1 and not trailing_comma:
            return elements[0]
        span = self._span_from(opener.span.start)
        if not elements:
            return Located(family.build(Unit()), span)
        return Located(family.build(Tuple(elements)), span)

    # ── Expressions ──────────────────────────────────────────────

    def _parse_expr(self) -> Expr:
        return self._within(SyntaxCategory.EXPRESSION, self._parse_annotation)

    def _parse_annotation(self) -> Expr:
        start = self._current().span.start
        expr = self._parse_binary(0)
        if self._at(TokenKind.COLON):
            self._advance()
            typ = self._parse_type()
            return Located(Annotation(expr, typ), self._span_from(start))
        return expr

    def _parse_binary(self, min_bp: int) -> Expr:
        start = self._current().span.start
        left = self._parse_application()

        while self._current().kind in _INFIX_BP:
            left_bp, right_bp = _INFIX_BP[self._current().kind]
            if left_bp < min_bp:
                break
            op_tok = self._advance()
            op = Located(ExprAtom(Identifier(OPERATOR_NAMES[op_tok.value])), op_tok.span)
            partial = Located(Application(op, left), self._span_from(start))
            right = self._parse_binary(right_bp)
            # `left op right` is the curried call `(op left) right`
            left = Located(Application(partial, right), self._span_from(start))

        return left

    def _parse_application(self) -> Expr:
        start = self._current().span.start
        callee = self._parse_postfix(self._parse_primary)
        while self._starts_atom(self._expr_family):
            argument = self._parse_postfix(lambda: self._parse_atom(self._expr_family))
            callee = Located(Application(callee, argument), self._span_from(start))
        return callee

    def _parse_postfix(self, parse_operand: Callable[[], Expr]) -> Expr:
        start = self._current().span.start
        expr = parse_operand()
        while True:
            if self._at(TokenKind.DOT):
                self._advance()
                field_tok = self._expect(TokenKind.IDENTIFIER)
                expr = Located(FieldAccess(expr, field_tok.value), self._span_from(start))
            elif self._at_record_body():
                expr = self._parse_record_creation(start, expr)
            else:
                return expr

    def _at_record_body(self) -> bool:
        # `{ name =` can only start a record; a block never starts that way
        return (self._at(TokenKind.LBRACE)
                and self._peek(1).kind == TokenKind.IDENTIFIER
                and self._peek(2).kind == TokenKind.ASSIGN)

    def _parse_record_creation(self, start: int, constructor: Expr) -> Expr:
        opener = self._advance()  # {
        fields: list[Located[ExprField]] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            fields.append(self._located(self._parse_expr_field))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        self._expect_closing(TokenKind.RBRACE, opener)
        return Located(RecordCreation(constructor, fields), self._span_from(start))

    def _parse_expr_field(self) -> ExprField:
        name_tok = self._expect(TokenKind.IDENTIFIER)
        self._expect(TokenKind.ASSIGN)
        return ExprField(name_tok.value, self._parse_expr())

    def _parse_primary(self) -> Expr:
        tok = self._current()

        if tok.kind == TokenKind.PIPE:
            return self._located(self._parse_lambda)
        if tok.kind == TokenKind.IF:
            return self._located(self._parse_if_let)
        if tok.kind == TokenKind.MATCH:
            return self._located(self._parse_match)
        if tok.kind == TokenKind.LBRACE:
            return self._parse_block()
        if self._starts_atom(self._expr_family):
            return self._parse_atom(self._expr_family)

        self._unexpected("expression")

    def _parse_lambda(self) -> Abstraction:
        self._advance()  # |
        param_tok = self._expect(TokenKind.IDENTIFIER)
        self._expect(TokenKind.PIPE)
        return Abstraction(param_tok.value, self._parse_expr())

    def _parse_if_let(self) -> IfLet:
        self._advance()  # 'if'
        self._expect(TokenKind.LET)
        pattern = self._parse_pattern()
        self._expect(TokenKind.ASSIGN)
        scrutinee = self._parse_expr()
        then_block = self._parse_block()
        self._expect(TokenKind.ELSE)
        else_block = self._parse_block()
        return IfLet(pattern, scrutinee, then_block, else_block)

    def _parse_match(self) -> Match:
        self._advance()  # 'match'
        scrutinee = self._parse_expr()
        opener = self._expect(TokenKind.LBRACE)
        clauses: list[Located[Clause]] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            clauses.append(self._located(self._parse_clause))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        self._expect_closing(TokenKind.RBRACE, opener)
        return Match(scrutinee, clauses)

    def _parse_clause(self) -> Clause:
        pattern = self._parse_pattern()
        self._expect(TokenKind.FAT_ARROW)
        return Clause(pattern, self._parse_expr())

    # ── Blocks ───────────────────────────────────────────────────

    def _parse_block(self) -> Expr:
        return self._within(
            SyntaxCategory.EXPRESSION, lambda: self._located(self._parse_block_body),
        )

    def _parse_block_body(self) -> Block:
        opener = self._expect(TokenKind.LBRACE)
        if self._at(TokenKind.EOF):
            self._expect_closing(TokenKind.RBRACE, opener)

        # `{}` still yields a value: the unit expression
        if self._at(TokenKind.RBRACE):
            self._advance()
            unit = Located(ExprAtom(Unit()), self._span_from(opener.span.start))
            return Block([Located(ExprStatement(unit), unit.span)])

        statements: list[Statement] = []
        while True:
            statements.append(self._located(self._parse_statement))
            if not self._at(TokenKind.SEMICOLON):
                break
            self._advance()
            if self._at(TokenKind.RBRACE) or self._at(TokenKind.EOF):
                break
        self._expect_closing(TokenKind.RBRACE, opener)
        return Block(statements)

    def _parse_statement(self) -> LetStatement | ExprStatement:
        if self._at(TokenKind.LET):
            self._advance()
            pattern = self._parse_pattern()
            self._expect(TokenKind.ASSIGN)
            return LetStatement(pattern, self._parse_expr())
        return ExprStatement(self._parse_expr())

    # ── Patterns ─────────────────────────────────────────────────

    def _parse_pattern(self) -> Pattern:
        return self._within(SyntaxCategory.PATTERN, self._parse_constructor_pattern)

    def _parse_constructor_pattern(self) -> Pattern:
        tok = self._current()
        if tok.kind != TokenKind.TYPE_IDENTIFIER:
            return self._parse_atom(self._pattern_family)

        self._advance()
        args: list[Pattern] = []
        while self._starts_atom(self._pattern_family):
            args.append(self._parse_atom(self._pattern_family))
        return Located(ConstructorPattern(tok.value, args), self._span_from(tok.span.start))

    # ── Types ────────────────────────────────────────────────────

    def _parse_type(self) -> Type:
        return self._within(SyntaxCategory.TYPE, self._parse_arrow)

    def _parse_arrow(self) -> Type:
        # Collect `A -> B -> ...` left to right, then nest to the right
        domains: list[tuple[int, Type]] = []
        while True:
            if self._at(TokenKind.FORALL):
                codomain = self._located(self._parse_forall)
                break
            start = self._current().span.start
            typ = self._parse_type_application()
            if not self._at(TokenKind.ARROW):
                codomain = typ
                break
            self._advance()
            domains.append((start, typ))

        for start, domain in reversed(domains):
            codomain = Located(Arrow(domain, codomain), self._span_from(start))
        return codomain

    def _parse_forall(self) -> Forall:
        self._advance()  # 'forall'
        args: list[str] = []
        while self._at(TokenKind.IDENTIFIER):
            args.append(self._advance().value)
        self._expect(TokenKind.DOT)
        return Forall(args, self._parse_type())

    def _parse_type_application(self) -> Type:
        tok = self._current()
        if tok.kind != TokenKind.TYPE_IDENTIFIER:
            return self._parse_atomic_type()

        self._advance()
        args: list[Type] = []
        while self._starts_atom(self._type_family):
            args.append(self._parse_atomic_type())
        if not args:
            return Located(TypeVariable(tok.value), tok.span)
        return Located(TypeApplication(tok.value, args), self._span_from(tok.span.start))

    def _parse_atomic_type(self) -> Type:
        return self._within(
            SyntaxCategory.TYPE, lambda: self._parse_atom(self._type_family),
        )

    # ── Declarations ─────────────────────────────────────────────

    def _parse_declaration(self) -> TopLevel:
        return self._within(SyntaxCategory.DECLARATION, self._parse_top_level)

    def _parse_top_level(self) -> TopLevel:
        tok = self._current()
        if tok.kind == TokenKind.FN:
            return self._located(self._parse_fn_decl)
        if tok.kind == TokenKind.TYPE:
            return self._located(self._parse_type_decl)
        self._unexpected("'fn' or 'type'")

    def _parse_fn_decl(self) -> FnDecl:
        self._advance()  # 'fn'
        name_tok = self._expect(TokenKind.IDENTIFIER)

        params: list[Located[Param]] = []
        while self._at(TokenKind.LPAREN):
            params.append(self._located(self._parse_param))

        return_type = None
        if self._at(TokenKind.COLON):
            self._advance()
            return_type = self._parse_type()

        body = self._parse_block()
        return FnDecl(name_tok.value, params, return_type, body)

    def _parse_param(self) -> Param:
        opener = self._advance()  # (
        pattern = self._parse_pattern()
        self._expect(TokenKind.COLON)
        typ = self._parse_type()
        self._expect_closing(TokenKind.RPAREN, opener)
        return Param(pattern, typ)

    def _parse_type_decl(self) -> TypeDecl:
        self._advance()  # 'type'
        name_tok = self._expect(TokenKind.TYPE_IDENTIFIER)

        params: list[str] = []
        while self._at(TokenKind.IDENTIFIER):
            params.append(self._advance().value)
        self._expect(TokenKind.ASSIGN)

        if self._at(TokenKind.PIPE):
            body: Sum | Product = self._parse_sum()
        elif self._at(TokenKind.LBRACE):
            body = self._parse_product()
        else:
            self._fail(
                ErrorKind.INCOMPLETE_DECLARATION,
                f"type {name_tok.value} needs '|' constructors or a '{{' field list"
                f" after '='",
                self._current().span,
            )
        return TypeDecl(name_tok.value, params, body)

    def _parse_sum(self) -> Sum:
        constructors: list[Located[Constructor]] = []
        while self._at(TokenKind.PIPE):
            self._advance()
            constructors.append(self._located(self._parse_constructor))
        return Sum(constructors)

    def _parse_constructor(self) -> Constructor:
        name_tok = self._expect(TokenKind.TYPE_IDENTIFIER)
        args: list[Type] = []
        while self._starts_atom(self._type_family):
            args.append(self._parse_atomic_type())
        return Constructor(name_tok.value, args)

    def _parse_product(self) -> Product:
        opener = self._advance()  # {
        fields: list[Located[Field]] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            fields.append(self._located(self._parse_field))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        self._expect_closing(TokenKind.RBRACE, opener)
        return Product(fields)

    def _parse_field(self) -> Field:
        name_tok = self._expect(TokenKind.IDENTIFIER)
        self._expect(TokenKind.COLON)
        return Field(name_tok.value, self._parse_type())
