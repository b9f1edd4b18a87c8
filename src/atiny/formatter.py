"""AST-walking pretty-printer for atiny source code.

Produces canonical formatting for .at files. Operator applications built
from infix syntax (``add``, ``sub``, ``mul``, ``div`` applied to two
arguments) are printed back as infix, and parentheses are inserted only
where re-parsing would otherwise group differently.

Limitation: ``//`` comments are discarded by the lexer and so are not
preserved.
"""

from __future__ import annotations

from atiny.ast_nodes import (
    OPERATOR_NAMES,
    Abstraction,
    Annotation,
    Application,
    Arrow,
    AtomKind,
    Block,
    Boolean,
    ConstructorPattern,
    Expr,
    ExprAtom,
    ExprStatement,
    FieldAccess,
    FnDecl,
    Forall,
    Identifier,
    IfLet,
    LetStatement,
    Match,
    Number,
    Pattern,
    PatternAtom,
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
    TypeVariable,
    Unit,
    Wildcard,
)

_SYMBOLS: dict[str, str] = {name: symbol for symbol, name in OPERATOR_NAMES.items()}

# Binding strength of each printed form (higher binds tighter)
_TOP = 0
_ADDITIVE = 1
_MULTIPLICATIVE = 2
_APPLICATION = 3
_PRIMARY = 4

_PRECEDENCE: dict[str, int] = {
    "add": _ADDITIVE, "sub": _ADDITIVE,
    "mul": _MULTIPLICATIVE, "div": _MULTIPLICATIVE,
}

# Type contexts
_TYPE_TOP = 0
_TYPE_DOMAIN = 1
_TYPE_ARGUMENT = 2


def _as_infix(expr: Expr) -> tuple[str, Expr, Expr] | None:
    """Return (operator, left, right) if ``expr`` is ``op left right``."""
    node = expr.data
    if not isinstance(node, Application) or not isinstance(node.callee.data, Application):
        return None
    op = node.callee.data.callee.data
    if (isinstance(op, ExprAtom) and isinstance(op.atom, Identifier)
            and op.atom.name in _PRECEDENCE):
        return op.atom.name, node.callee.data.argument, node.argument
    return None


def _is_argument(expr: Expr) -> bool:
    """Whether ``expr`` can be printed bare in argument position."""
    node = expr.data
    if isinstance(node, ExprAtom):
        return True
    if isinstance(node, FieldAccess):
        return _is_argument(node.receiver)
    if isinstance(node, RecordCreation):
        return _is_argument(node.constructor)
    return False


class AtinyFormatter:
    """Format a parsed atiny Program back to canonical source text."""

    def __init__(self, indent: int = 4) -> None:
        self.indent_width = indent

    # ── Public API ─────────────────────────────────────────────

    def format(self, program: Program) -> str:
        """Format a program to canonical source text."""
        parts = [self._format_declaration(decl) for decl in program.declarations]
        if not parts:
            return ""
        return "\n\n".join(parts) + "\n"

    def format_expr(self, expr: Expr) -> str:
        return self._expr(expr, _TOP)

    def format_pattern(self, pattern: Pattern) -> str:
        return self._pattern(pattern, nested=False)

    def format_type(self, typ: Type) -> str:
        return self._type(typ, _TYPE_TOP)

    def _indent(self, text: str) -> str:
        prefix = " " * self.indent_width
        return "\n".join(prefix + line if line else line for line in text.split("\n"))

    # ── Declarations ───────────────────────────────────────────

    def _format_declaration(self, decl: TopLevel) -> str:
        if isinstance(decl.data, FnDecl):
            return self._format_fn_decl(decl.data)
        return self._format_type_decl(decl.data)

    def _format_fn_decl(self, fd: FnDecl) -> str:
        sig = f"fn {fd.name}"
        for param in fd.params:
            sig += (f" ({self.format_pattern(param.data.pattern)}"
                    f" : {self.format_type(param.data.type)})")
        if fd.return_type is not None:
            sig += f" : {self.format_type(fd.return_type)}"
        return f"{sig} {self._expr(fd.body, _TOP)}"

    def _format_type_decl(self, td: TypeDecl) -> str:
        head = " ".join(["type", td.name, *td.params])
        body = td.body
        if isinstance(body, Sum):
            variants = []
            for ctor in body.constructors:
                args = [self._type(arg, _TYPE_ARGUMENT) for arg in ctor.data.args]
                variants.append("| " + " ".join([ctor.data.name, *args]))
            return f"{head} = {' '.join(variants)}"

        assert isinstance(body, Product)
        if not body.fields:
            return f"{head} = {{}}"
        fields = ", ".join(
            f"{field.data.name} : {self.format_type(field.data.type)}"
            for field in body.fields
        )
        return f"{head} = {{ {fields} }}"

    # ── Expressions ────────────────────────────────────────────

    def _expr(self, expr: Expr, context: int) -> str:
        text, strength = self._expr_with_strength(expr)
        if strength < context:
            return f"({text})"
        return text

    def _expr_with_strength(self, expr: Expr) -> tuple[str, int]:
        node = expr.data

        infix = _as_infix(expr)
        if infix is not None:
            op, left, right = infix
            prec = _PRECEDENCE[op]
            text = f"{self._expr(left, prec)} {_SYMBOLS[op]} {self._expr(right, prec + 1)}"
            return text, prec

        if isinstance(node, ExprAtom):
            return self._atom(node.atom, self.format_expr), _PRIMARY

        if isinstance(node, Application):
            callee = self._expr(node.callee, _APPLICATION)
            return f"{callee} {self._argument(node.argument)}", _APPLICATION

        if isinstance(node, Abstraction):
            return f"|{node.param}| {self._expr(node.body, _TOP)}", _TOP

        if isinstance(node, Annotation):
            return (f"{self._expr(node.expr, _ADDITIVE)} : {self.format_type(node.type)}",
                    _TOP)

        if isinstance(node, FieldAccess):
            return f"{self._receiver(node.receiver)}.{node.field}", _PRIMARY

        if isinstance(node, RecordCreation):
            fields = ", ".join(
                f"{field.data.name} = {self._expr(field.data.expr, _TOP)}"
                for field in node.fields
            )
            return f"{self._receiver(node.constructor)} {{ {fields} }}", _PRIMARY

        if isinstance(node, Block):
            return self._block(node), _PRIMARY

        if isinstance(node, Match):
            head = f"match {self._expr(node.scrutinee, _TOP)}"
            if not node.clauses:
                return f"{head} {{}}", _PRIMARY
            clauses = "\n".join(
                f"{self.format_pattern(c.data.pattern)} => {self._expr(c.data.expr, _TOP)},"
                for c in node.clauses
            )
            return f"{head} {{\n{self._indent(clauses)}\n}}", _PRIMARY

        if isinstance(node, IfLet):
            return (
                f"if let {self.format_pattern(node.pattern)}"
                f" = {self._expr(node.scrutinee, _TOP)}"
                f" {self._expr(node.then_block, _TOP)}"
                f" else {self._expr(node.else_block, _TOP)}",
                _PRIMARY,
            )

        raise TypeError(f"cannot format expression node {type(node).__name__}")

    def _argument(self, expr: Expr) -> str:
        text = self._expr(expr, _TOP)
        return text if _is_argument(expr) else f"({text})"

    def _receiver(self, expr: Expr) -> str:
        return self._expr(expr, _PRIMARY)

    def _block(self, block: Block) -> str:
        if len(block.statements) == 1 and self._is_unit_statement(block.statements[0]):
            return "{}"
        body = ";\n".join(self._statement(stmt) for stmt in block.statements)
        return f"{{\n{self._indent(body)}\n}}"

    @staticmethod
    def _is_unit_statement(stmt: Statement) -> bool:
        node = stmt.data
        return (isinstance(node, ExprStatement)
                and isinstance(node.expr.data, ExprAtom)
                and isinstance(node.expr.data.atom, Unit))

    def _statement(self, stmt: Statement) -> str:
        node = stmt.data
        if isinstance(node, LetStatement):
            return f"let {self.format_pattern(node.pattern)} = {self._expr(node.value, _TOP)}"
        assert isinstance(node, ExprStatement)
        return self._expr(node.expr, _TOP)

    # ── Atoms ──────────────────────────────────────────────────

    @staticmethod
    def _atom(atom: AtomKind, element) -> str:
        if isinstance(atom, Wildcard):
            return "_"
        if isinstance(atom, Number):
            return str(atom.value)
        if isinstance(atom, Boolean):
            return "true" if atom.value else "false"
        if isinstance(atom, Identifier):
            return atom.name
        if isinstance(atom, Unit):
            return "()"
        assert isinstance(atom, Tuple)
        if len(atom.elements) == 1:
            return f"({element(atom.elements[0])},)"
        return "(" + ", ".join(element(e) for e in atom.elements) + ")"

    # ── Patterns ───────────────────────────────────────────────

    def _pattern(self, pattern: Pattern, nested: bool) -> str:
        node = pattern.data
        if isinstance(node, PatternAtom):
            return self._atom(node.atom, self.format_pattern)
        assert isinstance(node, ConstructorPattern)
        if not node.args:
            return node.name
        text = " ".join([node.name, *(self._pattern(a, nested=True) for a in node.args)])
        return f"({text})" if nested else text

    # ── Types ──────────────────────────────────────────────────

    def _type(self, typ: Type, context: int) -> str:
        node = typ.data

        if isinstance(node, TypeVariable):
            return node.name
        if isinstance(node, TypeAtom):
            return self._atom(node.atom, self.format_type)

        if isinstance(node, TypeApplication):
            args = " ".join(self._type(a, _TYPE_ARGUMENT) for a in node.args)
            text = f"{node.name} {args}"
            return f"({text})" if context >= _TYPE_ARGUMENT else text

        if isinstance(node, Arrow):
            text = (f"{self._type(node.domain, _TYPE_DOMAIN)}"
                    f" -> {self._type(node.codomain, _TYPE_TOP)}")
        else:
            assert isinstance(node, Forall)
            binders = "".join(f" {a}" for a in node.args)
            text = f"forall{binders}. {self._type(node.body, _TYPE_TOP)}"
        return f"({text})" if context >= _TYPE_DOMAIN else text
