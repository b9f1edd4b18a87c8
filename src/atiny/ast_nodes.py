"""AST node definitions for the atiny language.

Every node payload is wrapped in ``Located``, which pairs it with the byte
range it was parsed from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from atiny.source import Span

T = TypeVar("T")


@dataclass(frozen=True)
class Located(Generic[T]):
    data: T
    span: Span


# ── Atoms ────────────────────────────────────────────────────────
# Shared by expressions, patterns and types. ``Tuple`` holds located
# nodes of whichever family it was parsed in.


@dataclass(frozen=True)
class Wildcard:
    pass


@dataclass(frozen=True)
class Number:
    value: int


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class Unit:
    pass


@dataclass(frozen=True)
class Tuple(Generic[T]):
    elements: list[T]


AtomKind = Union[Wildcard, Number, Boolean, Identifier, Unit, Tuple]


# ── Type expressions ─────────────────────────────────────────────


@dataclass(frozen=True)
class TypeAtom:
    atom: AtomKind


@dataclass(frozen=True)
class TypeVariable:
    name: str


@dataclass(frozen=True)
class TypeApplication:
    name: str
    args: list[Type]


@dataclass(frozen=True)
class Arrow:
    domain: Type
    codomain: Type


@dataclass(frozen=True)
class Forall:
    args: list[str]
    body: Type


TypeKind = Union[TypeAtom, TypeVariable, TypeApplication, Arrow, Forall]
Type = Located[TypeKind]


# ── Patterns ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PatternAtom:
    atom: AtomKind


@dataclass(frozen=True)
class ConstructorPattern:
    name: str
    args: list[Pattern]


PatternKind = Union[PatternAtom, ConstructorPattern]
Pattern = Located[PatternKind]


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class ExprAtom:
    atom: AtomKind


@dataclass(frozen=True)
class Application:
    callee: Expr
    argument: Expr


@dataclass(frozen=True)
class Abstraction:
    param: str
    body: Expr


@dataclass(frozen=True)
class Clause:
    pattern: Pattern
    expr: Expr


@dataclass(frozen=True)
class Match:
    scrutinee: Expr
    clauses: list[Located[Clause]]


@dataclass(frozen=True)
class IfLet:
    pattern: Pattern
    scrutinee: Expr
    then_block: Expr
    else_block: Expr


@dataclass(frozen=True)
class FieldAccess:
    receiver: Expr
    field: str


@dataclass(frozen=True)
class Annotation:
    expr: Expr
    type: Type


@dataclass(frozen=True)
class ExprField:
    name: str
    expr: Expr


@dataclass(frozen=True)
class RecordCreation:
    constructor: Expr
    fields: list[Located[ExprField]]


@dataclass(frozen=True)
class LetStatement:
    pattern: Pattern
    value: Expr


@dataclass(frozen=True)
class ExprStatement:
    expr: Expr


Statement = Located[Union[LetStatement, ExprStatement]]


@dataclass(frozen=True)
class Block:
    statements: list[Statement]


ExprKind = Union[
    ExprAtom, Application, Abstraction, Match, IfLet,
    FieldAccess, Annotation, RecordCreation, Block,
]
Expr = Located[ExprKind]

# Primitive operator names that infix syntax lowers to
OPERATOR_NAMES: dict[str, str] = {
    "+": "add",
    "-": "sub",
    "*": "mul",
    "/": "div",
}


# ── Type declarations ────────────────────────────────────────────


@dataclass(frozen=True)
class Field:
    name: str
    type: Type


@dataclass(frozen=True)
class Constructor:
    name: str
    args: list[Type]


@dataclass(frozen=True)
class Sum:
    constructors: list[Located[Constructor]]


@dataclass(frozen=True)
class Product:
    fields: list[Located[Field]]


TypeDeclKind = Union[Sum, Product]


# ── Top-level declarations ───────────────────────────────────────


@dataclass(frozen=True)
class TypeDecl:
    name: str
    params: list[str]
    body: TypeDeclKind


@dataclass(frozen=True)
class Param:
    pattern: Pattern
    type: Type


@dataclass(frozen=True)
class FnDecl:
    name: str
    params: list[Located[Param]]
    return_type: Type | None
    body: Expr  # always a located Block


TopLevel = Located[Union[FnDecl, TypeDecl]]


@dataclass(frozen=True)
class Program:
    declarations: list[TopLevel]
    span: Span
