"""Token kinds and token representation for the atiny lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atiny.source import Span


class TokenKind(Enum):
    # Keywords
    IF = auto()
    LET = auto()
    ELSE = auto()
    MATCH = auto()
    FN = auto()
    TYPE = auto()
    FORALL = auto()

    # Literals
    INTEGER_LIT = auto()
    BOOLEAN_LIT = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    ARROW = auto()
    FAT_ARROW = auto()
    ASSIGN = auto()
    DOT = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()
    PIPE = auto()
    UNDERSCORE = auto()

    # Identifiers
    IDENTIFIER = auto()
    TYPE_IDENTIFIER = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    span: Span


KEYWORDS: dict[str, TokenKind] = {
    "if": TokenKind.IF,
    "let": TokenKind.LET,
    "else": TokenKind.ELSE,
    "match": TokenKind.MATCH,
    "fn": TokenKind.FN,
    "type": TokenKind.TYPE,
    "forall": TokenKind.FORALL,
    "true": TokenKind.BOOLEAN_LIT,
    "false": TokenKind.BOOLEAN_LIT,
}

# Longest spellings first so "->" wins over "-"
SYMBOLS: dict[str, TokenKind] = {
    "->": TokenKind.ARROW,
    "=>": TokenKind.FAT_ARROW,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "=": TokenKind.ASSIGN,
    ".": TokenKind.DOT,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "|": TokenKind.PIPE,
}

# Human-readable spellings used in diagnostics
DESCRIPTIONS: dict[TokenKind, str] = {
    **{kind: f"'{text}'" for text, kind in SYMBOLS.items()},
    **{kind: f"'{text}'" for text, kind in KEYWORDS.items()
       if kind != TokenKind.BOOLEAN_LIT},
    TokenKind.UNDERSCORE: "'_'",
    TokenKind.INTEGER_LIT: "number",
    TokenKind.BOOLEAN_LIT: "boolean",
    TokenKind.IDENTIFIER: "identifier",
    TokenKind.TYPE_IDENTIFIER: "uppercase identifier",
    TokenKind.EOF: "end of input",
}


def describe(kind: TokenKind) -> str:
    return DESCRIPTIONS.get(kind, kind.name)
