"""The atiny language front end: lexer, parser, formatter and tooling."""

from __future__ import annotations

from atiny.ast_nodes import Expr, Pattern, Program, Type
from atiny.lexer import Lexer
from atiny.parser import Parser

__version__ = "0.1.0"


def parse_program(source: str, filename: str = "<stdin>") -> Program:
    """Lex and parse a whole source file.

    Raises ``CompileError`` for lexical errors and ``ParseError`` for the
    first syntax error.
    """
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse()


def parse_expression(source: str, filename: str = "<stdin>") -> Expr:
    """Lex and parse a source string holding exactly one expression."""
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse_expression()


def parse_pattern(source: str, filename: str = "<stdin>") -> Pattern:
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse_pattern()


def parse_type(source: str, filename: str = "<stdin>") -> Type:
    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse_type()
