"""Tests for the atiny lexer."""

from __future__ import annotations

import pytest

from atiny.errors import CompileError
from atiny.lexer import Lexer
from atiny.tokens import TokenKind


def lex(source: str) -> list[tuple[TokenKind, str]]:
    """Helper: lex source and return (kind, value) pairs, excluding EOF."""
    tokens = Lexer(source).lex()
    return [(t.kind, t.value) for t in tokens if t.kind != TokenKind.EOF]


def kinds(source: str) -> list[TokenKind]:
    """Helper: lex source and return just the token kinds, excluding EOF."""
    tokens = Lexer(source).lex()
    return [t.kind for t in tokens if t.kind != TokenKind.EOF]


class TestLexerBasic:
    def test_empty_source(self):
        tokens = Lexer("").lex()
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.EOF

    def test_identifier(self):
        assert lex("hello") == [(TokenKind.IDENTIFIER, "hello")]

    def test_underscore_is_wildcard(self):
        assert lex("_") == [(TokenKind.UNDERSCORE, "_")]

    def test_underscore_prefixed_identifier(self):
        assert lex("_x") == [(TokenKind.IDENTIFIER, "_x")]

    def test_snake_case_identifier(self):
        assert lex("my_var_123") == [(TokenKind.IDENTIFIER, "my_var_123")]

    def test_type_identifier(self):
        assert lex("Option") == [(TokenKind.TYPE_IDENTIFIER, "Option")]

    def test_single_uppercase_is_type(self):
        assert lex("T") == [(TokenKind.TYPE_IDENTIFIER, "T")]

    def test_keywords(self):
        expected = {
            "if": TokenKind.IF,
            "let": TokenKind.LET,
            "else": TokenKind.ELSE,
            "match": TokenKind.MATCH,
            "fn": TokenKind.FN,
            "type": TokenKind.TYPE,
            "forall": TokenKind.FORALL,
        }
        for kw, kind in expected.items():
            assert lex(kw) == [(kind, kw)], f"keyword {kw} should lex to one token"

    def test_keyword_prefix_is_identifier(self):
        assert lex("iffy") == [(TokenKind.IDENTIFIER, "iffy")]
        assert lex("types") == [(TokenKind.IDENTIFIER, "types")]


class TestLexerLiterals:
    def test_integer(self):
        assert lex("42") == [(TokenKind.INTEGER_LIT, "42")]

    def test_integer_not_range_checked(self):
        big = "99999999999999999999999"
        assert lex(big) == [(TokenKind.INTEGER_LIT, big)]

    def test_integer_followed_by_identifier(self):
        assert kinds("12abc") == [TokenKind.INTEGER_LIT, TokenKind.IDENTIFIER]

    def test_booleans(self):
        assert lex("true false") == [
            (TokenKind.BOOLEAN_LIT, "true"),
            (TokenKind.BOOLEAN_LIT, "false"),
        ]


class TestLexerSymbols:
    def test_arrows_win_over_single_chars(self):
        assert kinds("-> => - =") == [
            TokenKind.ARROW, TokenKind.FAT_ARROW, TokenKind.MINUS, TokenKind.ASSIGN,
        ]

    def test_all_punctuation(self):
        assert kinds("+ * / . ( ) { } , : ; |") == [
            TokenKind.PLUS, TokenKind.STAR, TokenKind.SLASH, TokenKind.DOT,
            TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.LBRACE, TokenKind.RBRACE,
            TokenKind.COMMA, TokenKind.COLON, TokenKind.SEMICOLON, TokenKind.PIPE,
        ]

    def test_no_whitespace_needed(self):
        assert kinds("f(x,y)") == [
            TokenKind.IDENTIFIER, TokenKind.LPAREN, TokenKind.IDENTIFIER,
            TokenKind.COMMA, TokenKind.IDENTIFIER, TokenKind.RPAREN,
        ]

    def test_field_access(self):
        assert kinds("p.fst") == [TokenKind.IDENTIFIER, TokenKind.DOT, TokenKind.IDENTIFIER]


class TestLexerComments:
    def test_line_comment_skipped(self):
        assert lex("x // the rest is ignored\ny") == [
            (TokenKind.IDENTIFIER, "x"),
            (TokenKind.IDENTIFIER, "y"),
        ]

    def test_single_slash_is_division(self):
        assert kinds("a / b") == [TokenKind.IDENTIFIER, TokenKind.SLASH, TokenKind.IDENTIFIER]

    def test_comment_at_end_of_file(self):
        assert lex("// only a comment") == []


class TestLexerSpans:
    def test_spans_are_byte_offsets(self):
        tokens = Lexer("fn  main", "main.at").lex()
        assert (tokens[0].span.start, tokens[0].span.end) == (0, 2)
        assert (tokens[1].span.start, tokens[1].span.end) == (4, 8)
        assert tokens[0].span.file == "main.at"

    def test_multibyte_text_shifts_offsets(self):
        # "é" is two bytes in UTF-8
        tokens = Lexer("// é\nx").lex()
        assert tokens[0].value == "x"
        assert tokens[0].span.start == 6
        assert tokens[0].span.end == 7

    def test_eof_is_empty_span_at_end(self):
        tokens = Lexer("abc  ").lex()
        eof = tokens[-1]
        assert eof.kind == TokenKind.EOF
        assert eof.span.start == eof.span.end == 5


class TestLexerErrors:
    def test_unknown_character(self):
        with pytest.raises(CompileError) as exc_info:
            Lexer("x @ y").lex()
        diags = exc_info.value.diagnostics
        assert len(diags) == 1
        assert diags[0].code == "E100"
        assert diags[0].labels[0].span.start == 2

    def test_errors_are_batched(self):
        with pytest.raises(CompileError) as exc_info:
            Lexer("@ # $").lex()
        assert len(exc_info.value.diagnostics) == 3
