"""Lexer for the atiny language.

Produces a flat stream of tokens whose spans are byte offsets into the
UTF-8 encoded source.
"""

from __future__ import annotations

from atiny.errors import CompileError, Diagnostic, DiagnosticLabel, Severity
from atiny.source import Span
from atiny.tokens import KEYWORDS, SYMBOLS, Token, TokenKind


class Lexer:
    """Tokenizes atiny source code."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.offset = 0  # byte offset of self.pos
        self.tokens: list[Token] = []
        self.diagnostics: list[Diagnostic] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isspace():
                self._advance()
            elif ch == '/' and self._peek(1) == '/':
                self._skip_line_comment()
            elif ch.isascii() and ch.isdigit():
                self._lex_number()
            elif ch.isascii() and (ch.isalpha() or ch == '_'):
                self._lex_identifier()
            else:
                self._lex_symbol()

        self._emit(TokenKind.EOF, "", self.offset)

        if self.diagnostics:
            raise CompileError(self.diagnostics)
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        self.offset += len(ch.encode("utf-8"))
        return ch

    def _is_ident_char(self) -> bool:
        ch = self.source[self.pos]
        return ch.isascii() and (ch.isalnum() or ch == '_')

    def _emit(self, kind: TokenKind, value: str, start: int) -> Token:
        tok = Token(kind, value, Span(self.filename, start, self.offset))
        self.tokens.append(tok)
        return tok

    def _error(self, message: str, start: int) -> None:
        span = Span(self.filename, start, self.offset)
        self.diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                code="E100",
                message=message,
                labels=[DiagnosticLabel(span=span, message="")],
            )
        )

    def _skip_line_comment(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] != '\n':
            self._advance()

    # ── Tokens ───────────────────────────────────────────────────

    def _lex_number(self) -> None:
        start_pos, start = self.pos, self.offset
        while self.pos < len(self.source) and self.source[self.pos].isascii() \
                and self.source[self.pos].isdigit():
            self._advance()
        self._emit(TokenKind.INTEGER_LIT, self.source[start_pos:self.pos], start)

    def _lex_identifier(self) -> None:
        start_pos, start = self.pos, self.offset
        while self.pos < len(self.source) and self._is_ident_char():
            self._advance()
        word = self.source[start_pos:self.pos]

        if word == "_":
            self._emit(TokenKind.UNDERSCORE, word, start)
        elif word in KEYWORDS:
            self._emit(KEYWORDS[word], word, start)
        elif word[0].isupper():
            self._emit(TokenKind.TYPE_IDENTIFIER, word, start)
        else:
            self._emit(TokenKind.IDENTIFIER, word, start)

    def _lex_symbol(self) -> None:
        start = self.offset
        for text, kind in SYMBOLS.items():
            if self.source.startswith(text, self.pos):
                for _ in text:
                    self._advance()
                self._emit(kind, text, start)
                return
        ch = self._advance()
        self._error(f"unexpected character {ch!r}", start)
