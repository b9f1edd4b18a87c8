"""Pygments lexer for the atiny language."""

from pygments.lexer import RegexLexer, bygroups, words
from pygments.token import (
    Comment,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    Text,
)


class AtinyLexer(RegexLexer):
    """Pygments lexer for the atiny language."""

    name = "atiny"
    aliases = ["atiny"]
    filenames = ["*.at"]
    mimetypes = ["text/x-atiny"]

    tokens = {
        "root": [
            # Whitespace
            (r"\s+", Text),
            # Line comments (// ...)
            (r"//.*$", Comment.Single),
            # Declarations with their names
            (r"\b(fn)(\s+)([a-z_][a-zA-Z0-9_]*)", bygroups(Keyword.Declaration, Text, Name.Function)),
            (r"\b(type)(\s+)([A-Z][a-zA-Z0-9_]*)", bygroups(Keyword.Declaration, Text, Name.Class)),
            (r"\bforall\b", Keyword.Declaration),
            # Core keywords
            (words(("if", "let", "else", "match"), prefix=r"\b", suffix=r"\b"), Keyword),
            # Boolean constants
            (r"\b(true|false)\b", Keyword.Constant),
            # Numbers
            (r"[0-9]+", Number.Integer),
            # Wildcard
            (r"\b_\b", Keyword.Pseudo),
            # Operators (multi-char before single-char)
            (r"->|=>", Operator),
            (r"[+\-*/=.]", Operator),
            # Constructors and type names (PascalCase)
            (r"[A-Z][a-zA-Z0-9_]*", Name.Class),
            # Binders and field names (word followed by '=' or ':')
            (r"[a-z_][a-zA-Z0-9_]*(?=\s*(=[^>]|:))", Name.Attribute),
            # Identifiers
            (r"[a-z_][a-zA-Z0-9_]*", Name),
            # Punctuation
            (r"[(),;{}:|]", Punctuation),
        ],
    }
