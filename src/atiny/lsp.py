"""atiny Language Server: pygls-based LSP for .at files.

Provides syntax diagnostics, document symbols, keyword and declaration
completion, and whole-document formatting via stdio transport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from atiny import __version__
from atiny.ast_nodes import FnDecl, Product, Program, Sum, TopLevel, TypeDecl
from atiny.errors import CompileError, Diagnostic, Severity
from atiny.formatter import AtinyFormatter
from atiny.lexer import Lexer
from atiny.parser import Parser
from atiny.source import SourceFile, Span
from atiny.tokens import KEYWORDS, Token

LOGGER = logging.getLogger(__name__)

# ── Conversion helpers ────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.NOTE: lsp.DiagnosticSeverity.Information,
}

_KEYWORD_COMPLETIONS = sorted(KEYWORDS.keys())


def span_to_range(span: Span, source: SourceFile) -> lsp.Range:
    """Convert a byte-offset Span to a 0-indexed LSP Range."""
    start_line, start_col = source.location(span.start)
    end_line, end_col = source.location(span.end)
    return lsp.Range(
        start=lsp.Position(line=start_line - 1, character=start_col - 1),
        end=lsp.Position(line=end_line - 1, character=end_col - 1),
    )


def _document_range(source: SourceFile) -> lsp.Range:
    """The range covering the whole document."""
    end_line, end_col = source.location(len(source.data))
    return lsp.Range(
        start=lsp.Position(line=0, character=0),
        end=lsp.Position(line=end_line - 1, character=end_col - 1),
    )


# ── Per-document state ────────────────────────────────────────────


@dataclass
class DocumentState:
    """Cached analysis results for a single open document."""

    source: SourceFile
    tokens: list[Token] = field(default_factory=list)
    program: Program | None = None
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "atiny-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}


def _compile_diag(d: Diagnostic, source: SourceFile) -> lsp.Diagnostic:
    """Convert an atiny Diagnostic to an LSP Diagnostic."""
    span_range = lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))
    if d.labels:
        span_range = span_to_range(d.labels[0].span, source)
    message = d.message
    if d.notes:
        message += f" ({'; '.join(d.notes)})"
    return lsp.Diagnostic(
        range=span_range,
        severity=_SEVERITY_MAP.get(d.severity, lsp.DiagnosticSeverity.Error),
        source="atiny",
        code=d.code,
        message=f"[{d.code}] {message}",
    )


def _internal_diag(phase: str, error: Exception) -> lsp.Diagnostic:
    return lsp.Diagnostic(
        range=lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0)),
        severity=lsp.DiagnosticSeverity.Error, source="atiny",
        message=f"[internal] {phase} error: {error}",
    )


def _analyze(uri: str, text: str) -> DocumentState:
    """Run Lexer then Parser, cache results, return state."""
    ds = DocumentState(source=SourceFile(uri, text))
    _state[uri] = ds

    try:
        ds.tokens = Lexer(text, uri).lex()
    except CompileError as e:
        ds.diagnostics = [_compile_diag(d, ds.source) for d in e.diagnostics]
        return ds
    except Exception as e:
        LOGGER.exception("lexer failed on %s", uri)
        ds.diagnostics = [_internal_diag("lexer", e)]
        return ds

    try:
        ds.program = Parser(ds.tokens, uri).parse()
    except CompileError as e:
        ds.diagnostics = [_compile_diag(d, ds.source) for d in e.diagnostics]
    except Exception as e:
        LOGGER.exception("parser failed on %s", uri)
        ds.diagnostics = [_internal_diag("parser", e)]

    return ds


def _publish(uri: str, ds: DocumentState) -> None:
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    _publish(uri, _analyze(uri, params.text_document.text))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # Full sync: the last change holds the whole document
    text = params.content_changes[-1].text if params.content_changes else ""
    _publish(uri, _analyze(uri, text))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    _state.pop(params.text_document.uri, None)


@server.feature(lsp.TEXT_DOCUMENT_COMPLETION)
def completion(params: lsp.CompletionParams) -> lsp.CompletionList:
    items = [
        lsp.CompletionItem(label=kw, kind=lsp.CompletionItemKind.Keyword)
        for kw in _KEYWORD_COMPLETIONS
    ]

    ds = _state.get(params.text_document.uri)
    if ds is not None and ds.program is not None:
        for decl in ds.program.declarations:
            node = decl.data
            if isinstance(node, FnDecl):
                items.append(lsp.CompletionItem(
                    label=node.name, kind=lsp.CompletionItemKind.Function,
                ))
                continue
            items.append(lsp.CompletionItem(
                label=node.name, kind=lsp.CompletionItemKind.Class,
            ))
            if isinstance(node.body, Sum):
                items.extend(
                    lsp.CompletionItem(
                        label=c.data.name, kind=lsp.CompletionItemKind.EnumMember,
                    )
                    for c in node.body.constructors
                )

    # Deduplicate by label
    seen: set[str] = set()
    unique: list[lsp.CompletionItem] = []
    for item in items:
        if item.label not in seen:
            seen.add(item.label)
            unique.append(item)

    return lsp.CompletionList(is_incomplete=False, items=unique)


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: lsp.DocumentSymbolParams) -> list[lsp.DocumentSymbol]:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.program is None:
        return []
    return [_decl_to_symbol(decl, ds.source) for decl in ds.program.declarations]


def _decl_to_symbol(decl: TopLevel, source: SourceFile) -> lsp.DocumentSymbol:
    """Convert a top-level declaration to an LSP DocumentSymbol."""
    node = decl.data
    decl_range = span_to_range(decl.span, source)
    fmt = AtinyFormatter()

    if isinstance(node, FnDecl):
        detail = " ".join(
            f"({fmt.format_pattern(p.data.pattern)} : {fmt.format_type(p.data.type)})"
            for p in node.params
        )
        if node.return_type is not None:
            detail = f"{detail} : {fmt.format_type(node.return_type)}".lstrip()
        return lsp.DocumentSymbol(
            name=node.name,
            kind=lsp.SymbolKind.Function,
            range=decl_range,
            selection_range=decl_range,
            detail=detail or None,
        )

    assert isinstance(node, TypeDecl)
    children: list[lsp.DocumentSymbol] = []
    if isinstance(node.body, Sum):
        kind = lsp.SymbolKind.Enum
        for ctor in node.body.constructors:
            ctor_range = span_to_range(ctor.span, source)
            children.append(lsp.DocumentSymbol(
                name=ctor.data.name,
                kind=lsp.SymbolKind.EnumMember,
                range=ctor_range,
                selection_range=ctor_range,
            ))
    else:
        assert isinstance(node.body, Product)
        kind = lsp.SymbolKind.Struct
        for fld in node.body.fields:
            field_range = span_to_range(fld.span, source)
            children.append(lsp.DocumentSymbol(
                name=fld.data.name,
                kind=lsp.SymbolKind.Field,
                range=field_range,
                selection_range=field_range,
                detail=fmt.format_type(fld.data.type),
            ))
    return lsp.DocumentSymbol(
        name=node.name,
        kind=kind,
        range=decl_range,
        selection_range=decl_range,
        detail=" ".join(node.params) or None,
        children=children if children else None,
    )


@server.feature(lsp.TEXT_DOCUMENT_FORMATTING)
def formatting(params: lsp.DocumentFormattingParams) -> list[lsp.TextEdit] | None:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.program is None:
        return None

    formatted = AtinyFormatter().format(ds.program)
    if formatted == ds.source.content:
        return None

    # Replace entire document
    return [lsp.TextEdit(range=_document_range(ds.source), new_text=formatted)]


# ── Entry point ──────────────────────────────────────────────────


def main() -> None:
    """Start the atiny language server on stdio."""
    LOGGER.info("starting atiny language server %s", __version__)
    server.start_io()
