"""tlafmt language server: parse diagnostics and whole-document formatting.

Runs over stdio. Every open document is re-parsed on open and change; the
parse result is cached so formatting requests do not parse again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer
from pygls.uris import to_fs_path

from tlafmt import __version__
from tlafmt.ast_nodes import Module
from tlafmt.config import find_config, load_config
from tlafmt.errors import ParseError
from tlafmt.formatter import FormatOptions, format, parse
from tlafmt.source import Span

# ── Conversion helpers ────────────────────────────────────────────


def span_to_range(span: Span) -> lsp.Range:
    """Convert a 1-indexed inclusive Span to a 0-indexed LSP Range."""
    return lsp.Range(
        start=lsp.Position(line=span.start_line - 1, character=span.start_col - 1),
        end=lsp.Position(line=span.end_line - 1, character=span.end_col),
    )


def error_to_diagnostic(error: ParseError) -> lsp.Diagnostic:
    return lsp.Diagnostic(
        range=span_to_range(error.span),
        severity=lsp.DiagnosticSeverity.Error,
        source="tlafmt",
        code=error.code,
        message=f"[{error.code}] {error.message}",
    )


def end_position(source: str) -> lsp.Position:
    """Position just past the last character of ``source``."""
    line = source.count("\n")
    return lsp.Position(line=line, character=len(source) - (source.rfind("\n") + 1))


def options_for(uri: str) -> FormatOptions:
    """Options from the config file nearest to ``uri``, or the defaults."""
    path = to_fs_path(uri) if uri.startswith("file:") else None
    if not path:
        return FormatOptions()
    try:
        return load_config(find_config(Path(path).parent)).to_options()
    except FileNotFoundError:
        return FormatOptions()


# ── Per-document state ────────────────────────────────────────────


@dataclass
class DocumentState:
    """Cached parse result for a single open document."""

    source: str = ""
    options: FormatOptions = field(default_factory=FormatOptions)
    module: Module | None = None
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "tlafmt", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}


def _analyze(uri: str, source: str, options: FormatOptions | None = None) -> DocumentState:
    """Parse ``source``, cache the result under ``uri``, and return it."""
    ds = DocumentState(source=source, options=options or options_for(uri))
    try:
        ds.module = parse(source, uri, max_depth=ds.options.max_depth)
    except ParseError as e:
        ds.diagnostics = [error_to_diagnostic(e)]
    _state[uri] = ds
    return ds


def _format_edits(ds: DocumentState) -> list[lsp.TextEdit] | None:
    if ds.module is None:
        return None
    formatted = format(ds.module, ds.options)
    if formatted == ds.source:
        return None
    return [lsp.TextEdit(
        range=lsp.Range(start=lsp.Position(line=0, character=0), end=end_position(ds.source)),
        new_text=formatted,
    )]


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    ds = _analyze(uri, params.text_document.text)
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # Full sync: the last change carries the whole text
    source = params.content_changes[-1].text if params.content_changes else ""
    previous = _state.get(uri)
    ds = _analyze(uri, source, previous.options if previous else None)
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    _state.pop(params.text_document.uri, None)


@server.feature(lsp.TEXT_DOCUMENT_FORMATTING)
def formatting(params: lsp.DocumentFormattingParams) -> list[lsp.TextEdit] | None:
    ds = _state.get(params.text_document.uri)
    if ds is None:
        return None
    return _format_edits(ds)


def main() -> None:
    """Start the tlafmt language server on stdio."""
    server.start_io()
