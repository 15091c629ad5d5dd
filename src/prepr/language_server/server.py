"""prepr Language Server

Implements Language Server Protocol support for documents that use
``#define`` macros: diagnostics, hover over macro names and completion.

The editor-facing logic lives in plain functions so it can be exercised
without a running server; the LSP handlers only translate parameters.
"""

import re
from typing import Dict, List, Optional, Tuple

from pygls.server import LanguageServer
from lsprotocol.types import (
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DIAGNOSTIC,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_HOVER,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    Diagnostic,
    DiagnosticOptions,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentDiagnosticParams,
    FullDocumentDiagnosticReport,
    Hover,
    HoverParams,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    TextDocumentSyncKind,
)

from ..macros import Macro, MacroTable
from ..preprocessor import (
    Preprocessor,
    PreprocessorError,
    is_define_line,
    parse_define,
    run_preprocessor,
)

SERVER_NAME = "prepr-language-server"
SERVER_VERSION = "0.1.0"

DEFINE_DESCRIPTION = (
    "**#define NAME[(param, ...)] [body]**\n\n"
    "Define a text-substitution macro for the rest of the document.\n\n"
    "- Parameterless: `#define PI 3.14`\n"
    "- Parameterized: `#define mult(x, y) (x * y)`\n\n"
    "The body ends at the end of the line; it is not rescanned for other macros."
)

_WORD_CHAR_RE = re.compile(r'[A-Za-z0-9_$]')


# ---------------------------------------------------------------------------
# Editor logic
# ---------------------------------------------------------------------------

def macros_visible_at(text: str, line: int) -> MacroTable:
    """Return the macro table as seen by 0-based *line* of *text*.

    Lines before *line* are replayed; define lines that fail to parse are
    skipped here, diagnostics report them separately.
    """
    preprocessor = Preprocessor()
    for line_number, raw_line in enumerate(text.split('\n')[:line], start=1):
        if not is_define_line(raw_line):
            continue
        try:
            preprocessor.macros.define(parse_define(raw_line, line_number))
        except PreprocessorError:
            continue
    return preprocessor.macros


def word_at(line_text: str, character: int) -> Tuple[int, int]:
    """Return the [start, end) span of the identifier touching *character*."""
    start = end = min(character, len(line_text))
    while start > 0 and _WORD_CHAR_RE.match(line_text[start - 1]):
        start -= 1
    while end < len(line_text) and _WORD_CHAR_RE.match(line_text[end]):
        end += 1
    return start, end


def collect_diagnostics(text: str) -> List[Diagnostic]:
    result = run_preprocessor(text)
    if result.ok:
        return []

    error = result.error
    line = max(error.line - 1, 0)
    lines = text.split('\n')
    line_length = len(lines[line]) if line < len(lines) else 0
    start = max(error.column - 1, 0)
    return [Diagnostic(
        range=Range(
            start=Position(line=line, character=start),
            end=Position(line=line, character=max(line_length, start + 1))
        ),
        message=error.message,
        severity=DiagnosticSeverity.Error,
        source="prepr"
    )]


def describe_macro(macro: Macro) -> str:
    body = macro.body if macro.body else " "
    return f"**{macro.signature}**\n\n```\n{body}\n```\n\n_defined at line {macro.line}_"


def hover_text(text: str, line: int, character: int) -> Optional[Tuple[str, int, int]]:
    """Return (markdown, start, end) for the word under the cursor, if it has hover info."""
    lines = text.split('\n')
    if line >= len(lines):
        return None

    line_text = lines[line]
    start, end = word_at(line_text, character)
    if start == end:
        return None
    word = line_text[start:end]

    if word == 'define' and line_text[:start] == '#':
        return DEFINE_DESCRIPTION, start, end

    # The definition on the hovered line itself is not yet visible there
    macro = macros_visible_at(text, line).lookup(word)
    if macro is None:
        return None
    return describe_macro(macro), start, end


def completion_entries(text: str, line: int, character: int) -> List[Tuple[str, str]]:
    """Return (label, detail) pairs for the cursor position."""
    lines = text.split('\n')
    if line >= len(lines):
        return []

    prefix = lines[line][:character]
    if prefix.startswith('#'):
        return [('#define', '#define NAME[(param, ...)] [body]')]

    macros = macros_visible_at(text, line)
    return [(name, macro.signature) for name, macro in sorted(macros.items())]


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

class PreprLanguageServer(LanguageServer):
    """Language Server for documents using #define macros."""

    def __init__(self):
        super().__init__(SERVER_NAME, SERVER_VERSION,
                         text_document_sync_kind=TextDocumentSyncKind.Full)
        self.documents: Dict[str, str] = {}


prepr_server = PreprLanguageServer()


@prepr_server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions(trigger_characters=["#"]))
async def completion(params: CompletionParams) -> CompletionList:
    """Provide completion items."""
    text = prepr_server.documents.get(params.text_document.uri)
    if text is None:
        return CompletionList(is_incomplete=False, items=[])

    items = []
    for label, detail in completion_entries(text, params.position.line,
                                            params.position.character):
        is_directive = label.startswith('#')
        items.append(CompletionItem(
            label=label,
            kind=CompletionItemKind.Keyword if is_directive else CompletionItemKind.Constant,
            detail=detail,
            documentation=DEFINE_DESCRIPTION if is_directive else None,
        ))
    return CompletionList(is_incomplete=False, items=items)


@prepr_server.feature(TEXT_DOCUMENT_HOVER)
async def hover(params: HoverParams) -> Optional[Hover]:
    """Provide hover information."""
    text = prepr_server.documents.get(params.text_document.uri)
    if text is None:
        return None

    position = params.position
    found = hover_text(text, position.line, position.character)
    if found is None:
        return None

    value, start, end = found
    return Hover(
        contents=MarkupContent(kind=MarkupKind.Markdown, value=value),
        range=Range(
            start=Position(line=position.line, character=start),
            end=Position(line=position.line, character=end)
        )
    )


@prepr_server.feature(
    TEXT_DOCUMENT_DIAGNOSTIC,
    DiagnosticOptions(inter_file_dependencies=False, workspace_diagnostics=False),
)
async def diagnostics(params: DocumentDiagnosticParams) -> FullDocumentDiagnosticReport:
    """Provide diagnostics (errors)."""
    text = prepr_server.documents.get(params.text_document.uri)
    if text is None:
        return FullDocumentDiagnosticReport(kind="full", items=[])
    return FullDocumentDiagnosticReport(kind="full", items=collect_diagnostics(text))


# Document synchronization
@prepr_server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(params: DidOpenTextDocumentParams):
    """Handle document open event."""
    prepr_server.documents[params.text_document.uri] = params.text_document.text


@prepr_server.feature(TEXT_DOCUMENT_DID_CHANGE)
async def did_change(params: DidChangeTextDocumentParams):
    """Handle document change event."""
    for change in params.content_changes:
        # Full sync: every change carries the whole document
        if getattr(change, 'range', None) is None:
            prepr_server.documents[params.text_document.uri] = change.text


@prepr_server.feature(TEXT_DOCUMENT_DID_CLOSE)
async def did_close(params: DidCloseTextDocumentParams):
    """Handle document close event."""
    prepr_server.documents.pop(params.text_document.uri, None)
