"""prepr Expander

Rewrites a fragment of text by resolving the macro invocations found in it.

Key design decisions:
  - The fragment is scanned once, left to right, with an explicit cursor.
    Replacement text is appended to the output and the cursor jumps past
    the replaced span, so a macro body is never rescanned for macro names.
  - Arguments of a parameterized invocation are expanded recursively
    *before* they are bound; the substituted body itself is a single,
    non-recursive splice.
  - Binding is positional: missing arguments leave the parameter name in
    the body, surplus arguments are dropped.
"""

import re
from typing import Dict, List, Optional

from .macros import Macro, MacroTable, PreprocessorError


# Maximal run of identifier characters. Whether a run is a macro name is
# decided by the table lookup, so runs starting with '_' simply never match.
IDENTIFIER_RUN_RE = re.compile(r'[A-Za-z0-9_$]+')

# Invocations nested inside arguments deeper than this are rejected
MAX_NESTING_DEPTH = 200


class InvocationError(PreprocessorError):
    """Raised when a parameterized invocation has an unbalanced argument list."""
    def __init__(self, name: str, line: int = 0, column: int = 0):
        super().__init__(
            f"unterminated argument list in invocation of macro '{name}'", line, column
        )
        self.name = name


class NestingError(PreprocessorError):
    """Raised when invocations are nested inside arguments too deeply to expand."""
    def __init__(self, name: Optional[str] = None, line: int = 0, column: int = 0):
        subject = f" of macro '{name}'" if name else ""
        super().__init__(
            f"invocations{subject} nested too deeply (limit {MAX_NESTING_DEPTH})", line, column
        )
        self.name = name


# ---------------------------------------------------------------------------
# Argument splitting
# ---------------------------------------------------------------------------

def find_closing_paren(text: str, open_index: int) -> int:
    """Return the index of the ')' matching the '(' at *open_index*, or -1."""
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0:
                return index
    return -1


def split_arguments(inner: str) -> List[str]:
    """Split the text between an invocation's parentheses into trimmed arguments.

    Only commas at parenthesis depth zero separate arguments. An empty (or
    blank) argument list yields no arguments at all.
    """
    if not inner.strip():
        return []

    arguments: List[str] = []
    depth = 0
    start = 0
    for index, char in enumerate(inner):
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        elif char == ',' and depth == 0:
            arguments.append(inner[start:index].strip())
            start = index + 1
    arguments.append(inner[start:].strip())
    return arguments


# ---------------------------------------------------------------------------
# Substitution and expansion
# ---------------------------------------------------------------------------

def bind_arguments(macro: Macro, arguments: List[str]) -> Dict[str, str]:
    """Pair parameters with arguments by position; zip drops whichever side is longer."""
    bindings: Dict[str, str] = {}
    for parameter, argument in zip(macro.parameters, arguments):
        bindings.setdefault(parameter, argument)
    return bindings


def substitute(macro: Macro, arguments: List[str]) -> str:
    """Replace whole-token parameter occurrences in the macro body."""
    bindings = bind_arguments(macro, arguments)
    if not bindings:
        return macro.body
    return IDENTIFIER_RUN_RE.sub(
        lambda match: bindings.get(match.group(0), match.group(0)), macro.body
    )


def expand(text: str, macros: MacroTable, depth: int = 0) -> str:
    """Return *text* with every macro invocation in it resolved.

    *depth* counts the enclosing invocations whose arguments are being
    expanded; callers leave it at 0.
    """
    pieces: List[str] = []
    cursor = 0
    while True:
        match = IDENTIFIER_RUN_RE.search(text, cursor)
        if match is None:
            break

        macro = macros.lookup(match.group(0))
        if macro is None:
            pieces.append(text[cursor:match.end()])
            cursor = match.end()
            continue

        if not macro.is_parameterized:
            pieces.append(text[cursor:match.start()])
            pieces.append(macro.body)
            cursor = match.end()
            continue

        open_index = match.end()
        if open_index >= len(text) or text[open_index] != '(':
            # A parameterized macro named without an argument list is plain text
            pieces.append(text[cursor:match.end()])
            cursor = match.end()
            continue

        close_index = find_closing_paren(text, open_index)
        if close_index < 0:
            raise InvocationError(macro.name, column=match.start() + 1)

        if depth >= MAX_NESTING_DEPTH:
            raise NestingError(macro.name)

        try:
            arguments = [
                expand(argument, macros, depth + 1)
                for argument in split_arguments(text[open_index + 1:close_index])
            ]
        except NestingError as e:
            if depth == 0 and not e.column:
                e.column = match.start() + 1
            raise
        pieces.append(text[cursor:match.start()])
        pieces.append(substitute(macro, arguments))
        cursor = close_index + 1

    pieces.append(text[cursor:])
    return ''.join(pieces)
