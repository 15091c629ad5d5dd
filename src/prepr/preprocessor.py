"""prepr Preprocessor

Line driver for the ``#define`` macro preprocessor:

    #define NAME body                  -- parameterless macro
    #define NAME(p1, p2, ...) body     -- parameterized macro

Key design decisions:
  - Only ``#define`` at the very start of a line is a directive. Anything
    else (``#include``, ``#ifdef``, indented ``#define``) is ordinary text
    and goes through macro expansion like every other line.
  - Define lines produce no output line.
  - A macro body ends with its physical line. Trailing backslashes are
    dropped and the next line is *not* joined to the body. A carriage
    return left over from CRLF line endings is not part of the body.
  - A definition is visible from the line after it to the end of the
    document, or until the same name is defined again.
  - Errors abort the whole run; no partial output is returned.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

from .expander import InvocationError, NestingError, expand
from .macros import (
    DefinitionError,
    Macro,
    MacroTable,
    PreprocessorError,
    validate_macro_name,
)

__all__ = [
    'DefinitionError',
    'InvocationError',
    'NestingError',
    'PreprocessorError',
    'PreprocessResult',
    'Preprocessor',
    'is_define_line',
    'parse_define',
    'preprocess',
    'run_preprocessor',
]

logger = logging.getLogger(__name__)

DEFINE_KEYWORD = '#define'


# ---------------------------------------------------------------------------
# Define lines
# ---------------------------------------------------------------------------

def is_define_line(line: str) -> bool:
    """True when *line* starts with the #define keyword followed by whitespace or nothing."""
    if not line.startswith(DEFINE_KEYWORD):
        return False
    rest = line[len(DEFINE_KEYWORD):]
    return not rest or rest[0].isspace()


def parse_define(line: str, line_number: int = 0) -> Macro:
    """Turn a #define line into a Macro.

    Args:
        line:        The physical line, starting with ``#define``.
        line_number: 1-based position of the line, recorded on the macro
                     and on any error raised.

    Raises:
        DefinitionError: If the name is not a legal macro name or the
                         parameter list is never closed.
    """
    length = len(line)
    cursor = len(DEFINE_KEYWORD)
    while cursor < length and line[cursor].isspace():
        cursor += 1

    name_start = cursor
    while cursor < length and line[cursor] != '(' and not line[cursor].isspace():
        cursor += 1
    name = validate_macro_name(line[name_start:cursor], line_number, name_start + 1)

    parameters: List[str] = []
    if cursor < length and line[cursor] == '(':
        close_index = line.find(')', cursor)
        if close_index < 0:
            raise DefinitionError(
                f"unterminated parameter list in definition of macro '{name}'",
                line_number, cursor + 1,
            )
        parameters = [p.strip() for p in line[cursor + 1:close_index].split(',')]
        if parameters == ['']:
            parameters = []
        cursor = close_index + 1

    if cursor < length and line[cursor] == ' ':
        cursor += 1

    body = line[cursor:]
    if body.endswith('\r'):
        body = body[:-1]
    if body.endswith('\\'):
        # Not a continuation: the body still ends here
        body = body.rstrip('\\')

    return Macro(name=name, parameters=parameters, body=body, line=line_number)


# ---------------------------------------------------------------------------
# Line driver
# ---------------------------------------------------------------------------

class Preprocessor:
    """Owns one macro table and runs documents through it line by line.

    Args:
        predeclared: Names that must pass through untouched, e.g. build
                     flags handled outside this preprocessor.
        definitions: Parameterless macros installed before the first line,
                     as a mapping of name to body.
    """

    def __init__(self, predeclared: Optional[Iterable[str]] = None,
                 definitions: Optional[Mapping[str, str]] = None):
        self.macros = MacroTable(predeclared)
        for name, body in (definitions or {}).items():
            self.macros.define(Macro(name=validate_macro_name(name), body=body))

    def process_line(self, line: str, line_number: int = 0) -> Optional[str]:
        """Handle one physical line. Returns None for define lines."""
        try:
            if is_define_line(line):
                self.macros.define(parse_define(line, line_number))
                return None
            return expand(line, self.macros)
        except RecursionError:
            raise NestingError(line=line_number) from None
        except PreprocessorError as e:
            if not e.line:
                e.line = line_number
            raise

    def process(self, document: str) -> str:
        output_lines: List[str] = []
        for line_number, line in enumerate(document.split('\n'), start=1):
            expanded = self.process_line(line, line_number)
            if expanded is not None:
                output_lines.append(expanded)
        return '\n'.join(output_lines)


def preprocess(document: str, predeclared: Optional[Iterable[str]] = None) -> str:
    """Preprocess *document* and return the expanded text.

    Raises:
        DefinitionError: A #define line names an invalid macro.
        InvocationError: An invocation's argument list is never closed.
        NestingError:    Invocations are nested inside arguments too deeply.
    """
    return Preprocessor(predeclared).process(document)


# ---------------------------------------------------------------------------
# Result-returning entry point
# ---------------------------------------------------------------------------

@dataclass
class PreprocessResult:
    """Outcome of a run: either ``output`` or ``error`` is set, never both."""
    output: Optional[str]
    error: Optional[PreprocessorError]
    macros: MacroTable

    @property
    def ok(self) -> bool:
        return self.error is None


def run_preprocessor(document: str, predeclared: Optional[Iterable[str]] = None,
                     definitions: Optional[Mapping[str, str]] = None) -> PreprocessResult:
    """Like preprocess(), but reports failure in the returned result.

    ``macros`` holds the table as it stood when the run finished or failed,
    which front ends use for listings, hovers and completions.
    """
    try:
        preprocessor = Preprocessor(predeclared, definitions)
    except PreprocessorError as e:
        return PreprocessResult(output=None, error=e, macros=MacroTable(predeclared))

    try:
        output = preprocessor.process(document)
    except PreprocessorError as e:
        logger.debug("preprocessing failed at line %d: %s", e.line, e)
        return PreprocessResult(output=None, error=e, macros=preprocessor.macros)
    return PreprocessResult(output=output, error=None, macros=preprocessor.macros)
