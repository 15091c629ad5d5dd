"""prepr Macro Table

Holds the macro definitions visible while a document is being preprocessed
and validates the names that ``#define`` lines introduce.

Names follow a small identifier grammar: letters, digits, underscores and
``$``, where the first character may be a letter, a digit or ``$`` but never
an underscore. Lookups are case-sensitive and there is a single global
namespace per document.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)

MACRO_NAME_RE = re.compile(r'[A-Za-z0-9$][A-Za-z0-9_$]*')

INVALID_NAME_MESSAGE = (
    "Macro name can contain letters, digits, underscores, "
    "$ as the first symbol and can start with letter or digit or $"
)


class PreprocessorError(Exception):
    """Base class for every error raised while preprocessing a document."""
    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def location(self, path: Optional[str] = None) -> str:
        """Render 'path:line:column', leaving out the parts that are unknown."""
        parts = [path or "<input>"]
        if self.line:
            parts.append(str(self.line))
            if self.column:
                parts.append(str(self.column))
        return ":".join(parts)


class DefinitionError(PreprocessorError):
    """Raised when a #define line cannot be turned into a macro."""
    def __init__(self, message: str = INVALID_NAME_MESSAGE, line: int = 0, column: int = 0):
        super().__init__(message, line, column)


def is_valid_macro_name(name: str) -> bool:
    return MACRO_NAME_RE.fullmatch(name) is not None


def validate_macro_name(name: str, line: int = 0, column: int = 0) -> str:
    """Return *name* unchanged, or raise DefinitionError if it is not a legal macro name."""
    if not is_valid_macro_name(name):
        raise DefinitionError(line=line, column=column)
    return name


@dataclass
class Macro:
    """A named text-substitution rule with optional parameters."""
    name: str
    parameters: List[str] = field(default_factory=list)
    body: str = ""
    line: int = 0  # 1-based line of the #define, 0 for externally seeded macros

    @property
    def is_parameterized(self) -> bool:
        return bool(self.parameters)

    @property
    def signature(self) -> str:
        if not self.parameters:
            return self.name
        return f"{self.name}({', '.join(self.parameters)})"


class MacroTable(Dict[str, Macro]):
    """Mutable mapping of macro name to its current definition.

    Names passed as ``predeclared`` are opaque: they are never substituted,
    even if a ``#define`` later installs a macro of the same name.
    """

    def __init__(self, predeclared: Optional[Iterable[str]] = None):
        super().__init__()
        self.predeclared = frozenset(predeclared or ())

    def define(self, macro: Macro) -> Optional[Macro]:
        """Install *macro*, replacing any earlier definition. Returns the old one."""
        previous = self.get(macro.name)
        self[macro.name] = macro
        if macro.name in self.predeclared:
            logger.debug("macro %r shadows a predeclared name and will not be expanded",
                         macro.name)
        elif previous is not None:
            logger.debug("macro %r redefined at line %d (was line %d)",
                         macro.name, macro.line, previous.line)
        else:
            logger.debug("macro %r defined at line %d", macro.signature, macro.line)
        return previous

    def lookup(self, name: str) -> Optional[Macro]:
        """Return the macro an occurrence of *name* expands to, if any."""
        if name in self.predeclared:
            return None
        return self.get(name)
