"""prepr Main Entry Point

Command-line interface for the macro preprocessor.
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .macros import MacroTable, is_valid_macro_name
from .preprocessor import PreprocessorError, run_preprocessor

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def parse_definitions(raw_definitions: List[str]) -> Tuple[Dict[str, str], Set[str]]:
    """Split ``-D`` values into macro definitions and predeclared flags.

    ``NAME=BODY`` defines a parameterless macro; a bare ``NAME`` is a build
    flag that must pass through untouched.
    """
    definitions: Dict[str, str] = {}
    flags: Set[str] = set()
    for raw in raw_definitions:
        if '=' in raw:
            name, body = raw.split('=', 1)
            definitions[name] = body
        else:
            flags.add(raw)
    return definitions, flags


def print_error(console: Console, error: PreprocessorError, path: str, source: str) -> None:
    console.print(f"[bold]{escape(error.location(path))}:[/bold] [red]error:[/red] "
                  f"{escape(error.message)}",
                  highlight=False)
    lines = source.split('\n')
    if 0 < error.line <= len(lines):
        console.print(f"  {lines[error.line - 1]}", markup=False, highlight=False)
        if error.column:
            console.print("  " + " " * (error.column - 1) + "[red]^[/red]", highlight=False)


def print_macro_table(console: Console, macros: MacroTable) -> None:
    table = Table(title="Macros")
    table.add_column("Line", justify="right")
    table.add_column("Macro")
    table.add_column("Body")
    for macro in macros.values():
        table.add_row(str(macro.line) if macro.line else "-",
                      escape(macro.signature), escape(macro.body))
    for name in sorted(macros.predeclared):
        table.add_row("-", escape(name), "[dim](predeclared)[/dim]")
    console.print(table)


def preprocess_file(input_path: Optional[Path], output_path: Optional[Path] = None,
                    predeclared: Optional[Set[str]] = None,
                    definitions: Optional[Dict[str, str]] = None,
                    list_macros: bool = False,
                    console: Optional[Console] = None) -> bool:
    """Preprocess a file (or stdin) and write the result.

    Args:
        input_path:  Source file, or None to read stdin
        output_path: Destination file, or None to write stdout
        predeclared: Names that must never be substituted
        definitions: Parameterless macros to install before the first line
        list_macros: Print the final macro table to stderr
        console:     Console used for diagnostics (stderr by default)

    Returns:
        True if preprocessing succeeded, False otherwise
    """
    if console is None:
        console = Console(stderr=True)

    display_path = str(input_path) if input_path is not None else "<stdin>"
    try:
        if input_path is None:
            source = sys.stdin.read()
        else:
            with open(input_path, 'r', encoding='utf-8') as f:
                source = f.read()
    except OSError as e:
        console.print(f"[red]Error:[/red] cannot read '{escape(display_path)}': {e.strerror}",
                      highlight=False)
        return False

    result = run_preprocessor(source, predeclared, definitions)

    if list_macros:
        print_macro_table(console, result.macros)

    if not result.ok:
        print_error(console, result.error, display_path, source)
        return False

    if output_path is None:
        sys.stdout.write(result.output)
    else:
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(result.output)
        logger.debug("wrote %s", output_path)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the preprocessor."""
    parser = argparse.ArgumentParser(
        prog="prepr",
        description="prepr - Expand #define macros in a text document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  prepr source.js                         # Print the expanded document
  prepr source.js -o out.js               # Write it to a file
  prepr source.js -D DEBUG -D PI=3.14     # Predeclare DEBUG, define PI
  cat source.js | prepr --list-macros     # Read stdin, show the macro table
"""
    )

    parser.add_argument(
        "input",
        nargs="?",
        type=Path,
        help="Input document (default: stdin, also '-')"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file (default: stdout)"
    )

    parser.add_argument(
        "-D",
        dest="definitions",
        action="append",
        default=[],
        metavar="NAME[=BODY]",
        help="Define NAME as BODY, or predeclare NAME when no body is given"
    )

    parser.add_argument(
        "-P", "--predeclared",
        action="append",
        default=[],
        metavar="NAME",
        help="Identifier that must never be substituted"
    )

    parser.add_argument(
        "--list-macros",
        action="store_true",
        help="Print the final macro table to stderr"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"prepr v{VERSION}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    definitions, flags = parse_definitions(args.definitions)
    for name in list(definitions) + list(flags) + args.predeclared:
        if not is_valid_macro_name(name):
            parser.error(f"invalid macro name for -D/-P: {name!r}")

    input_path = args.input
    if input_path is not None and str(input_path) == '-':
        input_path = None

    success = preprocess_file(
        input_path,
        args.output,
        predeclared=flags | set(args.predeclared),
        definitions=definitions,
        list_macros=args.list_macros,
    )

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
