"""Lark parser setup for type declarations."""
from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from lark import Lark, Tree, UnexpectedInput

GRAMMAR_PATH = Path(__file__).parent.parent / "grammar.lark"


@lru_cache(maxsize=1)
def _parser() -> Lark:
    return Lark.open(
        str(GRAMMAR_PATH),
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=False,
        lexer="basic",
    )


def improve_parse_error(e: UnexpectedInput) -> str:
    """Improve parsing error messages for common cases."""
    error_text = str(e)

    if "Expected one of:" in error_text and "SEMICOLON" in error_text:
        lines = error_text.split('\n')
        location_line = lines[0] if lines else ""
        if re.search(r'at line (\d+)', location_line):
            return f"{location_line}\nParsing error: missing ';' after a field declaration."

    return error_text


def parse_declarations(src: str, dump_parse: bool = False) -> Tree:
    """Parse declaration source into a Lark tree.

    Raises:
        UnexpectedInput: on a syntax error.
    """
    tree = _parser().parse(src)
    if dump_parse:
        print(tree.pretty())
    return tree
