"""Tuple tokenizer for the value list of a MySQL-style INSERT statement.

A single forward scan over ``(...), (...), ...;`` that splits the text into
raw tuples of undecoded literal tokens. Only the subset of the grammar that
mysqldump emits for extended inserts is understood: quoted strings with
backslash escapes, bare literals, and parentheses nested inside a field.
"""

from typing import List, Optional, Tuple

RawTuple = List[str]

QUOTES = ("'", '"')


class DumpParseError(Exception):
    """Structural error in a table's INSERT body (unbalanced quotes or parens)."""

    def __init__(self, message: str, table: Optional[str] = None, position: Optional[int] = None):
        self.table = table
        self.position = position
        self.reason = message
        where = f" at offset {position}" if position is not None else ""
        prefix = f"{table}: " if table else ""
        super().__init__(f"{prefix}{message}{where}")


def tokenize_values(
    text: str,
    start: int = 0,
    table: Optional[str] = None
) -> Tuple[List[RawTuple], int]:
    """
    Split a VALUES list into raw tuples.

    Scanning starts at ``start`` and stops after the first ``;`` found
    outside any tuple or string, or at the end of ``text``.

    Args:
        text: Text containing the tuple list
        start: Offset of the first character after ``VALUES``
        table: Table name, used in error messages

    Returns:
        Tuple of (raw tuples, offset just past the statement)

    Raises:
        DumpParseError: If quotes or parentheses are unbalanced
    """
    tuples: List[RawTuple] = []
    current: RawTuple = []
    buffer: List[str] = []
    depth = 0
    quote: Optional[str] = None
    escaped = False
    tuple_start = start

    position = start
    length = len(text)
    while position < length:
        char = text[position]

        if quote is not None:
            buffer.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            position += 1
            continue

        if depth == 0:
            if char == "(":
                depth = 1
                current = []
                buffer = []
                tuple_start = position
            elif char == ";":
                return tuples, position + 1
            elif char == ")":
                raise DumpParseError("unbalanced ')'", table, position)
            elif char != "," and not char.isspace():
                raise DumpParseError(f"unexpected {char!r} between tuples", table, position)
            position += 1
            continue

        if char in QUOTES:
            quote = char
            buffer.append(char)
        elif char == "(":
            depth += 1
            buffer.append(char)
        elif char == ")":
            depth -= 1
            if depth == 0:
                field = "".join(buffer).strip()
                if field or current:
                    current.append(field)
                tuples.append(current)
                buffer = []
            else:
                buffer.append(char)
        elif char == "," and depth == 1:
            current.append("".join(buffer).strip())
            buffer = []
        else:
            buffer.append(char)
        position += 1

    if quote is not None:
        raise DumpParseError(f"unterminated {quote} string", table, tuple_start)
    if depth:
        raise DumpParseError("unbalanced '('", table, tuple_start)
    return tuples, length


def tokenize_tuples(values: str, table: Optional[str] = None) -> List[RawTuple]:
    """Tokenize a complete ``(...), (...);`` value list."""
    tuples, _ = tokenize_values(values, 0, table)
    return tuples
