"""Decoding of raw dump literals into Python scalars."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence

from .tokenizer import QUOTES

# mysqldump backslash escapes; any other escaped char stands for itself
_ESCAPES = {
    "0": "\0",
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?$")


def unescape(body: str) -> str:
    """Resolve backslash escapes of a quoted literal's body in one pass."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def decode_value(token: Optional[str]) -> Any:
    """
    Convert one raw literal token into a typed scalar.

    ``NULL`` (any case) becomes None, quoted literals become unescaped
    strings, integers become int and decimals Decimal. Anything else is
    returned as the trimmed token. Never raises.
    """
    if token is None:
        return None

    text = token.strip()
    if text.upper() == "NULL":
        return None

    if len(text) >= 2 and text[0] in QUOTES and text[-1] == text[0]:
        return unescape(text[1:-1])

    if _INTEGER_RE.match(text):
        return int(text)

    if _DECIMAL_RE.match(text):
        try:
            return Decimal(text)
        except InvalidOperation:
            return text

    return text


def decode_row(raw_tuple: Sequence[str]) -> List[Any]:
    """Decode every token of a raw tuple."""
    return [decode_value(token) for token in raw_tuple]
