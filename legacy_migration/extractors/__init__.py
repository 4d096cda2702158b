"""Readers for the legacy dump."""

from .base import BaseExtractor, ExtractionResult
from .tokenizer import DumpParseError, tokenize_values, tokenize_tuples
from .decoder import decode_value, decode_row
from .dump_extractor import (
    DumpExtractor,
    SchemaDriftError,
    extract_table_tuples,
    list_dump_tables,
    read_create_table_columns,
    read_dump,
)

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "DumpParseError",
    "tokenize_values",
    "tokenize_tuples",
    "decode_value",
    "decode_row",
    "DumpExtractor",
    "SchemaDriftError",
    "extract_table_tuples",
    "list_dump_tables",
    "read_create_table_columns",
    "read_dump",
]
