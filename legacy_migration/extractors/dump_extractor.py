"""Extractor for tables inside a MySQL-style textual dump."""

import logging
import re
from collections import OrderedDict
from typing import Iterator, List, Optional, Tuple

from .base import BaseExtractor, ExtractionResult
from .decoder import decode_row
from .tokenizer import RawTuple, tokenize_values
from ..models.migration import DataSource
from ..models.record import SourceRecord

logger = logging.getLogger(__name__)

_INSERT_PREFIX = r"(?:INSERT(?:\s+IGNORE)?|REPLACE)\s+INTO\s+"
_INSERT_RE = re.compile(
    _INSERT_PREFIX + r"`?(?P<table>\w+)`?\s*(?:\((?P<columns>[^)]*)\)\s*)?VALUES\s*",
    re.IGNORECASE,
)
# Rest of a statement up to its terminating semicolon, skipping quoted text
_STATEMENT_REST_RE = re.compile(
    r"""(?:'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|[^'";])*;""",
    re.DOTALL,
)
_COLUMN_LINE_RE = re.compile(r"^\s*`(?P<name>[^`]+)`\s", re.MULTILINE)


class SchemaDriftError(Exception):
    """A table's dump rows do not match its declared column manifest."""

    def __init__(
        self,
        table: str,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        mismatched_rows: int = 0
    ):
        self.table = table
        self.expected = expected
        self.actual = actual
        self.mismatched_rows = mismatched_rows
        super().__init__(f"{table}: {message}")


def read_dump(file_path: str, encoding: str = "utf-8") -> str:
    """
    Read a whole dump file into memory.

    Undecodable bytes are replaced rather than aborting the pass.
    """
    try:
        with open(file_path, 'r', encoding=encoding) as f:
            return f.read()
    except UnicodeDecodeError as e:
        logger.warning(f"Dump {file_path} is not valid {encoding} ({e}); replacing undecodable bytes")
        with open(file_path, 'r', encoding=encoding, errors="replace") as f:
            return f.read()


def _statement_end(text: str, start: int) -> int:
    """Offset just past the semicolon closing the statement that continues at ``start``."""
    match = _STATEMENT_REST_RE.match(text, start)
    return match.end() if match else len(text)


def _insert_statements(text: str) -> Iterator["re.Match[str]"]:
    """
    Yield the INSERT statements of a dump in order.

    The search resumes only after the end of each statement, so SQL quoted
    inside another statement's string literals is never taken for a
    statement of its own.
    """
    position = 0
    while True:
        match = _INSERT_RE.search(text, position)
        if not match:
            return
        yield match
        position = _statement_end(text, match.end())


def _split_column_list(columns: str) -> List[str]:
    return [c.strip().strip("`").strip() for c in columns.split(",") if c.strip()]


def extract_table_tuples(text: str, table: str) -> Tuple[List[RawTuple], Optional[List[str]]]:
    """
    Collect the raw tuples of every INSERT statement targeting ``table``.

    Returns:
        Tuple of (raw tuples in dump order, explicit column list if the
        statements name one)

    Raises:
        DumpParseError: If a statement body is malformed
        SchemaDriftError: If statements name different column lists
    """
    tuples: List[RawTuple] = []
    columns: Optional[List[str]] = None

    for match in _insert_statements(text):
        if match.group("table").lower() != table.lower():
            continue

        if match.group("columns") is not None:
            statement_columns = _split_column_list(match.group("columns"))
            if columns is not None and statement_columns != columns:
                raise SchemaDriftError(table, "INSERT statements name different column lists")
            columns = statement_columns

        statement_tuples, _ = tokenize_values(text, match.end(), table)
        tuples.extend(statement_tuples)

    return tuples, columns


def read_create_table_columns(text: str, table: str) -> Optional[List[str]]:
    """Column names declared by the table's CREATE TABLE statement, if present."""
    match = re.search(
        rf"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?`?{re.escape(table)}`?\s*\(",
        text,
        re.IGNORECASE,
    )
    if not match:
        return None

    end = re.compile(r"^\)", re.MULTILINE).search(text, match.end())
    body = text[match.end():end.start() if end else len(text)]
    return [m.group("name") for m in _COLUMN_LINE_RE.finditer(body)]


def list_dump_tables(text: str) -> List[str]:
    """Tables that have INSERT statements, in dump order."""
    tables: "OrderedDict[str, None]" = OrderedDict()
    for match in _insert_statements(text):
        tables.setdefault(match.group("table"), None)
    return list(tables)


class DumpExtractor(BaseExtractor):
    """
    Extractor for one legacy table of a dump.

    Rows are decoded positionally against the declared column manifest.
    Any tuple whose length differs from the manifest fails the whole table
    so fields are never silently shifted.
    """

    def __init__(
        self,
        source: DataSource,
        columns: List[str],
        text: Optional[str] = None,
        primary_key: str = "id"
    ):
        """
        Initialize the dump extractor.

        Args:
            source: Data source; ``entity`` is the legacy table name
            columns: Ordered column manifest of the legacy table
            text: Dump text already read by the caller (read from
                ``source.file_path`` otherwise)
            primary_key: Legacy primary key column
        """
        super().__init__(source, columns, primary_key)
        self._text = text
        self._records: Optional[List[SourceRecord]] = None

    def load_text(self) -> str:
        if self._text is None:
            if not self.source.file_path:
                raise ValueError("No dump text or file path configured")
            self._text = read_dump(self.source.file_path, self.source.encoding)
        return self._text

    def extract(self) -> ExtractionResult:
        """Extract and decode every row of the table."""
        self.reset()
        text = self.load_text()

        raw_tuples, explicit_columns = extract_table_tuples(text, self.table)
        if explicit_columns is not None and explicit_columns != self.columns:
            raise SchemaDriftError(
                self.table,
                f"INSERT column list {explicit_columns} differs from manifest {self.columns}",
                expected=len(self.columns),
                actual=len(explicit_columns),
            )

        declared = read_create_table_columns(text, self.table)
        if declared is not None and declared != self.columns:
            self.add_warning(f"{self.table}: CREATE TABLE columns differ from manifest")

        if not raw_tuples:
            self.add_warning(f"No rows found for table {self.table}")

        self.check_shape(raw_tuples)

        records = [
            self.create_record(index, decode_row(raw), raw)
            for index, raw in enumerate(raw_tuples)
        ]
        self._records = records
        logger.info(f"Extracted {len(records)} rows from {self.table}")

        return self.get_extraction_result(records, declared)

    def extract_batch(self, offset: int = 0, limit: int = 100) -> List[SourceRecord]:
        """Extract a slice of the table's rows."""
        if self._records is None:
            self.extract()
        return self._records[offset:offset + limit]

    def check_shape(self, raw_tuples: List[RawTuple]) -> None:
        """
        Verify every tuple has exactly one field per manifest column.

        Raises:
            SchemaDriftError: If any tuple has a different length
        """
        expected = len(self.columns)
        mismatched = [(i, len(t)) for i, t in enumerate(raw_tuples) if len(t) != expected]
        if not mismatched:
            return

        index, actual = mismatched[0]
        raise SchemaDriftError(
            self.table,
            f"{len(mismatched)} row(s) do not match the {expected}-column manifest "
            f"(first at row {index + 1} with {actual} fields)",
            expected=expected,
            actual=actual,
            mismatched_rows=len(mismatched),
        )

