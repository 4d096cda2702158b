"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from ..models.record import SourceRecord
from ..models.migration import DataSource

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Typed rows of one legacy table."""
    table: str
    records: List[SourceRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    declared_columns: Optional[List[str]] = None  # from CREATE TABLE, when the source has one

    @property
    def total_extracted(self) -> int:
        return len(self.records)


class BaseExtractor(ABC):
    """
    Base class for legacy table extractors.

    An extractor reads the rows of one legacy table, decodes them
    positionally against the table's column manifest and hands them out as
    SourceRecord objects keyed by the legacy primary key.
    """

    def __init__(self, source: DataSource, columns: List[str], primary_key: str = "id"):
        """
        Initialize the extractor.

        Args:
            source: Data source; ``entity`` is the legacy table name
            columns: Ordered column manifest of the legacy table
            primary_key: Legacy primary key column
        """
        self.source = source
        self.columns = list(columns)
        self.primary_key = primary_key
        self._warnings: List[str] = []

    @property
    def table(self) -> str:
        return self.source.entity

    @abstractmethod
    def extract(self) -> ExtractionResult:
        """
        Extract every row of the table.

        Raises:
            SchemaDriftError: If rows do not match the column manifest
        """
        pass

    @abstractmethod
    def extract_batch(self, offset: int = 0, limit: int = 100) -> List[SourceRecord]:
        """Extract a slice of the table's rows."""
        pass

    def create_record(self, index: int, values: List[Any], raw_values: List[str]) -> SourceRecord:
        """
        Pair a decoded row with the column manifest.

        Rows without a primary key value get a positional id such as
        ``users#3`` so they can still be reported.
        """
        data: Dict[str, Any] = dict(zip(self.columns, values))
        legacy_id = data.get(self.primary_key)
        record_id = str(legacy_id) if legacy_id is not None else f"{self.table}#{index + 1}"
        return SourceRecord(
            id=record_id,
            source_service=self.source.service,
            source_entity=self.table,
            data=data,
            values=list(values),
            raw_values=list(raw_values),
            source_file=self.source.file_path,
            metadata={"row": index + 1},
        )

    def add_warning(self, message: str) -> None:
        self._warnings.append(message)
        logger.warning(f"Extraction warning: {message}")

    def get_extraction_result(
        self,
        records: List[SourceRecord],
        declared_columns: Optional[List[str]] = None
    ) -> ExtractionResult:
        return ExtractionResult(
            table=self.table,
            records=records,
            warnings=self._warnings.copy(),
            declared_columns=declared_columns,
        )

    def reset(self) -> None:
        self._warnings = []
