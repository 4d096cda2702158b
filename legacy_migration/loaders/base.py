"""Base loader interface for the target store."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from ..models.record import TransformedRecord, MigrationResult

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """
    Base class for data loaders.

    Loaders write projected records into the target store. A record whose
    equivalent row already exists is skipped, never updated, so re-running
    a pass adds nothing.
    """

    def __init__(self, target_service: str, dry_run: bool = False):
        """
        Initialize the loader.

        Args:
            target_service: Name of the target store
            dry_run: If True, look up existing rows but never insert
        """
        self.target_service = target_service
        self.dry_run = dry_run
        self._inserted: Dict[str, List[str]] = {}  # table -> inserted ids

    @abstractmethod
    def find_existing(
        self,
        table: str,
        lookups: List[Dict[str, Any]],
        primary_key: str = "id"
    ) -> Optional[str]:
        """
        Find a row equivalent to a record.

        Args:
            table: Target table
            lookups: Column groups tried in order; all columns of a group
                must match
            primary_key: Primary key column

        Returns:
            Primary key of the first matching row, or None
        """
        pass

    @abstractmethod
    def insert_row(self, table: str, data: Dict[str, Any], primary_key: str = "id") -> Optional[str]:
        """
        Insert a row unless it conflicts with an existing one.

        Returns:
            Primary key of the inserted row, or None on conflict
        """
        pass

    @abstractmethod
    def fetch_value(self, table: str, column: str, key: str, primary_key: str = "id") -> Any:
        """Read one column of the row with the given primary key."""
        pass

    def load_record(self, record: TransformedRecord) -> MigrationResult:
        """
        Insert a record unless an equivalent row already exists.

        Args:
            record: Projected record

        Returns:
            MigrationResult; ``skipped`` carries the existing row's id
        """
        table = record.target_entity
        try:
            existing = self.find_existing(table, record.lookup_keys(), record.primary_key)
            if existing is not None:
                logger.info(f"Skipping {table} row {record.legacy_id}: already present as {existing}")
                return MigrationResult(record_id=record.id, target_id=existing, skipped=True)

            if self.dry_run:
                logger.debug(f"[dry-run] Would insert {table} row {record.legacy_id} as {record.id}")
                return MigrationResult(record_id=record.id, target_id=record.id, success=True)

            inserted = self.insert_row(table, record.data, record.primary_key)
            if inserted is None:
                logger.info(f"Skipping {table} row {record.legacy_id}: insert conflicted with an existing row")
                return MigrationResult(record_id=record.id, skipped=True)

            self._inserted.setdefault(table, []).append(inserted)
            return MigrationResult(
                record_id=record.id,
                target_id=inserted,
                success=True,
                loaded_at=datetime.utcnow(),
            )

        except Exception as e:
            logger.error(f"Failed to load {table} row {record.legacy_id}: {e}")
            return MigrationResult(
                record_id=record.id,
                success=False,
                error=str(e),
                error_code=type(e).__name__,
            )

    def inserted_counts(self) -> Dict[str, int]:
        """Rows inserted by this loader, per table."""
        return {table: len(ids) for table, ids in self._inserted.items()}

    def validate_connection(self) -> bool:
        """Validate the connection to the target store."""
        return True

    def close(self) -> None:
        """Release the connection to the target store."""
        pass
