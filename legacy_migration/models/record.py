"""Record models for migration data."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime


@dataclass
class UnresolvedReference:
    """A foreign key whose legacy id is absent from the identity map."""
    kind: str
    legacy_id: str
    column: str
    table: str
    record_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind,
            "legacy_id": self.legacy_id,
            "column": self.column,
            "table": self.table,
            "record_id": self.record_id,
        }


@dataclass
class SourceRecord:
    """A typed row decoded from the legacy dump."""
    id: str
    source_entity: str
    data: Dict[str, Any]
    values: List[Any] = field(default_factory=list)  # positional typed row
    raw_values: List[str] = field(default_factory=list)  # undecoded tokens
    source_service: str = "legacy"
    source_file: Optional[str] = None
    extracted_at: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "source_service": self.source_service,
            "source_entity": self.source_entity,
            "data": self.data,
            "extracted_at": self.extracted_at.isoformat(),
            "source_file": self.source_file,
            "metadata": self.metadata,
        }


@dataclass
class TransformedRecord:
    """A projected row ready for the target store."""
    id: str
    target_service: str
    target_entity: str
    data: Dict[str, Any]
    kind: Optional[str] = None
    legacy_id: Optional[str] = None
    primary_key: str = "id"
    natural_keys: List[List[str]] = field(default_factory=list)
    preassigned: bool = False  # surrogate came from the identity map, not minted
    source_records: List[SourceRecord] = field(default_factory=list)
    transformed_at: datetime = field(default_factory=datetime.utcnow)
    unresolved_references: List[UnresolvedReference] = field(default_factory=list)
    missing_required: List[str] = field(default_factory=list)
    synthesized_columns: List[str] = field(default_factory=list)  # made up this pass, unfit for lookups
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "kind": self.kind,
            "legacy_id": self.legacy_id,
            "target_service": self.target_service,
            "target_entity": self.target_entity,
            "data": self.data,
            "source_records": [{"id": r.id, "service": r.source_service, "entity": r.source_entity}
                              for r in self.source_records],
            "transformed_at": self.transformed_at.isoformat(),
            "unresolved_references": [r.to_dict() for r in self.unresolved_references],
            "missing_required": self.missing_required,
            "synthesized_columns": self.synthesized_columns,
            "warnings": self.warnings,
            "metadata": self.metadata,
        }

    @property
    def is_valid(self) -> bool:
        """A record is loadable unless a required reference is missing."""
        return not self.missing_required

    def lookup_keys(self) -> List[Dict[str, Any]]:
        """
        Column groups that identify an equivalent row in the target store.

        The surrogate id comes first. Natural-key groups are dropped when
        they contain a NULL value, which never matches, or a synthesized
        value, which a previous pass would have made up differently.
        """
        lookups: List[Dict[str, Any]] = [{self.primary_key: self.id}]
        for group in self.natural_keys:
            if any(column in self.synthesized_columns for column in group):
                continue
            values = {column: self.data.get(column) for column in group}
            if values and all(v is not None and v != "" for v in values.values()):
                lookups.append(values)
        return lookups


@dataclass
class MigrationResult:
    """Result of attempting to load a record to the target."""
    record_id: str
    target_id: Optional[str] = None  # id of the row in the target store
    success: bool = False
    skipped: bool = False  # an equivalent row already existed
    error: Optional[str] = None
    error_code: Optional[str] = None
    loaded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "record_id": self.record_id,
            "target_id": self.target_id,
            "success": self.success,
            "skipped": self.skipped,
            "error": self.error,
            "error_code": self.error_code,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
        }
