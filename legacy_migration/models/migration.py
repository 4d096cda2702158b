"""Migration execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime
import uuid


class MigrationStatus(str, Enum):
    """Status of a migration pass or one of its steps."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    LOADING = "loading"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DataSource:
    """One legacy table inside a dump file."""
    name: str
    entity: str  # legacy table name, prefix included
    file_path: Optional[str] = None
    service: str = "legacy"
    encoding: str = "utf-8"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "service": self.service,
            "entity": self.entity,
            "file_path": self.file_path,
            "encoding": self.encoding,
        }


@dataclass
class MigrationStep:
    """Migration of a single entity kind within a pass."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    entity: str = ""
    legacy_table: str = ""
    target_table: str = ""
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    records_processed: int = 0
    records_succeeded: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unresolved_references: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "entity": self.entity,
            "legacy_table": self.legacy_table,
            "target_table": self.target_table,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "records_processed": self.records_processed,
            "records_succeeded": self.records_succeeded,
            "records_failed": self.records_failed,
            "records_skipped": self.records_skipped,
            "errors": self.errors,
            "warnings": self.warnings,
            "unresolved_references": self.unresolved_references,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class MigrationRun:
    """One migration pass over one or more entity kinds."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: MigrationStatus = MigrationStatus.PENDING

    # Inputs
    dump_path: Optional[str] = None
    identity_map_path: Optional[str] = None
    dry_run: bool = False
    kinds: List[str] = field(default_factory=list)

    # Timing
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Progress
    steps: List[MigrationStep] = field(default_factory=list)
    current_step: Optional[str] = None

    # Statistics
    total_records_processed: int = 0
    total_records_succeeded: int = 0
    total_records_failed: int = 0
    total_records_skipped: int = 0

    # Errors and identity map
    errors: List[Dict[str, Any]] = field(default_factory=list)
    identity_conflicts: List[Dict[str, Any]] = field(default_factory=list)
    identity_map_sizes: Dict[str, int] = field(default_factory=dict)
    identity_map_saved: bool = False

    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "dump_path": self.dump_path,
            "identity_map_path": self.identity_map_path,
            "dry_run": self.dry_run,
            "kinds": self.kinds,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "steps": [s.to_dict() for s in self.steps],
            "current_step": self.current_step,
            "total_records_processed": self.total_records_processed,
            "total_records_succeeded": self.total_records_succeeded,
            "total_records_failed": self.total_records_failed,
            "total_records_skipped": self.total_records_skipped,
            "errors": self.errors,
            "identity_conflicts": self.identity_conflicts,
            "identity_map_sizes": self.identity_map_sizes,
            "identity_map_saved": self.identity_map_saved,
            "metadata": self.metadata,
        }

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def failed_steps(self) -> List[MigrationStep]:
        """Steps whose whole table migration was aborted."""
        return [s for s in self.steps if s.status == MigrationStatus.FAILED]

    @property
    def unresolved_references(self) -> List[Dict[str, Any]]:
        return [ref for step in self.steps for ref in step.unresolved_references]

    def add_step(self, name: str, entity: str) -> MigrationStep:
        """Add a new step to the migration."""
        step = MigrationStep(name=name, entity=entity)
        self.steps.append(step)
        return step

    def get_step(self, entity: str) -> Optional[MigrationStep]:
        """Get a step by entity kind."""
        for step in self.steps:
            if step.entity == entity:
                return step
        return None

    def update_totals(self) -> None:
        """Update total statistics from steps."""
        self.total_records_processed = sum(s.records_processed for s in self.steps)
        self.total_records_succeeded = sum(s.records_succeeded for s in self.steps)
        self.total_records_failed = sum(s.records_failed for s in self.steps)
        self.total_records_skipped = sum(s.records_skipped for s in self.steps)


@dataclass
class MigrationConfig:
    """Configuration for a migration pass."""
    name: str = "legacy-migration"
    dump_path: str = ""
    identity_map_path: str = "id-mapping.json"
    encoding: str = "utf-8"
    table_prefix: str = "tfkz_"

    # Selection; empty means every declared kind
    kinds: List[str] = field(default_factory=list)
    mapping_file: Optional[str] = None

    # Target store; overrides DB_* environment variables
    target: Dict[str, Any] = field(default_factory=dict)

    # Execution options
    dry_run: bool = False
    continue_on_error: bool = True
    max_errors: Optional[int] = None  # failed rows per table before aborting it

    # Output
    output_dir: str = "./data"
    save_report: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (password omitted)."""
        return {
            "name": self.name,
            "dump_path": self.dump_path,
            "identity_map_path": self.identity_map_path,
            "encoding": self.encoding,
            "table_prefix": self.table_prefix,
            "kinds": self.kinds,
            "mapping_file": self.mapping_file,
            "target": {k: v for k, v in self.target.items() if k != "password"},
            "dry_run": self.dry_run,
            "continue_on_error": self.continue_on_error,
            "max_errors": self.max_errors,
            "output_dir": self.output_dir,
            "save_report": self.save_report,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        kinds = data.get("kinds", [])
        if isinstance(kinds, str):
            kinds = [k.strip() for k in kinds.split(",") if k.strip()]

        return cls(
            name=data.get("name", "legacy-migration"),
            dump_path=data.get("dump_path", ""),
            identity_map_path=data.get("identity_map_path", "id-mapping.json"),
            encoding=data.get("encoding", "utf-8"),
            table_prefix=data.get("table_prefix", "tfkz_"),
            kinds=list(kinds),
            mapping_file=data.get("mapping_file"),
            target=dict(data.get("target", {})),
            dry_run=data.get("dry_run", False),
            continue_on_error=data.get("continue_on_error", True),
            max_errors=data.get("max_errors"),
            output_dir=data.get("output_dir", "./data"),
            save_report=data.get("save_report", True),
        )
