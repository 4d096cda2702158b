"""Data models for the migration application."""

from .schema import (
    EntityKind,
    MigrationStage,
    TransformType,
    ColumnMapping,
    TableProjection,
    ProjectionCatalog,
)
from .migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStep,
    MigrationStatus,
    DataSource,
)
from .record import (
    SourceRecord,
    TransformedRecord,
    MigrationResult,
    UnresolvedReference,
)

__all__ = [
    "EntityKind",
    "MigrationStage",
    "TransformType",
    "ColumnMapping",
    "TableProjection",
    "ProjectionCatalog",
    "MigrationConfig",
    "MigrationRun",
    "MigrationStep",
    "MigrationStatus",
    "DataSource",
    "SourceRecord",
    "TransformedRecord",
    "MigrationResult",
    "UnresolvedReference",
]
