"""Migration orchestrator - coordinates a migration pass over the legacy dump."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from .models.schema import EntityKind, ProjectionCatalog, TableProjection
from .models.migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStep,
    MigrationStatus,
    DataSource,
)
from .models.record import SourceRecord, TransformedRecord
from .services.identity_map import IdentityMapRegistry
from .services.projections import build_default_catalog
from .services.projector import RowProjector
from .services.transformer import TransformEngine
from .extractors.dump_extractor import (
    DumpExtractor,
    extract_table_tuples,
    list_dump_tables,
    read_create_table_columns,
    read_dump,
)
from .loaders.base import BaseLoader
from .loaders.postgres_loader import PostgresLoader
from .settings import TargetDatabaseSettings

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates a migration pass.

    A pass loads the identity map, reads the dump once, orders the
    requested kinds by their foreign-key dependencies and migrates each
    kind in turn: extract, project, insert or skip, register. The identity
    map is saved exactly once when the pass ends, including when a kind
    failed.
    """

    def __init__(
        self,
        config: MigrationConfig,
        catalog: Optional[ProjectionCatalog] = None,
        loader: Optional[BaseLoader] = None,
        registry: Optional[IdentityMapRegistry] = None,
        transformer: Optional[TransformEngine] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            catalog: Table projections (built-in catalog if omitted)
            loader: Target writer (PostgreSQL from DB_* settings if omitted)
            registry: Identity map (read from ``config.identity_map_path`` if omitted)
            transformer: Transform engine with any custom transforms registered
        """
        self.config = config
        if catalog is None:
            catalog = (
                ProjectionCatalog.from_json_file(config.mapping_file)
                if config.mapping_file else build_default_catalog()
            )
        self.catalog = catalog
        self.registry = registry or IdentityMapRegistry(config.identity_map_path)
        self.transformer = transformer or TransformEngine()
        self.projector = RowProjector(self.transformer)
        self.loader = loader
        self._owns_loader = loader is None

        # Runtime state
        self.run: Optional[MigrationRun] = None
        self._dump_text: Optional[str] = None

        self.logs_dir = Path(self.config.output_dir) / "logs"

    def legacy_table_name(self, projection: TableProjection) -> str:
        """Name of the projection's table inside the dump."""
        return f"{self.config.table_prefix}{projection.legacy_table}"

    def load_dump(self) -> str:
        """Read the dump once per orchestrator."""
        if self._dump_text is None:
            if not self.config.dump_path:
                raise ValueError("No dump path configured")
            logger.info(f"Reading dump {self.config.dump_path}")
            self._dump_text = read_dump(self.config.dump_path, self.config.encoding)
            logger.info(f"Dump size: {len(self._dump_text) / 1024 / 1024:.2f} MB")
        return self._dump_text

    def plan(self, kinds: Optional[Iterable[Any]] = None) -> List[EntityKind]:
        """Dependency order of the requested kinds (all configured kinds if omitted)."""
        if kinds is None:
            kinds = self.config.kinds or None
        return self.catalog.migration_order(kinds)

    def run_pass(self, kinds: Optional[Iterable[Any]] = None) -> MigrationRun:
        """
        Run one migration pass.

        Args:
            kinds: Kinds to migrate; defaults to ``config.kinds``, then to
                every kind in the catalog

        Returns:
            MigrationRun with per-kind results
        """
        self.run = MigrationRun(
            name=self.config.name,
            dump_path=self.config.dump_path,
            identity_map_path=self.config.identity_map_path,
            dry_run=self.config.dry_run,
        )
        self.run.started_at = datetime.utcnow()
        self.run.status = MigrationStatus.EXTRACTING
        map_loaded = False

        try:
            self.registry.load()
            map_loaded = True

            order = self.plan(kinds)
            self.run.kinds = [kind.value for kind in order]
            logger.info(f"Migration order: {', '.join(self.run.kinds)}")

            text = self.load_dump()
            loader = self._get_loader()
            if not loader.validate_connection():
                raise RuntimeError("Failed to connect to target store")

            context: Dict[str, Any] = {
                "registry": self.registry,
                "lookup": loader.fetch_value,
                "sequences": {},
            }

            migrated: Set[EntityKind] = set()
            for kind in order:
                step = self._migrate_kind(self.catalog.get(kind), text, context, migrated)
                if step.status == MigrationStatus.COMPLETED:
                    migrated.add(kind)
                elif not self.config.continue_on_error:
                    logger.error(f"Stopping pass after failure of {kind.value}")
                    break

            self.run.status = MigrationStatus.FAILED if self.run.failed_steps else MigrationStatus.COMPLETED

        except Exception as e:
            logger.error(f"Migration pass failed: {e}")
            self.run.status = MigrationStatus.FAILED
            self.run.errors.append({
                "error": str(e),
                "error_type": type(e).__name__,
                "timestamp": datetime.utcnow().isoformat(),
            })

        finally:
            if map_loaded and not self.config.dry_run:
                self._save_identity_map()
            self.run.identity_conflicts = [c.to_dict() for c in self.registry.conflicts]
            self.run.identity_map_sizes = self.registry.sizes()
            self.run.current_step = None
            self.run.completed_at = datetime.utcnow()
            self.run.update_totals()
            if self._owns_loader and self.loader is not None:
                self.loader.close()
                self.loader = None
            if self.config.save_report:
                self._save_report()

        return self.run

    def _get_loader(self) -> BaseLoader:
        if self.loader is None:
            settings = TargetDatabaseSettings.from_env(overrides=self.config.target)
            self.loader = PostgresLoader(settings, dry_run=self.config.dry_run)
        elif self.config.dry_run:
            self.loader.dry_run = True
        return self.loader

    def _migrate_kind(
        self,
        projection: TableProjection,
        text: str,
        context: Dict[str, Any],
        migrated: Set[EntityKind]
    ) -> MigrationStep:
        """Migrate every row of one legacy table."""
        table = self.legacy_table_name(projection)
        step = self.run.add_step(
            name=f"Migrate {table} to {projection.target_table}",
            entity=projection.kind.value,
        )
        step.legacy_table = table
        step.target_table = projection.target_table
        step.status = MigrationStatus.EXTRACTING
        step.started_at = datetime.utcnow()
        self.run.current_step = step.id

        for dependency in projection.dependencies:
            if dependency not in migrated and not self.registry.has_kind(dependency):
                message = (
                    f"{projection.kind.value} references {dependency.value}, which has not been "
                    f"migrated; those references will be NULL"
                )
                step.warnings.append(message)
                logger.warning(message)

        try:
            source = DataSource(
                name=projection.kind.value,
                entity=table,
                file_path=self.config.dump_path,
                encoding=self.config.encoding,
            )
            extractor = DumpExtractor(
                source,
                projection.legacy_columns,
                text=text,
                primary_key=projection.legacy_primary_key,
            )
            extraction = extractor.extract()
            step.warnings.extend(extraction.warnings)

            step.status = MigrationStatus.LOADING
            for record in extraction.records:
                self._migrate_record(record, projection, step, context)

                if self.config.max_errors and step.records_failed >= self.config.max_errors:
                    raise RuntimeError(f"Max errors ({self.config.max_errors}) exceeded")

            step.status = MigrationStatus.COMPLETED
            logger.info(
                f"{projection.kind.value}: {step.records_succeeded} inserted, "
                f"{step.records_skipped} skipped, {step.records_failed} failed "
                f"of {step.records_processed}"
            )

        except Exception as e:
            step.status = MigrationStatus.FAILED
            error = {
                "kind": projection.kind.value,
                "table": table,
                "error": str(e),
                "error_type": type(e).__name__,
                "timestamp": datetime.utcnow().isoformat(),
            }
            step.errors.append(error)
            self.run.errors.append(error)
            logger.error(f"Migration of {table} failed: {e}")

        finally:
            step.completed_at = datetime.utcnow()

        return step

    def _migrate_record(
        self,
        record: SourceRecord,
        projection: TableProjection,
        step: MigrationStep,
        context: Dict[str, Any]
    ) -> None:
        """Project, load and register a single row."""
        kind = projection.kind
        step.records_processed += 1
        transformed: Optional[TransformedRecord] = None

        try:
            transformed = self.projector.project(record, projection, self.registry, context)
            step.unresolved_references.extend(ref.to_dict() for ref in transformed.unresolved_references)

            if not transformed.is_valid:
                self.registry.withdraw(kind, transformed.legacy_id)
                self._record_failure(
                    step, record,
                    f"missing required reference(s): {', '.join(transformed.missing_required)}",
                )
                return

            result = self.loader.load_record(transformed)

        except Exception as e:
            if transformed is not None:
                self.registry.withdraw(kind, transformed.legacy_id)
            self._record_failure(step, record, str(e))
            return

        if result.skipped:
            self.registry.withdraw(kind, transformed.legacy_id)
            if result.target_id:
                self.registry.register(kind, transformed.legacy_id, result.target_id)
            step.records_skipped += 1
        elif result.success:
            self.registry.confirm(kind, transformed.legacy_id)
            step.records_succeeded += 1
        else:
            self.registry.withdraw(kind, transformed.legacy_id)
            self._record_failure(step, record, result.error or "insert failed")

    def _record_failure(self, step: MigrationStep, record: SourceRecord, message: str) -> None:
        step.records_failed += 1
        step.errors.append({
            "record_id": record.id,
            "table": step.legacy_table,
            "error": message,
        })
        logger.error(f"{step.legacy_table} row {record.id}: {message}")

    def _save_identity_map(self) -> None:
        try:
            self.registry.save()
            self.run.identity_map_saved = True
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save identity map: {e}")
            self.run.status = MigrationStatus.FAILED
            self.run.errors.append({
                "error": f"identity map not saved: {e}",
                "error_type": type(e).__name__,
                "timestamp": datetime.utcnow().isoformat(),
            })

    def _save_report(self):
        """Save the migration report."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.logs_dir / f"migration_report_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.json"
        with open(filepath, 'w', encoding="utf-8") as f:
            json.dump(self.run.to_dict(), f, indent=2, default=str, ensure_ascii=False)
        self.run.metadata["report_path"] = str(filepath)
        logger.info(f"Saved migration report to {filepath}")

    def preview(self, kind: Any, limit: int = 5) -> List[TransformedRecord]:
        """
        Project the first rows of one kind without touching the target store.

        Surrogates are minted against a throwaway copy of the identity map.
        """
        projection = self.catalog.get(kind)
        registry = self.registry.copy()
        registry.load()

        source = DataSource(
            name=projection.kind.value,
            entity=self.legacy_table_name(projection),
            file_path=self.config.dump_path,
            encoding=self.config.encoding,
        )
        extractor = DumpExtractor(
            source,
            projection.legacy_columns,
            text=self.load_dump(),
            primary_key=projection.legacy_primary_key,
        )
        context: Dict[str, Any] = {"registry": registry, "sequences": {}}
        return [
            self.projector.project(record, projection, registry, context)
            for record in extractor.extract_batch(0, limit)
        ]

    def inspect_dump(self) -> Dict[str, Any]:
        """Row counts and column drift of every declared table in the dump."""
        text = self.load_dump()
        dump_tables = list_dump_tables(text)
        declared_tables = []
        tables = []

        for projection in self.catalog.projections.values():
            table = self.legacy_table_name(projection)
            declared_tables.append(table)
            entry: Dict[str, Any] = {
                "kind": projection.kind.value,
                "legacy_table": table,
                "target_table": projection.target_table,
                "manifest_columns": len(projection.legacy_columns),
                "rows": None,
                "create_table_columns": None,
                "drift": False,
                "error": None,
            }

            declared = read_create_table_columns(text, table)
            if declared is not None:
                entry["create_table_columns"] = len(declared)
                entry["drift"] = declared != projection.legacy_columns

            try:
                tuples, _ = extract_table_tuples(text, table)
                entry["rows"] = len(tuples)
                if any(len(t) != len(projection.legacy_columns) for t in tuples):
                    entry["drift"] = True
            except Exception as e:
                entry["error"] = str(e)
                logger.error(f"Cannot parse {table}: {e}")

            tables.append(entry)

        return {
            "dump_path": self.config.dump_path,
            "tables": tables,
            "unmapped_tables": [t for t in dump_tables if t not in declared_tables],
        }
