"""Projection of typed legacy rows onto target rows."""

import logging
from typing import Any, Dict, Optional

from .identity_map import IdentityMapRegistry, normalize_legacy_id
from .transformer import TransformEngine
from ..models.record import SourceRecord, TransformedRecord, UnresolvedReference
from ..models.schema import ColumnMapping, TableProjection

logger = logging.getLogger(__name__)


def is_null_reference(value: Any) -> bool:
    """Legacy foreign keys use NULL, '' and 0 for "no reference"."""
    key = normalize_legacy_id(value)
    return key is None or key == "0"


class RowProjector:
    """
    Turns a typed row into a projected row for the target store.

    The primary key is handled first: an id already in the identity map is
    reused, otherwise a new surrogate is minted and registered before any
    other column, so rows of the same table may reference it. Foreign keys
    are then resolved through the identity map; a legacy id that is not
    registered becomes NULL and is reported. All remaining columns go
    through the transform engine.
    """

    def __init__(self, engine: Optional[TransformEngine] = None, target_service: str = "postgres"):
        self.engine = engine or TransformEngine()
        self.target_service = target_service

    def project(
        self,
        record: SourceRecord,
        projection: TableProjection,
        registry: IdentityMapRegistry,
        context: Optional[Dict[str, Any]] = None
    ) -> TransformedRecord:
        """
        Project one typed row.

        Args:
            record: Decoded legacy row
            projection: Projection declared for the row's table
            registry: Identity map of the current pass
            context: Transform context shared across the pass

        Returns:
            Projected record

        Raises:
            ValueError: If the row has no primary key value
        """
        context = context if context is not None else {}
        context.setdefault("registry", registry)
        data = record.data
        kind = projection.kind

        legacy_id = normalize_legacy_id(data.get(projection.legacy_primary_key))
        if legacy_id is None:
            raise ValueError(
                f"{projection.legacy_table}: row {record.id} has no {projection.legacy_primary_key} value"
            )

        existing = registry.resolve(kind, legacy_id)
        surrogate = existing or registry.mint(kind, legacy_id)

        target_data: Dict[str, Any] = {projection.target_primary_key: surrogate}
        transformed = TransformedRecord(
            id=surrogate,
            target_service=self.target_service,
            target_entity=projection.target_table,
            data=target_data,
            kind=kind.value,
            legacy_id=legacy_id,
            primary_key=projection.target_primary_key,
            natural_keys=[list(group) for group in projection.natural_keys],
            preassigned=existing is not None,
            source_records=[record],
        )

        for mapping in projection.column_mappings:
            if mapping.target_column == projection.target_primary_key:
                continue

            if mapping.is_foreign_key:
                target_data[mapping.target_column] = self._resolve_reference(
                    mapping, record, projection, registry, transformed
                )
                continue

            try:
                value, synthesized = self.engine.evaluate(mapping, data, context)
                target_data[mapping.target_column] = value
                if synthesized:
                    transformed.synthesized_columns.append(mapping.target_column)
            except Exception as e:
                message = f"Transform error for {mapping.target_column}: {e}"
                transformed.warnings.append(message)
                target_data[mapping.target_column] = mapping.default_value
                logger.error(f"{projection.legacy_table} row {legacy_id}: {message}")

        return transformed

    def _resolve_reference(
        self,
        mapping: ColumnMapping,
        record: SourceRecord,
        projection: TableProjection,
        registry: IdentityMapRegistry,
        transformed: TransformedRecord
    ) -> Optional[str]:
        value = record.data.get(mapping.source_column)
        if is_null_reference(value):
            if mapping.required:
                transformed.missing_required.append(mapping.target_column)
            return None

        kind = mapping.reference_kind(record.data)
        if kind is None:
            transformed.warnings.append(f"No kind selected for {mapping.target_column}")
            return None

        surrogate = registry.resolve(kind, value)
        if surrogate is not None:
            return surrogate

        reference = UnresolvedReference(
            kind=kind.value,
            legacy_id=normalize_legacy_id(value),
            column=mapping.target_column,
            table=projection.legacy_table,
            record_id=record.id,
        )
        transformed.unresolved_references.append(reference)
        if mapping.required:
            transformed.missing_required.append(mapping.target_column)
        logger.warning(
            f"Unresolved {kind.value} reference {reference.legacy_id} in "
            f"{projection.legacy_table}.{mapping.source_column} (row {record.id})"
        )
        return None
