"""Schema models for legacy tables, target tables and column projections."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from enum import Enum
import json


class EntityKind(str, Enum):
    """Logical tables migrated from the legacy dump.

    Values are also the keys of the persisted identity map document.
    """
    BANK = "banks"
    DELIVERY = "deliveries"
    USER = "users"
    MERCHANT = "merchants"
    SHOP = "shops"
    BUYER_ACCOUNT = "buyerAccounts"
    GOODS = "goods"
    NOTICE = "notices"
    TASK = "tasks"
    ORDER = "orders"
    MESSAGE = "messages"
    BANK_CARD = "bankCards"

    @classmethod
    def parse(cls, value: str) -> "EntityKind":
        """Parse a kind from its value or member name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for kind in cls:
            if text == kind.value or text.lower() == kind.value.lower() or text.upper() == kind.name:
                return kind
        raise ValueError(f"Unknown entity kind: {value}")


class MigrationStage(str, Enum):
    """Coarse dependency tier of a table."""
    LOOKUP = "lookup"
    OWNING = "owning"
    OWNED = "owned"
    RELATIONSHIP = "relationship"

    @property
    def rank(self) -> int:
        return list(MigrationStage).index(self)


class TransformType(str, Enum):
    """Supported column transformation types."""
    DIRECT = "direct"
    TEXT = "text"
    NUMBER = "number"
    EPOCH_TO_ISO = "epoch_to_iso"
    DATETIME_TO_ISO = "datetime_to_iso"
    INT_TO_BOOL = "int_to_bool"
    EQUALS = "equals"
    ENUM_MAP = "enum_map"
    COALESCE = "coalesce"
    CLAMP = "clamp"
    TRUNCATE = "truncate"
    UPPERCASE = "uppercase"
    GENERATE_CODE = "generate_code"
    PLACEHOLDER = "placeholder"
    CONSTANT = "constant"
    NOW = "now"
    LOOKUP = "lookup"
    CUSTOM = "custom"


@dataclass
class ColumnMapping:
    """Mapping from one legacy column to one target column.

    A column with ``references`` (or ``reference_selector``) is a foreign key:
    its legacy value is resolved through the identity map instead of being
    transformed. ``reference_selector`` picks the kind from another column,
    e.g. ``{"column": "user_type", "kinds": {"1": "users"}, "default": "merchants"}``.
    """
    target_column: str
    source_column: Optional[str] = None  # None for generated/constant values
    transform: TransformType = TransformType.DIRECT
    transform_config: Dict[str, Any] = field(default_factory=dict)
    references: Optional[EntityKind] = None
    reference_selector: Optional[Dict[str, Any]] = None
    required: bool = False
    default_value: Optional[Any] = None
    notes: str = ""

    @property
    def is_foreign_key(self) -> bool:
        return self.references is not None or self.reference_selector is not None

    @property
    def referenced_kinds(self) -> List[EntityKind]:
        """All kinds this column may point at, including lookup targets."""
        kinds: List[EntityKind] = []
        if self.references is not None:
            kinds.append(self.references)
        if self.reference_selector:
            for value in self.reference_selector.get("kinds", {}).values():
                kinds.append(EntityKind.parse(value))
            if self.reference_selector.get("default"):
                kinds.append(EntityKind.parse(self.reference_selector["default"]))
        if self.transform == TransformType.LOOKUP and self.transform_config.get("kind"):
            kinds.append(EntityKind.parse(self.transform_config["kind"]))
        return kinds

    def reference_kind(self, data: Dict[str, Any]) -> Optional[EntityKind]:
        """Kind referenced by this column for one typed row."""
        if self.references is not None:
            return self.references
        if not self.reference_selector:
            return None
        discriminator = data.get(self.reference_selector.get("column", ""))
        kinds = self.reference_selector.get("kinds", {})
        selected = kinds.get(str(discriminator), self.reference_selector.get("default"))
        return EntityKind.parse(selected) if selected else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {
            "source_column": self.source_column,
            "target_column": self.target_column,
            "transform": self.transform.value if isinstance(self.transform, TransformType) else self.transform,
        }
        if self.transform_config:
            result["transform_config"] = self.transform_config
        if self.references is not None:
            result["references"] = self.references.value
        if self.reference_selector:
            result["reference_selector"] = self.reference_selector
        if self.required:
            result["required"] = self.required
        if self.default_value is not None:
            result["default"] = self.default_value
        if self.notes:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnMapping":
        """Create from dictionary representation."""
        transform = data.get("transform", "direct")
        if isinstance(transform, str):
            try:
                transform = TransformType(transform)
            except ValueError:
                transform = TransformType.CUSTOM

        references = data.get("references")
        return cls(
            source_column=data.get("source_column"),
            target_column=data.get("target_column", ""),
            transform=transform,
            transform_config=data.get("transform_config", {}),
            references=EntityKind.parse(references) if references else None,
            reference_selector=data.get("reference_selector"),
            required=data.get("required", False),
            default_value=data.get("default"),
            notes=data.get("notes", ""),
        )


@dataclass
class TableProjection:
    """Projection of one legacy table onto one target table.

    ``legacy_columns`` is the ordered column manifest of the legacy table;
    dump tuples are decoded positionally against it. ``natural_keys`` lists
    column groups that identify an already migrated row in the target store
    (groups are OR'ed, columns within a group AND'ed).
    """
    kind: EntityKind
    legacy_table: str
    target_table: str
    legacy_columns: List[str]
    column_mappings: List[ColumnMapping] = field(default_factory=list)
    stage: MigrationStage = MigrationStage.OWNED
    legacy_primary_key: str = "id"
    target_primary_key: str = "id"
    natural_keys: List[List[str]] = field(default_factory=list)
    description: str = ""

    def __post_init__(self):
        if self.legacy_primary_key not in self.legacy_columns:
            raise ValueError(
                f"{self.legacy_table}: primary key {self.legacy_primary_key!r} missing from column manifest"
            )
        known = set(self.legacy_columns)
        for mapping in self.column_mappings:
            if mapping.source_column and mapping.source_column not in known:
                raise ValueError(
                    f"{self.legacy_table}: column {mapping.source_column!r} "
                    f"(-> {mapping.target_column}) missing from column manifest"
                )
            selector_column = (mapping.reference_selector or {}).get("column")
            if selector_column and selector_column not in known:
                raise ValueError(f"{self.legacy_table}: selector column {selector_column!r} missing from manifest")

    @property
    def dependencies(self) -> List[EntityKind]:
        """Kinds that must be migrated before this one (self-references excluded)."""
        seen: List[EntityKind] = []
        for mapping in self.column_mappings:
            for kind in mapping.referenced_kinds:
                if kind != self.kind and kind not in seen:
                    seen.append(kind)
        return seen

    @property
    def foreign_keys(self) -> List[ColumnMapping]:
        return [m for m in self.column_mappings if m.is_foreign_key]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "legacy_table": self.legacy_table,
            "target_table": self.target_table,
            "legacy_columns": self.legacy_columns,
            "column_mappings": [m.to_dict() for m in self.column_mappings],
            "stage": self.stage.value,
            "legacy_primary_key": self.legacy_primary_key,
            "target_primary_key": self.target_primary_key,
            "natural_keys": self.natural_keys,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableProjection":
        """Create from dictionary representation."""
        return cls(
            kind=EntityKind.parse(data["kind"]),
            legacy_table=data["legacy_table"],
            target_table=data.get("target_table", data["legacy_table"]),
            legacy_columns=list(data.get("legacy_columns", [])),
            column_mappings=[ColumnMapping.from_dict(m) for m in data.get("column_mappings", [])],
            stage=MigrationStage(data.get("stage", MigrationStage.OWNED.value)),
            legacy_primary_key=data.get("legacy_primary_key", "id"),
            target_primary_key=data.get("target_primary_key", "id"),
            natural_keys=[list(group) for group in data.get("natural_keys", [])],
            description=data.get("description", ""),
        )


@dataclass
class ProjectionCatalog:
    """All table projections of a migration, keyed by entity kind."""
    name: str
    version: str = "1.0"
    description: str = ""
    projections: Dict[EntityKind, TableProjection] = field(default_factory=dict)

    def add(self, projection: TableProjection) -> None:
        """Register a projection (replaces any projection of the same kind)."""
        self.projections[projection.kind] = projection

    def get(self, kind: EntityKind) -> TableProjection:
        try:
            return self.projections[EntityKind.parse(kind)]
        except KeyError:
            raise KeyError(f"No projection declared for {kind}") from None

    @property
    def kinds(self) -> List[EntityKind]:
        return list(self.projections.keys())

    def migration_order(self, kinds: Optional[Iterable[EntityKind]] = None) -> List[EntityKind]:
        """
        Order kinds so that every kind follows the kinds it references.

        Only edges between the selected kinds constrain the order; ties are
        broken by stage, then declaration order.

        Raises:
            ValueError: On unknown kinds or a dependency cycle
        """
        declared = self.kinds
        if kinds is None:
            selected = list(declared)
        else:
            selected = []
            for kind in kinds:
                kind = EntityKind.parse(kind)
                if kind not in self.projections:
                    raise ValueError(f"No projection declared for {kind.value}")
                if kind not in selected:
                    selected.append(kind)

        position = {kind: i for i, kind in enumerate(declared)}
        pending = {
            kind: {dep for dep in self.projections[kind].dependencies if dep in selected}
            for kind in selected
        }

        order: List[EntityKind] = []
        while pending:
            ready = [kind for kind, deps in pending.items() if not deps]
            if not ready:
                cycle = ", ".join(sorted(kind.value for kind in pending))
                raise ValueError(f"Dependency cycle among: {cycle}")
            chosen = min(ready, key=lambda k: (self.projections[k].stage.rank, position[k]))
            order.append(chosen)
            del pending[chosen]
            for deps in pending.values():
                deps.discard(chosen)

        return order

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "projections": [p.to_dict() for p in self.projections.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectionCatalog":
        """Create from dictionary representation."""
        catalog = cls(
            name=data.get("name", ""),
            version=data.get("version", "1.0"),
            description=data.get("description", ""),
        )
        for projection_data in data.get("projections", []):
            catalog.add(TableProjection.from_dict(projection_data))
        return catalog

    @classmethod
    def from_json_file(cls, file_path: str) -> "ProjectionCatalog":
        """Load a catalog from a JSON file."""
        with open(file_path, 'r', encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save_to_json(self, file_path: str) -> None:
        """Save the catalog to a JSON file."""
        with open(file_path, 'w', encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
