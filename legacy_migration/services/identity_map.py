"""Persisted legacy-id to surrogate-id registry."""

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from ..models.schema import EntityKind

logger = logging.getLogger(__name__)

IDENTITY_MAP_VERSION = 1
META_KEY = "_meta"


@dataclass
class IdentityConflict:
    """Two different surrogates proposed for the same legacy id."""
    kind: str
    legacy_id: str
    existing: str
    proposed: str
    detected_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind,
            "legacy_id": self.legacy_id,
            "existing": self.existing,
            "proposed": self.proposed,
            "detected_at": self.detected_at.isoformat(),
        }


def normalize_legacy_id(value: Any) -> Optional[str]:
    """Canonical string form of a legacy key (``1633``, ``Decimal('1633')`` and ``'1633'`` agree)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def _kind_key(kind: Union[EntityKind, str]) -> str:
    if isinstance(kind, EntityKind):
        return kind.value
    try:
        return EntityKind.parse(kind).value
    except ValueError:
        return str(kind)


class IdentityMapRegistry:
    """
    Identity map of ``(kind, legacy id) -> surrogate id``.

    Entries only ever grow. An entry minted during the current pass is
    *pending* until its row reaches the target store; ``confirm`` makes it
    permanent and ``withdraw`` drops it again when the insert did not
    happen. Pending entries are never persisted.

    The document on disk is ``{kind: {legacy_id: surrogate}}`` plus a
    reserved ``_meta`` object; documents without ``_meta`` are accepted.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the registry.

        Args:
            path: Default location used by ``load`` and ``save``
        """
        self.path = path
        self._entries: Dict[str, Dict[str, str]] = {}
        self._pending: Set[Tuple[str, str]] = set()
        self.conflicts: List[IdentityConflict] = []
        self.updated_at: Optional[str] = None

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __contains__(self, item: Tuple[Union[EntityKind, str], Any]) -> bool:
        kind, legacy_id = item
        return self.resolve(kind, legacy_id) is not None

    def sizes(self) -> Dict[str, int]:
        """Number of entries per kind."""
        return {kind: len(entries) for kind, entries in self._entries.items()}

    def has_kind(self, kind: Union[EntityKind, str]) -> bool:
        return bool(self._entries.get(_kind_key(kind)))

    def resolve(self, kind: Union[EntityKind, str], legacy_id: Any) -> Optional[str]:
        """Surrogate registered for a legacy id, or None."""
        key = normalize_legacy_id(legacy_id)
        if key is None:
            return None
        return self._entries.get(_kind_key(kind), {}).get(key)

    def register(self, kind: Union[EntityKind, str], legacy_id: Any, surrogate: str) -> str:
        """
        Record an assignment.

        The first assignment wins: a different surrogate for an already
        registered id is kept out of the map and recorded as a conflict.

        Returns:
            The surrogate now registered for the legacy id

        Raises:
            ValueError: If the legacy id or surrogate is empty
        """
        kind_key = _kind_key(kind)
        key = normalize_legacy_id(legacy_id)
        if key is None or not surrogate:
            raise ValueError(f"Cannot register empty identity for {kind_key}: {legacy_id!r} -> {surrogate!r}")

        entries = self._entries.setdefault(kind_key, {})
        existing = entries.get(key)
        if existing is None:
            entries[key] = str(surrogate)
            return entries[key]

        if existing != str(surrogate):
            conflict = IdentityConflict(kind=kind_key, legacy_id=key, existing=existing, proposed=str(surrogate))
            self.conflicts.append(conflict)
            logger.error(
                f"Identity conflict for {kind_key} {key}: keeping {existing}, rejecting {surrogate}"
            )
        return existing

    def mint(self, kind: Union[EntityKind, str], legacy_id: Any) -> str:
        """
        Return the surrogate for a legacy id, generating and registering a
        new UUID if there is none yet. New entries stay pending until
        confirmed.
        """
        existing = self.resolve(kind, legacy_id)
        if existing is not None:
            return existing

        surrogate = str(uuid.uuid4())
        self.register(kind, legacy_id, surrogate)
        self._pending.add((_kind_key(kind), normalize_legacy_id(legacy_id)))
        return surrogate

    def is_pending(self, kind: Union[EntityKind, str], legacy_id: Any) -> bool:
        return (_kind_key(kind), normalize_legacy_id(legacy_id)) in self._pending

    def confirm(self, kind: Union[EntityKind, str], legacy_id: Any) -> None:
        """Mark a minted entry as backed by a row in the target store."""
        self._pending.discard((_kind_key(kind), normalize_legacy_id(legacy_id)))

    def withdraw(self, kind: Union[EntityKind, str], legacy_id: Any) -> bool:
        """
        Drop a pending entry whose row was never inserted.

        Returns:
            True if an entry was removed; confirmed or loaded entries are
            never removed
        """
        pending_key = (_kind_key(kind), normalize_legacy_id(legacy_id))
        if pending_key not in self._pending:
            return False
        self._pending.discard(pending_key)
        self._entries.get(pending_key[0], {}).pop(pending_key[1], None)
        return True

    def merge(self, other: Union["IdentityMapRegistry", Mapping[str, Any]]) -> int:
        """
        Merge entries from another registry or document.

        Returns:
            Number of entries added
        """
        document = other.serialize() if isinstance(other, IdentityMapRegistry) else other
        added = 0
        for kind, entries in document.items():
            if kind == META_KEY:
                continue
            for legacy_id, surrogate in entries.items():
                if self.resolve(kind, legacy_id) is None:
                    added += 1
                self.register(kind, legacy_id, surrogate)
        return added

    def copy(self) -> "IdentityMapRegistry":
        """Independent registry with the same confirmed entries."""
        clone = IdentityMapRegistry(self.path)
        clone.merge(self)
        return clone

    def serialize(self) -> Dict[str, Any]:
        """Persistable document (pending entries excluded)."""
        document: Dict[str, Any] = {
            META_KEY: {
                "version": IDENTITY_MAP_VERSION,
                "updated_at": datetime.utcnow().isoformat(),
            }
        }
        for kind, entries in self._entries.items():
            document[kind] = {
                legacy_id: surrogate
                for legacy_id, surrogate in entries.items()
                if (kind, legacy_id) not in self._pending
            }
        return document

    @classmethod
    def deserialize(cls, document: Mapping[str, Any], path: Optional[str] = None) -> "IdentityMapRegistry":
        """
        Build a registry from a persisted document.

        Raises:
            ValueError: If the document is not a ``{kind: {id: surrogate}}`` object
        """
        if not isinstance(document, Mapping):
            raise ValueError("Identity map document must be a JSON object")

        meta = document.get(META_KEY) or {}
        version = meta.get("version", IDENTITY_MAP_VERSION)
        if version > IDENTITY_MAP_VERSION:
            raise ValueError(f"Unsupported identity map version {version}")

        registry = cls(path)
        registry.updated_at = meta.get("updated_at")
        for kind, entries in document.items():
            if kind == META_KEY:
                continue
            if not isinstance(entries, Mapping):
                raise ValueError(f"Identity map entry for {kind!r} must be an object")
            for legacy_id, surrogate in entries.items():
                if not isinstance(surrogate, str):
                    raise ValueError(f"Surrogate for {kind} {legacy_id} must be a string")
                registry.register(kind, legacy_id, surrogate)
        return registry

    def load(self, path: Optional[str] = None) -> int:
        """
        Merge the document at ``path`` into this registry.

        A missing file is an empty map.

        Returns:
            Number of entries loaded
        """
        path = path or self.path
        if not path or not os.path.exists(path):
            logger.info(f"No identity map at {path}; starting empty")
            return 0

        with open(path, 'r', encoding="utf-8") as f:
            document = json.load(f)

        loaded = self.deserialize(document)
        added = self.merge(loaded)
        self.updated_at = loaded.updated_at
        logger.info(f"Loaded identity map {path}: {self.sizes()}")
        return added

    def save(self, path: Optional[str] = None) -> str:
        """
        Atomically write the registry to ``path``.

        Returns:
            The path written
        """
        path = path or self.path
        if not path:
            raise ValueError("No identity map path configured")

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        document = self.serialize()
        tmp_path = f"{path}.tmp"
        with open(tmp_path, 'w', encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

        self.updated_at = document[META_KEY]["updated_at"]
        logger.info(f"Saved identity map to {path} ({len(self)} entries)")
        return path
