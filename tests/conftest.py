"""Shared fixtures: an in-memory target store and dump builders."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from legacy_migration.loaders.base import BaseLoader
from legacy_migration.models.migration import MigrationConfig


class FakeLoader(BaseLoader):
    """Target store kept in memory: ``tables[table][id] -> row``."""

    def __init__(self, dry_run: bool = False, reject_tables: Optional[List[str]] = None):
        super().__init__(target_service="memory", dry_run=dry_run)
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.reject_tables = set(reject_tables or [])
        self.insert_calls = 0

    def find_existing(self, table, lookups, primary_key="id"):
        rows = self.tables.get(table, {})
        for lookup in lookups:
            for row in rows.values():
                if all(row.get(column) == value for column, value in lookup.items()):
                    return row[primary_key]
        return None

    def insert_row(self, table, data, primary_key="id"):
        self.insert_calls += 1
        if table in self.reject_tables:
            raise RuntimeError(f"relation {table} rejected the row")
        rows = self.tables.setdefault(table, {})
        if data[primary_key] in rows:
            return None
        rows[data[primary_key]] = dict(data)
        return data[primary_key]

    def fetch_value(self, table, column, key, primary_key="id"):
        row = self.tables.get(table, {}).get(key)
        return row.get(column) if row else None

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())


def sql_literal(value: Any) -> str:
    """Render a value the way mysqldump writes it."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def insert_statement(table: str, columns: List[str], rows: List[Dict[str, Any]]) -> str:
    """Extended INSERT for ``table``; columns missing from a row are NULL."""
    tuples = []
    for row in rows:
        unknown = set(row) - set(columns)
        assert not unknown, f"unknown columns for {table}: {unknown}"
        tuples.append("(" + ",".join(sql_literal(row.get(column)) for column in columns) + ")")
    return f"INSERT INTO `{table}` VALUES " + ",".join(tuples) + ";\n"


@pytest.fixture
def fake_loader():
    return FakeLoader()


@pytest.fixture
def write_dump(tmp_path):
    def _write(*statements: str) -> str:
        path = tmp_path / "legacy.sql"
        path.write_text("-- legacy dump\n" + "".join(statements), encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def make_config(tmp_path):
    def _make(dump_path: str, **overrides) -> MigrationConfig:
        values = {
            "dump_path": dump_path,
            "identity_map_path": str(tmp_path / "id-mapping.json"),
            "table_prefix": "",
            "output_dir": str(tmp_path / "data"),
            "save_report": False,
        }
        values.update(overrides)
        return MigrationConfig(**values)
    return _make
