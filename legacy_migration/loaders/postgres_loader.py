"""Loader writing projected rows into PostgreSQL."""

import logging
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import sql

from .base import BaseLoader
from ..settings import TargetDatabaseSettings

logger = logging.getLogger(__name__)


class PostgresLoader(BaseLoader):
    """
    Loader for the PostgreSQL target schema.

    The connection runs in autocommit mode: every insert commits on its
    own, so a failing row never rolls back rows already written. Table and
    column names are composed as identifiers and every value is bound as a
    query parameter.
    """

    def __init__(
        self,
        settings: Optional[TargetDatabaseSettings] = None,
        dry_run: bool = False,
        connection: Optional[Any] = None
    ):
        """
        Initialize the PostgreSQL loader.

        Args:
            settings: Connection settings (read from DB_* variables if omitted)
            dry_run: If True, never insert
            connection: Already open DB-API connection to use instead
        """
        super().__init__(target_service="postgres", dry_run=dry_run)
        self.settings = settings or TargetDatabaseSettings.from_env()
        self._connection = connection

    @property
    def connection(self):
        if self._connection is None:
            logger.info(f"Connecting to {self.settings.describe()}")
            self._connection = psycopg2.connect(**self.settings.connect_kwargs())
            self._connection.autocommit = True
        return self._connection

    def find_existing(
        self,
        table: str,
        lookups: List[Dict[str, Any]],
        primary_key: str = "id"
    ) -> Optional[str]:
        """Return the id of the first row matching any lookup group."""
        for lookup in lookups:
            if not lookup:
                continue

            condition = sql.SQL(" AND ").join(
                sql.SQL("{} = %s").format(sql.Identifier(column)) for column in lookup
            )
            query = sql.SQL("SELECT {pk} FROM {table} WHERE {condition} LIMIT 1").format(
                pk=sql.Identifier(primary_key),
                table=sql.Identifier(table),
                condition=condition,
            )
            with self.connection.cursor() as cursor:
                cursor.execute(query, list(lookup.values()))
                row = cursor.fetchone()
            if row:
                return str(row[0])
        return None

    def insert_row(self, table: str, data: Dict[str, Any], primary_key: str = "id") -> Optional[str]:
        """Insert with ON CONFLICT DO NOTHING; None means the row was not written."""
        columns = list(data.keys())
        query = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES ({values}) ON CONFLICT DO NOTHING RETURNING {pk}"
        ).format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            values=sql.SQL(", ").join([sql.Placeholder()] * len(columns)),
            pk=sql.Identifier(primary_key),
        )
        with self.connection.cursor() as cursor:
            cursor.execute(query, [data[column] for column in columns])
            row = cursor.fetchone()
        return str(row[0]) if row else None

    def fetch_value(self, table: str, column: str, key: str, primary_key: str = "id") -> Any:
        query = sql.SQL("SELECT {column} FROM {table} WHERE {pk} = %s").format(
            column=sql.Identifier(column),
            table=sql.Identifier(table),
            pk=sql.Identifier(primary_key),
        )
        with self.connection.cursor() as cursor:
            cursor.execute(query, [key])
            row = cursor.fetchone()
        return row[0] if row else None

    def validate_connection(self) -> bool:
        """Check the database answers a trivial query."""
        try:
            with self.connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return True
        except psycopg2.Error as e:
            logger.error(f"Cannot reach {self.settings.describe()}: {e}")
            return False

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
