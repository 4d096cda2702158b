"""Connection settings for the target PostgreSQL store."""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, SecretStr


# Environment variable -> settings field
ENV_VARS = {
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_USERNAME": "user",
    "DB_PASSWORD": "password",
    "DB_DATABASE": "database",
    "DB_CONNECT_TIMEOUT": "connect_timeout",
}


class TargetDatabaseSettings(BaseModel):
    """Coordinates of the destination database."""
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = "postgres"
    password: SecretStr = SecretStr("")
    database: str = "order_management"
    connect_timeout: int = Field(default=10, ge=0)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> "TargetDatabaseSettings":
        """
        Build settings from DB_* environment variables.

        Args:
            environ: Environment to read (defaults to os.environ)
            overrides: Values that take precedence over the environment,
                e.g. the ``target`` block of a config file

        Returns:
            Validated settings
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for env_name, field_name in ENV_VARS.items():
            if environ.get(env_name):
                values[field_name] = environ[env_name]
        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value
        return cls(**values)

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``psycopg2.connect``."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password.get_secret_value(),
            "dbname": self.database,
            "connect_timeout": self.connect_timeout,
        }

    def describe(self) -> str:
        """Connection string without the password, for logs."""
        return f"postgresql://{self.user}@{self.host}:{self.port}/{self.database}"
