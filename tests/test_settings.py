import pytest
from pydantic import ValidationError

from legacy_migration.models.migration import MigrationConfig
from legacy_migration.settings import TargetDatabaseSettings


def test_defaults():
    settings = TargetDatabaseSettings.from_env(environ={})
    assert settings.host == "localhost"
    assert settings.port == 5432
    assert settings.database == "order_management"


def test_reads_db_environment_variables():
    settings = TargetDatabaseSettings.from_env(environ={
        "DB_HOST": "db.internal",
        "DB_PORT": "6543",
        "DB_USERNAME": "migrator",
        "DB_PASSWORD": "secret",
        "DB_DATABASE": "oms",
    })

    assert settings.port == 6543
    assert settings.connect_kwargs() == {
        "host": "db.internal",
        "port": 6543,
        "user": "migrator",
        "password": "secret",
        "dbname": "oms",
        "connect_timeout": 10,
    }


def test_overrides_take_precedence():
    settings = TargetDatabaseSettings.from_env(
        environ={"DB_HOST": "from-env"},
        overrides={"host": "from-config", "port": None},
    )
    assert settings.host == "from-config"
    assert settings.port == 5432


def test_password_is_not_described():
    settings = TargetDatabaseSettings(password="secret")
    assert "secret" not in settings.describe()
    assert "secret" not in repr(settings)


def test_invalid_port_is_rejected():
    with pytest.raises(ValidationError):
        TargetDatabaseSettings.from_env(environ={"DB_PORT": "99999"})


def test_config_from_dict():
    config = MigrationConfig.from_dict({
        "dump_path": "legacy.sql",
        "kinds": "users, orders",
        "target": {"host": "db", "password": "secret"},
    })

    assert config.kinds == ["users", "orders"]
    assert config.table_prefix == "tfkz_"
    assert config.identity_map_path == "id-mapping.json"
    assert "password" not in config.to_dict()["target"]
