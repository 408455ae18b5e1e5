"""
Tests that the Alembic migrations build the same schema as the models.
"""

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from loginguard.db.base import Base

TABLES = {
    "rate_limits",
    "login_activities",
    "security_events",
    "device_profiles",
    "admin_profiles",
    "users",
}


@pytest.fixture
def alembic_config(backend_dir, tmp_path):
    db_url = f"sqlite:///{tmp_path / 'migrations.db'}"
    cfg = Config(str(backend_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(backend_dir / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg, db_url


def table_names(db_url):
    engine = create_engine(db_url)
    try:
        return set(inspect(engine).get_table_names()) - {"alembic_version"}
    finally:
        engine.dispose()


def test_upgrade_creates_all_tables(alembic_config):
    cfg, db_url = alembic_config
    command.upgrade(cfg, "head")
    assert table_names(db_url) == TABLES


def test_migrated_columns_match_models(alembic_config):
    cfg, db_url = alembic_config
    command.upgrade(cfg, "head")

    engine = create_engine(db_url)
    try:
        inspector = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {column["name"] for column in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name
    finally:
        engine.dispose()


def test_device_profile_uniqueness_enforced(alembic_config):
    cfg, db_url = alembic_config
    command.upgrade(cfg, "head")

    engine = create_engine(db_url)
    try:
        constraints = inspect(engine).get_unique_constraints("device_profiles")
    finally:
        engine.dispose()
    assert {"admin_id", "fingerprint"} in [set(c["column_names"]) for c in constraints]


def test_downgrade_drops_everything(alembic_config):
    cfg, db_url = alembic_config
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")
    assert table_names(db_url) == set()
