from __future__ import annotations

import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine
from sqlmodel import create_engine

logger = logging.getLogger(__name__)

DB_PATH_ENV = "EVCAL_DB_PATH"

# src/event_calendar_cli/db.py -> repository root holding alembic.ini
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = PROJECT_ROOT / ".data" / "evcal.sqlite"


def resolve_db_path() -> Path:
    """Settings database location; relative overrides are taken from the working directory."""
    override = os.getenv(DB_PATH_ENV)
    if not override:
        return DEFAULT_DB_PATH
    return (Path.cwd() / Path(override).expanduser()).resolve()


def open_engine() -> Engine:
    db_path = resolve_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


def prepare_database() -> Engine:
    """Open the settings database, upgrading its schema only when it lags the migration head."""
    engine = open_engine()
    alembic_cfg = _alembic_config(engine)
    head = ScriptDirectory.from_config(alembic_cfg).get_current_head()

    with engine.connect() as connection:
        current = MigrationContext.configure(connection).get_current_revision()
    if current != head:
        logger.info("schema_upgrade from=%s to=%s path=%s", current, head, engine.url.database)
        command.upgrade(alembic_cfg, "head")
    return engine


def _alembic_config(engine: Engine) -> Config:
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False))
    # env.py must not reset the CLI's own logging (--verbose).
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg
