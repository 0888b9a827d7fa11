"""Schema migrations for deployed databases.

Development and test databases are built from the models with ``create_all``;
with ``ZAFFA_ENV=prod`` the checklist schema is brought to the latest Alembic
revision at startup instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from zaffa.observability import log_structured

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def alembic_config(database_url: str) -> Config:
    config = Config(str(ALEMBIC_INI))
    # configparser interpolation: escape percent signs in passwords
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    # Keep the service's JSON log handlers; env.py would reload alembic.ini's.
    config.attributes["configure_logger"] = False
    return config


def upgrade_schema(database_url: str, revision: str = "head") -> None:
    log_structured(logging.INFO, "schema_upgrade", revision=revision)
    command.upgrade(alembic_config(database_url), revision)
