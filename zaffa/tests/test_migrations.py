import logging
from pathlib import Path

from sqlalchemy import create_engine, inspect

from zaffa.db.migrations import upgrade_schema

EXPECTED_TABLES = {
    "households",
    "users",
    "categories",
    "checklist_items",
    "invitations",
    "analyses",
    "activity_logs",
    "audit_log",
}


def test_upgrade_builds_checklist_schema(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    upgrade_schema(url)

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert EXPECTED_TABLES <= tables
    assert "alembic_version" in tables
    # The service logger keeps its handlers after an in-process upgrade.
    assert logging.getLogger("zaffa").disabled is False
