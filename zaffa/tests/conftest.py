import os

import pytest

os.environ.setdefault("ZAFFA_ENV", "test")

import zaffa.main as zaffa_main  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state():
    zaffa_main.reset_db()
    yield
