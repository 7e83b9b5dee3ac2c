"""Pytest configuration shared across the suite."""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_box_env(monkeypatch, tmp_path):
    """Keep developer BOX_* variables and .env files out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("BOX_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
