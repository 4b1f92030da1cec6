"""
Tests for database URL handling
"""

import pytest

from dashboard_api.database import async_database_url


@pytest.mark.parametrize("url, expected", [
    ("postgresql://u:p@db:5432/dash", "postgresql+asyncpg://u:p@db:5432/dash"),
    ("postgres://u:p@db/dash", "postgresql+asyncpg://u:p@db/dash"),
    ("postgresql+asyncpg://u@db/dash", "postgresql+asyncpg://u@db/dash"),
    ("sqlite+aiosqlite:///dash.db", "sqlite+aiosqlite:///dash.db"),
])
def test_async_database_url(url, expected):
    assert async_database_url(url) == expected


def test_postgresql_in_path_untouched():
    """Only the scheme is rewritten."""
    url = "postgresql://u@db/postgresql://x"
    assert async_database_url(url) == "postgresql+asyncpg://u@db/postgresql://x"
