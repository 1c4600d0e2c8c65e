"""
Shared fixtures - every test runs against a fresh temporary SQLite store.
"""

import pytest

from flexrecords.core.db import init_db
from flexrecords.core.entities import create_record


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the store at a temporary database file and create the tables."""
    db_path = tmp_path / "records.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    init_db()
    return db_path


@pytest.fixture
def container():
    """A container with a couple of core and custom fields."""
    return create_record(
        "container",
        {"name": "web", "status": "running"},
        core_data={"status": "running", "image": "nginx:1.25"},
        custom_fields={"owner": "ops"},
    )


@pytest.fixture
def repository():
    """A git repository record."""
    return create_record("repository", {"name": "flexrecords"}, core_data={"branch": "main"})
