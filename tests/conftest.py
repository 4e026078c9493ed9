import pytest

import db


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    """Point the app at an empty SQLite file with all tables created."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym.db")
    db.init_db("not-a-real-hash")
    return db.DB_FILE
