"""Tests for schema creation, seeding and migrations."""

import sqlite3

import pytest

from school_cms.db import database
from school_cms.db.database import get_db, init_db, migrate_schema, table_columns
from school_cms.db.users_repository import get_user_by_username


class TestInitDb:
    """Tests for init_db."""

    def test_creates_tables(self, db):
        """All four tables exist after init."""
        with get_db() as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert {"users", "subjects", "content", "files"} <= names

    def test_seeds_subjects_and_admin(self, db):
        """Eight subjects and an admin with the default password."""
        with get_db() as conn:
            subject_ids = [row["id"] for row in conn.execute("SELECT id FROM subjects ORDER BY id")]
        assert subject_ids == [str(i) for i in range(1, 9)]

        admin = get_user_by_username("admin")
        assert admin is not None
        assert admin.role == "admin"
        assert admin.password != "admin123"

    def test_idempotent(self, db):
        """Running init twice neither duplicates seeds nor fails."""
        init_db()
        with get_db() as conn:
            assert conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0] == 8
            assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1

    def test_admin_not_recreated_when_users_exist(self, db):
        """The admin is only seeded into an empty users table."""
        with get_db() as conn:
            conn.execute("UPDATE users SET username = 'principal'")
        init_db()
        assert get_user_by_username("admin") is None

    def test_seed_disabled(self, workspace):
        """seed=False leaves the subjects table empty."""
        init_db(workspace / "bare.db", seed=False)
        with get_db() as conn:
            assert conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0] == 0

    def test_explicit_path(self, workspace):
        """init_db(path) switches the active database."""
        path = workspace / "elsewhere" / "school.db"
        init_db(path)
        assert database.get_db_path() == path
        assert path.exists()


class TestGetDb:
    """Tests for the connection context manager."""

    def test_rolls_back_on_error(self, db):
        """An exception inside get_db() discards the writes."""
        with pytest.raises(RuntimeError):
            with get_db() as conn:
                conn.execute("INSERT INTO subjects (id, name) VALUES ('x', 'X')")
                raise RuntimeError("boom")
        with get_db() as conn:
            assert conn.execute("SELECT 1 FROM subjects WHERE id = 'x'").fetchone() is None

    def test_foreign_keys_enforced(self, db):
        """Files must point at existing content."""
        with pytest.raises(sqlite3.IntegrityError):
            with get_db() as conn:
                conn.execute(
                    "INSERT INTO files (id, content_id, filename, stored_filename, mime_type, size)"
                    " VALUES ('f', 'missing', 'a', 'a', 'text/plain', 1)"
                )

    def test_role_check_constraint(self, db):
        """Roles outside admin/teacher/user are rejected."""
        with pytest.raises(sqlite3.IntegrityError):
            with get_db() as conn:
                conn.execute(
                    "INSERT INTO users (id, username, password, role) VALUES ('u', 'x', 'h', 'root')"
                )


class TestMigrateSchema:
    """Tests for upgrading databases created by older versions."""

    def _legacy_db(self, path):
        conn = sqlite3.connect(path)
        conn.executescript(
            """
            CREATE TABLE content (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                body TEXT,
                type TEXT NOT NULL,
                subject_id TEXT,
                author_id TEXT,
                url TEXT,
                created_at TEXT,
                updated_at TEXT
            );
            INSERT INTO content (id, title, type, url) VALUES ('c1', 'Old', 'news', 'https://a.example');
            INSERT INTO content (id, title, type, url) VALUES ('c2', 'No url', 'news', '');
            """
        )
        conn.commit()
        conn.close()

    def test_adds_media_urls_and_copies_url(self, workspace, monkeypatch):
        """Legacy url values move into media_urls."""
        path = workspace / "legacy.db"
        self._legacy_db(path)
        monkeypatch.setattr(database, "_db_path", path)

        with get_db() as conn:
            applied = migrate_schema(conn)
            assert "media_urls" in table_columns(conn, "content")
            rows = {
                row["id"]: row["media_urls"]
                for row in conn.execute("SELECT id, media_urls FROM content")
            }

        assert applied == ["add_media_urls", "migrate_url_to_media_urls"]
        assert rows["c1"] == '["https://a.example"]'
        assert rows["c2"] == "[]"

    def test_second_run_is_noop(self, workspace, monkeypatch):
        """A migrated database reports no steps."""
        path = workspace / "legacy.db"
        self._legacy_db(path)
        monkeypatch.setattr(database, "_db_path", path)

        with get_db() as conn:
            migrate_schema(conn)
        with get_db() as conn:
            assert migrate_schema(conn) == []

    def test_init_db_upgrades_legacy_file(self, workspace):
        """init_db on an old file adds the column and keeps rows."""
        path = workspace / "legacy.db"
        self._legacy_db(path)
        init_db(path)
        with get_db() as conn:
            row = conn.execute("SELECT media_urls FROM content WHERE id = 'c1'").fetchone()
        assert row["media_urls"] == '["https://a.example"]'
