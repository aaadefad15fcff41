"""Tests for stats, export/import, clear and filename repair."""

from datetime import datetime, timezone

import pytest

from school_cms.core.errors import InvalidImportError
from school_cms.core.security import verify_password
from school_cms.core.storage import stored_path
from school_cms.db import maintenance
from school_cms.db.content_repository import create_content, get_content_by_id, list_content
from school_cms.db.files_repository import NewFile, get_file_by_id, insert_files, list_all_files
from school_cms.db.subjects_repository import get_subject_by_id, list_subjects
from school_cms.db.users_repository import create_user, get_user_by_username, list_users


@pytest.fixture
def populated(db):
    """A teacher with one post and one attachment on disk."""
    teacher = create_user("teacher1", "secret123", role="teacher", assigned_subject_id="1")
    content = create_content("Lesson", "material", teacher.id, subject_id="1", urls=["https://v"])
    stored_path("1-lesson.pdf").write_bytes(b"%PDF")
    [file_record] = insert_files(
        content.id, [NewFile("lesson.pdf", "1-lesson.pdf", "application/pdf", 4)]
    )
    return {"teacher": teacher, "content": content, "file": file_record}


class TestStats:
    """Tests for get_stats."""

    def test_counts_and_size(self, populated):
        """Stats count rows and sum file sizes."""
        stats = maintenance.get_stats()
        assert stats == {
            "users": 2,
            "subjects": 8,
            "content": 1,
            "files": 1,
            "totalFileSize": 4,
        }


class TestExport:
    """Tests for export_database."""

    def test_document_shape(self, populated):
        """Exports carry version, timestamp and every table."""
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        document = maintenance.export_database(now=now)

        assert document["version"] == "2.0.0"
        assert document["exportedAt"].startswith("2025-03-01T12:00")
        assert len(document["users"]) == 2
        assert len(document["subjects"]) == 8
        assert document["content"][0]["media_urls"] == ["https://v"]
        assert document["files"][0]["stored_filename"] == "1-lesson.pdf"

    def test_users_include_password_hash(self, populated):
        """Exported users keep their bcrypt hash."""
        document = maintenance.export_database()
        teacher = next(u for u in document["users"] if u["username"] == "teacher1")
        assert verify_password("secret123", teacher["password"])
        assert teacher["is_active"] is True


class TestImport:
    """Tests for import_database."""

    def test_round_trip_restores_rows(self, populated):
        """Export, clear and import restores the data."""
        document = maintenance.export_database()
        maintenance.clear_database()
        assert list_content().total == 0

        summary = maintenance.import_database(document)

        assert summary.users == 1
        assert summary.subjects == 8
        assert summary.content == 1
        assert summary.files == 1
        teacher = get_user_by_username("teacher1")
        assert verify_password("secret123", teacher.password)
        assert get_content_by_id(populated["content"].id).author_id == teacher.id
        assert get_file_by_id(populated["file"].id) is not None

    def test_current_admin_kept(self, populated):
        """The running admin survives and the document's admin row is skipped."""
        admin_before = get_user_by_username("admin")
        document = maintenance.export_database()
        for user in document["users"]:
            if user["username"] == "admin":
                user["id"] = "user-other-admin"
                user["password"] = "not-a-hash"
        maintenance.import_database(document)

        admin_after = get_user_by_username("admin")
        assert admin_after.id == admin_before.id
        assert admin_after.password == admin_before.password

    def test_admin_authored_content_remapped(self, db):
        """Content by the exported admin is reassigned to the current one."""
        document = {
            "version": "2.0.0",
            "users": [{"id": "user-old-admin", "username": "admin", "password": "x"}],
            "subjects": [],
            "content": [
                {"id": "c1", "title": "Welcome", "type": "news", "author_id": "user-old-admin"}
            ],
            "files": [],
        }
        maintenance.import_database(document)
        assert get_content_by_id("c1").author_id == get_user_by_username("admin").id

    def test_replaces_existing_rows(self, populated):
        """Rows with the same id are overwritten."""
        document = {"version": "2.0.0", "subjects": [{"id": "s1", "name": "Only"}]}
        maintenance.import_database(document)

        assert [s.name for s in list_subjects()] == ["Only"]
        assert [u.username for u in list_users()] == ["admin"]
        assert list_content().total == 0

    def test_dangling_references_nulled(self, db):
        """Unknown subjects and authors become NULL."""
        document = {
            "version": "2.0.0",
            "users": [
                {
                    "id": "u1",
                    "username": "t1",
                    "password": "hash",
                    "role": "teacher",
                    "assigned_subject_id": "gone",
                }
            ],
            "content": [
                {"id": "c1", "title": "T", "type": "news", "subject_id": "gone", "author_id": "nobody"}
            ],
            "files": [
                {"id": "f1", "content_id": "missing", "filename": "a", "stored_filename": "a"}
            ],
        }
        summary = maintenance.import_database(document)

        assert get_user_by_username("t1").assigned_subject_id is None
        content = get_content_by_id("c1")
        assert content.subject_id is None
        assert content.author_id is None
        assert summary.files == 0
        assert summary.skipped == ["file f1: unknown content"]

    def test_legacy_fields_accepted(self, db):
        """Older exports used subject_id, active and a single url."""
        document = {
            "version": "1.0.0",
            "subjects": [{"id": "s1", "name": "S"}],
            "users": [
                {"id": "u1", "username": "old", "password": "h", "subject_id": "s1", "active": 0}
            ],
            "content": [{"id": "c1", "title": "T", "type": "news", "url": "https://legacy"}],
        }
        maintenance.import_database(document)

        user = get_user_by_username("old")
        assert user.assigned_subject_id == "s1"
        assert user.is_active is False
        assert get_content_by_id("c1").media_urls == ["https://legacy"]

    @pytest.mark.parametrize("document", [None, [], {}, {"users": []}, {"version": ""}])
    def test_missing_version_rejected(self, db, document):
        """Documents without a version are refused."""
        with pytest.raises(InvalidImportError):
            maintenance.import_database(document)

    def test_bad_table_type_rejected(self, db):
        """A table that is not a list is refused."""
        with pytest.raises(InvalidImportError):
            maintenance.import_database({"version": "2.0.0", "users": "nope"})

    def test_failure_rolls_back(self, populated):
        """A row with a missing required field leaves the database untouched."""
        document = {
            "version": "2.0.0",
            "subjects": [{"id": "s1", "name": "S"}],
            "content": [{"id": "c1", "type": "news"}],
        }
        with pytest.raises(InvalidImportError):
            maintenance.import_database(document)

        assert get_subject_by_id("s1") is None
        assert get_content_by_id(populated["content"].id) is not None
        assert get_user_by_username("teacher1") is not None

    def test_non_numeric_file_size_rejected(self, populated):
        """A file size that is not a number is refused and rolled back."""
        document = maintenance.export_database()
        document["subjects"].append({"id": "s1", "name": "S"})
        document["files"][0]["size"] = "big"
        with pytest.raises(InvalidImportError):
            maintenance.import_database(document)

        assert get_subject_by_id("s1") is None


class TestClear:
    """Tests for clear_database."""

    def test_clears_everything_but_admin(self, populated):
        """Only the admin account survives a clear."""
        removed = maintenance.clear_database()

        assert removed == 1
        assert not stored_path("1-lesson.pdf").exists()
        assert [u.username for u in list_users()] == ["admin"]
        assert list_subjects() == []
        assert list_all_files() == []


class TestFixFilenames:
    """Tests for fix_filenames."""

    def _garbled(self, populated):
        garbled = "تقرير.pdf".encode("utf-8").decode("latin-1")
        [record] = insert_files(
            populated["content"].id, [NewFile(garbled, "2-report.pdf", "application/pdf", 1)]
        )
        return garbled, record

    def test_dry_run_reports_only(self, populated):
        """A dry run changes nothing."""
        garbled, record = self._garbled(populated)
        fixes = maintenance.fix_filenames(dry_run=True)
        assert [(f.old, f.new) for f in fixes] == [(garbled, "تقرير.pdf")]
        assert get_file_by_id(record.id).filename == garbled

    def test_applies_fix(self, populated):
        """Garbled names are rewritten."""
        _, record = self._garbled(populated)
        maintenance.fix_filenames()
        assert get_file_by_id(record.id).filename == "تقرير.pdf"
        assert maintenance.fix_filenames() == []


class TestSchemaReport:
    """Tests for the schema report used by check-db."""

    def test_current_schema(self, populated):
        """A fresh database reports every table."""
        report = maintenance.schema_report()
        assert report["has_media_urls"] is True
        assert report["media_urls_rows"] == 1
        assert report["legacy_url_rows"] == 0
        assert report["counts"]["content"] == 1
