"""Tests for file upload, listing, download and removal."""

from urllib.parse import unquote

import pytest

from school_cms.config import load_app_config
from school_cms.core.storage import get_uploads_dir, stored_path
from school_cms.db.content_repository import create_content
from school_cms.db.files_repository import get_file_by_id, list_all_files


@pytest.fixture
def post(teacher):
    return create_content("Worksheets", "material", teacher.id, subject_id="1")


def _upload(client, content_id, files, headers):
    data = {"content_id": content_id} if content_id is not None else {}
    return client.post("/api/files/upload", data=data, files=files, headers=headers)


def _stored_files():
    return sorted(p.name for p in get_uploads_dir().iterdir())


class TestUpload:
    """Tests for POST /api/files/upload."""

    def test_author_uploads(self, client, post, teacher_headers):
        """Authors can attach several files."""
        response = _upload(
            client,
            post.id,
            [
                ("files", ("sheet1.pdf", b"%PDF-1", "application/pdf")),
                ("files", ("notes.txt", b"hello", "text/plain")),
            ],
            teacher_headers,
        )
        assert response.status_code == 201
        files = response.json()["files"]
        assert [(f["filename"], f["size"]) for f in files] == [("sheet1.pdf", 6), ("notes.txt", 5)]
        assert files[0]["mime_type"] == "application/pdf"
        assert len(_stored_files()) == 2

    def test_arabic_filename_kept(self, client, post, teacher_headers):
        """Arabic names survive the upload unchanged."""
        response = _upload(
            client, post.id, [("files", ("تقرير.pdf", b"data", "application/pdf"))], teacher_headers
        )
        assert response.status_code == 201
        assert response.json()["files"][0]["filename"] == "تقرير.pdf"

        record = list_all_files()[0]
        assert record.stored_filename.endswith("-تقرير.pdf")

    def test_long_arabic_filename(self, client, post, teacher_headers):
        """A long multi-byte name is stored under a shortened on-disk name."""
        original = "ت" * 115 + ".pdf"
        response = _upload(
            client, post.id, [("files", (original, b"data", "application/pdf"))], teacher_headers
        )
        assert response.status_code == 201
        assert response.json()["files"][0]["filename"] == original

        record = list_all_files()[0]
        assert record.stored_filename.endswith(".pdf")
        assert stored_path(record.stored_filename).read_bytes() == b"data"

    def test_missing_content_id(self, client, post, teacher_headers):
        """content_id is required."""
        response = _upload(client, None, [("files", ("a.txt", b"a", "text/plain"))], teacher_headers)
        assert response.status_code == 400

    def test_no_files(self, client, post, teacher_headers):
        """At least one file is required."""
        response = client.post(
            "/api/files/upload", data={"content_id": post.id}, headers=teacher_headers
        )
        assert response.status_code == 400

    def test_too_many_files(self, client, post, teacher_headers):
        """More than ten files gives 400 and stores nothing."""
        files = [("files", (f"f{i}.txt", b"x", "text/plain")) for i in range(11)]
        response = _upload(client, post.id, files, teacher_headers)
        assert response.status_code == 400
        assert _stored_files() == []

    def test_unknown_content(self, client, teacher_headers):
        """Unknown content gives 404."""
        response = _upload(
            client, "content-missing", [("files", ("a.txt", b"a", "text/plain"))], teacher_headers
        )
        assert response.status_code == 404

    def test_non_author_forbidden(self, client, post, student_headers):
        """Non-authors cannot attach files."""
        response = _upload(client, post.id, [("files", ("a.txt", b"a", "text/plain"))], student_headers)
        assert response.status_code == 403

    def test_admin_uploads_to_any_content(self, client, post, admin_headers):
        """Admins can attach files anywhere."""
        response = _upload(client, post.id, [("files", ("a.txt", b"a", "text/plain"))], admin_headers)
        assert response.status_code == 201

    def test_requires_auth(self, client, post):
        """Uploading needs a token."""
        response = _upload(client, post.id, [("files", ("a.txt", b"a", "text/plain"))], {})
        assert response.status_code == 401

    def test_oversize_file_rolls_back_batch(self, client, post, teacher_headers, monkeypatch):
        """One file over the limit rejects the request and removes the others."""
        monkeypatch.setattr(load_app_config().storage, "max_file_size", 10)
        response = _upload(
            client,
            post.id,
            [
                ("files", ("small.txt", b"tiny", "text/plain")),
                ("files", ("big.bin", b"x" * 11, "application/octet-stream")),
            ],
            teacher_headers,
        )
        assert response.status_code == 413
        assert "big.bin" in response.json()["detail"]
        assert _stored_files() == []
        assert list_all_files() == []


class TestListAndDownload:
    """Tests for GET /api/files/content/{id} and /api/files/download/{id}."""

    def test_list_oldest_first(self, client, post, teacher_headers):
        """Files are listed in upload order without stored names."""
        _upload(client, post.id, [("files", ("one.txt", b"1", "text/plain"))], teacher_headers)
        _upload(client, post.id, [("files", ("two.txt", b"2", "text/plain"))], teacher_headers)

        response = client.get(f"/api/files/content/{post.id}")
        assert response.status_code == 200
        assert [f["filename"] for f in response.json()] == ["one.txt", "two.txt"]
        assert "stored_filename" not in response.json()[0]

    def test_download(self, client, post, teacher_headers):
        """Downloads return the bytes and an encoded filename."""
        payload = bytes(range(256)) * 10
        uploaded = _upload(
            client, post.id, [("files", ("ملف.bin", payload, "application/octet-stream"))], teacher_headers
        ).json()["files"][0]

        response = client.get(f"/api/files/download/{uploaded['id']}")
        assert response.status_code == 200
        assert response.content == payload
        assert response.headers["content-type"] == "application/octet-stream"
        disposition = response.headers["content-disposition"]
        assert disposition.startswith("attachment;")
        assert unquote(disposition.split("filename*=UTF-8''")[1]) == "ملف.bin"

    def test_download_unknown(self, client):
        """Unknown file ids give 404."""
        assert client.get("/api/files/download/file-missing").status_code == 404

    def test_download_bytes_gone(self, client, post, teacher_headers):
        """A row whose bytes are missing gives 404."""
        uploaded = _upload(
            client, post.id, [("files", ("a.txt", b"a", "text/plain"))], teacher_headers
        ).json()["files"][0]
        stored_path(get_file_by_id(uploaded["id"]).stored_filename).unlink()

        assert client.get(f"/api/files/download/{uploaded['id']}").status_code == 404


class TestDeleteFile:
    """Tests for DELETE /api/files/{id}."""

    def _one_file(self, client, post, headers):
        return _upload(client, post.id, [("files", ("a.txt", b"a", "text/plain"))], headers).json()[
            "files"
        ][0]["id"]

    def test_author_deletes(self, client, post, teacher_headers):
        """Authors can delete a file and its bytes."""
        file_id = self._one_file(client, post, teacher_headers)
        response = client.delete(f"/api/files/{file_id}", headers=teacher_headers)
        assert response.status_code == 200
        assert get_file_by_id(file_id) is None
        assert _stored_files() == []

    def test_non_author_forbidden(self, client, post, teacher_headers, student_headers):
        """Non-authors cannot delete files."""
        file_id = self._one_file(client, post, teacher_headers)
        response = client.delete(f"/api/files/{file_id}", headers=student_headers)
        assert response.status_code == 403
        assert get_file_by_id(file_id) is not None

    def test_missing(self, client, admin_headers):
        """Unknown file ids give 404."""
        assert client.delete("/api/files/file-missing", headers=admin_headers).status_code == 404
