"""Tests for user endpoints."""

from school_cms.db.users_repository import get_user_by_id


class TestListUsers:
    """Tests for GET /api/users."""

    def test_requires_auth(self, client):
        """Listing users needs a token."""
        assert client.get("/api/users").status_code == 401

    def test_lists_without_passwords(self, client, student, student_headers):
        """Listed users never include passwords."""
        response = client.get("/api/users", headers=student_headers)
        assert response.status_code == 200
        users = response.json()
        assert [u["username"] for u in users] == ["student1", "admin"]
        assert all("password" not in u for u in users)

    def test_get_user(self, client, student, admin_headers):
        """A user is returned by id."""
        response = client.get(f"/api/users/{student.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["full_name"] == "Student One"

    def test_get_missing_user(self, client, admin_headers):
        """Unknown users give 404."""
        response = client.get("/api/users/user-missing", headers=admin_headers)
        assert response.status_code == 404


class TestUpdateUser:
    """Tests for PUT /api/users/{id}."""

    def test_user_updates_own_profile(self, client, student, student_headers):
        """Users can edit their own profile."""
        response = client.put(
            f"/api/users/{student.id}",
            json={"full_name": "Renamed", "profile_picture": "https://img/p.png"},
            headers=student_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Renamed"
        assert data["profile_picture"] == "https://img/p.png"

    def test_user_cannot_update_others(self, client, student_headers, teacher):
        """Users cannot edit other accounts."""
        response = client.put(
            f"/api/users/{teacher.id}", json={"full_name": "Hacked"}, headers=student_headers
        )
        assert response.status_code == 403

    def test_user_cannot_change_role(self, client, student, student_headers):
        """Role changes are admin only."""
        for body in ({"role": "admin"}, {"is_active": False}, {"assigned_subject_id": "1"}):
            response = client.put(f"/api/users/{student.id}", json=body, headers=student_headers)
            assert response.status_code == 403
        assert get_user_by_id(student.id).role == "user"

    def test_admin_changes_role_and_status(self, client, student, admin_headers):
        """Admins can change role and active status."""
        response = client.put(
            f"/api/users/{student.id}",
            json={"role": "teacher", "assigned_subject_id": "4", "is_active": False},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "teacher"
        assert data["assigned_subject_id"] == "4"
        assert data["is_active"] is False

    def test_admin_clears_assigned_subject(self, client, teacher, admin_headers):
        """An explicit null clears the assigned subject."""
        response = client.put(
            f"/api/users/{teacher.id}", json={"assigned_subject_id": None}, headers=admin_headers
        )
        assert response.json()["assigned_subject_id"] is None

    def test_duplicate_username(self, client, student, student_headers):
        """Renaming to a taken username gives 409."""
        response = client.put(
            f"/api/users/{student.id}", json={"username": "admin"}, headers=student_headers
        )
        assert response.status_code == 409

    def test_blank_password_only_is_rejected(self, client, student, student_headers):
        """A blank password alone is not a valid update."""
        response = client.put(
            f"/api/users/{student.id}", json={"password": "  "}, headers=student_headers
        )
        assert response.status_code == 400

    def test_empty_body(self, client, student, student_headers):
        """An empty body gives 400."""
        response = client.put(f"/api/users/{student.id}", json={}, headers=student_headers)
        assert response.status_code == 400

    def test_password_change_allows_login(self, client, student, student_headers):
        """A changed password works for login."""
        client.put(f"/api/users/{student.id}", json={"password": "another1"}, headers=student_headers)
        login = client.post("/api/auth/login", json={"username": "student1", "password": "another1"})
        assert login.status_code == 200

    def test_missing_user(self, client, admin_headers):
        """Updating unknown users gives 404."""
        response = client.put(
            "/api/users/user-missing", json={"full_name": "x"}, headers=admin_headers
        )
        assert response.status_code == 404


class TestDeleteUser:
    """Tests for DELETE /api/users/{id}."""

    def test_admin_deletes(self, client, student, admin_headers):
        """Admins can delete users."""
        response = client.delete(f"/api/users/{student.id}", headers=admin_headers)
        assert response.status_code == 200
        assert get_user_by_id(student.id) is None

    def test_non_admin_forbidden(self, client, student, teacher_headers):
        """Non-admins cannot delete users."""
        response = client.delete(f"/api/users/{student.id}", headers=teacher_headers)
        assert response.status_code == 403

    def test_missing(self, client, admin_headers):
        """Deleting unknown users gives 404."""
        response = client.delete("/api/users/user-missing", headers=admin_headers)
        assert response.status_code == 404
