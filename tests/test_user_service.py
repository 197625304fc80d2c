# =============================================================================
# tests/test_user_service.py - Account Provisioning Tests
# =============================================================================
# Tests for UserService: provisioning (new and existing logins), email and
# role changes, and the non-staff user reset.
#
# Run with: pytest tests/test_user_service.py -v
# =============================================================================

import pytest

from app.exceptions import BackendError, EntityNotFoundError, ValidationFailedError
from core.models.profile import UserRole
from core.services.user_service import UserService


class TestProvisionUser:
    """Tests for UserService.provision_user()."""

    def test_creates_auth_user_and_profile(self, db):
        # Act
        result = UserService.provision_user(
            "New.Person@Example.com", UserRole.DISPATCHER,
            {"first_name": "New", "last_name": "Person"},
        )

        # Assert
        assert result["created"] is True
        assert len(result["password"]) == 12
        profile = db.rows("profiles", id=result["user_id"])[0]
        assert profile["email"] == "new.person@example.com"
        assert profile["role"] == "dispatcher"
        assert profile["first_name"] == "New"
        auth_user = db.auth.admin.users[result["user_id"]]
        assert auth_user.user_metadata == {"role": "dispatcher"}

    def test_given_password_is_used(self, db):
        result = UserService.provision_user("p@example.com", "driver", password="LongEnough1")
        assert result["password"] == "LongEnough1"
        assert db.auth.admin.users[result["user_id"]].password == "LongEnough1"

    def test_short_password_rejected(self, db):
        with pytest.raises(ValidationFailedError):
            UserService.provision_user("p@example.com", "driver", password="short")
        assert db.auth.admin.users == {}

    def test_reuses_existing_login(self, db):
        """An auth user without a profile is adopted; no second login is made."""
        # Arrange
        user_id = db.add_account("existing@example.com", profile=False)

        # Act
        result = UserService.provision_user("existing@example.com", "client", {"first_name": "Ex"})

        # Assert
        assert result["user_id"] == user_id
        assert result["created"] is False
        assert "password" not in result
        assert len(db.auth.admin.users) == 1
        assert db.rows("profiles", id=user_id)[0]["role"] == "client"

    def test_same_role_profile_is_updated(self, db):
        user_id = db.add_account("same@example.com", role="driver")

        UserService.provision_user("same@example.com", "driver", {"phone_number": "555"})

        assert db.rows("profiles", id=user_id)[0]["phone_number"] == "555"

    def test_other_role_refused(self, db):
        """An account can't silently change role through provisioning."""
        db.add_account("taken@example.com", role="client")

        with pytest.raises(ValidationFailedError) as exc_info:
            UserService.provision_user("taken@example.com", "driver")

        assert exc_info.value.details["current_role"] == "client"

    def test_profile_failure_rolls_back_new_login(self, db):
        """If the profile can't be written the new auth user is removed."""
        db.fail("profiles", "insert", "insert failed")

        with pytest.raises(BackendError):
            UserService.provision_user("rollback@example.com", "driver")

        assert db.auth.admin.users == {}

    def test_auth_failure(self, db):
        db.auth.admin.fail_create = True
        with pytest.raises(BackendError):
            UserService.provision_user("x@example.com", "driver")


class TestUpdateEmailAndRole:
    """Tests for update_email / update_role."""

    def test_update_email(self, db):
        user_id = db.add_account("old@example.com", role="client")

        result = UserService.update_email(user_id, "New@Example.com")

        assert result == {"user_id": user_id, "old_email": "old@example.com", "new_email": "new@example.com"}
        assert db.auth.admin.users[user_id].email == "new@example.com"
        assert db.rows("profiles", id=user_id)[0]["email"] == "new@example.com"

    def test_update_email_unknown_user(self, db):
        with pytest.raises(EntityNotFoundError) as exc_info:
            UserService.update_email("3f1d2c9e-0000-4000-8000-000000000000", "a@b.co")
        assert exc_info.value.code == "USER_NOT_FOUND"

    def test_update_email_auth_failure_keeps_profile(self, db):
        """Profile keeps the old email when auth refuses the change."""
        user_id = db.add_account("old@example.com", role="client")
        del db.auth.admin.users[user_id]

        with pytest.raises(BackendError):
            UserService.update_email(user_id, "new@example.com")

        assert db.rows("profiles", id=user_id)[0]["email"] == "old@example.com"

    def test_update_role(self, db):
        user_id = db.add_account("r@example.com", role="client")

        result = UserService.update_role(user_id, "dispatcher")

        assert result["old_role"] == "client"
        assert result["new_role"] == "dispatcher"
        assert db.rows("profiles", id=user_id)[0]["role"] == "dispatcher"
        assert db.auth.admin.users[user_id].user_metadata["role"] == "dispatcher"

    def test_update_role_by_email(self, db):
        user_id = db.add_account("Mixed@Example.com", role="client")

        UserService.update_role_by_email("mixed@example.com", UserRole.ADMIN)

        assert db.rows("profiles", id=user_id)[0]["role"] == "admin"

    def test_update_role_by_unknown_email(self, db):
        with pytest.raises(EntityNotFoundError):
            UserService.update_role_by_email("nobody@example.com", "admin")


class TestUserReset:
    """Tests for the user management reset."""

    def _seed(self, db):
        db.add_account("admin@example.com", role="admin", created_at="2024-01-01")
        db.add_account("dispatch@example.com", role="dispatcher", created_at="2024-01-02")
        client_id = db.add_account("client@example.com", role="client", created_at="2024-01-03")
        driver_id = db.add_account("driver@example.com", role="driver", created_at="2024-01-04")
        db.seed("facility_users", {"user_id": client_id, "facility_id": "f1"})
        return client_id, driver_id

    def test_list_users_by_role(self, db):
        self._seed(db)

        result = UserService.list_users_by_role()

        assert result["summary"] == {"keep": 2, "delete": 2}
        assert result["role_counts"]["client"] == 1
        assert result["role_counts"]["facility"] == 0
        assert result["total_users"] == 4

    def test_delete_non_staff_users(self, db):
        """Clients and drivers go (with memberships and logins); staff stay."""
        # Arrange
        client_id, driver_id = self._seed(db)

        # Act
        result = UserService.delete_non_staff_users()

        # Assert
        assert result["users_deleted"] == 2
        assert result["errors"] == []
        assert result["remaining_admin_users"] == 2
        assert {p["role"] for p in db.rows("profiles")} == {"admin", "dispatcher"}
        assert db.rows("facility_users") == []
        assert client_id not in db.auth.admin.users
        assert driver_id not in db.auth.admin.users

    def test_auth_failure_is_reported(self, db):
        client_id, _ = self._seed(db)
        db.auth.admin.fail_delete.add(client_id)

        result = UserService.delete_non_staff_users()

        assert result["users_deleted"] == 1
        assert result["errors"][0]["email"] == "client@example.com"

    def test_nothing_to_delete(self, db):
        db.add_account("admin@example.com", role="admin")

        result = UserService.delete_non_staff_users()

        assert result["users_deleted"] == 0
        assert "only admin and dispatcher" in result["message"]
