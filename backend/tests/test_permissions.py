"""
Tests de la table des permissions
"""
import pytest
from fastapi import HTTPException

from utils.permissions import Action, Role, can, ensure_permission, parse_role


class TestPolicy:
    """Droits par rôle"""

    @pytest.mark.parametrize("action", list(Action))
    def test_manager_can_do_everything(self, action):
        assert can(Role.MANAGER, action) is True

    def test_user_rights(self):
        assert can("User", Action.RECORD_PROGRESS) is True
        assert can("User", Action.SEND_DIRECT_NOTIFICATION) is True
        assert can("User", Action.CREATE_USER) is False
        assert can("User", Action.DELETE_PROGRESS) is False

    def test_unknown_role_has_no_rights(self):
        assert parse_role("Superviseur") is None
        assert can("Superviseur", Action.RECORD_PROGRESS) is False
        assert can(None, Action.LIST_USERS) is False


class TestEnsurePermission:
    """Refus explicites"""

    def test_create_user_denied_message(self):
        with pytest.raises(HTTPException) as exc_info:
            ensure_permission({"id": "u1", "role": "User"}, Action.CREATE_USER)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Seul le Manager peut créer des utilisateurs"

    def test_default_denied_message(self):
        with pytest.raises(HTTPException) as exc_info:
            ensure_permission({"id": "u1", "role": "User"}, Action.DELETE_USER)
        assert exc_info.value.detail == "Accès interdit"

    def test_allowed_returns_none(self):
        assert ensure_permission({"id": "m1", "role": "Manager"}, Action.DELETE_USER) is None
