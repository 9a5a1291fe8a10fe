"""Table des permissions par rôle"""

from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException

from security import get_current_user


class Role(str, Enum):
    USER = "User"
    MANAGER = "Manager"


class Action(str, Enum):
    CREATE_USER = "create_user"
    LIST_USERS = "list_users"
    VIEW_USER = "view_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    RECORD_PROGRESS = "record_progress"
    DELETE_PROGRESS = "delete_progress"
    SEND_DIRECT_NOTIFICATION = "send_direct_notification"


POLICY = {
    Role.MANAGER: {
        Action.CREATE_USER,
        Action.LIST_USERS,
        Action.VIEW_USER,
        Action.UPDATE_USER,
        Action.DELETE_USER,
        Action.RECORD_PROGRESS,
        Action.DELETE_PROGRESS,
        Action.SEND_DIRECT_NOTIFICATION,
    },
    Role.USER: {
        Action.RECORD_PROGRESS,
        Action.SEND_DIRECT_NOTIFICATION,
    },
}

DENIED_MESSAGES = {
    Action.CREATE_USER: "Seul le Manager peut créer des utilisateurs",
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    try:
        return Role(value)
    except ValueError:
        return None


def can(role, action: Action) -> bool:
    """True si le rôle autorise l'action (rôle inconnu: aucune permission)"""
    if not isinstance(role, Role):
        role = parse_role(role)
    if role is None:
        return False
    return action in POLICY.get(role, set())


def ensure_permission(user: dict, action: Action) -> None:
    if not can(user.get("role"), action):
        raise HTTPException(status_code=403, detail=DENIED_MESSAGES.get(action, "Accès interdit"))


def require_permission(action: Action):
    """Dépendance FastAPI: utilisateur courant autorisé pour l'action"""
    async def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        ensure_permission(current_user, action)
        return current_user
    return dependency
