"""Suppression logique (champ isDeleted)"""

from datetime import datetime, timezone
from typing import Optional


def not_deleted(query: Optional[dict] = None) -> dict:
    """Ajoute le filtre des documents non supprimés à une requête"""
    filtered = dict(query or {})
    filtered["isDeleted"] = {"$ne": True}
    return filtered


def tombstone(user_id: Optional[str] = None) -> dict:
    """Mise à jour qui marque un document comme supprimé"""
    fields = {
        "isDeleted": True,
        "deletedAt": datetime.now(timezone.utc).isoformat(),
    }
    if user_id is not None:
        fields["deletedBy"] = user_id
    return {"$set": fields}
