"""Notifications persistées et poussées en temps réel"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException

from models import NOTIFICATION_TYPES


async def create_notification(db, registry, type: str, message: str, user_id: str, metadata: Optional[dict] = None) -> dict:
    """Enregistre une notification puis la pousse à son destinataire s'il est connecté"""
    if type not in NOTIFICATION_TYPES:
        raise HTTPException(status_code=400, detail=f"Type de notification invalide: {type}")

    notification = {
        "id": str(uuid.uuid4()),
        "type": type,
        "message": message,
        "userId": user_id,
        "isRead": False,
        "metadata": metadata or {},
        "createdAt": datetime.now(timezone.utc).isoformat()
    }
    await db.notifications.insert_one(notification)
    notification.pop("_id", None)

    await registry.emit(user_id, "notification", {"type": "NEW_NOTIFICATION", "payload": notification})
    return notification


async def deliver_direct_notification(db, registry, target_user_id: str, notification: dict, sender_id: str) -> bool:
    """Pousse une notification à un utilisateur; la conserve en base s'il est absent

    Returns:
        True si l'utilisateur l'a reçue en direct
    """
    delivered = await registry.emit(target_user_id, "notification", {
        "type": "NEW_NOTIFICATION",
        "payload": notification
    })
    if delivered:
        logging.info(f"Notification directe envoyée à user {target_user_id}")
        return True

    logging.info(f"User {target_user_id} non connecté, notification enregistrée")
    metadata = dict(notification.get("metadata") or {})
    metadata.update({"source": "direct-socket", "from": sender_id})
    await create_notification(
        db,
        registry,
        notification.get("type", ""),
        notification.get("message", ""),
        target_user_id,
        metadata
    )
    return False


async def list_notifications(db, user_id: str) -> List[dict]:
    return await db.notifications.find({"userId": user_id}, {"_id": 0}).sort("createdAt", -1).to_list(500)


async def mark_notification_read(db, notification_id: str, user_id: str) -> dict:
    result = await db.notifications.update_one(
        {"id": notification_id, "userId": user_id},
        {"$set": {"isRead": True}}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification non trouvée")
    return await db.notifications.find_one({"id": notification_id}, {"_id": 0})
