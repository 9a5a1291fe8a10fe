"""Routes des notifications"""

from fastapi import APIRouter, HTTPException, Depends
import logging

from models import NotificationCreate
from security import get_current_user
from services import notification_service
from utils.connection_registry import ConnectionRegistry, get_registry
from utils.permissions import Action, require_permission

# Router
router = APIRouter(prefix="/notifications", tags=["Notifications"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

@router.get("")
async def get_notifications(current_user: dict = Depends(get_current_user)):
    """Notifications de l'utilisateur courant, plus récentes d'abord"""
    try:
        return await notification_service.list_notifications(db, current_user["id"])
    except Exception as e:
        logging.error(f"Erreur récupération notifications: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des notifications")

@router.post("", status_code=201)
async def create_notification(
    data: NotificationCreate,
    current_user: dict = Depends(require_permission(Action.SEND_DIRECT_NOTIFICATION)),
    registry: ConnectionRegistry = Depends(get_registry)
):
    try:
        metadata = dict(data.metadata or {})
        metadata.setdefault("from", current_user["id"])
        return await notification_service.create_notification(
            db, registry, data.type, data.message, data.userId, metadata
        )
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur création notification: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la création de la notification")

@router.put("/{notification_id}/read")
async def mark_as_read(notification_id: str, current_user: dict = Depends(get_current_user)):
    try:
        return await notification_service.mark_notification_read(db, notification_id, current_user["id"])
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur mise à jour notification: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la mise à jour de la notification")
