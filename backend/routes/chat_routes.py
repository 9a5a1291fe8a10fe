"""Routes de messagerie: conversations, participants, messages"""

from fastapi import APIRouter, HTTPException, Depends, Response
import logging

from models import ChatCreate, ChatUpdate, ParticipantAdd, MessageCreate
from security import get_current_user
from services import chat_service, message_service
from utils.connection_registry import ConnectionRegistry, get_registry

# Router
router = APIRouter(prefix="/chats", tags=["Chat"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

# ==================== CONVERSATIONS ====================

@router.post("", status_code=201)
async def create_chat(
    chat_data: ChatCreate,
    response: Response,
    current_user: dict = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry)
):
    """Créer une conversation (retourne la conversation directe existante le cas échéant)"""
    try:
        chat, created = await chat_service.create_chat(
            db,
            registry,
            current_user,
            chat_data.participants,
            title=chat_data.title,
            is_group=chat_data.isGroup,
            group_picture=chat_data.groupPicture
        )
        if not created:
            response.status_code = 200
        return await chat_service.with_meta(db, chat, current_user["id"])
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur création chat: {e}")
        raise HTTPException(status_code=500, detail="Error creating chat")

@router.get("")
async def get_user_chats(current_user: dict = Depends(get_current_user)):
    """Conversations de l'utilisateur avec dernier message et non lus"""
    try:
        return await chat_service.get_user_chats(db, current_user["id"])
    except Exception as e:
        logging.error(f"Erreur liste chats: {e}")
        raise HTTPException(status_code=500, detail="Error fetching chats")

@router.get("/messages/unread")
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    """Nombre de messages non lus, total et par conversation"""
    try:
        return await message_service.get_unread_counts(db, current_user["id"])
    except Exception as e:
        logging.error(f"Erreur comptage non lus: {e}")
        raise HTTPException(status_code=500, detail="Error counting unread messages")

@router.get("/{chat_id}")
async def get_chat(chat_id: str, current_user: dict = Depends(get_current_user)):
    try:
        return await chat_service.get_chat(db, chat_id, current_user["id"])
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur récupération chat: {e}")
        raise HTTPException(status_code=500, detail="Error fetching chat")

@router.put("/{chat_id}")
async def update_chat(chat_id: str, update_data: ChatUpdate, current_user: dict = Depends(get_current_user)):
    """Modifier le titre (admin de la conversation seulement)"""
    try:
        return await chat_service.update_chat(db, chat_id, current_user["id"], update_data.title)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur mise à jour chat: {e}")
        raise HTTPException(status_code=500, detail="Error updating chat")

# ==================== PARTICIPANTS ====================

@router.post("/{chat_id}/participants")
async def add_participant(
    chat_id: str,
    data: ParticipantAdd,
    current_user: dict = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry)
):
    try:
        return await chat_service.add_participant(
            db, registry, chat_id, current_user["id"], data.participantId, current_user.get("nom") or ""
        )
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur ajout participant: {e}")
        raise HTTPException(status_code=500, detail="Error adding participant")

@router.delete("/{chat_id}/participants/{user_id}")
async def remove_participant(chat_id: str, user_id: str, current_user: dict = Depends(get_current_user)):
    """Retirer un participant (admin) ou quitter la conversation"""
    try:
        chat = await chat_service.remove_participant(db, chat_id, current_user["id"], user_id)
        if chat is None:
            return {"message": "Chat deleted as all participants have left"}
        return chat
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur retrait participant: {e}")
        raise HTTPException(status_code=500, detail="Error removing participant")

# ==================== MESSAGES ====================

@router.post("/{chat_id}/messages", status_code=201)
async def send_message(
    chat_id: str,
    message_data: MessageCreate,
    current_user: dict = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry)
):
    try:
        return await message_service.send_message(
            db,
            registry,
            chat_id,
            current_user["id"],
            message_data.content,
            [a.model_dump() for a in message_data.attachments]
        )
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur envoi message: {e}")
        raise HTTPException(status_code=500, detail="Error sending message")

@router.get("/{chat_id}/messages")
async def get_messages(chat_id: str, page: int = 1, limit: int = 50, current_user: dict = Depends(get_current_user)):
    try:
        return await message_service.get_messages(db, chat_id, current_user["id"], page, limit)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur récupération messages: {e}")
        raise HTTPException(status_code=500, detail="Error fetching messages")

@router.put("/{chat_id}/read")
async def mark_chat_read(chat_id: str, current_user: dict = Depends(get_current_user)):
    """Marquer tous les messages reçus de la conversation comme lus"""
    try:
        count = await message_service.mark_chat_read(db, chat_id, current_user["id"])
        return {
            "success": True,
            "count": count,
            "message": f"Marked {count} messages as read"
        }
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur marquage lecture: {e}")
        raise HTTPException(status_code=500, detail="Error marking messages as read")
