"""Messages: envoi, lecture, accusés de lecture, indicateurs de saisie"""

import math
import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException

from services.chat_service import get_participant_chat
from services.user_service import user_summaries

NOT_PARTICIPANT = "Chat not found or you are not a participant"


async def _require_participant_chat(db, chat_id: str, user_id: str) -> dict:
    # Introuvable et non-participant donnent la même réponse
    chat = await get_participant_chat(db, chat_id, user_id)
    if not chat:
        raise HTTPException(status_code=404, detail=NOT_PARTICIPANT)
    return chat


async def send_message(db, registry, chat_id: str, user_id: str, content: Optional[str], attachments: Optional[List[dict]] = None) -> dict:
    """Enregistre un message puis le pousse aux autres participants connectés

    Le message en base fait foi; l'envoi temps réel est best-effort et un
    échec d'envoi n'annule pas l'écriture.
    """
    content = (content or "").strip()
    attachments = attachments or []

    if not content and not attachments:
        raise HTTPException(status_code=400, detail="Message content is required")

    chat = await _require_participant_chat(db, chat_id, user_id)

    now = datetime.now(timezone.utc).isoformat()
    message_doc = {
        "id": str(uuid.uuid4()),
        "chat": chat_id,
        "sender": user_id,
        "content": content,
        "readBy": [user_id],
        "attachments": attachments,
        "createdAt": now,
        "updatedAt": now
    }
    await db.messages.insert_one(message_doc)
    message_doc.pop("_id", None)

    await db.chats.update_one(
        {"id": chat_id},
        {"$set": {"lastMessage": message_doc["id"], "updatedAt": now}}
    )

    senders = await user_summaries(db, [user_id])
    populated = dict(message_doc, senderDetails=senders[0] if senders else None)

    try:
        delivered = await registry.emit_many(
            chat["participants"],
            "message",
            {"type": "NEW_MESSAGE", "payload": {"message": populated, "chatId": chat_id}},
            exclude=user_id
        )
        logging.info(f"Message {message_doc['id']} poussé à {delivered} participant(s)")
    except Exception as e:
        logging.error(f"Erreur envoi temps réel message {message_doc['id']}: {e}")

    return populated


async def get_messages(db, chat_id: str, user_id: str, page: int = 1, limit: int = 50) -> dict:
    """Page de messages (plus récents d'abord), retournée en ordre chronologique"""
    await _require_participant_chat(db, chat_id, user_id)

    page = max(int(page), 1)
    limit = max(int(limit), 1)
    skip = (page - 1) * limit

    messages = await db.messages.find({"chat": chat_id}, {"_id": 0}) \
        .sort("createdAt", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.messages.count_documents({"chat": chat_id})

    messages.reverse()
    return {
        "messages": messages,
        "pagination": {
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit)
        }
    }


async def mark_chat_read(db, chat_id: str, user_id: str) -> int:
    """Ajoute l'utilisateur à readBy des messages reçus non lus; retourne le nombre modifié"""
    await _require_participant_chat(db, chat_id, user_id)

    result = await db.messages.update_many(
        {
            "chat": chat_id,
            "readBy": {"$nin": [user_id]},
            "sender": {"$ne": user_id}
        },
        {"$addToSet": {"readBy": user_id}}
    )
    return result.modified_count


async def get_unread_counts(db, user_id: str) -> dict:
    """Messages non lus par conversation, recalculés à chaque appel"""
    chats = await db.chats.find({"participants": user_id}, {"_id": 0, "id": 1}).to_list(None)
    chat_ids = [c["id"] for c in chats]

    if not chat_ids:
        return {"totalUnread": 0, "unreadByChat": {}}

    pipeline = [
        {
            "$match": {
                "chat": {"$in": chat_ids},
                "readBy": {"$nin": [user_id]},
                "sender": {"$ne": user_id}
            }
        },
        {"$group": {"_id": "$chat", "count": {"$sum": 1}}}
    ]
    grouped = await db.messages.aggregate(pipeline).to_list(None)

    unread_by_chat = {item["_id"]: item["count"] for item in grouped}
    return {
        "totalUnread": sum(unread_by_chat.values()),
        "unreadByChat": unread_by_chat
    }


async def broadcast_typing(db, registry, chat_id: str, user_id: str, typing: bool = True) -> int:
    """Indique aux autres participants que l'utilisateur écrit (ou a arrêté)"""
    if not chat_id:
        return 0

    chat = await get_participant_chat(db, chat_id, user_id)
    if not chat:
        return 0

    event = "typing" if typing else "stop-typing"
    return await registry.emit_many(
        chat["participants"],
        event,
        {"chatId": chat_id, "userId": user_id},
        exclude=user_id
    )
