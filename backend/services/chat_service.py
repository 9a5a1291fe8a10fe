"""Conversations: création, consultation, participants

Une conversation directe (isGroup=False) relie exactement deux utilisateurs et
n'existe qu'une fois par paire. La clé directKey ("<a>:<b>", ids triés) porte
un index unique: deux créations concurrentes pour la même paire aboutissent
au même document.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from services.user_service import user_summaries
from utils.asset_store import try_upload_image

CHAT_FIELDS = {"_id": 0}


def direct_key(user_a: str, user_b: str) -> str:
    """Clé normalisée d'une paire d'utilisateurs"""
    first, second = sorted([str(user_a), str(user_b)])
    return f"{first}:{second}"


async def ensure_chat_indexes(db) -> None:
    """Index des collections chats / messages"""
    await db.chats.create_index("id", unique=True)
    await db.chats.create_index("participants")
    await db.chats.create_index("directKey", unique=True, sparse=True)
    await db.messages.create_index("id", unique=True)
    await db.messages.create_index("chat")
    await db.messages.create_index("sender")
    await db.messages.create_index([("createdAt", -1)])


async def find_direct_chat(db, participant_ids: List[str]) -> Optional[dict]:
    """Conversation directe existante ayant exactement ces participants"""
    return await db.chats.find_one(
        {
            "isGroup": False,
            "participants": {"$all": participant_ids, "$size": len(participant_ids)}
        },
        CHAT_FIELDS
    )


async def get_participant_chat(db, chat_id: str, user_id: str) -> Optional[dict]:
    """Conversation si l'utilisateur en est participant, sinon None"""
    return await db.chats.find_one({"id": chat_id, "participants": user_id}, CHAT_FIELDS)


async def create_chat(
    db,
    registry,
    current_user: dict,
    participants: List[str],
    title: Optional[str] = None,
    is_group: bool = False,
    group_picture: Optional[str] = None,
    uploader=None
) -> Tuple[dict, bool]:
    """Crée une conversation ou retourne la conversation directe existante

    Returns:
        (chat, created): created vaut False si la conversation directe existait
    """
    user_id = current_user["id"]
    participants = [str(p) for p in (participants or [])]

    if not participants and not is_group:
        raise HTTPException(status_code=400, detail="Chat must have at least one participant")

    # Participants uniques, ordre conservé, créateur inclus
    unique_ids = list(dict.fromkeys(participants + [user_id]))

    found = await db.users.count_documents({"id": {"$in": unique_ids}})
    if found != len(unique_ids):
        raise HTTPException(status_code=400, detail="One or more participants do not exist")

    key = None
    if not is_group:
        if len(unique_ids) != 2:
            raise HTTPException(status_code=400, detail="A direct chat needs exactly one other participant")

        existing = await find_direct_chat(db, unique_ids)
        if existing:
            return existing, False
        key = direct_key(*unique_ids)

    picture_url = await try_upload_image(group_picture, uploader) if is_group else None

    now = datetime.now(timezone.utc).isoformat()
    chat_doc = {
        "id": str(uuid.uuid4()),
        "title": title or None,
        "isGroup": is_group,
        "participants": unique_ids,
        "admin": user_id,
        "groupPicture": picture_url,
        "lastMessage": None,
        "createdAt": now,
        "updatedAt": now
    }
    if key is not None:
        chat_doc["directKey"] = key

    try:
        await db.chats.insert_one(chat_doc)
    except DuplicateKeyError:
        # Création concurrente pour la même paire
        logging.info(f"Conversation directe déjà créée pour {key}")
        existing = await db.chats.find_one({"directKey": key}, CHAT_FIELDS)
        if existing is None:
            raise
        return existing, False

    chat_doc.pop("_id", None)

    if is_group:
        text = f"You were added to group chat \"{title or 'New Group'}\" by {current_user.get('nom')}"
    else:
        text = f"{current_user.get('nom')} started a conversation with you"

    await registry.emit_many(
        unique_ids,
        "notification",
        {"type": "NEW_CHAT", "payload": {"chatId": chat_doc["id"], "message": text}},
        exclude=user_id
    )

    return chat_doc, True


async def latest_message(db, chat_id: str) -> Optional[dict]:
    messages = await db.messages.find({"chat": chat_id}, {"_id": 0}).sort("createdAt", -1).limit(1).to_list(1)
    return messages[0] if messages else None


async def unread_count_for_chat(db, chat_id: str, user_id: str) -> int:
    return await db.messages.count_documents({
        "chat": chat_id,
        "readBy": {"$nin": [user_id]},
        "sender": {"$ne": user_id}
    })


async def with_meta(db, chat: dict, user_id: str) -> dict:
    """Ajoute dernier message, messages non lus et détails des participants"""
    enriched = dict(chat)
    enriched["lastMessage"] = await latest_message(db, chat["id"])
    enriched["unreadCount"] = await unread_count_for_chat(db, chat["id"], user_id)
    enriched["participantDetails"] = await user_summaries(db, chat["participants"])
    return enriched


async def get_user_chats(db, user_id: str) -> List[dict]:
    chats = await db.chats.find({"participants": user_id}, CHAT_FIELDS).sort("updatedAt", -1).to_list(None)
    return [await with_meta(db, chat, user_id) for chat in chats]


async def get_chat(db, chat_id: str, user_id: str) -> dict:
    chat = await get_participant_chat(db, chat_id, user_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found or you do not have access")
    return await with_meta(db, chat, user_id)


async def update_chat(db, chat_id: str, user_id: str, title: Optional[str]) -> dict:
    chat = await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")

    if chat["admin"] != user_id:
        raise HTTPException(status_code=403, detail="Only chat admin can update chat details")

    if title:
        await db.chats.update_one(
            {"id": chat_id},
            {"$set": {"title": title, "updatedAt": datetime.now(timezone.utc).isoformat()}}
        )

    return await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)


async def add_participant(db, registry, chat_id: str, user_id: str, participant_id: Optional[str], actor_name: str = "") -> dict:
    if not participant_id:
        raise HTTPException(status_code=400, detail="Participant ID is required")

    chat = await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")

    if chat["admin"] != user_id:
        raise HTTPException(status_code=403, detail="Only chat admin can add participants")

    if not chat.get("isGroup"):
        raise HTTPException(status_code=400, detail="Participants can only be added to group chats")

    if not await db.users.find_one({"id": participant_id}):
        raise HTTPException(status_code=404, detail="User not found")

    if participant_id in chat["participants"]:
        raise HTTPException(status_code=400, detail="User is already a participant in this chat")

    result = await db.chats.update_one(
        {"id": chat_id, "participants": {"$ne": participant_id}},
        {
            "$push": {"participants": participant_id},
            "$set": {"updatedAt": datetime.now(timezone.utc).isoformat()}
        }
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="User is already a participant in this chat")

    await registry.emit(participant_id, "notification", {
        "type": "ADDED_TO_CHAT",
        "payload": {
            "chatId": chat_id,
            "message": f"You were added to group chat by {actor_name}"
        }
    })

    return await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)


async def remove_participant(db, chat_id: str, current_user_id: str, participant_id: str) -> Optional[dict]:
    """Retire un participant

    L'admin peut retirer n'importe qui; les autres peuvent seulement partir.
    Si l'admin part, le premier participant restant devient admin. S'il ne
    reste personne, la conversation et ses messages sont supprimés (retourne None).
    """
    chat = await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")

    is_self_removal = current_user_id == participant_id
    is_admin = chat["admin"] == current_user_id

    if not is_admin and not is_self_removal:
        raise HTTPException(status_code=403, detail="Only chat admin can remove other participants")

    if participant_id not in chat["participants"]:
        raise HTTPException(status_code=400, detail="User is not a participant in this chat")

    # Mises à jour atomiques: un ajout concurrent n'est pas écrasé
    update = {
        "$pull": {"participants": participant_id},
        "$set": {"updatedAt": datetime.now(timezone.utc).isoformat()}
    }
    if chat.get("directKey"):
        # Une conversation directe à un seul participant n'est plus une paire
        update["$unset"] = {"directKey": ""}
    await db.chats.update_one({"id": chat_id}, update)

    deleted = await db.chats.delete_one({"id": chat_id, "participants": {"$size": 0}})
    if deleted.deleted_count:
        result = await db.messages.delete_many({"chat": chat_id})
        logging.info(f"Chat {chat_id} supprimé avec {result.deleted_count} messages")
        return None

    current = await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)
    if current is None:
        return None

    if current["admin"] == participant_id and current["participants"]:
        await db.chats.update_one(
            {"id": chat_id, "admin": participant_id},
            {"$set": {"admin": current["participants"][0]}}
        )
        current = await db.chats.find_one({"id": chat_id}, CHAT_FIELDS)

    return current
