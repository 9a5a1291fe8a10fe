"""Canal temps réel (WebSocket)

Connexion: /ws?token=<jwt>. Les trames échangées sont {"event": ..., "data": ...}.
Événements client: typing, stop-typing, direct-notification.
"""

import json
import uuid
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, HTTPException, status

from security import verify_token
from services import message_service, notification_service
from utils.permissions import Action, can

# Router
router = APIRouter(tags=["Realtime"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

async def handle_event(registry, websocket: WebSocket, user: dict, frame: dict) -> None:
    event = frame.get("event")
    data = frame.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        await websocket.send_json({"event": "error", "data": {"message": "Invalid frame"}})
        return

    if event in ("typing", "stop-typing"):
        await message_service.broadcast_typing(
            db, registry, data.get("chatId"), user["userId"], typing=(event == "typing")
        )
    elif event == "direct-notification":
        target = data.get("userId")
        notification = data.get("notification")
        if not target or not isinstance(notification, dict):
            await websocket.send_json({"event": "error", "data": {"message": "Invalid direct notification data"}})
            return
        if not can(user.get("role"), Action.SEND_DIRECT_NOTIFICATION):
            await websocket.send_json({"event": "error", "data": {"message": "Accès interdit"}})
            return
        try:
            await notification_service.deliver_direct_notification(
                db, registry, str(target), notification, user["userId"]
            )
        except HTTPException as e:
            await websocket.send_json({"event": "error", "data": {"message": e.detail}})
    else:
        await websocket.send_json({"event": "error", "data": {"message": "Unknown event"}})

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = ""):
    try:
        user = verify_token(token)
    except HTTPException as e:
        logging.warning(f"Connexion temps réel refusée: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry = websocket.app.state.registry
    connection_id = str(uuid.uuid4())

    await websocket.accept()
    registry.register(user["userId"], connection_id, websocket)
    logging.info(f"Client connecté: {connection_id} (user {user['userId']})")
    await websocket.send_json({"event": "authenticated", "data": {"userId": user["userId"]}})

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except json.JSONDecodeError:
                await websocket.send_json({"event": "error", "data": {"message": "Invalid JSON"}})
                continue

            if not isinstance(frame, dict):
                await websocket.send_json({"event": "error", "data": {"message": "Invalid frame"}})
                continue

            try:
                await handle_event(registry, websocket, user, frame)
            except WebSocketDisconnect:
                raise
            except Exception as e:
                logging.error(f"Erreur événement {frame.get('event')}: {e}")
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(connection_id)
        logging.info(f"Client déconnecté: {connection_id}")
