"""Registre des connexions temps réel

Associe chaque utilisateur à sa connexion WebSocket active. Une seule
connexion par utilisateur: la dernière connexion remplace la précédente.
L'envoi est best-effort: un utilisateur absent ne reçoit rien, le message
reste disponible en base.

Le registre appartient à l'application (app.state.registry) et est passé aux
handlers par dépendance.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder


class ConnectionRegistry:
    def __init__(self):
        self._by_user: Dict[str, str] = {}
        self._by_connection: Dict[str, str] = {}
        self._sockets: Dict[str, Any] = {}

    def register(self, user_id: str, connection_id: str, websocket: Any = None) -> None:
        """Enregistre la connexion d'un utilisateur (la dernière gagne)"""
        user_id = str(user_id)
        previous = self._by_user.get(user_id)
        if previous and previous != connection_id:
            self._by_connection.pop(previous, None)
            self._sockets.pop(previous, None)
            logging.info(f"Connexion {previous} remplacée pour user {user_id}")

        self._by_user[user_id] = connection_id
        self._by_connection[connection_id] = user_id
        if websocket is not None:
            self._sockets[connection_id] = websocket

    def unregister(self, connection_id: str) -> Optional[str]:
        """Retire une connexion; retourne l'utilisateur concerné s'il y en avait un"""
        self._sockets.pop(connection_id, None)
        user_id = self._by_connection.pop(connection_id, None)
        if user_id is not None and self._by_user.get(user_id) == connection_id:
            del self._by_user[user_id]
        return user_id

    def lookup(self, user_id: str) -> Optional[str]:
        return self._by_user.get(str(user_id))

    def connected_users(self) -> List[str]:
        return list(self._by_user.keys())

    async def emit(self, user_id: str, event: str, data: dict) -> bool:
        """Envoie un événement à un utilisateur s'il est connecté

        Returns:
            True si l'envoi a eu lieu, False sinon (absent ou erreur d'envoi)
        """
        connection_id = self.lookup(user_id)
        if connection_id is None:
            return False

        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json({"event": event, "data": jsonable_encoder(data)})
            return True
        except Exception as e:
            logging.warning(f"Envoi {event} impossible vers user {user_id}: {e}")
            return False

    async def emit_many(self, user_ids: Iterable[str], event: str, data: dict, exclude: Optional[str] = None) -> int:
        """Envoie un événement à plusieurs utilisateurs; retourne le nombre d'envois réussis"""
        sent = 0
        for user_id in user_ids:
            if exclude is not None and str(user_id) == str(exclude):
                continue
            if await self.emit(user_id, event, data):
                sent += 1
        return sent


def get_registry(request: Request) -> ConnectionRegistry:
    """Dépendance FastAPI: registre de l'application"""
    return request.app.state.registry
