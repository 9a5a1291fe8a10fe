"""Fixtures communes: base MongoDB en mémoire, registre, client HTTP"""

import uuid
import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import server
from security import token_for_user
from utils import mailer
from utils.connection_registry import ConnectionRegistry


class FakeSocket:
    """WebSocket minimal qui enregistre les trames envoyées"""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


class CursorSpy:
    """Curseur qui note la longueur demandée à to_list"""

    def __init__(self, cursor, lengths):
        self._cursor = cursor
        self._lengths = lengths

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    async def to_list(self, length):
        self._lengths.append(length)
        return await self._cursor.to_list(length)


class CollectionProxy:
    """Collection avec latence réseau simulée ou lecture périmée sur find_one"""

    def __init__(self, collection, find_one_delay=0.0, stale=False, to_list_lengths=None):
        self._collection = collection
        self.find_one_delay = find_one_delay
        self.stale = stale
        self.to_list_lengths = to_list_lengths

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def find_one(self, *args, **kwargs):
        result = None if self.stale else await self._collection.find_one(*args, **kwargs)
        if self.find_one_delay:
            await asyncio.sleep(self.find_one_delay)
        return result

    def find(self, *args, **kwargs):
        cursor = self._collection.find(*args, **kwargs)
        if self.to_list_lengths is None:
            return cursor
        return CursorSpy(cursor, self.to_list_lengths)


class DatabaseProxy:
    """Base dont certaines collections sont remplacées par des CollectionProxy"""

    def __init__(self, database, **collections):
        self._database = database
        for name, proxy in collections.items():
            setattr(self, name, proxy)

    def __getattr__(self, name):
        return getattr(self._database, name)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["petrosite_test"]


@pytest.fixture
async def indexed_db(db):
    await server.ensure_indexes(db)
    return db


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def make_user(db):
    async def _make_user(nom, role="User"):
        now = datetime.now(timezone.utc).isoformat()
        user = {
            "id": str(uuid.uuid4()),
            "nom": nom,
            "email": f"{nom.lower()}@petrosite.test",
            "role": role,
            "niveauAcces": "admin" if role == "Manager" else "user",
            "estActif": True,
            "createdAt": now,
            "updatedAt": now
        }
        await db.users.insert_one(user)
        user.pop("_id", None)
        return user
    return _make_user


@pytest.fixture
def sent_emails(monkeypatch):
    """Remplace l'envoi d'email d'activation et capture son contenu"""
    sent = []

    def fake_send_activation_email(email, activation_token, temp_password):
        sent.append({"email": email, "token": activation_token, "temp_password": temp_password})
        return True

    monkeypatch.setattr(mailer, "send_activation_email", fake_send_activation_email)
    return sent


@pytest.fixture
def client(db, sent_emails):
    server.init_database(db)
    server.app.state.registry = ConnectionRegistry()
    with TestClient(server.app) as test_client:
        yield test_client


def auth_headers(user_or_token):
    token = user_or_token if isinstance(user_or_token, str) else token_for_user(user_or_token)
    return {"Authorization": f"Bearer {token}"}
