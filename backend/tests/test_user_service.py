"""
Tests du service utilisateurs: boucle d'événements libre, créations concurrentes
"""
import asyncio
import time

import pytest
from fastapi import HTTPException

from conftest import CollectionProxy, DatabaseProxy
from models import UserCreate
from services import user_service
from utils import mailer


async def max_loop_gap(coro):
    """Exécute coro et retourne le plus long blocage observé de la boucle"""
    gaps = []
    done = asyncio.Event()

    async def ticker():
        last = time.perf_counter()
        while not done.is_set():
            await asyncio.sleep(0.01)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    task = asyncio.create_task(ticker())
    try:
        result = await coro
    finally:
        done.set()
        await task
    return result, max(gaps)


class TestEventLoopStaysFree:
    """SMTP et bcrypt ne bloquent pas les autres requêtes"""

    async def test_slow_activation_email(self, db, monkeypatch):
        def slow_relay(email, activation_token, temp_password):
            time.sleep(0.5)
            return True

        monkeypatch.setattr(mailer, "send_activation_email", slow_relay)

        result, gap = await max_loop_gap(
            user_service.create_user(db, UserCreate(nom="Chef", email="chef@petrosite.test"), None)
        )

        assert result["isFirstUser"] is True
        assert gap < 0.2
        print(f"✅ Blocage max de la boucle: {gap:.3f}s")

    async def test_login_hashing_runs_off_loop(self, db, sent_emails):
        await user_service.create_user(db, UserCreate(nom="Chef", email="chef@petrosite.test"), None)
        temp_password = sent_emails[0]["temp_password"]

        result, gap = await max_loop_gap(user_service.login(db, "chef@petrosite.test", temp_password))

        assert result["user"]["role"] == "Manager"
        assert gap < 0.2

    def test_smtp_connection_has_timeout(self, monkeypatch):
        opened = []

        class RecordingSMTP:
            def __init__(self, host, port, timeout=None):
                opened.append(timeout)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self):
                pass

            def login(self, username, password):
                pass

            def send_message(self, msg):
                pass

        monkeypatch.setattr(mailer, "SMTP_HOST", "smtp.petrosite.test")
        monkeypatch.setattr(mailer.smtplib, "SMTP", RecordingSMTP)

        assert mailer.send_email("tech@petrosite.test", "Test", "<p>ok</p>") is True
        assert opened == [mailer.SMTP_TIMEOUT_SECONDS]


class TestConcurrentCreation:
    """Deux créations avec le même email"""

    async def test_same_email_twice_gives_one_user(self, indexed_db, sent_emails):
        lagging_db = DatabaseProxy(
            indexed_db,
            users=CollectionProxy(indexed_db.users, find_one_delay=0.05),
            accounts=CollectionProxy(indexed_db.accounts, find_one_delay=0.05),
        )
        data = UserCreate(nom="Chef", email="chef@petrosite.test")

        results = await asyncio.gather(
            user_service.create_user(lagging_db, data, None),
            user_service.create_user(lagging_db, data, None),
            return_exceptions=True
        )

        errors = [r for r in results if isinstance(r, HTTPException)]
        assert len(errors) == 1
        assert errors[0].status_code == 400
        assert errors[0].detail == "Email déjà utilisé"
        assert await indexed_db.users.count_documents({}) == 1
        assert await indexed_db.accounts.count_documents({}) == 1

    async def test_failed_account_insert_leaves_no_orphan_user(self, indexed_db, sent_emails):
        # Compte existant que la vérification préalable ne voit pas
        await indexed_db.accounts.insert_one({"id": "acc-1", "email": "chef@petrosite.test", "utilisateurAssocie": "ghost"})
        stale_db = DatabaseProxy(indexed_db, accounts=CollectionProxy(indexed_db.accounts, stale=True))

        with pytest.raises(HTTPException) as exc_info:
            await user_service.create_user(stale_db, UserCreate(nom="Chef", email="chef@petrosite.test"), None)

        assert exc_info.value.status_code == 400
        assert await indexed_db.users.count_documents({}) == 0
        assert sent_emails == []
