"""
Tests des notifications et des intégrations externes (email, images)
"""
import pytest
from fastapi import HTTPException

from conftest import FakeSocket
from services import chat_service, notification_service
from utils import asset_store, mailer


class TestNotificationService:
    """Persistance et envoi temps réel"""

    async def test_create_pushes_to_target_only(self, db, registry):
        target, bystander = FakeSocket(), FakeSocket()
        registry.register("u1", "c1", target)
        registry.register("u2", "c2", bystander)

        created = await notification_service.create_notification(
            db, registry, "TASK_ASSIGNED", "Contrôle du séparateur", "u1"
        )

        assert created["isRead"] is False
        assert target.sent[0]["data"] == {"type": "NEW_NOTIFICATION", "payload": created}
        assert bystander.sent == []

    async def test_invalid_type(self, db, registry):
        with pytest.raises(HTTPException) as exc_info:
            await notification_service.create_notification(db, registry, "PARTY", "?", "u1")
        assert exc_info.value.status_code == 400

    async def test_direct_notification_online_is_not_stored(self, db, registry):
        socket = FakeSocket()
        registry.register("u1", "c1", socket)

        delivered = await notification_service.deliver_direct_notification(
            db, registry, "u1", {"type": "TASK_COMPLETED", "message": "Terminé"}, "m1"
        )

        assert delivered is True
        assert len(socket.sent) == 1
        assert await db.notifications.count_documents({}) == 0

    async def test_direct_notification_offline_is_stored(self, db, registry):
        delivered = await notification_service.deliver_direct_notification(
            db, registry, "u1", {"type": "TASK_COMPLETED", "message": "Terminé"}, "m1"
        )

        assert delivered is False
        stored = await notification_service.list_notifications(db, "u1")
        assert stored[0]["metadata"] == {"source": "direct-socket", "from": "m1"}

    async def test_mark_read_only_own_notification(self, db, registry):
        created = await notification_service.create_notification(db, registry, "USER_CREATED", "Bienvenue", "u1")

        with pytest.raises(HTTPException) as exc_info:
            await notification_service.mark_notification_read(db, created["id"], "u2")
        assert exc_info.value.status_code == 404

        updated = await notification_service.mark_notification_read(db, created["id"], "u1")
        assert updated["isRead"] is True


class TestGroupPicture:
    """L'échec d'upload n'empêche pas la création du groupe"""

    async def test_uploaded_picture_url_is_stored(self, indexed_db, registry, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        async def uploader(image):
            return "https://cdn.test/groupe.png"

        chat, _ = await chat_service.create_chat(
            indexed_db, registry, alice, [bob["id"]], title="Quart de nuit",
            is_group=True, group_picture="aGVsbG8=", uploader=uploader
        )
        assert chat["groupPicture"] == "https://cdn.test/groupe.png"

    async def test_failed_upload_creates_chat_without_picture(self, indexed_db, registry, make_user):
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        async def uploader(image):
            raise RuntimeError("hébergeur indisponible")

        chat, created = await chat_service.create_chat(
            indexed_db, registry, alice, [bob["id"]], title="Quart de nuit",
            is_group=True, group_picture="aGVsbG8=", uploader=uploader
        )
        assert created is True
        assert chat["groupPicture"] is None

    async def test_upload_requires_configuration(self, monkeypatch):
        monkeypatch.setattr(asset_store, "ASSET_UPLOAD_URL", "")
        with pytest.raises(RuntimeError):
            await asset_store.upload_image("aGVsbG8=")

    def test_decode_data_url(self):
        assert asset_store.decode_image("data:image/png;base64,aGVsbG8=") == b"hello"


class TestMailer:

    def test_without_smtp_nothing_is_sent(self, monkeypatch):
        monkeypatch.setattr(mailer, "SMTP_HOST", "")
        assert mailer.send_activation_email("tech@petrosite.test", "abc", "temp") is False
