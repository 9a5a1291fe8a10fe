"""
Tests du registre utilisateur -> connexion temps réel
"""
from conftest import FakeSocket


class TestRegistration:
    """Enregistrement et retrait des connexions"""

    def test_register_and_lookup(self, registry):
        registry.register("u1", "c1")
        assert registry.lookup("u1") == "c1"
        assert registry.connected_users() == ["u1"]

    def test_last_connection_wins(self, registry):
        registry.register("u1", "c1")
        registry.register("u1", "c2")
        assert registry.lookup("u1") == "c2"

    def test_stale_disconnect_keeps_newer_connection(self, registry):
        """La déconnexion d'une ancienne connexion ne retire pas la nouvelle"""
        registry.register("u1", "c1")
        registry.register("u1", "c2")

        registry.unregister("c1")

        assert registry.lookup("u1") == "c2"

    def test_unregister_returns_user(self, registry):
        registry.register("u1", "c1")
        assert registry.unregister("c1") == "u1"
        assert registry.lookup("u1") is None

    def test_unregister_unknown_connection(self, registry):
        assert registry.unregister("missing") is None


class TestEmit:
    """Envoi d'événements"""

    async def test_emit_to_connected_user(self, registry):
        socket = FakeSocket()
        registry.register("u1", "c1", socket)

        assert await registry.emit("u1", "message", {"content": "Bonjour"}) is True
        assert socket.sent == [{"event": "message", "data": {"content": "Bonjour"}}]

    async def test_emit_to_absent_user(self, registry):
        assert await registry.emit("nobody", "message", {}) is False

    async def test_emit_failure_is_not_raised(self, registry):
        registry.register("u1", "c1", FakeSocket(fail=True))
        assert await registry.emit("u1", "message", {}) is False

    async def test_replaced_socket_no_longer_receives(self, registry):
        old_socket, new_socket = FakeSocket(), FakeSocket()
        registry.register("u1", "c1", old_socket)
        registry.register("u1", "c2", new_socket)

        await registry.emit("u1", "typing", {"chatId": "x"})

        assert old_socket.sent == []
        assert len(new_socket.sent) == 1

    async def test_emit_many_excludes_sender(self, registry):
        sockets = {uid: FakeSocket() for uid in ("a", "b", "c")}
        for uid, socket in sockets.items():
            registry.register(uid, f"conn-{uid}", socket)

        sent = await registry.emit_many(["a", "b", "c", "offline"], "message", {"n": 1}, exclude="a")

        assert sent == 2
        assert sockets["a"].sent == []
        assert sockets["b"].sent[0]["data"] == {"n": 1}
