"""
Tests du suivi d'avancement: statut dérivé et suppression logique
"""
import pytest
from fastapi import HTTPException

from services import progress_service
from utils.progress import derive_progress
from utils.soft_delete import not_deleted, tombstone


class TestDeriveProgress:
    """Écart = réel - prévu, statut selon les seuils"""

    @pytest.mark.parametrize("planned,actual,expected", [
        (50, 55, (5, "ahead")),
        (50, 54, (4, "onTrack")),
        (50, 50, (0, "onTrack")),
        (50, 49, (-1, "behind")),
        (50, 41, (-9, "behind")),
        (50, 40, (-10, "atRisk")),
        (80, 20, (-60, "atRisk")),
    ])
    def test_thresholds(self, planned, actual, expected):
        assert derive_progress(planned, actual) == expected


class TestSoftDeleteHelpers:

    def test_not_deleted_does_not_mutate(self):
        query = {"projectId": "p1"}
        filtered = not_deleted(query)
        assert filtered == {"projectId": "p1", "isDeleted": {"$ne": True}}
        assert query == {"projectId": "p1"}

    def test_tombstone(self):
        update = tombstone("u1")["$set"]
        assert update["isDeleted"] is True
        assert update["deletedBy"] == "u1"
        assert "deletedAt" in update


class TestProgressService:
    """Écritures et lectures en base"""

    @staticmethod
    def entry(planned, actual, milestone="Forage puits A-12"):
        return {
            "date": None,
            "milestone": milestone,
            "plannedProgress": planned,
            "actualProgress": actual,
            "challenges": None,
            "actions": None,
            "notes": None,
        }

    async def test_create_derives_status(self, db):
        created = await progress_service.create_progress(db, "p1", self.entry(60, 45), "u1")

        assert created["variance"] == -15
        assert created["status"] == "atRisk"
        assert created["isDeleted"] is False

    async def test_update_recomputes_status(self, db):
        created = await progress_service.create_progress(db, "p1", self.entry(60, 45), "u1")

        updated = await progress_service.update_progress(db, created["id"], {"actualProgress": 66}, "u2")

        assert updated["variance"] == 6
        assert updated["status"] == "ahead"
        assert updated["updatedBy"] == "u2"

    async def test_deleted_entries_are_hidden(self, db):
        kept = await progress_service.create_progress(db, "p1", self.entry(10, 10), "u1")
        removed = await progress_service.create_progress(db, "p1", self.entry(20, 5), "u1")

        await progress_service.delete_progress(db, removed["id"], "m1")

        entries = await progress_service.list_progress(db, "p1")
        assert [e["id"] for e in entries] == [kept["id"]]

        stored = await db.operation_progress.find_one({"id": removed["id"]})
        assert stored["isDeleted"] is True
        assert stored["deletedBy"] == "m1"

        with pytest.raises(HTTPException) as exc_info:
            await progress_service.get_progress(db, removed["id"])
        assert exc_info.value.status_code == 404

        # Une deuxième suppression ne trouve plus l'entrée
        with pytest.raises(HTTPException):
            await progress_service.delete_progress(db, removed["id"], "m1")

    async def test_filter_by_status(self, db):
        await progress_service.create_progress(db, "p1", self.entry(50, 50), "u1")
        behind = await progress_service.create_progress(db, "p1", self.entry(50, 45), "u1")

        entries = await progress_service.list_progress(db, "p1", "behind")
        assert [e["id"] for e in entries] == [behind["id"]]

    async def test_invalid_status_filter(self, db):
        with pytest.raises(HTTPException) as exc_info:
            await progress_service.list_progress(db, "p1", "late")
        assert exc_info.value.status_code == 400
