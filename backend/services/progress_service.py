"""Suivi d'avancement des opérations par projet"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import HTTPException

from utils.progress import PROGRESS_STATUSES, derive_progress
from utils.soft_delete import not_deleted, tombstone


async def create_progress(db, project_id: str, data: dict, user_id: str) -> dict:
    variance, status = derive_progress(data["plannedProgress"], data["actualProgress"])

    now = datetime.now(timezone.utc).isoformat()
    entry = {
        "id": str(uuid.uuid4()),
        "projectId": project_id,
        "date": data.get("date") or now,
        "milestone": data["milestone"],
        "plannedProgress": data["plannedProgress"],
        "actualProgress": data["actualProgress"],
        "variance": variance,
        "status": status,
        "challenges": data.get("challenges"),
        "actions": data.get("actions"),
        "notes": data.get("notes"),
        "updatedBy": user_id,
        "isDeleted": False,
        "createdAt": now,
        "updatedAt": now
    }
    await db.operation_progress.insert_one(entry)
    entry.pop("_id", None)
    return entry


async def list_progress(db, project_id: str, status: Optional[str] = None) -> List[dict]:
    query = {"projectId": project_id}
    if status and status != "all":
        if status not in PROGRESS_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
        query["status"] = status

    return await db.operation_progress.find(not_deleted(query), {"_id": 0}).sort("date", -1).to_list(1000)


async def get_progress(db, progress_id: str) -> dict:
    entry = await db.operation_progress.find_one(not_deleted({"id": progress_id}), {"_id": 0})
    if not entry:
        raise HTTPException(status_code=404, detail="Progress entry not found")
    return entry


async def update_progress(db, progress_id: str, changes: dict, user_id: str) -> dict:
    entry = await get_progress(db, progress_id)

    fields = {k: v for k, v in changes.items() if v is not None}
    planned = fields.get("plannedProgress", entry["plannedProgress"])
    actual = fields.get("actualProgress", entry["actualProgress"])
    fields["variance"], fields["status"] = derive_progress(planned, actual)
    fields["updatedBy"] = user_id
    fields["updatedAt"] = datetime.now(timezone.utc).isoformat()

    await db.operation_progress.update_one({"id": progress_id}, {"$set": fields})
    return await get_progress(db, progress_id)


async def delete_progress(db, progress_id: str, user_id: str) -> None:
    result = await db.operation_progress.update_one(not_deleted({"id": progress_id}), tombstone(user_id))
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Progress entry not found")
