"""Routes du suivi d'avancement des projets"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from models import ProgressCreate, ProgressUpdate
from services import progress_service
from utils.permissions import Action, require_permission

# Router
router = APIRouter(prefix="/projects", tags=["Progress"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

@router.get("/{project_id}/progress")
async def get_project_progress(
    project_id: str,
    status: Optional[str] = None,
    current_user: dict = Depends(require_permission(Action.RECORD_PROGRESS))
):
    try:
        entries = await progress_service.list_progress(db, project_id, status)
        return {"success": True, "count": len(entries), "data": entries}
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur récupération avancement: {e}")
        raise HTTPException(status_code=500, detail="Error fetching progress")

@router.post("/{project_id}/progress", status_code=201)
async def create_progress(
    project_id: str,
    data: ProgressCreate,
    current_user: dict = Depends(require_permission(Action.RECORD_PROGRESS))
):
    """Enregistrer un avancement (écart et statut calculés)"""
    try:
        entry = await progress_service.create_progress(db, project_id, data.model_dump(), current_user["id"])
        return {"success": True, "data": entry}
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur création avancement: {e}")
        raise HTTPException(status_code=500, detail="Error creating progress")

@router.put("/progress/{progress_id}")
async def update_progress(
    progress_id: str,
    data: ProgressUpdate,
    current_user: dict = Depends(require_permission(Action.RECORD_PROGRESS))
):
    try:
        entry = await progress_service.update_progress(db, progress_id, data.model_dump(), current_user["id"])
        return {"success": True, "data": entry}
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur mise à jour avancement: {e}")
        raise HTTPException(status_code=500, detail="Error updating progress")

@router.delete("/progress/{progress_id}")
async def delete_progress(progress_id: str, current_user: dict = Depends(require_permission(Action.DELETE_PROGRESS))):
    """Suppression logique (Manager seulement)"""
    try:
        await progress_service.delete_progress(db, progress_id, current_user["id"])
        return {"success": True, "data": {}}
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur suppression avancement: {e}")
        raise HTTPException(status_code=500, detail="Error deleting progress")
