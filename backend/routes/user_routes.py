"""Routes de gestion des utilisateurs (Manager)"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from models import UserCreate, UserUpdate
from security import get_optional_user
from services import user_service
from utils.permissions import Action, require_permission

# Router
router = APIRouter(prefix="/users", tags=["Users"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

@router.post("", status_code=201)
async def create_user(user_data: UserCreate, current_user: Optional[dict] = Depends(get_optional_user)):
    """Créer un utilisateur (Manager, ou premier utilisateur de l'application)"""
    try:
        return await user_service.create_user(db, user_data, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur création utilisateur: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la création de l'utilisateur")

@router.get("")
async def list_users(current_user: dict = Depends(require_permission(Action.LIST_USERS))):
    """Liste des utilisateurs (Manager seulement)"""
    try:
        return await user_service.list_users(db)
    except Exception as e:
        logging.error(f"Erreur liste utilisateurs: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération des utilisateurs")

@router.get("/{user_id}")
async def get_user(user_id: str, current_user: dict = Depends(require_permission(Action.VIEW_USER))):
    """Détail d'un utilisateur et de son compte (Manager seulement)"""
    try:
        return await user_service.get_user(db, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur récupération utilisateur: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la récupération de l'utilisateur")

@router.put("/{user_id}")
async def update_user(user_id: str, update_data: UserUpdate, current_user: dict = Depends(require_permission(Action.UPDATE_USER))):
    """Mettre à jour un utilisateur (Manager seulement)"""
    try:
        return await user_service.update_user(db, user_id, update_data)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur mise à jour utilisateur: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la mise à jour de l'utilisateur")

@router.delete("/{user_id}")
async def delete_user(user_id: str, current_user: dict = Depends(require_permission(Action.DELETE_USER))):
    """Supprimer un utilisateur et son compte (Manager seulement)"""
    try:
        return await user_service.delete_user(db, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur suppression utilisateur: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la suppression de l'utilisateur")
