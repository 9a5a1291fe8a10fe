"""Routes d'authentification pour PetroSite"""

from fastapi import APIRouter, HTTPException
import logging

from models import LoginRequest, LoginResponse, ActivationRequest
from services import user_service

# Router
router = APIRouter(prefix="/auth", tags=["Authentication"])

# MongoDB connection (sera injecté depuis server.py)
db = None

def set_db(database):
    """Configure la connexion à la base de données"""
    global db
    db = database

@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest):
    """Connexion d'un utilisateur"""
    try:
        return await user_service.login(db, credentials.email, credentials.motDePasse)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur login: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la connexion")

@router.post("/activate")
async def activate_account(data: ActivationRequest):
    """Activation du compte avec le token reçu par email"""
    try:
        return await user_service.activate_account(db, data.token, data.newPassword)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Erreur activation compte: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de l'activation du compte")
