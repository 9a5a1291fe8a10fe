"""
Authentification pour PetroSite
- Tokens JWT (création / vérification)
- Dépendances FastAPI pour l'utilisateur courant
"""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pathlib import Path
from dotenv import load_dotenv

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'default_secret_key')
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get('JWT_EXPIRATION_HOURS', 24))

# Security Bearer
security = HTTPBearer(auto_error=False)

# ============================================
# TOKENS JWT
# ============================================

def create_access_token(data: dict) -> str:
    """Crée un JWT token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    return encoded_jwt

def verify_token(token: str) -> dict:
    """Vérifie un JWT token"""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous reconnecter")
    except JWTError:
        raise HTTPException(status_code=401, detail="Utilisateur non authentifié")

    if not payload.get("userId"):
        raise HTTPException(status_code=401, detail="Utilisateur non authentifié")
    return payload

def token_for_user(user: dict) -> str:
    """Token de session pour un document utilisateur"""
    return create_access_token({
        "userId": user["id"],
        "email": user["email"],
        "role": user["role"],
        "nom": user["nom"]
    })

def _current_user_from_payload(payload: dict) -> dict:
    return {
        "id": payload["userId"],
        "email": payload.get("email"),
        "role": payload.get("role"),
        "nom": payload.get("nom")
    }

# ============================================
# DÉPENDANCES
# ============================================

async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(security)) -> dict:
    """Dépendance: utilisateur authentifié par Bearer token"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Utilisateur non authentifié")
    return _current_user_from_payload(verify_token(credentials.credentials))

async def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(security)) -> Optional[dict]:
    """Dépendance: utilisateur si un token valide est présent, sinon None"""
    if credentials is None:
        return None
    try:
        return _current_user_from_payload(verify_token(credentials.credentials))
    except HTTPException as e:
        logging.warning(f"Token ignoré: {e.detail}")
        return None
