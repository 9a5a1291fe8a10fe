"""Utilisateurs et comptes: création, activation, connexion, administration

bcrypt et l'envoi SMTP sont bloquants: ils passent par asyncio.to_thread pour
ne pas arrêter la boucle d'événements.
"""

import os
import asyncio
import uuid
import secrets
import logging
from datetime import datetime, timezone, timedelta
from typing import Iterable, List, Optional

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from credentials import CredentialError, compare_password, hash_password
from security import token_for_user
from utils import mailer
from utils.permissions import Action, Role, ensure_permission

ACTIVATION_TOKEN_TTL_SECONDS = int(os.environ.get('ACTIVATION_TOKEN_TTL_SECONDS', 3600))

INVALID_CREDENTIALS = "Email ou mot de passe incorrect"

USER_SUMMARY_FIELDS = {"_id": 0, "id": 1, "nom": 1, "email": 1}


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def user_summaries(db, user_ids: Iterable[str]) -> List[dict]:
    """Résumé {id, nom, email} des utilisateurs, dans l'ordre demandé"""
    ids = list(user_ids)
    users = await db.users.find({"id": {"$in": ids}}, USER_SUMMARY_FIELDS).to_list(len(ids) or 1)
    by_id = {u["id"]: u for u in users}
    return [by_id[i] for i in ids if i in by_id]


async def create_user(db, user_data, current_user: Optional[dict]) -> dict:
    """Crée un utilisateur et son compte inactif

    Le tout premier utilisateur devient Manager sans authentification;
    ensuite seul un Manager peut créer des utilisateurs.
    """
    is_first_user = await db.users.count_documents({}) == 0

    if not is_first_user:
        if current_user is None:
            raise HTTPException(status_code=401, detail="Utilisateur non authentifié")
        ensure_permission(current_user, Action.CREATE_USER)

    email = user_data.email.strip().lower()
    role = Role.MANAGER.value if is_first_user else user_data.role

    if await db.accounts.find_one({"email": email}) or await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email déjà utilisé")

    activation_token = secrets.token_hex(32)
    temp_password = secrets.token_hex(10)
    expiry = datetime.now(timezone.utc) + timedelta(seconds=ACTIVATION_TOKEN_TTL_SECONDS)

    encrypted_password = await asyncio.to_thread(hash_password, temp_password)

    now = datetime.now(timezone.utc).isoformat()
    user_doc = {
        "id": str(uuid.uuid4()),
        "nom": user_data.nom,
        "email": email,
        "role": role,
        "niveauAcces": "admin" if role == Role.MANAGER.value else "user",
        "telephone": user_data.telephone,
        "departement": user_data.departement,
        "estActif": False,
        "createdAt": now,
        "updatedAt": now
    }
    try:
        await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        # Création concurrente avec le même email
        raise HTTPException(status_code=400, detail="Email déjà utilisé")

    account_doc = {
        "id": str(uuid.uuid4()),
        "email": email,
        "motDePasse": encrypted_password,
        "utilisateurAssocie": user_doc["id"],
        "activationToken": activation_token,
        "activationTokenExpiry": expiry.isoformat(),
        "mustChangePassword": True
    }
    try:
        await db.accounts.insert_one(account_doc)
    except DuplicateKeyError:
        # Pas d'utilisateur sans compte
        await db.users.delete_one({"id": user_doc["id"]})
        raise HTTPException(status_code=400, detail="Email déjà utilisé")
    except Exception:
        await db.users.delete_one({"id": user_doc["id"]})
        raise

    email_sent = await asyncio.to_thread(mailer.send_activation_email, email, activation_token, temp_password)
    if not email_sent:
        logging.warning(f"Email d'activation non envoyé pour {email}")

    result = {
        "message": "Utilisateur créé avec succès. Email d'activation envoyé." if email_sent
        else "Utilisateur créé mais l'envoi de l'email a échoué",
        "userId": user_doc["id"],
        "isFirstUser": is_first_user
    }
    if not email_sent:
        result["emailError"] = True
    return result


async def activate_account(db, token: str, new_password: str) -> dict:
    """Active un compte à partir du token reçu par email"""
    account = await db.accounts.find_one({"activationToken": token}) if token else None

    expiry = account.get("activationTokenExpiry") if account else None
    if not expiry or _parse_iso(expiry) <= datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Token invalide ou expiré")

    try:
        encrypted_password = await asyncio.to_thread(hash_password, new_password)
    except CredentialError:
        raise HTTPException(status_code=400, detail="Mot de passe invalide")

    await db.accounts.update_one(
        {"id": account["id"]},
        {
            "$set": {"motDePasse": encrypted_password, "mustChangePassword": False},
            "$unset": {"activationToken": "", "activationTokenExpiry": ""}
        }
    )
    await db.users.update_one(
        {"id": account["utilisateurAssocie"]},
        {"$set": {"estActif": True, "updatedAt": datetime.now(timezone.utc).isoformat()}}
    )

    logging.info(f"Compte activé: {account['email']}")
    return {"message": "Compte activé avec succès"}


async def login(db, email: str, password: str) -> dict:
    """Connexion; toute erreur d'identifiants donne la même réponse 401"""
    account = await db.accounts.find_one({"email": (email or "").strip().lower()})
    if not account:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    try:
        valid = await asyncio.to_thread(compare_password, password, account.get("motDePasse"))
    except CredentialError as e:
        logging.warning(f"Échec vérification mot de passe pour {account['email']}: {e}")
        valid = False

    if not valid:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    user = await db.users.find_one({"id": account["utilisateurAssocie"]}, {"_id": 0})
    if not user:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    return {
        "token": token_for_user(user),
        "user": {
            "id": user["id"],
            "email": user["email"],
            "role": user["role"],
            "nom": user["nom"]
        }
    }


async def list_users(db) -> List[dict]:
    return await db.users.find({}, {"_id": 0}).sort("createdAt", 1).to_list(1000)


async def get_user(db, user_id: str) -> dict:
    user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")

    account = await db.accounts.find_one(
        {"utilisateurAssocie": user_id},
        {"_id": 0, "motDePasse": 0, "activationToken": 0}
    )
    return {"utilisateur": user, "compte": account}


async def update_user(db, user_id: str, update_data) -> dict:
    user = await db.users.find_one({"id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")

    update_fields = {}
    for field in ("nom", "role", "niveauAcces", "telephone", "departement"):
        value = getattr(update_data, field)
        if value is not None:
            update_fields[field] = value

    if update_data.email is not None:
        email = update_data.email.strip().lower()
        if email != user["email"] and await db.users.find_one({"email": email}):
            raise HTTPException(status_code=400, detail="Email déjà utilisé")
        update_fields["email"] = email

    update_fields["updatedAt"] = datetime.now(timezone.utc).isoformat()
    await db.users.update_one({"id": user_id}, {"$set": update_fields})

    account_fields = {}
    if "email" in update_fields:
        account_fields["email"] = update_fields["email"]
    if update_data.motDePasse:
        try:
            account_fields["motDePasse"] = await asyncio.to_thread(hash_password, update_data.motDePasse)
        except CredentialError:
            raise HTTPException(status_code=400, detail="Mot de passe invalide")
    if account_fields:
        await db.accounts.update_one({"utilisateurAssocie": user_id}, {"$set": account_fields})

    return {"message": "Utilisateur mis à jour"}


async def delete_user(db, user_id: str) -> dict:
    result = await db.users.delete_one({"id": user_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")

    await db.accounts.delete_one({"utilisateurAssocie": user_id})
    return {"message": "Utilisateur supprimé"}
