"""Protection des mots de passe pour PetroSite

Un mot de passe est haché avec bcrypt, puis le hash est chiffré en
AES-256-CBC. Le document stocké a la forme {"iv": <hex>, "encryptedData": <hex>}.

Par défaut chaque chiffrement utilise un IV aléatoire. ENCRYPTION_IV_MODE=static
reproduit l'ancien comportement (IV fixe issu de la configuration): deux hash
identiques donnent alors le même chiffré. Le déchiffrement utilise toujours
l'IV stocké, les anciens comptes restent donc vérifiables.
"""

import os
import logging
import bcrypt
from pathlib import Path
from typing import Dict
from dotenv import load_dotenv
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

ENCRYPTION_KEY = os.environ.get('ENCRYPTION_KEY', 'your-256-bit-key-here-32-characters')
ENCRYPTION_IV = os.environ.get('ENCRYPTION_IV', 'your-iv-16-chars')
ENCRYPTION_IV_MODE = os.environ.get('ENCRYPTION_IV_MODE', 'random').lower()
BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', 10))

KEY_SIZE = 32
IV_SIZE = 16

if ENCRYPTION_IV_MODE == 'static':
    logging.warning("ENCRYPTION_IV_MODE=static: IV fixe, les hash identiques sont détectables")


class CredentialError(Exception):
    """Erreur du schéma de protection des mots de passe"""


class EncryptionError(CredentialError):
    def __init__(self, message: str = "Encryption failed"):
        super().__init__(message)


class DecryptionError(CredentialError):
    def __init__(self, message: str = "Decryption failed"):
        super().__init__(message)


class PasswordComparisonError(CredentialError):
    def __init__(self, message: str = "Password comparison failed"):
        super().__init__(message)


def _fit(raw: bytes, size: int) -> bytes:
    # Complété par des zéros ou tronqué
    return raw[:size].ljust(size, b"\0")


def _key() -> bytes:
    return _fit(ENCRYPTION_KEY.encode('utf-8'), KEY_SIZE)


def _new_iv() -> bytes:
    if ENCRYPTION_IV_MODE == 'static':
        return _fit(ENCRYPTION_IV.encode('utf-8'), IV_SIZE)
    return os.urandom(IV_SIZE)


def encrypt_text(text: str) -> Dict[str, str]:
    """Chiffre un texte en AES-256-CBC

    Returns:
        {"iv": hex, "encryptedData": hex}
    """
    try:
        if not text:
            raise ValueError("No text provided for encryption")

        iv = _new_iv()
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(text.encode('utf-8')) + padder.finalize()

        encryptor = Cipher(algorithms.AES(_key()), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()

        return {"iv": iv.hex(), "encryptedData": encrypted.hex()}
    except Exception as e:
        logging.error(f"Erreur chiffrement: {e}")
        raise EncryptionError() from e


def decrypt_text(record: Dict[str, str]) -> str:
    """Déchiffre un document {"iv", "encryptedData"} avec l'IV stocké"""
    try:
        if not isinstance(record, dict) or not record.get("iv") or not record.get("encryptedData"):
            raise ValueError("Invalid encrypted data format")

        iv = _fit(bytes.fromhex(record["iv"]), IV_SIZE)
        encrypted = bytes.fromhex(record["encryptedData"])

        decryptor = Cipher(algorithms.AES(_key()), modes.CBC(iv)).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        decrypted = (unpadder.update(padded) + unpadder.finalize()).decode('utf-8')

        if not decrypted:
            raise ValueError("Decryption resulted in empty string")
        return decrypted
    except Exception as e:
        logging.error(f"Erreur déchiffrement: {e}")
        raise DecryptionError() from e


def hash_password(password: str) -> Dict[str, str]:
    """Hash bcrypt (sel aléatoire) puis chiffrement AES du hash"""
    if not password:
        raise EncryptionError("No password provided for hashing")

    try:
        hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    except ValueError as e:
        # bcrypt refuse les mots de passe de plus de 72 octets
        logging.error(f"Erreur hash mot de passe: {e}")
        raise CredentialError("Password hashing failed") from e
    return encrypt_text(hashed.decode('utf-8'))


def compare_password(password: str, record: Dict[str, str]) -> bool:
    """Vérifie un mot de passe contre un document chiffré

    Toute erreur de déchiffrement ou de comparaison (clé ou IV incorrects,
    données corrompues) lève PasswordComparisonError, sans distinguer la cause.
    """
    if not password:
        return False

    try:
        hashed = decrypt_text(record)
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except Exception as e:
        logging.error(f"Erreur comparaison mot de passe: {e}")
        raise PasswordComparisonError() from e
