"""Envoi des images (photo de groupe) vers l'hébergeur de fichiers"""

import os
import base64
import asyncio
import logging
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

import aiohttp

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

ASSET_UPLOAD_URL = os.environ.get('ASSET_UPLOAD_URL', '')
ASSET_UPLOAD_TOKEN = os.environ.get('ASSET_UPLOAD_TOKEN', '')
UPLOAD_TIMEOUT_SECONDS = 15


def decode_image(data: str) -> bytes:
    """Décode une image base64 (avec ou sans préfixe data:...;base64,)"""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    return base64.b64decode(data, validate=True)


async def upload_image(image_base64: str, folder: str = "chat-groups") -> Optional[str]:
    """Envoie une image et retourne son URL publique

    Lève une exception en cas d'échec; l'appelant décide s'il l'ignore.
    """
    if not ASSET_UPLOAD_URL:
        raise RuntimeError("ASSET_UPLOAD_URL non configuré")

    content = decode_image(image_base64)

    form = aiohttp.FormData()
    form.add_field("folder", folder)
    form.add_field("file", content, filename="picture", content_type="application/octet-stream")

    headers = {}
    if ASSET_UPLOAD_TOKEN:
        headers["Authorization"] = f"Bearer {ASSET_UPLOAD_TOKEN}"

    async with aiohttp.ClientSession() as session:
        async with session.post(
            ASSET_UPLOAD_URL,
            data=form,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=UPLOAD_TIMEOUT_SECONDS)
        ) as response:
            if response.status not in (200, 201):
                raise RuntimeError(f"Upload refusé (status {response.status})")
            result = await response.json()

    return result.get("secure_url") or result.get("url")


async def try_upload_image(image_base64: Optional[str], uploader=None) -> Optional[str]:
    """Upload best-effort: retourne None et journalise en cas d'échec"""
    if not image_base64:
        return None

    uploader = uploader or upload_image
    try:
        return await uploader(image_base64)
    except asyncio.TimeoutError:
        logging.warning("Timeout upload image de groupe - chat créé sans image")
        return None
    except Exception as e:
        logging.warning(f"Erreur upload image de groupe: {e}")
        return None
