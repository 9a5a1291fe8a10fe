"""Envoi des emails de PetroSite (activation de compte)"""

import os
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

SMTP_HOST = os.environ.get('SMTP_HOST', '')
SMTP_PORT = int(os.environ.get('SMTP_PORT', 587))
SMTP_USERNAME = os.environ.get('SMTP_USERNAME', '')
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
SMTP_FROM_EMAIL = os.environ.get('SMTP_FROM_EMAIL', '')
SMTP_TIMEOUT_SECONDS = int(os.environ.get('SMTP_TIMEOUT_SECONDS', 10))
FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5173').rstrip('/')


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Envoie un email HTML via SMTP"""
    if not SMTP_HOST:
        logging.warning(f"SMTP non configuré, email non envoyé: {subject}")
        return False

    try:
        msg = MIMEMultipart()
        msg['From'] = SMTP_FROM_EMAIL
        msg['To'] = to_email
        msg['Subject'] = subject

        msg.attach(MIMEText(body, 'html'))

        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.starttls()
            if SMTP_USERNAME:
                server.login(SMTP_USERNAME, SMTP_PASSWORD)
            server.send_message(msg)

        logging.info(f"Email envoyé à {to_email}: {subject}")
        return True

    except Exception as e:
        logging.error(f"Erreur envoi email: {e}")
        return False


def send_activation_email(email: str, activation_token: str, temp_password: str) -> bool:
    """Email d'activation avec mot de passe temporaire"""
    activation_link = f"{FRONTEND_URL}/activate/{activation_token}"
    subject = "Activation de votre compte PetroSite"

    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif;">
        <h2 style="color: #2563eb;">Bienvenue sur PetroSite</h2>
        <p>Un compte a été créé pour vous.</p>
        <p><strong>Mot de passe temporaire:</strong> {temp_password}</p>
        <p>Activez votre compte et choisissez un nouveau mot de passe:</p>
        <p><a href="{activation_link}">{activation_link}</a></p>
        <p style="color: #6b7280; font-size: 12px;">Ce lien expire dans une heure.</p>
    </body>
    </html>
    """

    return send_email(email, subject, body)
