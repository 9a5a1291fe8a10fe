"""Modèles Pydantic pour l'application PetroSite"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal

# ==================== AUTHENTIFICATION ====================

class LoginRequest(BaseModel):
    email: str
    motDePasse: str

class LoginResponse(BaseModel):
    token: str
    user: dict

# ==================== UTILISATEURS ====================

class UserCreate(BaseModel):
    nom: str
    email: str
    role: Literal["User", "Manager"] = "User"
    telephone: Optional[str] = None
    departement: Optional[str] = None

class UserUpdate(BaseModel):
    nom: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Literal["User", "Manager"]] = None
    niveauAcces: Optional[Literal["user", "admin"]] = None
    telephone: Optional[str] = None
    departement: Optional[str] = None
    motDePasse: Optional[str] = None

class ActivationRequest(BaseModel):
    token: str
    newPassword: str = Field(..., min_length=8)

# ==================== CHATS ====================

class ChatCreate(BaseModel):
    title: Optional[str] = None
    participants: List[str] = []
    isGroup: bool = False
    groupPicture: Optional[str] = None  # image base64

class ChatUpdate(BaseModel):
    title: Optional[str] = None

class ParticipantAdd(BaseModel):
    participantId: Optional[str] = None

# ==================== MESSAGES ====================

class Attachment(BaseModel):
    url: str
    type: Literal["image", "document", "video", "audio"]
    filename: Optional[str] = None
    size: Optional[int] = None

class MessageCreate(BaseModel):
    content: Optional[str] = ""
    attachments: List[Attachment] = []

# ==================== NOTIFICATIONS ====================

NOTIFICATION_TYPES = (
    "ACCOUNT_ACTIVATION",
    "USER_CREATED",
    "NEW_CHAT",
    "ADDED_TO_CHAT",
    "ACTION_ASSIGNED",
    "ACTION_STATUS_CHANGED",
    "TASK_ASSIGNED",
    "TASK_COMPLETED",
)

class NotificationCreate(BaseModel):
    type: str
    message: str
    userId: str
    metadata: Optional[dict] = None

# ==================== AVANCEMENT ====================

class ProgressCreate(BaseModel):
    date: Optional[str] = None
    milestone: str
    plannedProgress: float = Field(..., ge=0, le=100)
    actualProgress: float = Field(..., ge=0, le=100)
    challenges: Optional[str] = None
    actions: Optional[str] = None
    notes: Optional[str] = None

class ProgressUpdate(BaseModel):
    date: Optional[str] = None
    milestone: Optional[str] = None
    plannedProgress: Optional[float] = Field(None, ge=0, le=100)
    actualProgress: Optional[float] = Field(None, ge=0, le=100)
    challenges: Optional[str] = None
    actions: Optional[str] = None
    notes: Optional[str] = None
