from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from datetime import datetime, timezone
from pathlib import Path
import os
import logging

from routes import auth_routes, user_routes, chat_routes, notification_routes, progress_routes, socket_routes
from services.chat_service import ensure_chat_indexes
from utils.connection_registry import ConnectionRegistry


ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# MongoDB connection
mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
client = AsyncIOMotorClient(mongo_url)
db = client[os.environ.get('DB_NAME', 'petrosite')]

ROUTERS = (auth_routes, user_routes, chat_routes, notification_routes, progress_routes, socket_routes)


def init_database(database):
    """Injecte la base de données dans tous les routers"""
    global db
    db = database
    for module in ROUTERS:
        module.set_db(database)


async def ensure_indexes(database):
    """Index uniques et index de recherche"""
    await database.users.create_index("id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.accounts.create_index("email", unique=True)
    await database.accounts.create_index("utilisateurAssocie")
    await database.notifications.create_index("userId")
    await database.operation_progress.create_index([("projectId", 1), ("date", -1)])
    await ensure_chat_indexes(database)


# Create the main app without a prefix
app = FastAPI(title="PetroSite API")
app.state.registry = ConnectionRegistry()

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


@api_router.get("/")
async def root():
    return {"message": "PetroSite API", "status": "active"}


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


api_router.include_router(auth_routes.router)
api_router.include_router(user_routes.router)
api_router.include_router(chat_routes.router)
api_router.include_router(notification_routes.router)
api_router.include_router(progress_routes.router)

app.include_router(api_router)
app.include_router(socket_routes.router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.error(f"Erreur non gérée sur {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Erreur serveur"})


init_database(db)


@app.on_event("startup")
async def startup_event():
    """Crée les index au démarrage"""
    await ensure_indexes(db)
    logging.info("Application demarree et index MongoDB crees")

@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()
