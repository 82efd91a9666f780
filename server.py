from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path
import logging
import os

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from storage import KeyValueStore, InMemoryKeyValueStore, MongoKeyValueStore
from auth import CredentialVerifier
from routes import admin, questionnaire, settings

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_store() -> KeyValueStore:
    """Pick the storage backend from STORAGE_BACKEND (mongo or memory)"""
    backend = os.environ.get("STORAGE_BACKEND", "mongo")
    if backend == "memory":
        logger.info("Using in-memory storage")
        return InMemoryKeyValueStore()
    mongo_url = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
    client = AsyncIOMotorClient(mongo_url)
    db = client[os.environ.get("DB_NAME", "loadup")]
    logger.info("Using MongoDB storage (%s)", db.name)
    return MongoKeyValueStore(db)


def create_app(store: KeyValueStore = None, verifier: CredentialVerifier = None) -> FastAPI:
    store = store or create_store()

    app = FastAPI(title="LoadUp Berlin API")
    api_router = APIRouter(prefix="/api")

    @api_router.get("/")
    async def root():
        return {"message": "LoadUp Berlin API is running"}

    # Inject storage into the route modules
    for module in (questionnaire, admin, settings):
        module.set_store(store)
        api_router.include_router(module.router)
    if verifier is not None:
        admin.set_verifier(verifier)

    app.include_router(api_router)
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
