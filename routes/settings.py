from fastapi import APIRouter
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from models import PublicSettings
from repositories import SettingsRepository
from storage import KeyValueStore

router = APIRouter(prefix="/settings", tags=["settings"])

# This will be injected by the main app
settings: SettingsRepository = None

def set_store(store: KeyValueStore):
    global settings
    settings = SettingsRepository(store)

@router.get("/", response_model=PublicSettings)
async def get_public_settings():
    """Logo size and social links shown on the public site"""
    current = await settings.get()
    return PublicSettings(**current.model_dump(exclude={"datenschutzText"}))

@router.get("/datenschutz")
async def get_datenschutz():
    """Privacy policy text"""
    current = await settings.get()
    return {"text": current.datenschutzText}
