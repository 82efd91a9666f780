from fastapi import APIRouter, HTTPException, status, UploadFile, File
from typing import List
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from models import ServiceSelection, SubcategorySelection, ServiceType
from questionnaire import (
    FLOWS,
    Questionnaire,
    QuestionnaireError,
    SessionRegistry,
    get_total_steps,
)
from repositories import InquiryRepository
from storage import KeyValueStore
from images import encode_batch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questionnaire", tags=["questionnaire"])

# These will be injected by the main app
inquiries: InquiryRepository = None
sessions = SessionRegistry()

def set_store(store: KeyValueStore):
    global inquiries, sessions
    inquiries = InquiryRepository(store)
    sessions = SessionRegistry()

def get_session(session_id: str) -> Questionnaire:
    try:
        return sessions.get(session_id)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Questionnaire session not found"
        )

def bad_request(error: QuestionnaireError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

@router.get("/flows")
async def get_flows():
    """Steps of every service flow"""
    return {
        service.value: {
            "totalSteps": get_total_steps(service),
            "steps": [step.value for step in FLOWS[service]],
        }
        for service in ServiceType
    }

@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session():
    """Start a new questionnaire on the home screen"""
    session = sessions.create()
    return session.snapshot()

@router.get("/sessions/{session_id}")
async def get_session_state(session_id: str):
    return get_session(session_id).snapshot()

@router.post("/sessions/{session_id}/service")
async def select_service(session_id: str, selection: ServiceSelection):
    """Pick a service; clears any previous answers"""
    session = get_session(session_id)
    session.select_service(selection.serviceType)
    return session.snapshot()

@router.post("/sessions/{session_id}/subcategory")
async def select_subcategory(session_id: str, selection: SubcategorySelection):
    session = get_session(session_id)
    try:
        session.select_subcategory(selection.value)
    except QuestionnaireError as e:
        raise bad_request(e)
    return session.snapshot()

@router.patch("/sessions/{session_id}/form")
async def update_form(session_id: str, fields: dict):
    """Merge answers for the current flow"""
    session = get_session(session_id)
    try:
        session.update(fields)
    except QuestionnaireError as e:
        raise bad_request(e)
    return session.snapshot()

@router.post("/sessions/{session_id}/next")
async def next_step(session_id: str):
    session = get_session(session_id)
    try:
        session.advance()
    except QuestionnaireError as e:
        raise bad_request(e)
    return session.snapshot()

@router.post("/sessions/{session_id}/back")
async def previous_step(session_id: str):
    session = get_session(session_id)
    session.back()
    return session.snapshot()

@router.post("/sessions/{session_id}/restart")
async def restart(session_id: str):
    """Return to the home screen with an empty form"""
    session = get_session(session_id)
    session.restart()
    return session.snapshot()

@router.post("/sessions/{session_id}/images")
async def upload_images(session_id: str, files: List[UploadFile] = File(...)):
    """Attach photos; only the free slots (max 10 in total) are filled"""
    session = get_session(session_id)
    try:
        added = await session.add_images(files, encode_batch)
    except QuestionnaireError as e:
        raise bad_request(e)
    result = session.snapshot()
    result["imagesAdded"] = added
    return result

@router.delete("/sessions/{session_id}/images/{index}")
async def remove_image(session_id: str, index: int):
    session = get_session(session_id)
    try:
        session.remove_image(index)
    except QuestionnaireError as e:
        raise bad_request(e)
    return session.snapshot()

@router.post("/sessions/{session_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit(session_id: str):
    """Validate the contact form and store the inquiry"""
    session = get_session(session_id)
    try:
        inquiry_id = await session.submit(inquiries)
    except QuestionnaireError as e:
        raise bad_request(e)
    except Exception as e:
        logger.exception("Storing inquiry failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating inquiry: {str(e)}"
        )
    return {
        "id": inquiry_id,
        "message": "Vielen Dank für Ihre Anfrage! Wir melden uns in maximal 1 Stunde bei Ihnen.",
        "session": session.snapshot(),
    }
