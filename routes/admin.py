from fastapi import APIRouter, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from datetime import datetime, timezone
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from auth import (
    CredentialVerifier,
    StaticCredentialVerifier,
    create_access_token,
    verify_token,
    TOKEN_TTL_HOURS,
)
from models import AdminSettingsUpdate, InquiryStatus, InquiryStatusUpdate
from repositories import (
    AdminFlagRepository,
    InquiryRepository,
    SettingsRepository,
    count_by_status,
    filter_inquiries,
)
from storage import KeyValueStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

# These will be injected by the main app
inquiries: InquiryRepository = None
settings: SettingsRepository = None
admin_flag: AdminFlagRepository = None
verifier: CredentialVerifier = StaticCredentialVerifier()

def set_store(store: KeyValueStore):
    global inquiries, settings, admin_flag
    inquiries = InquiryRepository(store)
    settings = SettingsRepository(store)
    admin_flag = AdminFlagRepository(store)

def set_verifier(credential_verifier: CredentialVerifier):
    global verifier
    verifier = credential_verifier

LOGIN_ERROR = "Ungültige E-Mail oder Passwort"

# Forward-only status moves offered to the admin
VALID_TRANSITIONS = {
    InquiryStatus.NEW: [InquiryStatus.CONTACTED],
    InquiryStatus.CONTACTED: [InquiryStatus.COMPLETED],
    InquiryStatus.COMPLETED: [],
}

security = HTTPBearer()

async def get_current_admin(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Get current authenticated admin"""
    email = verify_token(credentials.credentials)
    if not email or not await admin_flag.is_set():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return email

@router.post("/login")
async def admin_login(credentials: dict):
    """Admin login endpoint"""
    email = credentials.get("email")
    password = credentials.get("password")

    if not email or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="E-Mail und Passwort erforderlich"
        )

    if not verifier.verify(email, password):
        logger.info("Rejected admin login")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=LOGIN_ERROR
        )

    await admin_flag.set(True)
    logger.info("Admin logged in")
    return {
        "access_token": create_access_token(email),
        "token_type": "bearer",
        "expires_in": TOKEN_TTL_HOURS * 3600,
        "message": "Login successful"
    }

@router.post("/logout")
async def admin_logout(current_admin: str = Depends(get_current_admin)):
    """Clear the admin flag; issued tokens stop working"""
    await admin_flag.set(False)
    logger.info("Admin logged out")
    return {"message": "Logout successful"}

@router.get("/dashboard/stats")
async def get_dashboard_stats(current_admin: str = Depends(get_current_admin)):
    """Inquiry counts per status"""
    try:
        stats = count_by_status(await inquiries.list())
        stats["last_updated"] = datetime.now(timezone.utc)
        return stats
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error fetching dashboard stats: {str(e)}"
        )

# ================== INQUIRY MANAGEMENT ==================

@router.get("/inquiries")
async def get_all_inquiries(
    status_filter: Optional[str] = "all",
    search: Optional[str] = "",
    current_admin: str = Depends(get_current_admin)
):
    """List inquiries, newest first, with optional status filter and search"""
    if status_filter not in [None, "all"] + [s.value for s in InquiryStatus]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status filter. Must be 'all', 'new', 'contacted', or 'completed'"
        )
    try:
        result = filter_inquiries(await inquiries.list(), status_filter or "all", search or "")
        return [inquiry.model_dump(mode="json") for inquiry in result]
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error fetching inquiries: {str(e)}"
        )

@router.get("/inquiries/{inquiry_id}")
async def get_inquiry(inquiry_id: str, current_admin: str = Depends(get_current_admin)):
    """Get a specific inquiry by ID"""
    inquiry = await inquiries.find_by_id(inquiry_id)
    if not inquiry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inquiry not found"
        )
    return inquiry.model_dump(mode="json")

@router.put("/inquiries/{inquiry_id}/status")
async def update_inquiry_status(
    inquiry_id: str,
    status_data: InquiryStatusUpdate,
    current_admin: str = Depends(get_current_admin)
):
    """Move an inquiry forward (new -> contacted -> completed)"""
    try:
        inquiry = await inquiries.find_by_id(inquiry_id)
        if not inquiry:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Inquiry not found"
            )

        current_status = inquiry.status
        target_status = status_data.status
        if target_status not in VALID_TRANSITIONS[current_status]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid transition from '{current_status.value}' to '{target_status.value}'"
            )

        await inquiries.update_status(inquiry_id, target_status)
        return {
            "message": f"Inquiry status updated to {target_status.value}",
            "previousStatus": current_status.value,
            "newStatus": target_status.value
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating inquiry status: {str(e)}"
        )

@router.delete("/inquiries/{inquiry_id}")
async def delete_inquiry(inquiry_id: str, current_admin: str = Depends(get_current_admin)):
    """Delete an inquiry"""
    try:
        if not await inquiries.find_by_id(inquiry_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Inquiry not found"
            )
        await inquiries.remove(inquiry_id)
        return {"message": "Inquiry deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error deleting inquiry: {str(e)}"
        )

# ================== SITE SETTINGS ==================

@router.get("/settings")
async def get_settings(current_admin: str = Depends(get_current_admin)):
    return (await settings.get()).model_dump()

@router.put("/settings")
async def update_settings(
    update_data: AdminSettingsUpdate,
    current_admin: str = Depends(get_current_admin)
):
    """Update some or all settings; logo size is clamped to 32-120"""
    try:
        updated = await settings.update(update_data)
        return updated.model_dump()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating settings: {str(e)}"
        )
