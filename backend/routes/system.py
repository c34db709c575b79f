"""System status and audit API routes."""

from fastapi import APIRouter, Depends

from config import settings
from deps import get_export_service
from middleware.auth import get_current_user
from models import StatusResponse
from services.exports import ExportService
from services.status import get_status
from db import get_audit_log

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def status(
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """NFS service state, host metrics, and export counts."""
    exports, warnings = await service.list_exports()
    return await get_status(
        len(exports),
        len(warnings),
        service=settings.nfs_service,
        timeout=settings.status_timeout,
    )


@router.get("/audit")
async def audit(
    limit: int = 100,
    offset: int = 0,
    user: dict = Depends(get_current_user),
):
    """Get the audit log."""
    return await get_audit_log(limit=limit, offset=offset)
