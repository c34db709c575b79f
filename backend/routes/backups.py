"""Configuration backup and restore API routes."""

from fastapi import APIRouter, Depends

from deps import get_backup_manager, get_restore_service
from middleware.auth import get_current_user
from models import BackupListResponse, RestoreResponse
from services.backups import BackupManager
from services.restore import RestoreService
from db import audit_log

router = APIRouter()


@router.get("", response_model=BackupListResponse)
async def list_backups(
    backups: BackupManager = Depends(get_backup_manager),
    user: dict = Depends(get_current_user),
):
    """List backup snapshots, newest first."""
    return {"backups": backups.list_backups()}


@router.post("")
async def create_backup(
    backups: BackupManager = Depends(get_backup_manager),
    user: dict = Depends(get_current_user),
):
    """Take an on-demand snapshot of the current configuration."""
    name = backups.snapshot()
    await audit_log(user["username"], "backup.create", name)
    return {"message": "Backup created successfully", "backup": name}


@router.post("/restore/{filename}", response_model=RestoreResponse)
async def restore_backup(
    filename: str,
    restore: RestoreService = Depends(get_restore_service),
    user: dict = Depends(get_current_user),
):
    """Restore the configuration from a snapshot. The current state is backed up first."""
    result = await restore.restore(filename)
    await audit_log(
        user["username"], "backup.restore", filename, detail=f"previous={result['currentBackup']}"
    )
    return result


@router.delete("/{filename}")
async def delete_backup(
    filename: str,
    backups: BackupManager = Depends(get_backup_manager),
    user: dict = Depends(get_current_user),
):
    """Delete a single snapshot."""
    backups.delete(filename)
    await audit_log(user["username"], "backup.delete", filename)
    return {"message": "Backup deleted successfully"}
