"""NFS export management API routes.

Export paths travel in the URL percent-encoded (``/api/exports/%2Fsrv%2Fdata``);
the ``:path`` converter receives them decoded, leading slash included.
"""

from fastapi import APIRouter, Depends

from deps import get_export_service
from middleware.auth import get_current_user
from models import (
    ClientAddRequest,
    ClientRemoveRequest,
    ExportCreateRequest,
    ExportListResponse,
    ExportMutationResponse,
    ExportUpdateRequest,
)
from services.exports import ExportService
from db import audit_log

router = APIRouter()


@router.get("", response_model=ExportListResponse)
async def list_exports(
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """List configured exports plus any warnings from loading the document."""
    exports, warnings = await service.list_exports()
    return {"exports": exports, "warnings": warnings}


@router.post("", response_model=ExportMutationResponse, response_model_exclude_none=True)
async def create_export(
    body: ExportCreateRequest,
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """Create a new export."""
    clients = [c.model_dump() for c in body.clients]
    result = await service.create_export(body.path, clients)
    await audit_log(user["username"], "export.create", body.path, detail=f"backup={result['backup']}")
    return result


# --- Client removal (must be defined before /{export_path:path} so "clients" is not taken as a path) ---


@router.delete("/clients", response_model=ExportMutationResponse, response_model_exclude_none=True)
async def remove_client(
    body: ClientRemoveRequest,
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """Remove one client; deletes the export if it was the last one."""
    result = await service.remove_client(body.path, body.ip)
    await audit_log(user["username"], "export.client.remove", body.path, detail=body.ip)
    return result


@router.post(
    "/{export_path:path}/clients",
    response_model=ExportMutationResponse,
    response_model_exclude_none=True,
)
async def add_client(
    export_path: str,
    body: ClientAddRequest,
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """Add one client to an existing export."""
    result = await service.add_client(export_path, body.ip, body.permission)
    await audit_log(
        user["username"], "export.client.add", export_path, detail=f"{body.ip}({body.permission})"
    )
    return result


@router.put("/{export_path:path}", response_model=ExportMutationResponse, response_model_exclude_none=True)
async def update_export(
    export_path: str,
    body: ExportUpdateRequest,
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """Replace an export's client list."""
    clients = [c.model_dump() for c in body.clients]
    result = await service.replace_clients(export_path, clients)
    await audit_log(user["username"], "export.update", export_path)
    return result


@router.delete("/{export_path:path}", response_model=ExportMutationResponse, response_model_exclude_none=True)
async def delete_export(
    export_path: str,
    service: ExportService = Depends(get_export_service),
    user: dict = Depends(get_current_user),
):
    """Delete an export."""
    result = await service.delete_export(export_path)
    await audit_log(user["username"], "export.delete", export_path)
    return result
