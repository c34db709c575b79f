"""Pydantic models for request/response validation.

Request fields are plain strings on purpose: path, address, and permission
rules live in services/validation.py so that bad values come back as 400
with a specific message rather than a generic 422.
"""

from pydantic import BaseModel, Field


# --- Auth ---


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    username: str


class UserInfo(BaseModel):
    username: str


# --- Error ---


class ErrorResponse(BaseModel):
    error: str


# --- Exports ---


class ClientEntry(BaseModel):
    ip: str = Field(..., description="IPv4 address or CIDR block, e.g. 192.168.1.0/24")
    permission: str = Field(..., description='"ro" or "rw"')


class ExportRecord(BaseModel):
    path: str
    clients: list[ClientEntry]
    metadata: dict = Field(default_factory=dict)


class ExportListResponse(BaseModel):
    exports: list[ExportRecord]
    warnings: list[str] = Field(default_factory=list)


class ExportCreateRequest(BaseModel):
    path: str
    clients: list[ClientEntry]


class ExportUpdateRequest(BaseModel):
    clients: list[ClientEntry]


class ClientAddRequest(BaseModel):
    ip: str
    permission: str


class ClientRemoveRequest(BaseModel):
    path: str
    ip: str


class ExportMutationResponse(BaseModel):
    message: str
    export: ExportRecord | None = None
    backup: str


# --- Backups ---


class BackupInfo(BaseModel):
    filename: str
    size: int
    created: str


class BackupListResponse(BaseModel):
    backups: list[BackupInfo]


class RestoreResponse(BaseModel):
    message: str
    restored: str
    currentBackup: str


# --- Status ---


class NFSServerStatus(BaseModel):
    status: str
    enabled: bool


class SystemStatus(BaseModel):
    uptime: str
    memory: str
    diskUsage: str


class ExportCounts(BaseModel):
    count: int
    warnings: int


class StatusResponse(BaseModel):
    nfsServer: NFSServerStatus
    system: SystemStatus
    exports: ExportCounts
    activeExports: str
