"""Runtime settings for NFS Manager, read once from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent
DEFAULT_DB_PATH = BACKEND_DIR / "data" / "nfs-manager.db"
DEFAULT_PUBLIC_DIR = BACKEND_DIR.parent / "public"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    config_file: Path
    backup_dir: Path
    max_backups: int = 10
    apply_delay: float = 1.0
    require_existing_paths: bool = True
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_password_hash: str = ""
    session_lifetime: int = 86400  # 24 hours
    db_path: Path = DEFAULT_DB_PATH
    nfs_service: str = "nfs-kernel-server"
    status_timeout: float = 10.0
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    public_dir: Path = DEFAULT_PUBLIC_DIR

    @classmethod
    def from_env(cls) -> "Settings":
        config_dir = Path(os.environ.get("CONFIG_DIR", "/etc/nfs-web-ui"))
        return cls(
            config_file=Path(os.environ.get("CONFIG_FILE", str(config_dir / "exports.json"))),
            backup_dir=Path(os.environ.get("BACKUP_DIR", "/var/backups/nfs-web-ui")),
            max_backups=int(os.environ.get("MAX_BACKUPS", "10")),
            apply_delay=float(os.environ.get("APPLY_DELAY", "1.0")),
            require_existing_paths=_env_bool("REQUIRE_EXISTING_PATHS", True),
            admin_username=os.environ.get("ADMIN_USERNAME", "admin"),
            admin_password=os.environ.get("ADMIN_PASSWORD", "admin123"),
            admin_password_hash=os.environ.get("ADMIN_PASSWORD_HASH", ""),
            session_lifetime=int(os.environ.get("SESSION_LIFETIME", "86400")),
            db_path=Path(os.environ.get("DB_PATH", str(DEFAULT_DB_PATH))),
            nfs_service=os.environ.get("NFS_SERVICE", "nfs-kernel-server"),
            status_timeout=float(os.environ.get("STATUS_TIMEOUT", "10")),
            cors_origins=os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(","),
            public_dir=Path(os.environ.get("PUBLIC_DIR", str(DEFAULT_PUBLIC_DIR))),
        )


settings = Settings.from_env()
