"""Shared fixtures for the NFS Manager test suite.

Provides:
- sys.path setup so imports work like the backend does (from services.exports, etc.)
- Environment pointing the app's default config/backup/db paths at a temp dir
- ConfigStore / BackupManager / ExportService / RestoreService on tmp_path
- In-memory SQLite database fixture for pure async db tests
- FastAPI TestClient with mocked auth dependency and in-app db patching
- Mock run_cmd fixture (prevents real systemctl calls)
"""

import json
import os
import sys
import tempfile
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
import aiosqlite

# --- Path setup: backend/ must be on sys.path so bare imports work ---
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# --- Environment: must be set before config.py is imported ---
_TEST_ROOT = tempfile.mkdtemp(prefix="nfs-manager-tests-")
os.environ["CONFIG_DIR"] = os.path.join(_TEST_ROOT, "config")
os.environ.pop("CONFIG_FILE", None)
os.environ["BACKUP_DIR"] = os.path.join(_TEST_ROOT, "backups")
os.environ["DB_PATH"] = os.path.join(_TEST_ROOT, "data", "nfs-manager.db")
os.environ["PUBLIC_DIR"] = os.path.join(_TEST_ROOT, "public")
os.environ["APPLY_DELAY"] = "0"
os.environ["REQUIRE_EXISTING_PATHS"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "s3cret-test-pass"
os.environ.pop("ADMIN_PASSWORD_HASH", None)
os.environ.pop("SESSION_LIFETIME", None)

import db as db_module
from services.backups import BackupManager
from services.config_store import ConfigStore
from services.exports import ExportService
from services.restore import RestoreService


# ---------------------------------------------------------------------------
# Configuration document and backup fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path):
    """A ConfigStore on tmp_path holding an empty, initialized document."""
    s = ConfigStore(tmp_path / "config" / "exports.json")
    s.initialize()
    return s


@pytest.fixture
def backups(tmp_path, store):
    return BackupManager(tmp_path / "backups", store, retention=10)


@pytest.fixture
def export_service(store, backups):
    """ExportService with no apply delay and no filesystem existence check."""
    return ExportService(store, backups, apply_delay=0, require_existing_paths=False)


@pytest.fixture
def restore_service(store, backups):
    return RestoreService(store, backups, apply_delay=0)


@pytest.fixture
def write_config(store):
    """Write a raw document (dict or str) straight to the store's file."""

    def _write(content):
        if not isinstance(content, str):
            content = json.dumps(content, indent=2)
        store.path.write_text(content)
        return store.path.read_bytes()

    return _write


def sample_document() -> dict:
    return {
        "exports": [
            {
                "path": "/srv/data",
                "clients": [
                    {"ip": "192.168.1.0/24", "permission": "rw"},
                    {"ip": "10.0.0.5", "permission": "ro"},
                ],
                "metadata": {},
            },
            {
                "path": "/srv/media",
                "clients": [{"ip": "192.168.1.20", "permission": "ro"}],
                "metadata": {"owner": "media"},
            },
        ],
        "metadata": {"lastModified": "2026-01-01T00:00:00.000Z"},
    }


@pytest.fixture
def sample_config(write_config):
    """Seed the store with two exports; returns the raw bytes written."""
    return write_config(sample_document())


# ---------------------------------------------------------------------------
# In-memory database fixture (for pure async tests like test_db.py)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database with the full schema.

    Sets db_module._db directly so all db module functions (create_session,
    get_session, audit_log, etc.) use the in-memory database instead of
    the on-disk one.
    """
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.executescript(db_module.SCHEMA)
    await conn.commit()

    original_db = db_module._db
    db_module._db = conn

    yield conn

    db_module._db = original_db
    await conn.close()


# ---------------------------------------------------------------------------
# Mock subprocess fixture -- prevents real systemctl commands
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_run_cmd():
    """Patch run_cmd where services.status looks it up.

    Returns the AsyncMock so tests can configure return_value / side_effect.
    Default return is ("active\\n", "", 0).
    """
    mock = AsyncMock(return_value=("active\n", "", 0))
    with patch("services.status.run_cmd", mock):
        yield mock


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_current_user():
    """Return a fake user dict used to override the auth dependency."""
    return {"username": "testadmin"}


def _patch_db():
    """Swap db.get_db for one that lazily opens an in-memory connection.

    The connection is created on first use inside the TestClient's event
    loop. Returns a restore callable.
    """
    _test_conn = None
    original_get_db = db_module.get_db
    original_db = db_module._db

    async def _test_get_db():
        nonlocal _test_conn
        if _test_conn is None:
            _test_conn = await aiosqlite.connect(":memory:")
            _test_conn.row_factory = aiosqlite.Row
            await _test_conn.executescript(db_module.SCHEMA)
            await _test_conn.commit()
            db_module._db = _test_conn
        return _test_conn

    db_module.get_db = _test_get_db

    def _restore():
        db_module.get_db = original_get_db
        db_module._db = original_db

    return _restore


@pytest.fixture
def app_services(store, backups, export_service, restore_service):
    """Point the app's service dependencies at the tmp_path instances."""
    from deps import (
        get_backup_manager,
        get_config_store,
        get_export_service,
        get_restore_service,
    )
    from main import app

    app.dependency_overrides[get_config_store] = lambda: store
    app.dependency_overrides[get_backup_manager] = lambda: backups
    app.dependency_overrides[get_export_service] = lambda: export_service
    app.dependency_overrides[get_restore_service] = lambda: restore_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_services, mock_current_user):
    """Provide a synchronous TestClient for the FastAPI app.

    - Authentication is bypassed (get_current_user returns a fixed user).
    - Services operate on tmp_path (see app_services).
    - The db module is patched to an in-memory connection.
    """
    from fastapi.testclient import TestClient
    from middleware.auth import get_current_user

    async def _override_user():
        return mock_current_user

    app_services.dependency_overrides[get_current_user] = _override_user

    restore_db = _patch_db()
    with TestClient(app_services, raise_server_exceptions=False) as c:
        yield c
    restore_db()


@pytest.fixture
def anon_client(app_services):
    """TestClient with real bearer-token authentication."""
    from fastapi.testclient import TestClient
    import middleware.auth as auth_module

    auth_module._login_attempts.clear()
    restore_db = _patch_db()
    with TestClient(app_services, raise_server_exceptions=False) as c:
        yield c
    restore_db()
    auth_module._login_attempts.clear()
