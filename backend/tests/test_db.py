"""Tests for db.py — bearer sessions and the export audit trail.

Uses the in-memory test_db fixture from conftest.py. Clock-dependent cases
patch ``db.time.time`` rather than editing rows by hand.
"""

from unittest.mock import patch

import pytest

import db as db_module
from config import settings

T0 = 1_800_000_000.0


class TestSessions:

    def test_lifetime_comes_from_settings(self):
        assert db_module.SESSION_LIFETIME == settings.session_lifetime == 86400

    @pytest.mark.asyncio
    async def test_token_valid_until_lifetime_elapses(self, test_db):
        with patch("db.time.time", return_value=T0):
            token = await db_module.create_session("admin")

        with patch("db.time.time", return_value=T0 + settings.session_lifetime - 1):
            session = await db_module.get_session(token)
        assert session["username"] == "admin"
        assert session["expires_at"] == T0 + settings.session_lifetime

        with patch("db.time.time", return_value=T0 + settings.session_lifetime + 1):
            assert await db_module.get_session(token) is None

        # An expired token is removed on lookup
        cursor = await test_db.execute("SELECT COUNT(*) FROM sessions")
        assert (await cursor.fetchone())[0] == 0

    @pytest.mark.asyncio
    async def test_logout_revokes_only_that_token(self, test_db):
        first = await db_module.create_session("admin")
        second = await db_module.create_session("admin")
        await db_module.delete_session(first)
        assert await db_module.get_session(first) is None
        assert await db_module.get_session(second) is not None

    @pytest.mark.asyncio
    async def test_hourly_cleanup_purges_expired(self, test_db):
        with patch("db.time.time", return_value=T0):
            old = await db_module.create_session("admin")
        with patch("db.time.time", return_value=T0 + settings.session_lifetime):
            fresh = await db_module.create_session("admin")

        with patch("db.time.time", return_value=T0 + settings.session_lifetime + 3600):
            assert await db_module.cleanup_sessions() == 1
            assert await db_module.get_session(old) is None
            assert await db_module.get_session(fresh) is not None


class TestAuditLog:

    @pytest.mark.asyncio
    async def test_records_export_mutation(self, test_db):
        await db_module.audit_log("admin", "export.client.add", "/srv/data", detail="10.0.0.9(ro)")
        [entry] = await db_module.get_audit_log()
        assert entry["action"] == "export.client.add"
        assert entry["target"] == "/srv/data"
        assert entry["detail"] == "10.0.0.9(ro)"
        assert entry["success"] == 1

    @pytest.mark.asyncio
    async def test_same_timestamp_ordered_by_insertion(self, test_db):
        """Mutations inside one clock tick still list newest first."""
        with patch("db.time.time", return_value=T0):
            await db_module.audit_log("admin", "backup.create", "exports-a.bak")
            await db_module.audit_log("admin", "backup.restore", "exports-a.bak")
            await db_module.audit_log("admin", "backup.delete", "exports-a.bak")

        entries = await db_module.get_audit_log()
        assert [e["action"] for e in entries] == ["backup.delete", "backup.restore", "backup.create"]

    @pytest.mark.asyncio
    async def test_pagination(self, test_db):
        for i in range(5):
            with patch("db.time.time", return_value=T0 + i):
                await db_module.audit_log("admin", "export.create", f"/srv/share{i}")

        page = await db_module.get_audit_log(limit=2, offset=1)
        assert [e["target"] for e in page] == ["/srv/share3", "/srv/share2"]
