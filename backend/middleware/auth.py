"""Static admin authentication and bearer-token sessions.

There is a single admin identity configured through the environment. Its
password hash is computed once (or supplied pre-hashed via
ADMIN_PASSWORD_HASH) and every login is verified against it with passlib.
Successful logins get an opaque session token stored in SQLite (see db.py),
sent back by the client as ``Authorization: Bearer <token>``.
"""

import logging
import time
from collections import deque

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from config import settings
from db import create_session, delete_session, get_session

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_bearer = HTTPBearer(auto_error=False)

_admin_hash: str | None = None

# --- Login rate limiting ---
MAX_LOGIN_ATTEMPTS = 5
LOGIN_WINDOW = 300  # seconds
_login_attempts: dict[str, deque[float]] = {}


def load_admin_credentials() -> str:
    """Compute (or read) the admin password hash once and cache it."""
    global _admin_hash
    if _admin_hash is None:
        if settings.admin_password_hash:
            _admin_hash = settings.admin_password_hash
        else:
            if settings.admin_password == "admin123":
                logger.warning("Using default admin credentials, set ADMIN_PASSWORD in production")
            _admin_hash = pwd_context.hash(settings.admin_password)
    return _admin_hash


def authenticate_user(username: str, password: str) -> bool:
    """Check credentials against the static admin identity."""
    # Verify the password even for unknown usernames so timing does not leak them
    password_ok = pwd_context.verify(password, load_admin_credentials())
    return password_ok and username == settings.admin_username


def check_rate_limit(username: str) -> bool:
    """Record a login attempt; False once the user exceeds the window's budget."""
    now = time.monotonic()
    attempts = _login_attempts.setdefault(username, deque())
    while attempts and now - attempts[0] > LOGIN_WINDOW:
        attempts.popleft()
    if len(attempts) >= MAX_LOGIN_ATTEMPTS:
        return False
    attempts.append(now)
    return True


async def login(username: str, password: str) -> dict:
    """Authenticate and issue a session token."""
    if not authenticate_user(username, password):
        logger.warning("Failed login for %s", username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    _login_attempts.pop(username, None)
    token = await create_session(username)
    logger.info("User %s logged in", username)
    return {"token": token, "username": username}


async def logout(token: str | None) -> dict:
    """Delete the session behind a token."""
    if token:
        await delete_session(token)
    return {"message": "Logged out"}


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access token required")
    return credentials.credentials


async def get_current_user(token: str = Depends(get_bearer_token)) -> dict:
    """Dependency: resolve the bearer token to the authenticated user."""
    session = await get_session(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return {"username": session["username"]}
