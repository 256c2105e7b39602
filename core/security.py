import os
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-session-secret-change-me")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "False").lower() in ("true", "1", "t")

ADMIN_COOKIE = "admin_session"
WORKER_COOKIE = "worker_session"

ADMIN_SESSION_HOURS = 8
WORKER_SESSION_HOURS = 12

JWT_ALGORITHM = "HS256"


# --- PINs ---

def hash_pin(pin: str) -> str:
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(pin: str, pin_hash: Optional[str]) -> bool:
    if not pin or not pin_hash:
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Malformed PIN hash encountered")
        return False


def check_admin_password(password: Optional[str]) -> bool:
    if not ADMIN_PASSWORD or password is None:
        return False
    return hmac.compare_digest(password.encode("utf-8"), ADMIN_PASSWORD.encode("utf-8"))


# --- Session tokens ---

def create_session_token(subject: str, kind: str, hours: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "kind": kind,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, SESSION_SECRET, algorithm=JWT_ALGORITHM)


def decode_session_token(token: Optional[str], kind: str) -> Optional[dict]:
    """Payload of a valid, unexpired token of the given kind, else None."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, SESSION_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get("kind") != kind:
        return None
    return payload
