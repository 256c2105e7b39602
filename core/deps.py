from fastapi import Depends, HTTPException, Request, status
from typing import Annotated

from sqlmodel import Session

from core.security import ADMIN_COOKIE, WORKER_COOKIE, decode_session_token
from db.session import get_session
from models.user import User

# Standard credentials exception
CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Unauthorized",
)


# Admin Session Check (signed admin_session cookie)
async def require_admin(request: Request) -> dict:
    payload = decode_session_token(request.cookies.get(ADMIN_COOKIE), "admin")
    if not payload:
        raise CREDENTIALS_EXCEPTION

    return {"id": payload.get("sub", "admin"), "name": "Admin"}


# Worker Session Check; resolves the cookie to an active User row
def get_current_worker(
    request: Request,
    session: Annotated[Session, Depends(get_session)],
) -> User:
    payload = decode_session_token(request.cookies.get(WORKER_COOKIE), "worker")
    if not payload:
        raise CREDENTIALS_EXCEPTION

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise CREDENTIALS_EXCEPTION

    user = session.get(User, user_id)
    if not user or not user.active:
        raise CREDENTIALS_EXCEPTION

    return user

