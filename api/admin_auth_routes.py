import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel
from sqlmodel import Session

from core.deps import require_admin
from core.security import (
    ADMIN_COOKIE,
    ADMIN_PASSWORD,
    ADMIN_SESSION_HOURS,
    COOKIE_SECURE,
    check_admin_password,
    create_session_token,
)
from db.session import get_session
from models.audit_log import AuditAction
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminLogin(BaseModel):
    password: Optional[str] = None


@router.post("/login")
def admin_login(
    data: AdminLogin,
    request: Request,
    response: Response,
    session: Session = Depends(get_session),
):
    if not ADMIN_PASSWORD:
        logger.error("ADMIN_PASSWORD is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin login is not configured.",
        )

    if not check_admin_password(data.password):
        logger.warning("Failed admin login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    token = create_session_token("admin", "admin", ADMIN_SESSION_HOURS)
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        max_age=ADMIN_SESSION_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        path="/",
    )

    create_audit_log(session, {"id": "admin", "name": "Admin"}, AuditAction.LOGIN, "session", request=request)
    return {"ok": True}


@router.post("/logout")
def admin_logout(
    request: Request,
    response: Response,
    session: Session = Depends(get_session),
):
    response.delete_cookie(ADMIN_COOKIE, path="/")
    if request.cookies.get(ADMIN_COOKIE):
        create_audit_log(session, {"id": "admin", "name": "Admin"}, AuditAction.LOGOUT, "session", request=request)
    return {"ok": True}


# Lets the dashboard check whether its cookie is still valid
@router.get("/session")
async def admin_session(admin: dict = Depends(require_admin)):
    return {"ok": True, "admin": admin}
