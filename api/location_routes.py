import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlmodel import Session, select

from db.session import get_session
from models.location import Location

logger = logging.getLogger(__name__)

router = APIRouter()


# Active locations for the clock page picker
@router.get("/locations")
def list_active_locations(session: Session = Depends(get_session)):
    locations = session.exec(
        select(Location).where(Location.active == True).order_by(Location.name)  # noqa: E712
    ).all()
    return [{"id": loc.id, "name": loc.name, "code": loc.code} for loc in locations]


@router.get("/health/db")
def database_health(session: Session = Depends(get_session)):
    try:
        session.connection().execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database unavailable",
        )
    return {"healthy": True}
