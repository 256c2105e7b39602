import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field as PydanticField, field_serializer
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.deps import require_admin
from db.session import get_session
from models.audit_log import AuditAction
from models.location import Location
from models.shift import Shift
from utils.audit import create_audit_log
from utils.datetime_helpers import format_utc_datetime
from utils.geocoding import GeocodingError, geocode_address
from utils.geofence import haversine_dist

logger = logging.getLogger(__name__)

# --- Router Definition ---
router = APIRouter()

# Slack allowed on top of a site's radius by the debug distance check
CHECK_TOLERANCE_METERS = 75


# --- Pydantic Data Models ---

# Base model: Common fields required or used by other Location models
class LocationBase(BaseModel):
    name: str = PydanticField(min_length=1)
    code: str = PydanticField(min_length=1)
    lat: float = PydanticField(ge=-90, le=90)
    lng: float = PydanticField(ge=-180, le=180)
    radius_meters: float = PydanticField(default=0.0, ge=0)  # 0 = ADHOC template
    active: bool = True


class LocationCreate(LocationBase):
    pass


# Read model: Defines how location data should look when sent back in responses
class LocationRead(LocationBase):
    id: int
    adhoc: bool
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)

    @classmethod
    def from_location(cls, location: Location) -> "LocationRead":
        return cls(
            id=location.id,
            name=location.name,
            code=location.code,
            lat=location.lat,
            lng=location.lng,
            radius_meters=location.radius_meters,
            active=location.active,
            adhoc=location.is_adhoc,
            created_at=location.created_at,
        )


# Update model: fields that CAN be updated via PATCH (all optional)
class LocationUpdate(BaseModel):
    name: Optional[str] = PydanticField(default=None, min_length=1)
    code: Optional[str] = PydanticField(default=None, min_length=1)
    lat: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    lng: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    radius_meters: Optional[float] = PydanticField(default=None, ge=0)  # Validate if sent
    active: Optional[bool] = None


class LocationCheck(BaseModel):
    location_id: int
    lat: Optional[float] = None
    lng: Optional[float] = None


# --- Helpers ---

def get_location_or_404(session: Session, location_id: int) -> Location:
    location = session.get(Location, location_id)
    if not location:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Location {location_id} not found.",
        )
    return location


def ensure_code_available(session: Session, code: str, exclude_id: Optional[int] = None) -> None:
    statement = select(Location).where(Location.code == code)
    if exclude_id is not None:
        statement = statement.where(Location.id != exclude_id)
    if session.exec(statement).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Location with code '{code}' already exists.",
        )


def commit_location(session: Session, location: Location, action: str) -> None:
    try:
        session.add(location)
        session.commit()
        session.refresh(location)
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Location with code '{location.code}' already exists.",
        )
    except Exception:
        session.rollback()
        logger.exception("Error trying to %s location", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action} location.",
        )


# --- API Endpoints ---

@router.get("", response_model=List[LocationRead])
def list_locations(
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    locations = session.exec(select(Location).order_by(Location.name)).all()
    return [LocationRead.from_location(loc) for loc in locations]


@router.post("", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
def create_location(
    location_in: LocationCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    data = location_in.model_dump()
    data["name"] = data["name"].strip()
    data["code"] = data["code"].strip()
    ensure_code_available(session, data["code"])

    location = Location(**data)
    commit_location(session, location, "create")
    logger.info("Admin created location %s (%s)", location.id, location.code)

    create_audit_log(
        session, admin, AuditAction.CREATE, "location", location.id,
        {"name": location.name, "code": location.code, "radius_meters": location.radius_meters}, request,
    )
    return LocationRead.from_location(location)


# Address lookup for the location form
@router.get("/geocode")
async def geocode_location(
    address: str = Query(default=""),
    admin: dict = Depends(require_admin),
):
    query = address.strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing address")

    try:
        result = await geocode_address(query)
    except GeocodingError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not result:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No results found for that address")
    return result


# Debug: how far is a fix from a site, and would it be allowed
@router.post("/check")
def check_location_distance(
    data: LocationCheck,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    location = get_location_or_404(session, data.location_id)

    lat, lng = data.lat, data.lng
    provided_invalid = lat is None or lng is None or abs(lat) > 90 or abs(lng) > 180
    maybe_swapped = lat is not None and lng is not None and abs(lat) > 90 and abs(lng) <= 90
    site_coords_invalid = abs(location.lat) > 90 or abs(location.lng) > 180

    distance = None
    allowed = False
    if lat is not None and lng is not None:
        distance = haversine_dist(lat, lng, location.lat, location.lng)
        allowed = distance <= (location.radius_meters or 0) + CHECK_TOLERANCE_METERS

    return {
        "location_id": location.id,
        "location_name": location.name,
        "site_lat": location.lat,
        "site_lng": location.lng,
        "site_radius_meters": location.radius_meters,
        "provided_lat": lat,
        "provided_lng": lng,
        "provided_invalid": provided_invalid,
        "maybe_swapped": maybe_swapped,
        "site_coords_invalid": site_coords_invalid,
        "distance": round(distance) if distance is not None else None,
        "allowed": allowed,
        "tolerance_meters": CHECK_TOLERANCE_METERS,
    }


@router.get("/{location_id}", response_model=LocationRead)
def read_location(
    location_id: int,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    return LocationRead.from_location(get_location_or_404(session, location_id))


@router.patch("/{location_id}", response_model=LocationRead)
def update_location(
    location_id: int,
    location_update: LocationUpdate,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    location = get_location_or_404(session, location_id)

    update_data = location_update.model_dump(exclude_unset=True)
    for key in ("name", "code"):
        if update_data.get(key) is not None:
            update_data[key] = update_data[key].strip()
    if update_data.get("code"):
        ensure_code_available(session, update_data["code"], exclude_id=location.id)

    for key, value in update_data.items():
        if value is None and key in ("name", "code", "lat", "lng", "radius_meters", "active"):
            continue
        setattr(location, key, value)

    commit_location(session, location, "update")
    create_audit_log(session, admin, AuditAction.UPDATE, "location", location.id, update_data, request)
    return LocationRead.from_location(location)


@router.delete("/{location_id}")
def delete_location(
    location_id: int,
    request: Request,
    session: Session = Depends(get_session),
    admin: dict = Depends(require_admin),
):
    location = get_location_or_404(session, location_id)

    shift_count = session.exec(
        select(func.count()).select_from(Shift).where(Shift.location_id == location_id)
    ).one()
    if shift_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a location that has recorded shifts. Set it inactive instead.",
        )

    details = {"name": location.name, "code": location.code}
    try:
        session.delete(location)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Error deleting location %s", location_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete location.",
        )

    create_audit_log(session, admin, AuditAction.DELETE, "location", location_id, details, request)
    return {"ok": True}
