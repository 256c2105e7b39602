import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlmodel import Session, select

from core.security import verify_pin
from models.location import Location
from models.shift import Shift, ShiftRead
from models.user import User
from utils.geofence import InvalidCoordinatesError, find_matching_location, validate_coordinates

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid employee code or PIN."


class ClockService:

    @staticmethod
    def authenticate(employee_code: str, pin: str, session: Session, lock: bool = False) -> User:
        """Active user for the code whose PIN matches, else 401."""
        statement = (
            select(User)
            .where(User.employee_code == employee_code)
            .where(User.active == True)  # noqa: E712
        )
        # Serialises concurrent clock calls for one user (no-op on SQLite)
        if lock:
            statement = statement.with_for_update()
        user = session.exec(statement).first()

        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

        if not user.pin_hash:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No PIN set for this employee.",
            )

        if not verify_pin(pin, user.pin_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

        return user

    @staticmethod
    def toggle(
        employee_code: Optional[str],
        pin: Optional[str],
        lat: Any,
        lng: Any,
        session: Session,
        client_location_id: Optional[int] = None,
    ) -> dict:
        """
        Clock the worker out of their open shift, or into a new one.

        The location is picked in this order: the shift's existing location
        (or the client-supplied one on clock in), the nearest geofence that
        contains the fix, the ADHOC template, nothing.
        """
        if not employee_code or not pin:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Employee code and PIN are required.",
            )

        # 0) Must supply a usable GPS fix
        try:
            lat_f, lng_f = validate_coordinates(lat, lng)
        except InvalidCoordinatesError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        # 1) Credentials; locks the user row for the rest of the transaction
        user = ClockService.authenticate(employee_code, pin, session, lock=True)

        # 2) Match against active locations
        locations = session.exec(
            select(Location).where(Location.active == True).order_by(Location.id)  # noqa: E712
        ).all()
        match = find_matching_location(lat_f, lng_f, locations)

        if client_location_id is not None and session.get(Location, client_location_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Location {client_location_id} not found.",
            )

        def pick_location_id(existing_location_id: Optional[int]) -> Optional[int]:
            if existing_location_id:
                return existing_location_id
            effective = match.effective_location
            return effective.id if effective is not None else None

        now = datetime.now(timezone.utc)

        # 3) Most recent open shift for this user
        open_shift = session.exec(
            select(Shift)
            .where(Shift.user_id == user.id)
            .where(Shift.clock_out == None)  # noqa: E711
            .order_by(Shift.clock_in.desc())
        ).first()

        if open_shift:
            action = "clock_out"
            open_shift.clock_out = now
            open_shift.clock_out_lat = lat_f
            open_shift.clock_out_lng = lng_f
            open_shift.location_id = pick_location_id(open_shift.location_id)
            shift = open_shift
        else:
            action = "clock_in"
            shift = Shift(
                user_id=user.id,
                location_id=pick_location_id(client_location_id),
                clock_in=now,
                clock_in_lat=lat_f,
                clock_in_lng=lng_f,
            )

        try:
            session.add(shift)
            # Commits Changes to DB
            session.commit()
            session.refresh(shift)
        except Exception:
            session.rollback()
            logger.exception("Error saving %s for user %s", action, user.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server error processing clock request.",
            )

        location = session.get(Location, shift.location_id) if shift.location_id else None
        shift_read = ShiftRead.from_shift(shift, user, location)

        verb = "Clocked in" if action == "clock_in" else "Clocked out"
        if shift_read.adhoc:
            message = f"{verb} (ADHOC location)."
        else:
            message = f"{verb} at {location.name}."

        logger.info(
            "%s user=%s shift=%s location=%s distance=%s",
            action, user.id, shift.id, shift.location_id, match.distance_meters,
        )

        # JSON Response back to Call
        return {
            "status": "success",
            "action": action,
            "message": message,
            "shift": shift_read,
        }
