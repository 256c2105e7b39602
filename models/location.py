from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

# Defines the Structure of Data for Comparing a Worker Clock In/Out to Expected Location

# Job Site w/ Circular Geofence; radius 0 marks the ADHOC template
class Location(SQLModel, table=True):
    __tablename__ = "locations"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(..., description="Human-friendly location name")
    code: str = Field(..., unique=True, index=True, description="Short unique location code")
    lat: float = Field(..., description="Latitude of location center")
    lng: float = Field(..., description="Longitude of location center")
    radius_meters: float = Field(default=0.0, description="Allowed clock-in radius in meters, 0 = unbounded")
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_adhoc(self) -> bool:
        return (self.radius_meters or 0) <= 0
