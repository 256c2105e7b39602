# Insert starter employees and a job site
import logging

from sqlmodel import Session, SQLModel, select

import models  # noqa: F401
from core.security import hash_pin
from db.session import engine
from models.location import Location
from models.user import Role, User

logger = logging.getLogger(__name__)

SEED_EMPLOYEES = [
    {"name": "Kyle", "employee_code": "KYLE", "pin": "1234", "role": Role.WORKER, "hourly_rate": 20.0},
    {"name": "Chris", "employee_code": "CHRIS", "pin": "5678", "role": Role.WORKER, "hourly_rate": 20.0},
    {"name": "Admin", "employee_code": "ADMIN1", "pin": "0000", "role": Role.ADMIN, "hourly_rate": None},
]

SEED_LOCATIONS = [
    {"name": "Lake Shop", "code": "LAKESHOP", "lat": 33.8223, "lng": -96.6662, "radius_meters": 75.0},
]


def seed():
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        for data in SEED_LOCATIONS:
            existing = session.exec(select(Location).where(Location.code == data["code"])).first()
            if existing:
                logger.info("Location %s already exists", data["code"])
                continue
            session.add(Location(**data))
            logger.info("Added location %s", data["code"])

        for data in SEED_EMPLOYEES:
            existing = session.exec(select(User).where(User.employee_code == data["employee_code"])).first()
            if existing:
                logger.info("Employee %s already exists", data["employee_code"])
                continue
            session.add(
                User(
                    name=data["name"],
                    employee_code=data["employee_code"],
                    pin_hash=hash_pin(data["pin"]),
                    role=data["role"],
                    hourly_rate=data["hourly_rate"],
                    active=True,
                )
            )
            logger.info("Added employee %s", data["employee_code"])

        session.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
