from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
import models  # noqa: F401  registers every table with SQLModel.metadata
from db.session import engine
from contextlib import asynccontextmanager
from api.location_routes import router as location_router
from api.clock_routes import router as clock_router
from api.worker_routes import router as worker_router
from api.admin_auth_routes import router as admin_auth_router
from api.admin_employee_routes import router as admin_employee_router
from api.admin_location_routes import router as admin_location_router
from api.admin_shift_routes import router as admin_shift_router
from api.admin_shift_template_routes import router as admin_shift_template_router
from api.admin_correction_routes import router as admin_correction_router
from api.admin_time_off_routes import router as admin_time_off_router
from api.admin_audit_routes import router as admin_audit_router
from api.admin_report_routes import router as admin_report_router
import logging
import os
from dotenv import load_dotenv

# This file is the control center of the whole application

# Load environment variables from .env file, if it exists
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Default values can be provided if the env var is not set
DEV_DOMAIN = os.getenv("DEV_DOMAIN", "http://localhost:5173")
PRODUCTION_DOMAIN = os.getenv("PRODUCTION_DOMAIN")

allowed_origins_list = [
    DEV_DOMAIN,
    PRODUCTION_DOMAIN,
    "http://localhost:3000",
    "http://127.0.0.1:5173",
]

# Remove any None values and duplicates
allowed_origins_list = sorted(set(origin for origin in allowed_origins_list if origin))

logger.info("CORS: Allowing origins: %s", allowed_origins_list)


# When We Start, Create the DB Tables if they don't exist
@asynccontextmanager
async def lifespan(app: FastAPI):

    SQLModel.metadata.create_all(engine)

    yield


# Starts Fast API Up; Init
app = FastAPI(lifespan=lifespan, title="GPS Time Clock")

# Session cookies need credentials on cross-origin requests from the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error responses: always {"error": "<message>"} ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "A record with these values already exists."},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# Public / worker
app.include_router(location_router, prefix="/api", tags=["Locations", "Health"])
app.include_router(clock_router, prefix="/api/clock", tags=["Clock"])
app.include_router(worker_router, prefix="/api/worker", tags=["Worker"])

# Admin
app.include_router(admin_auth_router, prefix="/api/admin", tags=["Admin", "Session"])
app.include_router(admin_employee_router, prefix="/api/admin/employees", tags=["Admin", "Employees"])
app.include_router(admin_location_router, prefix="/api/admin/locations", tags=["Admin", "Locations"])
app.include_router(admin_shift_router, prefix="/api/admin/shifts", tags=["Admin", "Shifts"])
app.include_router(admin_shift_template_router, prefix="/api/admin/shift-templates", tags=["Admin", "Scheduling"])
app.include_router(admin_correction_router, prefix="/api/admin/corrections", tags=["Admin", "Corrections"])
app.include_router(admin_time_off_router, prefix="/api/admin/time-off", tags=["Admin", "Time Off"])
app.include_router(admin_audit_router, prefix="/api/admin/audit-log", tags=["Admin", "Audit Log"])
app.include_router(admin_report_router, prefix="/api/admin", tags=["Admin", "Reports"])


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}
