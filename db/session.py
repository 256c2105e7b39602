from sqlmodel import create_engine, Session
from sqlalchemy.pool import StaticPool
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Connects app to PostgreSQL database

# A full URL wins (tests use "sqlite://"); otherwise build one from parts
DATABASE_URL = os.getenv("DATABASE_URL")

DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")  # Default PostgreSQL port
DB_NAME = os.getenv("DB_NAME")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
INSTANCE_CONNECTION_NAME = os.getenv("INSTANCE_CONNECTION_NAME") # For Cloud SQL Proxy

required_vars_for_tcp = ["DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD"]
required_vars_for_socket = ["DB_NAME", "DB_USER", "DB_PASSWORD", "INSTANCE_CONNECTION_NAME"]

if not DATABASE_URL:
    if INSTANCE_CONNECTION_NAME:
        missing_vars = [var for var in required_vars_for_socket if not os.getenv(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables for Cloud SQL (socket): {', '.join(missing_vars)}")
        # Cloud SQL (Unix socket)
        DATABASE_URL = f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@/{DB_NAME}?host=/cloudsql/{INSTANCE_CONNECTION_NAME}"
    else:
        missing_vars = [var for var in required_vars_for_tcp if not os.getenv(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables for TCP: {', '.join(missing_vars)}")
        # TCP (e.g., local development)
        DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


def build_engine(url: str):
    # SQLite needs one shared connection so an in-memory db survives across sessions
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    # Note: echo=True will log all SQL statements, set to False in production
    return create_engine(url, echo=False, pool_pre_ping=True)


# The Wire / Link That Lets Us Pass Data from App -> db
engine = build_engine(DATABASE_URL)

# Getter for this Wire, modified for FastAPI dependency injection
def get_session():
    # Objects stay readable after the audit/notification commits that follow a change
    with Session(engine, expire_on_commit=False) as session:
        try:
            yield session
        finally:
            session.close()
