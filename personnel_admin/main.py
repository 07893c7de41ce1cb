"""
Personnel Admin Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from personnel_admin.api.router import api_router
from personnel_admin.core.config import settings
from personnel_admin.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from personnel_admin.core.logging import setup_logging
from personnel_admin.db.session import SessionLocal
from personnel_admin.models.employee import Employee, Role

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme.startswith("sqlite"):
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***"
    return url


app = FastAPI(
    title="Personnel Admin Backend",
    description="Personnel and workload administration",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


def bootstrap_initial_admin(db) -> bool:
    """
    Create the initial admin identity if no active admin exists.

    Without one, the admin floor enforced on employee removal could never be
    satisfied on a fresh install.

    Returns:
        True if an admin was created
    """
    admin_exists = db.query(Employee).filter(
        Employee.role == Role.ADMIN.value,
        Employee.active == True  # noqa: E712
    ).first()
    if admin_exists:
        logger.info("Active admin already exists, skipping initial bootstrap")
        return False

    username_taken = db.query(Employee).filter(Employee.username == settings.INITIAL_ADMIN_USERNAME).first()
    if username_taken:
        logger.warning(
            "No active admin, but username %s is taken; create an admin manually",
            settings.INITIAL_ADMIN_USERNAME
        )
        return False

    db.add(Employee(
        full_name=settings.INITIAL_ADMIN_NAME,
        username=settings.INITIAL_ADMIN_USERNAME,
        role=Role.ADMIN.value,
        active=True,
    ))
    db.commit()
    logger.info("Initial admin created: username=%s", settings.INITIAL_ADMIN_USERNAME)
    return True


@app.on_event("startup")
def startup_bootstrap_admin() -> None:
    db = SessionLocal()
    try:
        bootstrap_initial_admin(db)
    except OperationalError as e:
        # Tables might not exist yet (migrations not applied)
        db.rollback()
        if "no such table" in str(e).lower() or "does not exist" in str(e).lower():
            logger.warning("Database tables not ready yet, skipping initial bootstrap. Run alembic upgrade head")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    finally:
        db.close()
