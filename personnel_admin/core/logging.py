"""
Logging configuration for Personnel Admin Backend
"""
import logging
import sys
from personnel_admin.core.config import settings
from personnel_admin.core.constants import SERVICE_NAME


def setup_logging() -> None:
    """
    Configure root logging from settings

    One stdout handler at settings.LOG_LEVEL. Cascade deletion steps log at
    DEBUG, so LOG_LEVEL=DEBUG shows the full step trace. uvicorn access
    lines and SQLAlchemy engine/pool chatter are kept at WARNING.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=f"%(asctime)s - {SERVICE_NAME} - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, env=%s", settings.LOG_LEVEL, settings.APP_ENV
    )
