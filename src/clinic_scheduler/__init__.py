"""Clinic administration package: patients, doctors and conflict-aware appointments."""

import logging
import os

from .db import Base, engine, session_scope
from .exceptions import (
    DatabaseConnectionError,
    DoctorBusyError,
    ResourceNotFoundError,
    ValidationError,
)
from .models import Appointment, Doctor, Patient
from .overlap import Candidate, check_overlap, find_conflicts
from .services import ClinicService

__all__ = [
    "Base",
    "engine",
    "session_scope",
    "ClinicService",
    "Doctor",
    "Patient",
    "Appointment",
    "Candidate",
    "check_overlap",
    "find_conflicts",
    "DatabaseConnectionError",
    "ResourceNotFoundError",
    "ValidationError",
    "DoctorBusyError",
    "configure_logging",
    "init_db",
]


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the package logger; level defaults to CLINIC_LOG_LEVEL."""
    level_name = (level or os.environ.get("CLINIC_LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger(__name__)
    logger.setLevel(level_name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


def init_db(bind=None) -> None:
    """Create database tables."""
    try:
        Base.metadata.create_all(bind=bind or engine)
    except Exception as exc:  # noqa: BLE001
        raise DatabaseConnectionError("Failed to initialize database schema.") from exc
