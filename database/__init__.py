"""Database module."""
from .models import (
    Base,
    UserProfile,
    School,
    Student,
    PREDEFINED_CLASSES,
    DEFAULT_PLACEHOLDER_IMAGE_URL,
)
from .connection import build_engine, engine, SessionLocal, get_db_context, init_db

__all__ = [
    "Base",
    "UserProfile",
    "School",
    "Student",
    "PREDEFINED_CLASSES",
    "DEFAULT_PLACEHOLDER_IMAGE_URL",
    "build_engine",
    "engine",
    "SessionLocal",
    "get_db_context",
    "init_db",
]
