"""Database package with the property model and session helpers."""

from .models import PROPERTY_STATUSES, PROPERTY_TYPES, Property
from .session import (
    get_session_factory,
    get_session,
    init_db,
    close_db,
    reset_database_state,
    session_scope,
)

__all__ = [
    "Property",
    "PROPERTY_STATUSES",
    "PROPERTY_TYPES",
    "get_session_factory",
    "get_session",
    "init_db",
    "close_db",
    "reset_database_state",
    "session_scope",
]
