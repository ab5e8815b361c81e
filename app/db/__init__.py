"""Database module for institutional content and chat persistence."""

from app.db.connection import (
    check_db,
    close_db,
    get_db_session,
    get_session_factory,
    init_db,
)
from app.db.models import (
    Base,
    Conversation,
    Event,
    Inquiry,
    Message,
    News,
    Program,
    School,
)

__all__ = [
    "Base",
    "Conversation",
    "Event",
    "Inquiry",
    "Message",
    "News",
    "Program",
    "School",
    "check_db",
    "close_db",
    "get_db_session",
    "get_session_factory",
    "init_db",
]
