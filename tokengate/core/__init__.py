# tokengate Core Module
from .config import Settings, get_settings, settings
from .database import Base, async_session_maker, build_engine, check_db_connection, engine
from .logging import setup_logging

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "setup_logging",
    "Base",
    "build_engine",
    "engine",
    "async_session_maker",
    "check_db_connection",
]
