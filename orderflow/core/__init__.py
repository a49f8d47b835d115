"""
Core package containing configuration, database, security, and logging.
"""
from orderflow.core.config import settings
from orderflow.core.database import Base, DbSession, get_db_session
from orderflow.core.logging import configure_logging, get_logger
from orderflow.core.security import (
    decode_access_token,
    generate_share_token,
    verify_webhook_signature,
)

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "decode_access_token",
    "generate_share_token",
    "verify_webhook_signature",
]
