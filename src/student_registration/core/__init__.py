"""
Core module - Configuration, database, security, storage and utilities.
"""

from student_registration.core.config import Settings, get_settings, settings
from student_registration.core.database import Base, close_db, get_db, init_db
from student_registration.core.redis import close_redis, get_redis, init_redis
from student_registration.core.security import decode_token
from student_registration.core.storage import DocumentStorage, StorageError, get_document_storage

__all__ = [
    # Config
    "Settings",
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Security
    "decode_token",
    # Storage
    "DocumentStorage",
    "StorageError",
    "get_document_storage",
]
