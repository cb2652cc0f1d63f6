# Common utilities and shared modules
"""
Shared components used by the featured market engine:
- Project configuration (Pydantic settings)
- Database utilities
- Logging configuration
"""

from .config import DATA_DIR, PROJECT_ROOT, Settings, get_openai_api_key
from .database import get_connection, init_db
from .logging import setup_logging

__all__ = [
    "Settings",
    "PROJECT_ROOT",
    "DATA_DIR",
    "get_openai_api_key",
    "get_connection",
    "init_db",
    "setup_logging",
]
