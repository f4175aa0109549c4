"""Core modules for the WeCom notify client.

This package contains the ambient functionality shared by the API layer:
- Configuration management
- Logging utilities
"""

from .config import DEFAULT_CACHE_FILE, LoggingConfig, NotifyConfig
from .logger import get_logger, mask_token, setup_logging

__all__ = [
    # Configuration
    "DEFAULT_CACHE_FILE",
    "LoggingConfig",
    "NotifyConfig",
    # Logging
    "get_logger",
    "mask_token",
    "setup_logging",
]
