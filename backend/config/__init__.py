"""
Configuration module for engine limits and logging.
"""
from .settings import (
    Settings,
    get_settings,
    configure_logging,
)

__all__ = [
    'Settings',
    'get_settings',
    'configure_logging',
]
