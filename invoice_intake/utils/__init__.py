"""
Utility Module for the Invoice Intake System.

Provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - File helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, get_file_extension, safe_filename, env_or_default, merge_dicts

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'env_or_default',
    'safe_filename',
    'merge_dicts',
]
