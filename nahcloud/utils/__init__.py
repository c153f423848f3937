"""Utility modules for the NahCloud client.

Includes:
- Logging configuration
- Operation timing
"""

from .logging_config import JSONFormatter, setup_logging
from .timing import timed_operation

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "timed_operation",
]
