"""Authentication for NahCloud API access.

Supports:
- Bearer token authentication
"""

from .bearer import BearerTokenAuth

__all__ = ["BearerTokenAuth"]
