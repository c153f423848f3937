"""API client for the NahCloud service.

The client handles:
- Bearer token authentication
- JSON request/response marshaling
- Status code classification into typed errors
- Cancellation and deadlines through CallContext
"""

from .errors import (
    APIError,
    DeadlineExceededError,
    DecodingError,
    EncodingError,
    NahCloudError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
)
from .context import CallContext
from .base import BaseAPIClient, RequestMetrics
from .nahcloud_client import NahCloudClient

__all__ = [
    "BaseAPIClient",
    "RequestMetrics",
    "NahCloudClient",
    "CallContext",
    "NahCloudError",
    "TransportError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "DeadlineExceededError",
    "APIError",
    "EncodingError",
    "DecodingError",
]
