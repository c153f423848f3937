"""Python client for the NahCloud API.

Provides:
- NahCloudClient for projects, instances, metadata, buckets and objects
- Typed errors separating transport, API, encoding and decoding failures
- Resource adapters mapping declared fields onto client calls
"""

__version__ = "0.1.0"

from nahcloud.clients import (
    APIError,
    CallContext,
    DeadlineExceededError,
    DecodingError,
    EncodingError,
    NahCloudClient,
    NahCloudError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
)
from nahcloud.config import ClientConfig
from nahcloud.models import (
    Bucket,
    BucketUpdate,
    CreateInstanceRequest,
    CreateObjectRequest,
    FieldUpdate,
    Instance,
    InstanceStatus,
    InstanceUpdate,
    Metadata,
    MetadataUpdate,
    Object,
    ObjectUpdate,
    Project,
    ProjectUpdate,
)

__all__ = [
    "__version__",
    "NahCloudClient",
    "ClientConfig",
    "CallContext",
    "NahCloudError",
    "TransportError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "DeadlineExceededError",
    "APIError",
    "EncodingError",
    "DecodingError",
    "Project",
    "Instance",
    "InstanceStatus",
    "Metadata",
    "Bucket",
    "Object",
    "CreateInstanceRequest",
    "CreateObjectRequest",
    "FieldUpdate",
    "ProjectUpdate",
    "InstanceUpdate",
    "MetadataUpdate",
    "BucketUpdate",
    "ObjectUpdate",
]
