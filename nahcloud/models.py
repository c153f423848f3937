"""NahCloud entities, create payloads, and partial-update types."""

import dataclasses
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional

from nahcloud.clients.errors import DecodingError, EncodingError

logger = logging.getLogger(__name__)

# RFC 3339 variants the service may emit
TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
]

# strptime's %f stops at microseconds; the service may send nanoseconds
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Args:
        value: Timestamp string or datetime

    Returns:
        Parsed datetime, or None if the value cannot be parsed
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if not isinstance(value, str):
        return None

    text = _FRACTION_RE.sub(r"\1", value.strip())
    for fmt in TIMESTAMP_FORMATS:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    logger.warning(f"Could not parse timestamp: {value}")
    return None


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    if value.microsecond:
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class InstanceStatus(str, Enum):
    """Power state of a compute instance."""

    RUNNING = "running"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Entity:
    """Base for server-owned records decoded from API responses."""

    @classmethod
    def from_dict(cls, payload: Any) -> "Entity":
        """Decode an API response body.

        Unknown keys are ignored. Missing keys and values of the wrong
        type raise DecodingError.
        """
        if not isinstance(payload, dict):
            raise DecodingError(
                f"Expected a JSON object for {cls.__name__}, got {type(payload).__name__}"
            )

        kwargs = {}
        for f in dataclasses.fields(cls):
            if f.name not in payload:
                raise DecodingError(f"{cls.__name__} response is missing '{f.name}'")
            kwargs[f.name] = _decode_field(cls.__name__, f.name, f.type, payload[f.name])
        return cls(**kwargs)

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dict with RFC 3339 timestamps."""
        data = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            data[f.name] = value
        return data


def _decode_field(entity: str, name: str, expected: type, value: Any) -> Any:
    if expected is datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise DecodingError(f"{entity}.{name} is not a valid timestamp: {value!r}")
        return parsed
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodingError(f"{entity}.{name} must be an integer, got {value!r}")
        return value
    if not isinstance(value, str):
        raise DecodingError(f"{entity}.{name} must be a string, got {value!r}")
    return value


@dataclass
class Project(Entity):
    """Top-level container for instances."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Instance(Entity):
    """Compute instance. `project_id` is fixed at creation."""

    id: str
    project_id: str
    name: str
    cpu: int
    memory_mb: int
    image: str
    status: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Metadata(Entity):
    """Key-value entry addressed by a hierarchical path."""

    id: str
    path: str
    value: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Bucket(Entity):
    """Top-level storage container."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Object(Entity):
    """Storage object. `content` is opaque; callers own any base64 encoding."""

    id: str
    bucket_id: str
    path: str
    content: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Create payloads
# ---------------------------------------------------------------------------


def require_str(label: str, value: Any, allow_empty: bool = False) -> None:
    if not isinstance(value, str):
        raise EncodingError(f"{label} must be a string, got {type(value).__name__}")
    if not allow_empty and not value:
        raise EncodingError(f"{label} is required")


def _check_positive_int(label: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{label} must be an integer, got {type(value).__name__}")
    if value < 1:
        raise EncodingError(f"{label} must be at least 1, got {value}")


def _check_status(label: str, value: Any) -> str:
    try:
        return InstanceStatus(value).value
    except ValueError:
        allowed = ", ".join(s.value for s in InstanceStatus)
        raise EncodingError(f"{label} must be one of: {allowed}; got {value!r}") from None


@dataclass
class CreateInstanceRequest:
    """Body of POST /v1/instances."""

    project_id: str
    name: str
    image: str
    cpu: int = 1
    memory_mb: int = 512
    status: Optional[str] = None

    def to_payload(self) -> dict:
        """Validate and build the request body. `status` is sent only when set."""
        require_str("project_id", self.project_id)
        require_str("name", self.name)
        require_str("image", self.image)
        _check_positive_int("cpu", self.cpu)
        _check_positive_int("memory_mb", self.memory_mb)

        payload = {
            "project_id": self.project_id,
            "name": self.name,
            "cpu": self.cpu,
            "memory_mb": self.memory_mb,
            "image": self.image,
        }
        if self.status is not None:
            payload["status"] = _check_status("status", self.status)
        return payload


@dataclass
class CreateObjectRequest:
    """Body of POST /v1/bucket/{bucket_id}/objects."""

    path: str
    content: str = ""

    def to_payload(self) -> dict:
        require_str("path", self.path)
        require_str("content", self.content, allow_empty=True)
        return {"path": self.path, "content": self.content}


# ---------------------------------------------------------------------------
# Partial updates
# ---------------------------------------------------------------------------


class FieldUpdate(Mapping):
    """Explicit set of field changes for a PATCH request.

    Only fields passed to the constructor are sent; every other field is
    left untouched server-side. None is rejected rather than read as
    "unset" so there is exactly one way to leave a field alone.

    Usage:
        update = InstanceUpdate(cpu=4)
        client.update_instance("i1", update)   # sends {"cpu": 4}
    """

    # field name -> validator kind ("str", "str_or_empty", "int", "status")
    fields: dict = {}

    def __init__(self, **changes: Any):
        validated = {}
        for name, value in changes.items():
            if name not in self.fields:
                allowed = ", ".join(sorted(self.fields))
                raise EncodingError(
                    f"{type(self).__name__} has no field '{name}' (allowed: {allowed})"
                )
            if value is None:
                raise EncodingError(
                    f"{type(self).__name__}.{name} cannot be None; omit it to leave it unchanged"
                )
            validated[name] = self._validate(name, value)
        self._changes = validated

    def _validate(self, name: str, value: Any) -> Any:
        kind = self.fields[name]
        label = f"{type(self).__name__}.{name}"
        if kind == "int":
            _check_positive_int(label, value)
        elif kind == "status":
            return _check_status(label, value)
        else:
            require_str(label, value, allow_empty=(kind == "str_or_empty"))
        return value

    @classmethod
    def diff(cls, state: Mapping, plan: Mapping) -> "FieldUpdate":
        """Build an update holding the updatable fields where plan differs from state.

        Fields absent from the plan are treated as unchanged.
        """
        changes = {
            name: plan[name]
            for name in cls.fields
            if name in plan and plan[name] is not None and plan[name] != state.get(name)
        }
        return cls(**changes)

    def to_payload(self) -> dict:
        return dict(self._changes)

    def __getitem__(self, key: str) -> Any:
        return self._changes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self._changes.items())
        return f"{type(self).__name__}({args})"


class ProjectUpdate(FieldUpdate):
    fields = {"name": "str"}


class InstanceUpdate(FieldUpdate):
    fields = {
        "name": "str",
        "cpu": "int",
        "memory_mb": "int",
        "image": "str",
        "status": "status",
    }


class MetadataUpdate(FieldUpdate):
    fields = {"path": "str", "value": "str_or_empty"}


class BucketUpdate(FieldUpdate):
    fields = {"name": "str"}


class ObjectUpdate(FieldUpdate):
    fields = {"path": "str", "content": "str_or_empty"}
