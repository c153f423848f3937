"""NahCloud API client - bearer token auth, one method per entity operation."""

import logging
from typing import Optional, Union
from urllib.parse import quote

import requests

from nahcloud.auth.bearer import BearerTokenAuth
from nahcloud.clients.base import BaseAPIClient
from nahcloud.clients.context import CallContext
from nahcloud.clients.errors import DecodingError, EncodingError
from nahcloud.config import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, ClientConfig
from nahcloud.models import (
    Bucket,
    BucketUpdate,
    CreateInstanceRequest,
    CreateObjectRequest,
    Entity,
    Instance,
    InstanceUpdate,
    Metadata,
    MetadataUpdate,
    Object,
    ObjectUpdate,
    Project,
    ProjectUpdate,
    require_str,
)

logger = logging.getLogger(__name__)


def _segment(label: str, value: str) -> str:
    """Quote an identifier as a single URL path segment."""
    if not isinstance(value, str) or not value:
        raise EncodingError(f"{label} must be a non-empty string, got {value!r}")
    return quote(value, safe="")


class NahCloudClient(BaseAPIClient):
    """Client for the NahCloud REST API.

    Covers projects, instances, metadata, buckets and bucket objects.
    Every method is a single request and accepts an optional `ctx`
    (CallContext) for cancellation and deadlines. The client keeps no
    entity state: every read goes to the server.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize NahCloud client.

        Args:
            endpoint: API base URL (empty or None means the production endpoint)
            token: Bearer token (empty or None sends unauthenticated requests)
            timeout: Per-request timeout in seconds
            max_retries: Opt-in retries for GET/DELETE (default: none)
            session: Optional preconfigured requests session
        """
        super().__init__(
            base_url=endpoint or DEFAULT_ENDPOINT,
            timeout=timeout,
            max_retries=max_retries,
            session=session,
        )
        self.auth = BearerTokenAuth(token)

        logger.debug(
            "NahCloudClient initialized",
            extra={
                "endpoint": self.base_url,
                "authenticated": self.auth.is_authenticated,
                "timeout": timeout,
            }
        )

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "NahCloudClient":
        """Build a client from a resolved ClientConfig."""
        return cls(
            endpoint=config.endpoint,
            token=config.token,
            timeout=config.timeout,
            **kwargs,
        )

    @classmethod
    def from_env(cls, **kwargs) -> "NahCloudClient":
        """Build a client from NAH_ENDPOINT / NAH_TOKEN / NAH_TIMEOUT."""
        return cls.from_config(ClientConfig.resolve(), **kwargs)

    @property
    def endpoint(self) -> str:
        return self.base_url

    def get_auth_headers(self) -> dict:
        """Get bearer authorization headers."""
        return self.auth.get_auth_header()

    def _entity(
        self,
        entity_cls: type,
        method: str,
        endpoint: str,
        json_data: Optional[dict] = None,
        ctx: Optional[CallContext] = None,
    ) -> Entity:
        data = self.request_json(method, endpoint, json_data=json_data, ctx=ctx)
        if data is None:
            raise DecodingError(
                f"Empty response to {method} {endpoint}, expected {entity_cls.__name__}"
            )
        return entity_cls.from_dict(data)

    # Projects

    def create_project(self, name: str, ctx: Optional[CallContext] = None) -> Project:
        """Create a project."""
        require_str("name", name)
        return self._entity(Project, "POST", "/v1/projects", {"name": name}, ctx)

    def get_project(self, project_id: str, ctx: Optional[CallContext] = None) -> Project:
        endpoint = f"/v1/projects/{_segment('project_id', project_id)}"
        return self._entity(Project, "GET", endpoint, ctx=ctx)

    def update_project(
        self,
        project_id: str,
        update: Union[ProjectUpdate, str],
        ctx: Optional[CallContext] = None,
    ) -> Project:
        """Update a project. A plain string is taken as the new name."""
        if isinstance(update, str):
            update = ProjectUpdate(name=update)
        endpoint = f"/v1/projects/{_segment('project_id', project_id)}"
        return self._entity(Project, "PATCH", endpoint, update.to_payload(), ctx)

    def delete_project(self, project_id: str, ctx: Optional[CallContext] = None) -> None:
        self.delete(f"/v1/projects/{_segment('project_id', project_id)}", ctx=ctx)

    # Instances

    def create_instance(
        self,
        request: CreateInstanceRequest,
        ctx: Optional[CallContext] = None,
    ) -> Instance:
        """Create an instance inside `request.project_id`."""
        return self._entity(Instance, "POST", "/v1/instances", request.to_payload(), ctx)

    def get_instance(self, instance_id: str, ctx: Optional[CallContext] = None) -> Instance:
        endpoint = f"/v1/instances/{_segment('instance_id', instance_id)}"
        return self._entity(Instance, "GET", endpoint, ctx=ctx)

    def update_instance(
        self,
        instance_id: str,
        update: InstanceUpdate,
        ctx: Optional[CallContext] = None,
    ) -> Instance:
        """Update only the fields set on `update`.

        The owning project cannot be changed in place.
        """
        endpoint = f"/v1/instances/{_segment('instance_id', instance_id)}"
        return self._entity(Instance, "PATCH", endpoint, update.to_payload(), ctx)

    def delete_instance(self, instance_id: str, ctx: Optional[CallContext] = None) -> None:
        self.delete(f"/v1/instances/{_segment('instance_id', instance_id)}", ctx=ctx)

    # Metadata

    def create_metadata(
        self,
        path: str,
        value: str,
        ctx: Optional[CallContext] = None,
    ) -> Metadata:
        """Create a metadata entry at `path`."""
        require_str("path", path)
        require_str("value", value, allow_empty=True)
        return self._entity(Metadata, "POST", "/v1/metadata", {"path": path, "value": value}, ctx)

    def get_metadata(self, metadata_id: str, ctx: Optional[CallContext] = None) -> Metadata:
        endpoint = f"/v1/metadata/{_segment('metadata_id', metadata_id)}"
        return self._entity(Metadata, "GET", endpoint, ctx=ctx)

    def update_metadata(
        self,
        metadata_id: str,
        update: MetadataUpdate,
        ctx: Optional[CallContext] = None,
    ) -> Metadata:
        endpoint = f"/v1/metadata/{_segment('metadata_id', metadata_id)}"
        return self._entity(Metadata, "PATCH", endpoint, update.to_payload(), ctx)

    def delete_metadata(self, metadata_id: str, ctx: Optional[CallContext] = None) -> None:
        self.delete(f"/v1/metadata/{_segment('metadata_id', metadata_id)}", ctx=ctx)

    # Buckets

    def create_bucket(self, name: str, ctx: Optional[CallContext] = None) -> Bucket:
        """Create a storage bucket."""
        require_str("name", name)
        return self._entity(Bucket, "POST", "/v1/buckets", {"name": name}, ctx)

    def get_bucket(self, bucket_id: str, ctx: Optional[CallContext] = None) -> Bucket:
        endpoint = f"/v1/buckets/{_segment('bucket_id', bucket_id)}"
        return self._entity(Bucket, "GET", endpoint, ctx=ctx)

    def update_bucket(
        self,
        bucket_id: str,
        update: Union[BucketUpdate, str],
        ctx: Optional[CallContext] = None,
    ) -> Bucket:
        """Update a bucket. A plain string is taken as the new name."""
        if isinstance(update, str):
            update = BucketUpdate(name=update)
        endpoint = f"/v1/buckets/{_segment('bucket_id', bucket_id)}"
        return self._entity(Bucket, "PATCH", endpoint, update.to_payload(), ctx)

    def delete_bucket(self, bucket_id: str, ctx: Optional[CallContext] = None) -> None:
        self.delete(f"/v1/buckets/{_segment('bucket_id', bucket_id)}", ctx=ctx)

    # Objects (nested under /v1/bucket/{bucket_id}/objects)

    def _objects_endpoint(self, bucket_id: str, object_id: Optional[str] = None) -> str:
        endpoint = f"/v1/bucket/{_segment('bucket_id', bucket_id)}/objects"
        if object_id is not None:
            endpoint = f"{endpoint}/{_segment('object_id', object_id)}"
        return endpoint

    def create_object(
        self,
        bucket_id: str,
        request: CreateObjectRequest,
        ctx: Optional[CallContext] = None,
    ) -> Object:
        """Create an object in a bucket.

        `request.content` is sent as-is; encode binary data before calling.
        """
        endpoint = self._objects_endpoint(bucket_id)
        return self._entity(Object, "POST", endpoint, request.to_payload(), ctx)

    def get_object(
        self,
        bucket_id: str,
        object_id: str,
        ctx: Optional[CallContext] = None,
    ) -> Object:
        endpoint = self._objects_endpoint(bucket_id, object_id)
        return self._entity(Object, "GET", endpoint, ctx=ctx)

    def update_object(
        self,
        bucket_id: str,
        object_id: str,
        update: ObjectUpdate,
        ctx: Optional[CallContext] = None,
    ) -> Object:
        endpoint = self._objects_endpoint(bucket_id, object_id)
        return self._entity(Object, "PATCH", endpoint, update.to_payload(), ctx)

    def delete_object(
        self,
        bucket_id: str,
        object_id: str,
        ctx: Optional[CallContext] = None,
    ) -> None:
        self.delete(self._objects_endpoint(bucket_id, object_id), ctx=ctx)
