"""Resource adapters mapping declared fields onto NahCloud client calls.

An orchestration host (plan/apply engine) owns schemas, diffs and state
files. These adapters only translate between its flat field dicts and
the API client:

- create(plan) -> state
- read(state) -> state, or None once the resource is gone (404)
- update(state, plan) -> state, sending only changed mutable fields
- delete(state)
- requires_replace(state, plan) -> immutable fields that changed
- import_state(import_id) -> minimal state for a later read
- lookup(**keys) -> state of an existing resource (data source)

State dicts hold plain JSON values; timestamps are RFC 3339 strings.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from nahcloud.clients.context import CallContext
from nahcloud.clients.errors import APIError, EncodingError, NahCloudError
from nahcloud.clients.nahcloud_client import NahCloudClient
from nahcloud.models import (
    BucketUpdate,
    CreateInstanceRequest,
    CreateObjectRequest,
    Entity,
    FieldUpdate,
    InstanceStatus,
    InstanceUpdate,
    MetadataUpdate,
    ObjectUpdate,
    ProjectUpdate,
)
from nahcloud.utils.timing import timed_operation

logger = logging.getLogger(__name__)

COMPUTED_FIELDS = ("id", "created_at", "updated_at")


class ReplacementRequiredError(NahCloudError, ValueError):
    """An update changed a field that can only be set at creation."""

    def __init__(self, kind: str, fields: list[str]):
        self.kind = kind
        self.fields = fields
        super().__init__(
            f"{kind} fields {', '.join(fields)} cannot be updated in place; "
            f"destroy and recreate the resource"
        )


def _clean(plan: dict) -> dict:
    """Drop unset (None) values from a plan."""
    return {k: v for k, v in plan.items() if v is not None}


def _require(kind: str, state: dict, *keys: str) -> None:
    missing = [k for k in keys if not state.get(k)]
    if missing:
        raise EncodingError(f"{kind} state is missing {', '.join(missing)}")


class Resource(ABC):
    """Base adapter for one entity kind."""

    kind: str = ""
    update_cls: type = FieldUpdate
    # Fields fixed at creation
    immutable_fields: tuple = ()
    # Values applied when the plan leaves a field unset
    defaults: dict = {}
    # State keys identifying an existing resource
    identity_fields: tuple = ("id",)

    def __init__(self, client: NahCloudClient):
        self.client = client

    @abstractmethod
    def _create(self, plan: dict, ctx: Optional[CallContext]) -> Entity:
        pass

    @abstractmethod
    def _get(self, state: dict, ctx: Optional[CallContext]) -> Entity:
        pass

    @abstractmethod
    def _update(self, state: dict, update: FieldUpdate, ctx: Optional[CallContext]) -> Entity:
        pass

    @abstractmethod
    def _delete(self, state: dict, ctx: Optional[CallContext]) -> None:
        pass

    def _log_fields(self, state: dict) -> dict:
        return {"kind": self.kind, **{k: state.get(k) for k in self.identity_fields}}

    def create(self, plan: dict, ctx: Optional[CallContext] = None) -> dict:
        """Create the resource and return its full state."""
        plan = {**self.defaults, **_clean(plan)}
        with timed_operation(f"{self.kind}.create", logger, kind=self.kind):
            entity = self._create(plan, ctx)
        logger.info(f"Created {self.kind}", extra={"kind": self.kind, "id": entity.id})
        return entity.to_dict()

    def read(self, state: dict, ctx: Optional[CallContext] = None) -> Optional[dict]:
        """Refresh state from the server.

        Returns None when the server answers 404 so the host can drop
        the resource from its state. Every other error propagates.
        """
        _require(self.kind, state, *self.identity_fields)
        try:
            with timed_operation(f"{self.kind}.read", logger, **self._log_fields(state)):
                entity = self._get(state, ctx)
        except APIError as e:
            if e.is_not_found:
                logger.info(
                    f"{self.kind} no longer exists, removing from state",
                    extra=self._log_fields(state),
                )
                return None
            raise
        return entity.to_dict()

    def requires_replace(self, state: dict, plan: dict) -> list[str]:
        """Immutable fields whose planned value differs from state."""
        plan = _clean(plan)
        return [
            name for name in self.immutable_fields
            if name in plan and plan[name] != state.get(name)
        ]

    def update(self, state: dict, plan: dict, ctx: Optional[CallContext] = None) -> dict:
        """Apply the planned changes in place.

        Raises:
            ReplacementRequiredError: If an immutable field changed
        """
        _require(self.kind, state, *self.identity_fields)
        replace = self.requires_replace(state, plan)
        if replace:
            raise ReplacementRequiredError(self.kind, replace)

        update = self.update_cls.diff(state, _clean(plan))
        if not update:
            logger.debug(f"No changes for {self.kind}", extra=self._log_fields(state))
            return dict(state)

        with timed_operation(f"{self.kind}.update", logger, **self._log_fields(state)):
            entity = self._update(state, update, ctx)
        logger.info(
            f"Updated {self.kind}",
            extra={**self._log_fields(state), "fields": sorted(update)},
        )
        return entity.to_dict()

    def delete(self, state: dict, ctx: Optional[CallContext] = None) -> None:
        _require(self.kind, state, *self.identity_fields)
        with timed_operation(f"{self.kind}.delete", logger, **self._log_fields(state)):
            self._delete(state, ctx)
        logger.info(f"Deleted {self.kind}", extra=self._log_fields(state))

    def import_state(self, import_id: str) -> dict:
        """Minimal state for an existing resource, to be filled by read()."""
        if not import_id:
            raise EncodingError(f"{self.kind} import id is required")
        return {"id": import_id}

    def lookup(self, ctx: Optional[CallContext] = None, **keys) -> dict:
        """Fetch an existing resource by its identity fields.

        Unlike read(), a missing resource raises APIError.
        """
        _require(self.kind, keys, *self.identity_fields)
        return self._get(keys, ctx).to_dict()


class ProjectResource(Resource):
    kind = "project"
    update_cls = ProjectUpdate

    def _create(self, plan, ctx):
        return self.client.create_project(plan.get("name"), ctx=ctx)

    def _get(self, state, ctx):
        return self.client.get_project(state["id"], ctx=ctx)

    def _update(self, state, update, ctx):
        return self.client.update_project(state["id"], update, ctx=ctx)

    def _delete(self, state, ctx):
        self.client.delete_project(state["id"], ctx=ctx)


class InstanceResource(Resource):
    kind = "instance"
    update_cls = InstanceUpdate
    immutable_fields = ("project_id",)
    defaults = {"cpu": 1, "memory_mb": 512, "status": InstanceStatus.RUNNING.value}

    def _create(self, plan, ctx):
        request = CreateInstanceRequest(
            project_id=plan.get("project_id"),
            name=plan.get("name"),
            image=plan.get("image"),
            cpu=plan["cpu"],
            memory_mb=plan["memory_mb"],
            status=plan.get("status"),
        )
        return self.client.create_instance(request, ctx=ctx)

    def _get(self, state, ctx):
        return self.client.get_instance(state["id"], ctx=ctx)

    def _update(self, state, update, ctx):
        return self.client.update_instance(state["id"], update, ctx=ctx)

    def _delete(self, state, ctx):
        self.client.delete_instance(state["id"], ctx=ctx)


class MetadataResource(Resource):
    kind = "metadata"
    update_cls = MetadataUpdate

    def _create(self, plan, ctx):
        return self.client.create_metadata(plan.get("path"), plan.get("value"), ctx=ctx)

    def _get(self, state, ctx):
        return self.client.get_metadata(state["id"], ctx=ctx)

    def _update(self, state, update, ctx):
        return self.client.update_metadata(state["id"], update, ctx=ctx)

    def _delete(self, state, ctx):
        self.client.delete_metadata(state["id"], ctx=ctx)


class BucketResource(Resource):
    kind = "bucket"
    update_cls = BucketUpdate

    def _create(self, plan, ctx):
        return self.client.create_bucket(plan.get("name"), ctx=ctx)

    def _get(self, state, ctx):
        return self.client.get_bucket(state["id"], ctx=ctx)

    def _update(self, state, update, ctx):
        return self.client.update_bucket(state["id"], update, ctx=ctx)

    def _delete(self, state, ctx):
        self.client.delete_bucket(state["id"], ctx=ctx)


class ObjectResource(Resource):
    kind = "object"
    update_cls = ObjectUpdate
    immutable_fields = ("bucket_id",)
    identity_fields = ("bucket_id", "id")

    def _create(self, plan, ctx):
        if not plan.get("bucket_id"):
            raise EncodingError("object bucket_id is required")
        request = CreateObjectRequest(path=plan.get("path"), content=plan.get("content", ""))
        return self.client.create_object(plan["bucket_id"], request, ctx=ctx)

    def _get(self, state, ctx):
        return self.client.get_object(state["bucket_id"], state["id"], ctx=ctx)

    def _update(self, state, update, ctx):
        return self.client.update_object(state["bucket_id"], state["id"], update, ctx=ctx)

    def _delete(self, state, ctx):
        self.client.delete_object(state["bucket_id"], state["id"], ctx=ctx)

    def import_state(self, import_id: str) -> dict:
        """Objects are imported as "<bucket_id>/<object_id>"."""
        bucket_id, sep, object_id = (import_id or "").partition("/")
        if not sep or not bucket_id or not object_id or "/" in object_id:
            raise EncodingError(
                f"object import id must look like '<bucket_id>/<object_id>', got {import_id!r}"
            )
        return {"bucket_id": bucket_id, "id": object_id}


RESOURCES = {
    cls.kind: cls
    for cls in (ProjectResource, InstanceResource, MetadataResource, BucketResource, ObjectResource)
}


def resource_for(kind: str, client: NahCloudClient) -> Resource:
    """Get the adapter for an entity kind."""
    try:
        return RESOURCES[kind](client)
    except KeyError:
        raise ValueError(
            f"Unknown resource kind {kind!r} (expected one of: {', '.join(RESOURCES)})"
        ) from None
