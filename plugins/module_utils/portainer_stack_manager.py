from __future__ import annotations

import json

from typing import TYPE_CHECKING, Any, Callable, ClassVar, Mapping
from dataclasses import dataclass, field

from .portainer_fields import PortainerFields as PF
from .portainer_client import PortainerApiError
from .portainer_crud import CreateMethod


if TYPE_CHECKING:
    from .portainer_module import PortainerModule


DEFAULT_REVERSE_PROXY = "traefik"
NETWORK_SUFFIX = "_network"
# Prune every unused image, not only dangling ones
IMAGE_PRUNE_FILTERS = {"dangling": ["false"]}


@dataclass
class Stack:
    id: int | None = None
    name: str | None = None
    env: list[dict] = field(default_factory=list)
    endpoint_id: int | None = None
    status: int | None = None

    fields_mapping: ClassVar[dict] = {
        PF.STACK_ID: "id",
        PF.STACK_NAME: "name",
        PF.STACK_ENV: "env",
        PF.STACK_ENDPOINT_ID: "endpoint_id",
        PF.STACK_STATUS: "status",
    }

    @classmethod
    def from_dict(cls, data: dict) -> Stack:
        stack = cls()
        stack.update_from_dict(data)
        return stack

    def update_from_dict(self, data: dict) -> None:
        for k, v in data.items():
            if k in self.fields_mapping:
                setattr(self, self.fields_mapping[k], v)

        if self.env is None:
            self.env = []

    def to_dict(self) -> dict:
        data = {}
        for k, v in self.fields_mapping.items():
            value = getattr(self, v)
            if value is None:
                continue
            data[k] = value
        return data


def merge_env(existing: list[dict], overrides: Mapping[str, Any]) -> list[dict]:
    """
    Apply environment overrides on top of a stack's current variables.

    Variables already on the stack keep their position and get the new value;
    unknown names are appended in the order of ``overrides``. Neither input is
    modified.
    """
    merged = [dict(entry) for entry in existing or []]

    for name, value in overrides.items():
        entry = next((e for e in merged if e.get(PF.ENV_NAME) == name), None)
        if entry is not None:
            entry[PF.ENV_VALUE] = value
        else:
            merged.append({PF.ENV_NAME: name, PF.ENV_VALUE: value})

    return merged


def env_from_mapping(env: Mapping[str, Any]) -> list[dict]:
    return [{PF.ENV_NAME: name, PF.ENV_VALUE: value} for name, value in env.items()]


def _counter(response: Any, key: str) -> list:
    """Entries listed under key in a prune response; anything unexpected counts as none."""
    if not isinstance(response, dict):
        return []
    entries = response.get(key)
    return entries if isinstance(entries, list) else []


def describe_error(error: Exception) -> str:
    if isinstance(error, PortainerApiError):
        return error.describe()
    return str(error)


class StackManagerClient:
    """
    Stack lifecycle operations against one Portainer environment.

    Required steps (authentication, list, create, update, delete) log and re-raise
    on failure. Reverse proxy network wiring and post-delete pruning are best effort:
    their failures are logged and ignored.
    """

    def __init__(
        self,
        module: PortainerModule,
        endpoint_id: int,
        reverse_proxy: str | None = DEFAULT_REVERSE_PROXY,
        prune: bool = True,
        create_method: str = CreateMethod.STANDALONE,
    ) -> None:
        self.module = module
        self.client = module.client
        self.crud = module.crud

        self.endpoint_id = endpoint_id
        self.reverse_proxy = reverse_proxy
        self.prune = prune
        self.create_method = create_method

    def _info(self, msg: str) -> None:
        self.module.log_progress(msg)

    def _best_effort(self, description: str, func: Callable[[], Any]) -> bool:
        try:
            func()
        except Exception as e:
            msg = f"Failed to {description}: {describe_error(e)}"
            self._info(msg)
            self.module.warn(msg)
            return False
        return True

    def _endpoint_params(self) -> dict[str, Any]:
        return {PF.ENDPOINT_ID_QUERY: self.endpoint_id}

    def authenticate(self, username: str, password: str) -> None:
        self._info("Authenticating with Portainer...")
        try:
            self.client.authenticate(username, password)
        except Exception as e:
            self._info(f"Authentication failed: {describe_error(e)}")
            raise
        self._info("Authentication succeeded")

    def list_stacks(self) -> list[Stack]:
        stacks = self.crud.stack.list_items(params=self._endpoint_params())
        return [Stack.from_dict(item) for item in stacks]

    def find_stack(self, name: str) -> Stack | None:
        return next((s for s in self.list_stacks() if s.name == name), None)

    def create_stack(self, name: str, content: str, env: Mapping[str, Any]) -> Stack:
        self._info(f"Creating stack {name}...")
        try:
            data = self.crud.stack.create_item(
                name,
                self.endpoint_id,
                item_data={
                    PF.STACK_FILE_CONTENT_BODY: content,
                    PF.STACK_ENV_BODY: env_from_mapping(env),
                },
                create_method=self.create_method,
            )
        except Exception as e:
            self._info(f"Stack creation failed: {describe_error(e)}")
            raise

        stack = Stack.from_dict(data or {})
        self._info(f"Successfully created stack {stack.name} with id {stack.id}")

        self._connect_reverse_proxy(name)

        return stack

    def update_stack(self, stack: Stack, content: str, env: Mapping[str, Any]) -> Stack:
        self._info(f"Updating stack {stack.name}...")
        try:
            data = self.crud.stack.update_item(
                stack.id,
                changes={
                    PF.STACK_ENV_BODY: merge_env(stack.env, env),
                    PF.STACK_FILE_CONTENT_BODY: content,
                    PF.STACK_PULL_IMAGE_BODY: True,
                },
                params={PF.STACK_ID_QUERY: stack.id, **self._endpoint_params()},
            )
        except Exception as e:
            self._info(f"Stack update failed: {describe_error(e)}")
            raise

        updated = Stack.from_dict(data or {})
        self._info(f"Successfully updated stack {updated.name}")

        return updated

    def delete_stack(self, name: str, stack: Stack | None = None) -> bool:
        """
        Delete the stack called ``name``; returns False when there was nothing to delete.

        Pass ``stack`` when it was just looked up to skip listing the stacks again.
        """
        if stack is None:
            stack = self.find_stack(name)
        if stack is None:
            return False

        self._disconnect_reverse_proxy(name)

        self._info(f"Deleting stack {name}...")
        try:
            self.crud.stack.delete_item_by_id(stack.id, params=self._endpoint_params())
        except Exception as e:
            self._info(f"Stack deletion failed: {describe_error(e)}")
            raise
        self._info(f"Successfully deleted stack {name}")

        if self.prune:
            self._best_effort("prune unused images", self._prune_images)
            self._best_effort("prune unused volumes", self._prune_volumes)

        return True

    def _connect_reverse_proxy(self, name: str) -> None:
        if not self.reverse_proxy:
            return

        network = f"{name}{NETWORK_SUFFIX}"

        def connect():
            with self.crud.docker_network.using_endpoint(self.endpoint_id) as networks:
                networks.connect_container(network, self.reverse_proxy)

        if self._best_effort(f"connect {self.reverse_proxy} container to {network}", connect):
            self._info(f"{self.reverse_proxy.capitalize()} container connected to {network}")

    def _disconnect_reverse_proxy(self, name: str) -> None:
        if not self.reverse_proxy:
            return

        network = f"{name}{NETWORK_SUFFIX}"

        def disconnect():
            with self.crud.docker_network.using_endpoint(self.endpoint_id) as networks:
                networks.disconnect_container(network, self.reverse_proxy, force=True)

        if self._best_effort(
            f"disconnect {self.reverse_proxy} container from {network}", disconnect
        ):
            self._info(f"{self.reverse_proxy.capitalize()} container disconnected from {network}")

    def _prune_images(self) -> None:
        with self.crud.docker_image.using_endpoint(self.endpoint_id) as images:
            response = images.prune(
                params={PF.PRUNE_FILTERS_QUERY: json.dumps(IMAGE_PRUNE_FILTERS)}
            )

        deleted = [
            image
            for image in _counter(response, PF.PRUNE_IMAGES_DELETED)
            if isinstance(image, dict) and image.get(PF.PRUNE_IMAGE_DELETED)
        ]
        self._info(f"Removed {len(deleted)} unused images")

    def _prune_volumes(self) -> None:
        with self.crud.docker_volume.using_endpoint(self.endpoint_id) as volumes:
            response = volumes.prune()

        deleted = _counter(response, PF.PRUNE_VOLUMES_DELETED)
        self._info(f"Removed {len(deleted)} unused volumes")
