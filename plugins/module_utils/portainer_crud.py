from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar, Any, Generator
from contextlib import contextmanager

from .portainer_fields import PortainerFields as PF


if TYPE_CHECKING:
    from .portainer_module import PortainerModule


T = TypeVar("T", dict, list)


class CreateMethod:
    STANDALONE = "standalone"
    LEGACY = "legacy"

    choices = [STANDALONE, LEGACY]


# Portainer stack type for docker compose stacks, used by the legacy create call
COMPOSE_STACK_TYPE = 2


class BaseCRUD:

    def __init__(
        self,
        module: PortainerModule,
        endpoint: str,
        resource_name: str,
    ) -> None:
        self.module = module

        self.resource_name = resource_name
        self._endpoint = endpoint

    def _get_delete_endpoint(self, id: int) -> str:
        return f"{self.endpoint}/{id}"

    def _get_update_endpoint(self, id: int) -> str:
        return f"{self.endpoint}/{id}"

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def list_items(self, params: dict | None = None) -> list[dict[str, Any]]:

        return self._process_response(self.module.client.get(self.endpoint, params=params)) or []

    def update_item(
        self, item_id: int, changes: dict, params: dict | None = None
    ) -> dict[str, Any]:
        if item_id is None:
            raise ValueError("Item ID cannot be None")

        endpoint = self._get_update_endpoint(item_id)

        return self._process_response(
            self.module.client.put(endpoint, data=changes, params=params)
        )

    def delete_item_by_id(self, item_id: int, params: dict | None = None) -> None:
        if item_id is None:
            raise ValueError("Item ID cannot be None")

        endpoint = self._get_delete_endpoint(item_id)

        self.module.client.delete(endpoint, params=params)

    def _process_response(self, data: T) -> T:
        """
        Hook for subclasses to normalize/transform response data.
        Can handle both single items and lists.
        """
        if not data:
            return data

        if isinstance(data, list):
            return [self._process_single_item(item) for item in data]
        return self._process_single_item(data)

    def _process_single_item(self, item: dict) -> dict:
        """Process a single item. Override this in subclasses."""
        return item


class BaseDockerCRUD(BaseCRUD):
    """
    Base class for Docker API resources accessed through Portainer's proxy.
    Handles endpoint construction for the Docker engine of one environment.
    """

    def __init__(
        self,
        module: PortainerModule,
        docker_endpoint: str,
        resource_name: str,
    ) -> None:
        self.docker_endpoint = docker_endpoint

        super().__init__(
            module=module,
            endpoint=docker_endpoint,
            resource_name=resource_name,
        )

        self._endpoint_id = self.module.params.get("endpoint_id")

    @contextmanager
    def using_endpoint(self, endpoint_id: int) -> Generator[BaseDockerCRUD, None, None]:
        """Context manager to set the Portainer endpoint for Docker API access"""
        old_endpoint_id = self._endpoint_id
        self._endpoint_id = endpoint_id
        try:
            yield self
        finally:
            self._endpoint_id = old_endpoint_id

    @property
    def endpoint(self) -> str:
        """Build the Docker API endpoint through Portainer proxy"""
        if self._endpoint_id is None:
            raise ValueError(
                f"endpoint_id must be set to use {self.resource_name}. "
                f"Either set 'endpoint_id' as module param or "
                f"use 'with crud.using_endpoint(endpoint_id):' context manager."
            )
        return f"/endpoints/{self._endpoint_id}/docker{self.docker_endpoint}"

    def prune(self, params: dict | None = None) -> dict[str, Any]:
        """Remove unused resources; Docker answers with what was deleted."""
        return self.module.client.post(f"{self.endpoint}/prune", params=params) or {}


class StackCRUD(BaseCRUD):

    def __init__(self, module: PortainerModule) -> None:
        super().__init__(module, endpoint="/stacks", resource_name="stack")

    def _get_create_endpoint(self, create_method: str) -> str:
        if create_method == CreateMethod.LEGACY:
            return self.endpoint

        return f"{self.endpoint}/create/standalone/string"

    def _get_create_params(self, endpoint_id: int, create_method: str) -> dict[str, Any]:
        params: dict[str, Any] = {PF.ENDPOINT_ID_QUERY: endpoint_id}

        if create_method == CreateMethod.LEGACY:
            params[PF.STACK_METHOD_QUERY] = "string"
            params[PF.STACK_TYPE_QUERY] = COMPOSE_STACK_TYPE

        return params

    def create_item(
        self,
        name: str,
        endpoint_id: int,
        item_data: dict | None = None,
        create_method: str = CreateMethod.STANDALONE,
    ) -> dict[str, Any]:
        if not name:
            raise ValueError("Name should not be empty")

        if create_method not in CreateMethod.choices:
            raise ValueError(f"Unsupported create method: {create_method}")

        return self._process_response(
            self.module.client.post(
                self._get_create_endpoint(create_method),
                {PF.STACK_NAME_BODY: name, **(item_data or {})},
                params=self._get_create_params(endpoint_id, create_method),
            )
        )

    def _process_single_item(self, item: dict[str, Any]) -> dict[str, Any]:
        # Portainer returns "Env": null for stacks created without variables
        if isinstance(item, dict) and item.get(PF.STACK_ENV) is None:
            item[PF.STACK_ENV] = []

        return item


class DockerNetworkCRUD(BaseDockerCRUD):

    def __init__(self, module: PortainerModule):
        super().__init__(
            module=module,
            docker_endpoint="/networks",
            resource_name="docker network",
        )

    def connect_container(self, network: str, container: str) -> None:
        self.module.client.post(
            f"{self.endpoint}/{network}/connect",
            data={PF.NETWORK_CONTAINER: container},
        )

    def disconnect_container(self, network: str, container: str, force: bool = True) -> None:
        self.module.client.post(
            f"{self.endpoint}/{network}/disconnect",
            data={PF.NETWORK_CONTAINER: container, PF.NETWORK_FORCE: force},
        )


class DockerImageCRUD(BaseDockerCRUD):

    def __init__(self, module: PortainerModule):
        super().__init__(
            module=module,
            docker_endpoint="/images",
            resource_name="docker image",
        )


class DockerVolumeCRUD(BaseDockerCRUD):

    def __init__(self, module: PortainerModule):
        super().__init__(
            module=module,
            docker_endpoint="/volumes",
            resource_name="docker volume",
        )


class PortainerCRUD:

    def __init__(self, module: PortainerModule) -> None:
        self.module = module
        self.stack = StackCRUD(module)

        self.docker_network = DockerNetworkCRUD(module)
        self.docker_image = DockerImageCRUD(module)
        self.docker_volume = DockerVolumeCRUD(module)
