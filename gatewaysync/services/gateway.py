from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Protocol

from gatewaysync.config import Settings
from gatewaysync.logger import Operation, get_logger
from gatewaysync.metrics import record_reconciliation
from gatewaysync.schemas.gateway import (
    EndpointDescriptor,
    GatewayRoute,
    GatewayType,
    LoadBalancerScheme,
)
from gatewaysync.services.annotations import resource_name
from gatewaysync.utils import join_url

_logger = get_logger("services.gateway")


class GatewayAdapter(Protocol):
    def get_route(self, api_id: str, path: str) -> Optional[GatewayRoute]: ...

    def create_route(self, api_id: str, integration_id: str, path: str) -> None: ...

    def delete_route(self, api_id: str, path: str) -> Optional[GatewayRoute]: ...

    def create_http_integration(self, api_id: str, target_url: str) -> str: ...

    def delete_integration(self, api_id: str, integration_id: str) -> None: ...


class Topology(Protocol):
    def load_balancer_url(self) -> str: ...


class ResourceReader(Protocol):
    def gateway_type_and_path(self, resource: Mapping[str, Any]) -> tuple[GatewayType, str]: ...


class GatewaySettingsError(ValueError):
    pass


@dataclass(frozen=True)
class GatewaySettings:
    api_gateway_id: str
    load_balancer_scheme: LoadBalancerScheme
    vpc_link_integration_id: str = ""

    def __post_init__(self) -> None:
        if not self.api_gateway_id:
            raise GatewaySettingsError("api gateway id is required")
        if self.load_balancer_scheme == LoadBalancerScheme.INTERNAL and not self.vpc_link_integration_id:
            raise GatewaySettingsError("vpc link integration id is required for the internal scheme")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewaySettings":
        return cls(
            api_gateway_id=settings.api_gateway_id,
            load_balancer_scheme=settings.api_load_balancer_scheme,
            vpc_link_integration_id=settings.vpc_link_integration_id,
        )


class ReconcileAction(str, Enum):
    NOOP = "noop"
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


def plan_update(prev: EndpointDescriptor, new: EndpointDescriptor) -> ReconcileAction:
    """Decide how to move the gateway from ``prev`` to ``new``.

    A path change on an exposed endpoint is a REPLACE: the new route is added
    first and the old one is removed only after that succeeds.
    """
    if not prev.gateway_type.exposed and not new.gateway_type.exposed:
        return ReconcileAction.NOOP
    if prev.gateway_type.exposed and not new.gateway_type.exposed:
        return ReconcileAction.REMOVE
    if not prev.gateway_type.exposed and new.gateway_type.exposed:
        return ReconcileAction.ADD
    if prev.path == new.path:
        return ReconcileAction.NOOP
    return ReconcileAction.REPLACE


class GatewayReconciler:
    """Converges gateway routes and integrations to an endpoint's desired exposure.

    Holds no state between calls. Errors from collaborators propagate unchanged
    and partially applied steps are left in place; every step is idempotent so
    the caller can retry the whole call on the next event.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        adapter: GatewayAdapter,
        topology: Topology,
        reader: ResourceReader,
    ) -> None:
        self._settings = settings
        self._adapter = adapter
        self._topology = topology
        self._reader = reader
        self._logger = _logger.bind(api_id=settings.api_gateway_id)

    def add(self, endpoint: EndpointDescriptor) -> ReconcileAction:
        if not endpoint.gateway_type.exposed:
            return self._skip("gateway.add", endpoint)
        with self._logger.operation(
            "gateway.add",
            "Adding endpoint to API gateway",
            path=endpoint.path,
            gateway_type=endpoint.gateway_type.value,
        ) as op:
            self._run(ReconcileAction.ADD, lambda: self._add(op, endpoint))
        return ReconcileAction.ADD

    def remove(self, endpoint: EndpointDescriptor) -> ReconcileAction:
        if not endpoint.gateway_type.exposed:
            return self._skip("gateway.remove", endpoint)
        with self._logger.operation(
            "gateway.remove",
            "Removing endpoint from API gateway",
            path=endpoint.path,
            gateway_type=endpoint.gateway_type.value,
        ) as op:
            self._run(ReconcileAction.REMOVE, lambda: self._remove(op, endpoint))
        return ReconcileAction.REMOVE

    def update(self, prev: EndpointDescriptor, new: EndpointDescriptor) -> ReconcileAction:
        action = plan_update(prev, new)
        with self._logger.operation(
            "gateway.update",
            "Reconciling API gateway endpoint",
            prev_path=prev.path,
            prev_gateway_type=prev.gateway_type.value,
            path=new.path,
            gateway_type=new.gateway_type.value,
            action=action.value,
        ) as op:
            self._run(action, lambda: self._apply(op, action, prev, new))
        return action

    def remove_resource(self, resource: Optional[Mapping[str, Any]]) -> ReconcileAction:
        if resource is None:
            self._logger.debug("gateway.remove_resource", "Resource is not running; nothing to remove")
            return ReconcileAction.NOOP
        with self._logger.context(resource=resource_name(resource)):
            gateway_type, path = self._reader.gateway_type_and_path(resource)
            return self.remove(EndpointDescriptor(path=path, gateway_type=gateway_type))

    def update_resource(
        self,
        prev_resource: Optional[Mapping[str, Any]],
        new: EndpointDescriptor,
    ) -> ReconcileAction:
        if prev_resource is None:
            prev = EndpointDescriptor(path=new.path, gateway_type=GatewayType.NONE)
            return self.update(prev, new)
        with self._logger.context(resource=resource_name(prev_resource)):
            gateway_type, path = self._reader.gateway_type_and_path(prev_resource)
            prev = EndpointDescriptor(path=path, gateway_type=gateway_type)
            return self.update(prev, new)

    def _skip(self, event: str, endpoint: EndpointDescriptor) -> ReconcileAction:
        self._logger.debug(event, "Endpoint is not exposed; nothing to do", path=endpoint.path)
        record_reconciliation(action=ReconcileAction.NOOP.value, ok=True)
        return ReconcileAction.NOOP

    def _run(self, action: ReconcileAction, func: Callable[[], None]) -> None:
        try:
            func()
        except Exception:
            record_reconciliation(action=action.value, ok=False)
            raise
        record_reconciliation(action=action.value, ok=True)

    def _apply(
        self,
        op: Operation,
        action: ReconcileAction,
        prev: EndpointDescriptor,
        new: EndpointDescriptor,
    ) -> None:
        if action == ReconcileAction.NOOP:
            op.step_debug("plan.noop", "Gateway already matches desired state")
        elif action == ReconcileAction.ADD:
            self._add(op, new)
        elif action == ReconcileAction.REMOVE:
            self._remove(op, prev)
        else:
            # A failed add leaves the previous route in place.
            self._add(op, new)
            self._remove(op, prev)

    def _add(self, op: Operation, endpoint: EndpointDescriptor) -> None:
        if not endpoint.gateway_type.exposed:
            return
        api_id = self._settings.api_gateway_id

        existing = self._adapter.get_route(api_id, endpoint.path)
        if existing is not None:
            op.step("route.exists", "Gateway route already exists", path=endpoint.path)
            return

        if self._settings.load_balancer_scheme == LoadBalancerScheme.INTERNAL:
            integration_id = self._settings.vpc_link_integration_id
            self._adapter.create_route(api_id, integration_id, endpoint.path)
            op.step(
                "route.create",
                "Created route on VPC link integration",
                path=endpoint.path,
                integration_id=integration_id,
            )
            return

        load_balancer_url = self._topology.load_balancer_url()
        target_url = join_url(load_balancer_url, endpoint.path)
        integration_id = self._adapter.create_http_integration(api_id, target_url)
        op.step(
            "integration.create",
            "Created HTTP integration",
            target_url=target_url,
            integration_id=integration_id,
        )
        self._adapter.create_route(api_id, integration_id, endpoint.path)
        op.step(
            "route.create",
            "Created route on HTTP integration",
            path=endpoint.path,
            integration_id=integration_id,
        )

    def _remove(self, op: Operation, endpoint: EndpointDescriptor) -> None:
        if not endpoint.gateway_type.exposed:
            return
        api_id = self._settings.api_gateway_id

        route = self._adapter.delete_route(api_id, endpoint.path)
        if route is None:
            op.step("route.absent", "No gateway route to delete", path=endpoint.path)
            return
        op.step("route.delete", "Deleted gateway route", path=endpoint.path, route_id=route.route_id)

        if self._settings.load_balancer_scheme != LoadBalancerScheme.INTERNET_FACING:
            return
        integration_id = route.integration_id
        if not integration_id:
            return
        self._adapter.delete_integration(api_id, integration_id)
        op.step("integration.delete", "Deleted route integration", integration_id=integration_id)
