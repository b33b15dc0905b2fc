from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from gatewaysync.schemas.gateway import (
    GatewayRoute,
    LoadBalancerScheme,
    integration_target_for,
    route_key_for,
)
from gatewaysync.services.annotations import VirtualServiceReader
from gatewaysync.services.apigateway import GatewayOperationError
from gatewaysync.services.gateway import GatewayReconciler, GatewaySettings

API_ID = "api-123"
VPC_LINK_INTEGRATION_ID = "vpclink-int"
LOAD_BALANCER_URL = "http://lb.example.com"

Call = Tuple[Any, ...]


class FakeGateway:
    """In-memory gateway that records every call in a shared log."""

    def __init__(self, calls: List[Call]) -> None:
        self.calls = calls
        self.routes: Dict[str, GatewayRoute] = {}
        self.integrations: Dict[str, str] = {}
        self.fail: Dict[str, Exception] = {}
        self._next_id = 0

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail:
            raise self.fail[name]

    def seed_route(self, path: str, integration_id: str = "") -> GatewayRoute:
        route = GatewayRoute(
            route_id=f"route-{path}",
            route_key=route_key_for(path),
            target=integration_target_for(integration_id) if integration_id else "",
        )
        self.routes[path] = route
        if integration_id:
            self.integrations.setdefault(integration_id, "")
        return route

    def get_route(self, api_id: str, path: str) -> Optional[GatewayRoute]:
        self.calls.append(("get_route", api_id, path))
        self._maybe_fail("get_route")
        return self.routes.get(path)

    def create_route(self, api_id: str, integration_id: str, path: str) -> None:
        self.calls.append(("create_route", api_id, integration_id, path))
        self._maybe_fail("create_route")
        self.seed_route(path, integration_id)

    def delete_route(self, api_id: str, path: str) -> Optional[GatewayRoute]:
        self.calls.append(("delete_route", api_id, path))
        self._maybe_fail("delete_route")
        return self.routes.pop(path, None)

    def create_http_integration(self, api_id: str, target_url: str) -> str:
        self.calls.append(("create_http_integration", api_id, target_url))
        self._maybe_fail("create_http_integration")
        self._next_id += 1
        integration_id = f"int-{self._next_id}"
        self.integrations[integration_id] = target_url
        return integration_id

    def delete_integration(self, api_id: str, integration_id: str) -> None:
        self.calls.append(("delete_integration", api_id, integration_id))
        self._maybe_fail("delete_integration")
        self.integrations.pop(integration_id, None)


class FakeTopology:
    def __init__(self, calls: List[Call], url: str = LOAD_BALANCER_URL) -> None:
        self.calls = calls
        self.url = url
        self.error: Optional[Exception] = None

    def load_balancer_url(self) -> str:
        self.calls.append(("load_balancer_url",))
        if self.error is not None:
            raise self.error
        return self.url


@pytest.fixture
def calls() -> List[Call]:
    return []


@pytest.fixture
def gateway(calls: List[Call]) -> FakeGateway:
    return FakeGateway(calls)


@pytest.fixture
def topology(calls: List[Call]) -> FakeTopology:
    return FakeTopology(calls)


@pytest.fixture
def make_reconciler(gateway: FakeGateway, topology: FakeTopology):
    def _make(scheme: LoadBalancerScheme = LoadBalancerScheme.INTERNET_FACING) -> GatewayReconciler:
        settings = GatewaySettings(
            api_gateway_id=API_ID,
            load_balancer_scheme=scheme,
            vpc_link_integration_id=VPC_LINK_INTEGRATION_ID,
        )
        return GatewayReconciler(settings, gateway, topology, VirtualServiceReader())

    return _make


@pytest.fixture
def adapter_failure() -> GatewayOperationError:
    return GatewayOperationError("apigateway.route.create", "AccessDenied")


def _virtual_service(
    path: str = "/a",
    gateway_type: Optional[str] = "public",
    *,
    name: str = "api-a",
    namespace: str = "default",
) -> Dict[str, Any]:
    annotations: Dict[str, str] = {}
    if gateway_type is not None:
        annotations["networking.gatewaysync.io/api-gateway"] = gateway_type
    return {
        "apiVersion": "networking.istio.io/v1beta1",
        "kind": "VirtualService",
        "metadata": {"name": name, "namespace": namespace, "annotations": annotations},
        "spec": {
            "hosts": ["*"],
            "http": [
                {
                    "match": [{"uri": {"exact": path}}],
                    "route": [{"destination": {"host": name, "port": {"number": 8888}}}],
                }
            ],
        },
    }


@pytest.fixture
def make_virtual_service():
    return _virtual_service
