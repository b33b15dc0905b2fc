from __future__ import annotations

from typing import Any, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from gatewaysync.config import Settings
from gatewaysync.logger import get_logger

_logger = get_logger("services.topology")


class TopologyError(RuntimeError):
    def __init__(self, action: str, detail: str) -> None:
        super().__init__(f"{action}: {detail}")
        self.action = action
        self.detail = detail


def load_kubernetes_config() -> None:
    try:
        config.load_incluster_config()
        _logger.debug("kubernetes.config", "Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        _logger.debug("kubernetes.config", "Loaded kubeconfig")


class LoadBalancerTopology:
    """Resolves the base URL of the load balancer fronting the API ingress.

    Without an explicit ``core_api`` the Kubernetes client is configured on the
    first lookup, so callers that never need the load balancer never touch the
    cluster.
    """

    def __init__(self, core_api: Any = None, *, namespace: str, service_name: str) -> None:
        self._core_api = core_api
        self._namespace = namespace
        self._service_name = service_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoadBalancerTopology":
        return cls(namespace=settings.ingress_namespace, service_name=settings.ingress_service_name)

    def _core(self) -> Any:
        if self._core_api is None:
            load_kubernetes_config()
            self._core_api = client.CoreV1Api()
        return self._core_api

    def load_balancer_url(self) -> str:
        service_ref = f"{self._namespace}/{self._service_name}"
        try:
            service = self._core().read_namespaced_service(self._service_name, self._namespace)
        except ApiException as exc:
            raise TopologyError("topology.service.read", f"{service_ref}: {exc.reason}") from exc

        status = getattr(service, "status", None)
        load_balancer = getattr(status, "load_balancer", None)
        ingress = list(getattr(load_balancer, "ingress", None) or [])
        if not ingress:
            raise TopologyError(
                "topology.load_balancer",
                f"unable to determine load balancer hostname for {service_ref}",
            )

        host = ingress[0].hostname or ingress[0].ip
        if not host:
            raise TopologyError(
                "topology.load_balancer",
                f"load balancer ingress for {service_ref} has no hostname or ip",
            )
        url = f"http://{host}"
        _logger.debug("topology.load_balancer", "Resolved load balancer url", url=url)
        return url


class VirtualServiceSource:
    """Reads Istio VirtualService objects that carry an endpoint's gateway annotations."""

    group = "networking.istio.io"
    version = "v1beta1"
    plural = "virtualservices"

    def __init__(self, custom_api: Any) -> None:
        self._custom_api = custom_api

    @classmethod
    def from_cluster(cls) -> "VirtualServiceSource":
        load_kubernetes_config()
        return cls(client.CustomObjectsApi())

    def get(self, namespace: str, name: str) -> Optional[dict[str, Any]]:
        """Return the VirtualService, or None when it is not deployed."""
        try:
            return self._custom_api.get_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                name,
            )
        except ApiException as exc:
            if exc.status == 404:
                _logger.info(
                    "virtual_service.get",
                    "VirtualService not found",
                    namespace=namespace,
                    name=name,
                )
                return None
            raise TopologyError(
                "virtual_service.get",
                f"{namespace}/{name}: {exc.reason}",
            ) from exc
