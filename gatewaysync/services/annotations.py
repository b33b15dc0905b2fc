from __future__ import annotations

from typing import Any, Mapping

from gatewaysync.config import DEFAULT_GATEWAY_ANNOTATION_KEY
from gatewaysync.schemas.gateway import GatewayType
from gatewaysync.utils import normalize_path

_URI_MATCH_KINDS = ("exact", "prefix")


class ResourceMetadataError(ValueError):
    def __init__(self, action: str, detail: str) -> None:
        super().__init__(f"{action}: {detail}")
        self.action = action
        self.detail = detail


def _metadata(resource: Mapping[str, Any]) -> Mapping[str, Any]:
    metadata = resource.get("metadata")
    return metadata if isinstance(metadata, Mapping) else {}


def resource_name(resource: Mapping[str, Any]) -> str:
    metadata = _metadata(resource)
    name = str(metadata.get("name") or "<unnamed>")
    namespace = metadata.get("namespace")
    return f"{namespace}/{name}" if namespace else name


def gateway_type_from_annotations(
    resource: Mapping[str, Any],
    annotation_key: str = DEFAULT_GATEWAY_ANNOTATION_KEY,
) -> GatewayType:
    annotations = _metadata(resource).get("annotations")
    if not isinstance(annotations, Mapping) or annotation_key not in annotations:
        raise ResourceMetadataError(
            "annotations.gateway_type",
            f"{resource_name(resource)} is missing annotation {annotation_key!r}",
        )
    try:
        return GatewayType.parse(str(annotations[annotation_key]))
    except ValueError as exc:
        raise ResourceMetadataError(
            "annotations.gateway_type",
            f"{resource_name(resource)}: {exc}",
        ) from exc


def endpoint_from_virtual_service(resource: Mapping[str, Any]) -> str:
    """Return the single URI path matched by a VirtualService's HTTP routes."""
    spec = resource.get("spec")
    http_routes = spec.get("http") if isinstance(spec, Mapping) else None
    endpoints: list[str] = []
    for route in http_routes if isinstance(http_routes, list) else []:
        matches = route.get("match") if isinstance(route, Mapping) else None
        for match in matches if isinstance(matches, list) else []:
            uri = match.get("uri") if isinstance(match, Mapping) else None
            if not isinstance(uri, Mapping):
                continue
            for kind in _URI_MATCH_KINDS:
                value = uri.get(kind)
                if isinstance(value, str) and value.strip():
                    path = normalize_path(value)
                    if path not in endpoints:
                        endpoints.append(path)

    if len(endpoints) != 1:
        raise ResourceMetadataError(
            "annotations.endpoint",
            f"{resource_name(resource)} should have exactly one endpoint, found {len(endpoints)}",
        )
    return endpoints[0]


def gateway_type_and_path(
    resource: Mapping[str, Any],
    annotation_key: str = DEFAULT_GATEWAY_ANNOTATION_KEY,
) -> tuple[GatewayType, str]:
    return (
        gateway_type_from_annotations(resource, annotation_key),
        endpoint_from_virtual_service(resource),
    )


class VirtualServiceReader:
    def __init__(self, annotation_key: str = DEFAULT_GATEWAY_ANNOTATION_KEY) -> None:
        self._annotation_key = annotation_key

    def gateway_type_and_path(self, resource: Mapping[str, Any]) -> tuple[GatewayType, str]:
        return gateway_type_and_path(resource, self._annotation_key)

