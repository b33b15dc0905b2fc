from gatewaysync.schemas.gateway import (
    EndpointDescriptor,
    GatewayRoute,
    GatewayType,
    LoadBalancerScheme,
)

__all__ = [
    "EndpointDescriptor",
    "GatewayRoute",
    "GatewayType",
    "LoadBalancerScheme",
]
