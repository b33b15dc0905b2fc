from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

INTEGRATION_TARGET_PREFIX = "integrations/"
ROUTE_KEY_METHOD = "ANY"


class GatewayType(str, Enum):
    NONE = "none"
    PUBLIC = "public"

    @classmethod
    def parse(cls, raw: str) -> "GatewayType":
        value = str(raw).strip().lower()
        for item in cls:
            if item.value == value:
                return item
        allowed = ", ".join(item.value for item in cls)
        raise ValueError(f"invalid gateway type {raw!r} (expected one of: {allowed})")

    @property
    def exposed(self) -> bool:
        return self is not GatewayType.NONE


class LoadBalancerScheme(str, Enum):
    INTERNAL = "internal"
    INTERNET_FACING = "internet-facing"


class EndpointDescriptor(BaseModel):
    """Exposure of one API endpoint through the gateway."""

    model_config = ConfigDict(frozen=True)

    path: str
    gateway_type: GatewayType = GatewayType.NONE


class GatewayRoute(BaseModel):
    """A route as stored by the gateway control plane."""

    model_config = ConfigDict(frozen=True)

    route_id: str
    route_key: str
    target: str = ""

    @property
    def integration_id(self) -> str:
        target = self.target.strip()
        if not target.startswith(INTEGRATION_TARGET_PREFIX):
            return ""
        return target[len(INTEGRATION_TARGET_PREFIX) :]


def route_key_for(path: str) -> str:
    return f"{ROUTE_KEY_METHOD} {path}"


def integration_target_for(integration_id: str) -> str:
    return f"{INTEGRATION_TARGET_PREFIX}{integration_id}"
