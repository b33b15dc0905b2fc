from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from gatewaysync.config import Settings
from gatewaysync.logger import get_logger
from gatewaysync.metrics import record_apigateway_operation
from gatewaysync.schemas.gateway import (
    GatewayRoute,
    integration_target_for,
    route_key_for,
)

_logger = get_logger("services.apigateway")
_NOT_FOUND_CODES = {"NotFoundException"}

T = TypeVar("T")


class GatewayOperationError(RuntimeError):
    def __init__(self, action: str, detail: str) -> None:
        super().__init__(f"{action}: {detail}")
        self.action = action
        self.detail = detail


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and _error_code(exc) in _NOT_FOUND_CODES


class APIGatewayClient:
    """Route and integration primitives against an API Gateway v2 HTTP API."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "APIGatewayClient":
        return cls(boto3.client("apigatewayv2", region_name=settings.aws_region))

    def _call(self, action: str, func: Callable[[], T]) -> T:
        try:
            result = func()
        except (ClientError, BotoCoreError) as exc:
            record_apigateway_operation(action=action, ok=False)
            raise GatewayOperationError(action, str(exc)) from exc
        record_apigateway_operation(action=action, ok=True)
        return result

    def get_route(self, api_id: str, path: str) -> Optional[GatewayRoute]:
        route_key = route_key_for(path)

        def _find() -> Optional[GatewayRoute]:
            params: dict[str, str] = {"ApiId": api_id}
            while True:
                page = self._client.get_routes(**params)
                for item in page.get("Items", []):
                    if item.get("RouteKey") == route_key:
                        return GatewayRoute(
                            route_id=str(item["RouteId"]),
                            route_key=route_key,
                            target=str(item.get("Target") or ""),
                        )
                next_token = page.get("NextToken")
                if not next_token:
                    return None
                params["NextToken"] = next_token

        route = self._call("apigateway.route.get", _find)
        _logger.debug(
            "apigateway.route.get",
            "Looked up gateway route",
            api_id=api_id,
            route_key=route_key,
            found=route is not None,
        )
        return route

    def create_route(self, api_id: str, integration_id: str, path: str) -> None:
        route_key = route_key_for(path)
        self._call(
            "apigateway.route.create",
            lambda: self._client.create_route(
                ApiId=api_id,
                RouteKey=route_key,
                Target=integration_target_for(integration_id),
            ),
        )
        _logger.info(
            "apigateway.route.create",
            "Created gateway route",
            api_id=api_id,
            route_key=route_key,
            integration_id=integration_id,
        )

    def delete_route(self, api_id: str, path: str) -> Optional[GatewayRoute]:
        """Delete the route for ``path``; returns the deleted route, or None if there was none."""
        route = self.get_route(api_id, path)
        if route is None:
            return None
        try:
            self._client.delete_route(ApiId=api_id, RouteId=route.route_id)
        except ClientError as exc:
            if is_not_found(exc):
                record_apigateway_operation(action="apigateway.route.delete", ok=True)
                _logger.warning(
                    "apigateway.route.delete",
                    "Gateway route disappeared before delete",
                    api_id=api_id,
                    route_key=route.route_key,
                )
                return None
            record_apigateway_operation(action="apigateway.route.delete", ok=False)
            raise GatewayOperationError("apigateway.route.delete", str(exc)) from exc
        except BotoCoreError as exc:
            record_apigateway_operation(action="apigateway.route.delete", ok=False)
            raise GatewayOperationError("apigateway.route.delete", str(exc)) from exc
        record_apigateway_operation(action="apigateway.route.delete", ok=True)
        _logger.info(
            "apigateway.route.delete",
            "Deleted gateway route",
            api_id=api_id,
            route_key=route.route_key,
            route_id=route.route_id,
        )
        return route

    def create_http_integration(self, api_id: str, target_url: str) -> str:
        response = self._call(
            "apigateway.integration.create",
            lambda: self._client.create_integration(
                ApiId=api_id,
                IntegrationType="HTTP_PROXY",
                IntegrationMethod="ANY",
                IntegrationUri=target_url,
                PayloadFormatVersion="1.0",
            ),
        )
        integration_id = str(response.get("IntegrationId") or "")
        if not integration_id:
            raise GatewayOperationError(
                "apigateway.integration.create",
                f"no integration id returned for {target_url}",
            )
        _logger.info(
            "apigateway.integration.create",
            "Created HTTP proxy integration",
            api_id=api_id,
            integration_id=integration_id,
            target_url=target_url,
        )
        return integration_id

    def delete_integration(self, api_id: str, integration_id: str) -> None:
        try:
            self._client.delete_integration(ApiId=api_id, IntegrationId=integration_id)
        except ClientError as exc:
            if not is_not_found(exc):
                record_apigateway_operation(action="apigateway.integration.delete", ok=False)
                raise GatewayOperationError("apigateway.integration.delete", str(exc)) from exc
            record_apigateway_operation(action="apigateway.integration.delete", ok=True)
            _logger.warning(
                "apigateway.integration.delete",
                "Integration already deleted",
                api_id=api_id,
                integration_id=integration_id,
            )
            return
        except BotoCoreError as exc:
            record_apigateway_operation(action="apigateway.integration.delete", ok=False)
            raise GatewayOperationError("apigateway.integration.delete", str(exc)) from exc
        record_apigateway_operation(action="apigateway.integration.delete", ok=True)
        _logger.info(
            "apigateway.integration.delete",
            "Deleted integration",
            api_id=api_id,
            integration_id=integration_id,
        )
