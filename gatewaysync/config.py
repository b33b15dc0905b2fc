from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gatewaysync.schemas.gateway import LoadBalancerScheme

DEFAULT_GATEWAY_ANNOTATION_KEY = "networking.gatewaysync.io/api-gateway"


class Settings(BaseSettings):
    app_name: str = Field(default="gatewaysync")
    app_env: str = Field(default="dev")

    log_level: str = Field(default="INFO")
    log_file: str = Field(default="")

    api_gateway_id: str = Field(default="")
    api_load_balancer_scheme: LoadBalancerScheme = Field(
        default=LoadBalancerScheme.INTERNET_FACING
    )
    vpc_link_integration_id: str = Field(default="")
    aws_region: str = Field(default="us-east-1")

    ingress_namespace: str = Field(default="istio-system")
    ingress_service_name: str = Field(default="ingressgateway-apis")
    gateway_annotation_key: str = Field(default=DEFAULT_GATEWAY_ANNOTATION_KEY)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_gateway(self) -> "Settings":
        issues: list[str] = []
        if not self.api_gateway_id.strip():
            issues.append("API_GATEWAY_ID must be set in .env or environment variables.")
        if (
            self.api_load_balancer_scheme == LoadBalancerScheme.INTERNAL
            and not self.vpc_link_integration_id.strip()
        ):
            issues.append(
                "VPC_LINK_INTEGRATION_ID must be set when API_LOAD_BALANCER_SCHEME is internal."
            )
        if not self.gateway_annotation_key.strip():
            issues.append("GATEWAY_ANNOTATION_KEY must not be empty.")
        if issues:
            raise ValueError(" ".join(issues))
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
