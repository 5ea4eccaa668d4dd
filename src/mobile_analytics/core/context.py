"""Pydantic models for the client context sent with every batch."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

SDK_NAME = "mobile-analytics-python"
SDK_VERSION = "1.0.0"


class ClientInfo(BaseModel):
    """Identity of the installed application."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    client_id: str = Field(..., min_length=1, description="Unique identifier of this installation")
    app_title: Optional[str] = Field(None, description="Title of the app")
    app_version_name: Optional[str] = Field(None, description="Version name of the app, e.g. V2.0")
    app_version_code: Optional[str] = Field(None, description="Version code of the app, e.g. 3")
    app_package_name: Optional[str] = Field(None, description="Package name, e.g. com.example.my_app")


class EnvironmentInfo(BaseModel):
    """Device environment the events were recorded on."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    platform: Optional[str] = Field(None, description="Operating system, e.g. iPhoneOS")
    platform_version: Optional[str] = Field(None, description="Operating system version")
    model: Optional[str] = Field(None, description="Device model")
    make: Optional[str] = Field(None, description="Device manufacturer")
    locale: Optional[str] = Field(None, description="Device locale, e.g. en_US")


class MobileAnalyticsService(BaseModel):
    """Service section identifying the application and SDK."""

    app_id: str = Field(..., min_length=1, description="Application id")
    sdk_name: str = SDK_NAME
    sdk_version: str = SDK_VERSION


class ServicesInfo(BaseModel):
    mobile_analytics: MobileAnalyticsService


class ClientContext(BaseModel):
    """Context attached to each submitted batch."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    client: ClientInfo
    env: EnvironmentInfo = Field(default_factory=EnvironmentInfo)
    services: ServicesInfo
    custom: Dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        """Dictionary form embedded in the request."""
        return self.model_dump()


def build_client_context(config: Any, client_id: str) -> ClientContext:
    """Build the client context from a ClientConfig and the resolved client id."""
    return ClientContext(
        client=ClientInfo(
            client_id=client_id,
            app_title=config.app_title,
            app_version_name=config.app_version_name,
            app_version_code=config.app_version_code,
            app_package_name=config.app_package_name,
        ),
        env=EnvironmentInfo(
            platform=config.platform,
            platform_version=config.platform_version,
            model=config.model,
            make=config.make,
            locale=config.locale,
        ),
        services=ServicesInfo(mobile_analytics=MobileAnalyticsService(app_id=config.app_id)),
    )
