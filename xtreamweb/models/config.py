"""Pydantic models for application configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class XtreamConfig(BaseModel):
    """Provider credentials, forwarded as-is to the upstream API."""
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    server_url: str = ""
    username: str = ""
    password: str = ""
    port: Optional[int] = None
    use_proxy: bool = True

    @property
    def is_complete(self) -> bool:
        return bool(self.server_url.strip() and self.username and self.password)


class Options(BaseModel):
    """Application options."""
    model_config = ConfigDict(extra="allow")

    sweep_interval: int = 3600
    sweep_probability: float = Field(default=0.1, ge=0.0, le=1.0)
    search_default_limit: int = Field(default=50, ge=1)
    proxy_streams: bool = True


class AppConfig(BaseModel):
    """Root application configuration."""
    model_config = ConfigDict(extra="allow")

    xtream: XtreamConfig = Field(default_factory=XtreamConfig)
    options: Options = Field(default_factory=Options)
