"""Pydantic models for application configuration."""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class M3uSource(BaseModel):
    """A static M3U playlist reachable over HTTP."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    type: Literal["m3u"] = "m3u"
    url: str


class XtreamSource(BaseModel):
    """An Xtream Codes account."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    type: Literal["xtream"] = "xtream"
    server: str
    username: str
    password: str

    @property
    def base_url(self) -> str:
        return self.server.rstrip("/")


SourceConfig = Annotated[Union[M3uSource, XtreamSource], Field(discriminator="type")]

source_adapter: TypeAdapter[SourceConfig] = TypeAdapter(SourceConfig)


class Options(BaseModel):
    """Application options."""
    model_config = ConfigDict(extra="allow")

    connect_timeout: float = 30.0
    read_timeout: float = 60.0
    xtream_max_concurrency: int = 4
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class AppConfig(BaseModel):
    """Root application configuration (``config.json``)."""
    model_config = ConfigDict(extra="allow")

    source: Optional[SourceConfig] = None
    last_channel_id: str = ""
    options: Options = Field(default_factory=Options)
