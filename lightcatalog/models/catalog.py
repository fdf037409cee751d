"""Pydantic models for the normalized channel catalog."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Channel(BaseModel):
    """A playable channel. Immutable once built; equality is by value."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    url: str
    logo: str = ""
    group: str = ""
    epg_id: str = ""
    is_live: bool = True


class Category(BaseModel):
    """A named group of channels."""

    id: str
    name: str
    channels: list[Channel] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.channels


class UserInfo(BaseModel):
    """Xtream account details returned by the authentication call."""

    username: str = ""
    status: str = ""
    exp_date: str = ""
    active_cons: int = 0
    max_connections: int = 1

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


class PlaybackInfo(BaseModel):
    """What a player needs to start a channel."""

    name: str
    url: str
    logo: str = ""


def sort_catalog(categories: list[Category]) -> list[Category]:
    """Order categories by name (plain ordinal comparison)."""
    return sorted(categories, key=lambda c: c.name)


def find_channel(categories: list[Category], channel_id: str) -> Optional[Channel]:
    for category in categories:
        for channel in category.channels:
            if channel.id == channel_id:
                return channel
    return None


def count_channels(categories: list[Category]) -> int:
    return sum(len(c.channels) for c in categories)
