"""M3U service — parses playlist text into a catalog and renders catalogs back to M3U.

Both functions are pure: no I/O, no shared state.
"""
from __future__ import annotations

import hashlib
import re
from typing import Iterator

from lightcatalog.models.catalog import Category, Channel, sort_catalog

DEFAULT_GROUP = "Uncategorized"

# Lines after an #EXTINF tag that may hold its stream URL
URL_LOOKAHEAD = 4

_EXTINF_RE = re.compile(r"#EXTINF:-?\d+\s*(.*)")
_ATTR_RES = {
    key: re.compile(rf'{key}="([^"]*)"')
    for key in ("tvg-id", "tvg-name", "tvg-logo", "group-title")
}


def group_id(name: str) -> str:
    """Stable category id for a group name."""
    return hashlib.sha1(name.encode("utf-8")).hexdigest()[:12]


def _attr(info: str, key: str) -> str | None:
    match = _ATTR_RES[key].search(info)
    return match.group(1) if match else None


def _iter_entries(lines: list[str]) -> Iterator[tuple[str, str]]:
    """Yield ``(extinf_remainder, url)`` pairs in playlist order.

    Records whose URL is not found within the lookahead window are dropped.
    """
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("#EXTINF"):
            match = _EXTINF_RE.match(line)
            if match:
                for j in range(i + 1, min(i + 1 + URL_LOOKAHEAD, len(lines))):
                    candidate = lines[j]
                    if candidate and not candidate.startswith("#"):
                        yield match.group(1), candidate
                        i = j
                        break
        i += 1


def _build_channel(info: str, url: str, channel_id: int) -> Channel:
    tvg_name = _attr(info, "tvg-name") or ""
    group = _attr(info, "group-title")
    if group is None:
        group = DEFAULT_GROUP

    if "," in info:
        name = info.rsplit(",", 1)[1].strip()
    else:
        name = tvg_name or f"Channel {channel_id}"

    return Channel(
        id=str(channel_id),
        name=name,
        url=url,
        logo=_attr(info, "tvg-logo") or "",
        group=group,
        epg_id=_attr(info, "tvg-id") or "",
    )


def parse_m3u(text: str) -> list[Category]:
    """Parse M3U playlist text into categories sorted by name.

    Never raises: malformed input yields an empty or partial catalog.
    Channel ids come from a counter starting at 1 that advances once per
    emitted channel; a synthesized ``"Channel N"`` name uses the same N.
    """
    if not text:
        return []

    lines = [line.strip() for line in text.lstrip("\ufeff").splitlines()]
    groups: dict[str, list[Channel]] = {}
    next_id = 1

    for info, url in _iter_entries(lines):
        channel = _build_channel(info, url, next_id)
        groups.setdefault(channel.group, []).append(channel)
        next_id += 1

    return sort_catalog(
        [Category(id=group_id(name), name=name, channels=channels) for name, channels in groups.items()]
    )


def _quote(value: str) -> str:
    return value.replace('"', "'")


def render_m3u(categories: list[Category]) -> str:
    """Render a catalog as an ``#EXTM3U`` playlist."""
    lines = ["#EXTM3U"]
    for category in categories:
        for channel in category.channels:
            name = channel.name.replace("\n", " ")
            lines.append(
                f'#EXTINF:-1 tvg-id="{_quote(channel.epg_id)}" tvg-name="{_quote(name)}" '
                f'tvg-logo="{_quote(channel.logo)}" group-title="{_quote(category.name)}",{name}'
            )
            lines.append(channel.url)
    return "\n".join(lines) + "\n"
