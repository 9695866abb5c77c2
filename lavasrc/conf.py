"""
Settings access
───────────────
Everything is read from ``settings.LAVASRC`` (a dict). Missing keys fall back
to ``DEFAULTS``; nested dicts are merged one level deep so a host only needs
to spell out what it changes.

Values are looked up on every call so ``override_settings`` works in tests.
"""
from __future__ import annotations

import copy
from typing import Any, Dict

from django.conf import settings

DEFAULTS: Dict[str, Any] = {
    "PROVIDERS": [
        'ytsearch:"%ISRC%"',
        "ytsearch:%QUERY%",
    ],
    "SOURCES": {
        "spotify": False,
        "applemusic": False,
        "deezer": False,
    },
    "LYRICS_SOURCES": {
        "spotify": False,
        "lrclib": False,
    },
    "SPOTIFY": {
        "CLIENT_ID": "",
        "CLIENT_SECRET": "",
        "SP_DC": "",
        "COUNTRY_CODE": "US",
        "PLAYLIST_LOAD_LIMIT": 6,
        "ALBUM_LOAD_LIMIT": 6,
    },
    "APPLEMUSIC": {
        "MEDIA_API_TOKEN": "",
        "COUNTRY_CODE": "us",
        "PLAYLIST_LOAD_LIMIT": 0,
        "ALBUM_LOAD_LIMIT": 0,
    },
    "DEEZER": {
        "API_ROOT": "https://api.deezer.com/2.0",
    },
    "LRCLIB": {
        "API_ROOT": "https://lrclib.net/api",
    },
    "DATABASE": {
        "ENABLED": False,
        "ALIAS": "default",
        "SPOTIFY_TRACKS_TABLE": "spotify_track_metadata",
    },
    "CACHE": {
        "ALIAS": "default",
        "EXPIRE_AFTER_ACCESS": 60 * 10,  # 10 min
        "EXPIRE_AFTER_WRITE": 60 * 60,   # 1 h
    },
    "ITEM_LOADER": None,
    "HTTP_TIMEOUT": 10,
}


def get(name: str) -> Any:
    """Return ``LAVASRC[name]`` merged over its default."""
    user = getattr(settings, "LAVASRC", {}) or {}
    default = copy.deepcopy(DEFAULTS.get(name))
    if name not in user:
        return default
    value = user[name]
    if isinstance(default, dict) and isinstance(value, dict):
        default.update(value)
        return default
    return value


def section(name: str, key: str) -> Any:
    """Shortcut for one key of a nested section, e.g. ``section("SPOTIFY", "SP_DC")``."""
    return get(name).get(key)
