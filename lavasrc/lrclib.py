"""
LRCLIB lyrics
Docs: https://lrclib.net/docs

Exact match via ``/get`` (title, artist, album, duration), falling back to the
first ``/search`` hit. Synced LRC lines become timed ``LyricsLine`` objects.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from lavasrc.http import fetch_json, new_session
from lavasrc.tracks import UNKNOWN_AUTHOR, AudioLyrics, ExtendedAudioTrack, LyricsLine

logger = logging.getLogger(__name__)

LRCLIB_ROOT = "https://lrclib.net/api"
_LRC_LINE = re.compile(r"^\[(?P<m>\d+):(?P<s>\d+(?:\.\d+)?)\]\s?(?P<text>.*)$")


def parse_lrc(synced: str) -> List[LyricsLine]:
    """``[01:02.50] words`` → LyricsLine(62500, duration to next line, "words")"""
    lines: List[LyricsLine] = []
    for raw in synced.splitlines():
        m = _LRC_LINE.match(raw.strip())
        if not m:
            continue
        ts = int(round((int(m.group("m")) * 60 + float(m.group("s"))) * 1000))
        lines.append(LyricsLine(timestamp=ts, duration=None, line=m.group("text")))

    for cur, nxt in zip(lines, lines[1:]):
        cur.duration = max(0, nxt.timestamp - cur.timestamp)
    return lines


class LrcLibLyricsManager:

    source_name = "lrclib"

    def __init__(self, *, api_root: str = LRCLIB_ROOT, timeout: float = 10):
        self.api_root = api_root.rstrip("/")
        self.timeout = timeout
        self.session = new_session()

    def _lookup(self, track: ExtendedAudioTrack) -> Optional[Dict]:
        params = {"track_name": track.info.title}
        if track.info.author and track.info.author != UNKNOWN_AUTHOR:
            params["artist_name"] = track.info.author
        if track.album_name:
            params["album_name"] = track.album_name
        if track.info.length and not track.is_preview:
            params["duration"] = round(track.info.length / 1000)

        hit = fetch_json(self.session, f"{self.api_root}/get", params=params, timeout=self.timeout)
        if hit:
            return hit

        params.pop("duration", None)
        params.pop("album_name", None)
        results = fetch_json(self.session, f"{self.api_root}/search", params=params, timeout=self.timeout)
        return results[0] if results else None

    def load_lyrics(self, track: ExtendedAudioTrack) -> Optional[AudioLyrics]:
        hit = self._lookup(track)
        if not hit or hit.get("instrumental"):
            return None

        synced = hit.get("syncedLyrics")
        plain = hit.get("plainLyrics")
        if not synced and not plain:
            return None

        logger.debug("LRCLIB hit %s for %s", hit.get("id"), track.identifier)
        return AudioLyrics(
            source_name=self.source_name,
            provider="LRCLIB",
            text=plain,
            lines=parse_lrc(synced) if synced else [],
        )

    def shutdown(self):
        self.session.close()
