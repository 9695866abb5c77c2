# lavasrc/deezer.py
"""
Deezer source
Docs: https://developers.deezer.com/api

* ``https://www.deezer.com/[cc/]{track|album|playlist|artist}/<id>``
* ``https://deezer.page.link/<code>`` share links
* ``dzsearch:<query>`` / ``dzisrc:<isrc>`` / ``dzrec:<track id>``

The public API answers unknown ids with ``200 {"error": {...}}``; those are
treated as "not found".
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from lavasrc.http import fetch_json, resolve_redirect
from lavasrc.mirror import DefaultMirroringAudioTrackResolver, LoaderLike, MirroringAudioSourceManager
from lavasrc.tracks import (
    NO_TRACK,
    UNKNOWN_AUTHOR,
    AudioItem,
    AudioPlaylist,
    AudioTrackInfo,
    ExtendedAudioTrack,
    PlaylistType,
)

_log = logging.getLogger(__name__)

DEEZER_ROOT = "https://api.deezer.com/2.0"
URL_PATTERN = re.compile(
    r"(https?://)?(www\.)?deezer\.com/((?P<countrycode>[a-zA-Z]{2})/)?"
    r"(?P<type>track|album|playlist|artist)/(?P<identifier>[0-9]+)"
)
SHARE_URL = "https://deezer.page.link/"
SEARCH_PREFIX = "dzsearch:"
ISRC_PREFIX = "dzisrc:"
RECOMMENDATIONS_PREFIX = "dzrec:"


class DeezerSourceManager(MirroringAudioSourceManager):

    source_name = "deezer"

    def __init__(self,
                 *,
                 api_root: str = DEEZER_ROOT,
                 item_loader: Optional[LoaderLike] = None,
                 resolver: Optional[DefaultMirroringAudioTrackResolver] = None,
                 timeout: float = 10):
        super().__init__(item_loader, resolver, timeout=timeout)
        self.api_root = api_root.rstrip("/")

    def _get(self, path: str, params: Optional[Dict] = None) -> Dict:
        data = fetch_json(self.session, f"{self.api_root}/{path}", params=params, timeout=self.timeout)
        if not data or "error" in data:
            if data:
                _log.debug("Deezer API error for %s: %s", path, data["error"])
            return {}
        return data

    # ------------------------------------------------------------
    def load_item(self, identifier: str) -> Optional[AudioItem]:
        if identifier.startswith(SEARCH_PREFIX):
            return self.search(identifier[len(SEARCH_PREFIX):].strip())

        if identifier.startswith(ISRC_PREFIX):
            return self.get_track_by_isrc(identifier[len(ISRC_PREFIX):].strip())

        if identifier.startswith(RECOMMENDATIONS_PREFIX):
            return self.get_recommendations(identifier[len(RECOMMENDATIONS_PREFIX):].strip())

        if identifier.startswith(SHARE_URL):
            location = resolve_redirect(self.session, identifier, timeout=self.timeout)
            if location and URL_PATTERN.search(location):
                return self.load_item(location)
            return None

        match = URL_PATTERN.search(identifier)
        if not match:
            return None

        id_ = match.group("identifier")
        kind = match.group("type")
        if kind == "track":
            return self.get_track(id_)
        if kind == "album":
            return self.get_album(id_)
        if kind == "playlist":
            return self.get_playlist(id_)
        if kind == "artist":
            return self.get_artist(id_)
        return None

    def search(self, query: str, limit: int = 25) -> AudioItem:
        """text query → search results playlist"""
        data = self._get("search", {"q": query, "limit": limit})
        tracks = self.parse_tracks(data.get("data", []))
        if not tracks:
            return NO_TRACK
        return AudioPlaylist(f"Deezer Search: {query}", tracks, is_search_result=True)

    def get_track(self, track_id: str) -> AudioItem:
        data = self._get(f"track/{track_id}")
        return self.parse_track(data) if data else NO_TRACK

    def get_track_by_isrc(self, isrc: str) -> AudioItem:
        data = self._get(f"track/isrc:{isrc}")
        return self.parse_track(data) if data else NO_TRACK

    def get_recommendations(self, track_id: str) -> AudioItem:
        data = self._get(f"track/{track_id}/radio", {"limit": 50})
        tracks = self.parse_tracks(data.get("data", []))
        if not tracks:
            return NO_TRACK
        return AudioPlaylist("Deezer Recommendations:", tracks, PlaylistType.RECOMMENDATIONS)

    def get_album(self, album_id: str) -> AudioItem:
        album = self._get(f"album/{album_id}")
        if not album:
            return NO_TRACK
        tracks_js = self._get(f"album/{album_id}/tracks", {"limit": 10000})
        raw = [dict(t, album=dict(t.get("album") or {}, **_album_stub(album))) for t in tracks_js.get("data", [])]
        tracks = self.parse_tracks(raw)
        if not tracks:
            return NO_TRACK
        return AudioPlaylist(
            album.get("title"), tracks, PlaylistType.ALBUM, album.get("link"),
            album.get("cover_xl") or album.get("cover_big"),
            (album.get("artist") or {}).get("name"), album.get("nb_tracks"),
        )

    def get_playlist(self, playlist_id: str) -> AudioItem:
        playlist = self._get(f"playlist/{playlist_id}")
        if not playlist:
            return NO_TRACK
        tracks_js = self._get(f"playlist/{playlist_id}/tracks", {"limit": 10000})
        tracks = self.parse_tracks(tracks_js.get("data", []))
        if not tracks:
            return NO_TRACK
        return AudioPlaylist(
            playlist.get("title"), tracks, PlaylistType.PLAYLIST, playlist.get("link"),
            playlist.get("picture_xl") or playlist.get("picture_big"),
            (playlist.get("creator") or {}).get("name"), playlist.get("nb_tracks"),
        )

    def get_artist(self, artist_id: str) -> AudioItem:
        artist = self._get(f"artist/{artist_id}")
        if not artist:
            return NO_TRACK
        top = self._get(f"artist/{artist_id}/top", {"limit": 50})
        tracks = self.parse_tracks(top.get("data", []), artist.get("picture_xl"))
        if not tracks:
            return NO_TRACK
        return AudioPlaylist(
            f"{artist.get('name')}'s Top Tracks", tracks, PlaylistType.ARTIST, artist.get("link"),
            artist.get("picture_xl"), artist.get("name"), len(tracks),
        )

    # ------------------------------------------------------------
    def parse_tracks(self, raw: List[Dict], artist_artwork: Optional[str] = None) -> List[ExtendedAudioTrack]:
        # readable=False tracks are not streamable in any region
        return [self.parse_track(t, artist_artwork) for t in raw if t and t.get("readable", True)]

    def parse_track(self, t: Dict, artist_artwork: Optional[str] = None) -> ExtendedAudioTrack:
        album = t.get("album") or {}
        artist = t.get("artist") or {}
        return ExtendedAudioTrack(
            AudioTrackInfo(
                title=t.get("title") or "",
                author=artist.get("name") or UNKNOWN_AUTHOR,
                length=int(t.get("duration") or 0) * 1000,
                identifier=str(t["id"]),
                is_stream=False,
                uri=t.get("link"),
                artwork_url=album.get("cover_xl") or album.get("cover_big"),
                isrc=t.get("isrc"),
            ),
            source_name=self.source_name,
            album_name=album.get("title"),
            album_url=album.get("link"),
            artist_url=artist.get("link"),
            artist_artwork_url=artist_artwork or artist.get("picture_xl"),
            preview_url=t.get("preview"),  # 30-sec MP3
            is_preview=False,
        )


def _album_stub(album: Dict) -> Dict:
    """album fields missing from /album/<id>/tracks items"""
    return {
        "title": album.get("title"),
        "link": album.get("link"),
        "cover_xl": album.get("cover_xl"),
        "cover_big": album.get("cover_big"),
    }
