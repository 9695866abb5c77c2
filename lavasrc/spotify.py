"""
Spotify source
──────────────
Identifiers understood by ``SpotifySourceManager.load_item``:

* ``https://open.spotify.com/[region/][user/<u>/]{track|album|playlist|artist}/<id>``
* ``https://spotify.link/<code>`` share links (followed once)
* ``spsearch:<query>``            → search results playlist
* ``sprec:seed_tracks=<id>&...``   → recommendations
* ``spprev:<any of the above>``    → same, but as 30 s previews

Upstream "not found" answers (and any other Web API error) give ``NO_TRACK``;
transport failures raise ``SourceError``.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests
import spotipy

from lavasrc.cache import TrackMetadataCache
from lavasrc.database import Database, _chunk
from lavasrc.exceptions import SourceError
from lavasrc.http import fetch_json, resolve_redirect
from lavasrc.mirror import DefaultMirroringAudioTrackResolver, LoaderLike, MirroringAudioSourceManager
from lavasrc.spotify_api import SpotifyApiAccessor, WebPlayerTokenProvider
from lavasrc.tracks import (
    LOCAL_IDENTIFIER,
    NO_TRACK,
    UNKNOWN_AUTHOR,
    AudioItem,
    AudioLyrics,
    AudioPlaylist,
    AudioTrackInfo,
    ExtendedAudioTrack,
    LyricsLine,
    PlaylistType,
    SearchResult,
    SearchType,
)

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(
    r"(https?://)(www\.)?open\.spotify\.com/((?P<region>[a-zA-Z-]+)/)?"
    r"(user/(?P<user>[a-zA-Z0-9-_]+)/)?"
    r"(?P<type>track|album|playlist|artist)/(?P<identifier>[a-zA-Z0-9-_]+)"
)
SEARCH_PREFIX = "spsearch:"
RECOMMENDATIONS_PREFIX = "sprec:"
PREVIEW_PREFIX = "spprev:"
PREVIEW_LENGTH = 30000
SHARE_URL = "https://spotify.link/"
PLAYLIST_MAX_PAGE_ITEMS = 100
ALBUM_MAX_PAGE_ITEMS = 50
CLIENT_API_BASE = "https://spclient.wg.spotify.com/"
SEARCH_TYPES = (SearchType.ALBUM, SearchType.ARTIST, SearchType.PLAYLIST, SearchType.TRACK)

# sprec: parameters spotipy expects as lists
_SEED_KEYS = ("seed_artists", "seed_genres", "seed_tracks")


def _first_image(images: Optional[Sequence[dict]]) -> Optional[str]:
    return images[0].get("url") if images else None


def _spotify_url(obj: Optional[dict]) -> Optional[str]:
    return ((obj or {}).get("external_urls") or {}).get("spotify")


class SpotifySourceManager(MirroringAudioSourceManager):

    source_name = "spotify"

    def __init__(self,
                 accessor: SpotifyApiAccessor,
                 *,
                 sp_dc: Optional[str] = None,
                 country_code: Optional[str] = None,
                 item_loader: Optional[LoaderLike] = None,
                 resolver: Optional[DefaultMirroringAudioTrackResolver] = None,
                 database: Optional[Database] = None,
                 cache: Optional[TrackMetadataCache] = None,
                 playlist_page_limit: int = 6,
                 album_page_limit: int = 6,
                 timeout: float = 10):
        super().__init__(item_loader, resolver, timeout=timeout)
        self.accessor = accessor
        self.database = database
        # the database brings its own cache
        self.cache = database.cache if database is not None else cache
        self.country_code = country_code or "US"
        self.playlist_page_limit = playlist_page_limit
        self.album_page_limit = album_page_limit
        self.web_player = WebPlayerTokenProvider(sp_dc, session=self.session, timeout=timeout)

    @property
    def sp(self) -> spotipy.Spotify:
        return self.accessor.client

    def _call(self, method: str, *args, **kwargs) -> Optional[Any]:
        """spotipy call; Web API errors → ``None``, transport errors → ``SourceError``."""
        try:
            return getattr(self.sp, method)(*args, **kwargs)
        except spotipy.SpotifyException as exc:
            logger.debug("Spotify %s%s: %s %s", method, args, exc.http_status, exc.msg)
            return None
        except requests.exceptions.RequestException as exc:
            raise SourceError(f"Spotify {method} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------
    def load_item(self, identifier: str) -> Optional[AudioItem]:
        preview = identifier.startswith(PREVIEW_PREFIX)
        return self._load_item(identifier[len(PREVIEW_PREFIX):] if preview else identifier, preview)

    def _load_item(self, identifier: str, preview: bool) -> Optional[AudioItem]:
        if identifier.startswith(SEARCH_PREFIX):
            return self.get_search(identifier[len(SEARCH_PREFIX):].strip(), preview)

        if identifier.startswith(RECOMMENDATIONS_PREFIX):
            return self.get_recommendations(identifier[len(RECOMMENDATIONS_PREFIX):].strip(), preview)

        if identifier.startswith(SHARE_URL):
            location = resolve_redirect(self.session, identifier, timeout=self.timeout)
            if location and location.startswith("https://open.spotify.com/"):
                return self._load_item(location, preview)
            return None

        match = URL_PATTERN.search(identifier)
        if not match:
            return None

        id_ = match.group("identifier")
        kind = match.group("type")
        if kind == "album":
            return self.get_album(id_, preview)
        if kind == "track":
            return self.get_track(id_, preview)
        if kind == "playlist":
            return self.get_playlist(id_, preview)
        if kind == "artist":
            return self.get_artist(id_, preview)
        return None

    def _artist_images(self, artist_ids: Iterable[str]) -> Dict[str, List[dict]]:
        images: Dict[str, List[dict]] = {}
        ids = [a for a in dict.fromkeys(artist_ids) if a]
        for chunk in _chunk(ids):
            res = self._call("artists", chunk) or {}
            for artist in res.get("artists") or []:
                if artist:
                    images[artist["id"]] = artist.get("images") or []
        return images

    def _several_tracks(self, track_ids: List[str]) -> List[dict]:
        if self.database is not None:
            return self.database.get_spotify_track_info(*track_ids)

        found: Dict[str, dict] = {}
        if self.cache is not None:
            for tid in track_ids:
                cached = self.cache.get(tid)
                if cached is not None:
                    found[tid] = cached

        missing = [tid for tid in dict.fromkeys(track_ids) if tid not in found]
        for chunk in _chunk(missing):
            res = self._call("tracks", chunk) or {}
            for track in res.get("tracks") or []:
                if track and track.get("id"):
                    found[track["id"]] = track
                    if self.cache is not None:
                        self.cache.put(track["id"], track)

        return [found[tid] for tid in track_ids if tid in found]

    def _single_track(self, id_: str) -> Optional[dict]:
        if self.database is not None:
            found = self.database.get_spotify_track_info(id_)
            return found[0] if found else None
        if self.cache is None:
            return self._call("track", id_)
        return self.cache.get_or_set(id_, lambda: self._call("track", id_))

    def get_search(self, query: str, preview: bool) -> AudioItem:
        res = self._call("search", query, limit=20, type="track")
        items = ((res or {}).get("tracks") or {}).get("items") or []
        items = [t for t in items if t]
        if not items:
            return NO_TRACK

        images = self._artist_images(t["artists"][0]["id"] for t in items if t.get("artists"))
        tracks = [
            self.parse_track(t, preview, images.get(t["artists"][0]["id"]) if t.get("artists") else None)
            for t in items
        ]
        return AudioPlaylist(f"Search results for: {query}", tracks, is_search_result=True)

    def get_recommendations(self, query: str, preview: bool) -> AudioItem:
        params: Dict[str, Any] = {}
        for part in query.split("&"):
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            if key in _SEED_KEYS:
                params[key] = [v for v in value.split(",") if v]
            elif key == "limit":
                try:
                    params[key] = int(value)
                except ValueError:
                    logger.debug("Bad sprec limit: %s", value)
                    return NO_TRACK
            else:
                params[key] = value

        res = self._call("recommendations", **params)
        items = [t for t in (res or {}).get("tracks") or [] if t]
        if not items:
            return NO_TRACK

        return AudioPlaylist(
            "Spotify Recommendations:",
            self.parse_track_items(items, preview),
            PlaylistType.RECOMMENDATIONS,
        )

    def get_album(self, id_: str, preview: bool) -> AudioItem:
        album = self._call("album", id_)
        if album is None:
            return NO_TRACK

        artist = self._call("artist", album["artists"][0]["id"]) if album.get("artists") else None
        artist_images = (artist or {}).get("images") or []

        tracks: List[ExtendedAudioTrack] = []
        offset = 0
        pages = 0
        while True:
            page = self._call("album_tracks", id_, limit=ALBUM_MAX_PAGE_ITEMS, offset=offset)
            if page is None:
                break
            offset += ALBUM_MAX_PAGE_ITEMS

            ids = [t["id"] for t in page.get("items") or [] if t and t.get("id")]
            for track in self._several_tracks(ids):
                # album tracks come back with the track's own album object; pin the requested album
                track = dict(track)
                track["album"] = dict(track.get("album") or {},
                                      name=album.get("name"),
                                      images=album.get("images") or [],
                                      external_urls={"spotify": _spotify_url(album)})
                tracks.append(self.parse_track(track, preview, artist_images))

            pages += 1
            if not page.get("next") or pages >= self.album_page_limit:
                break

        if not tracks:
            return NO_TRACK

        return AudioPlaylist(
            album.get("name"),
            tracks,
            PlaylistType.ALBUM,
            _spotify_url(album),
            _first_image(album.get("images")),
            album["artists"][0]["name"] if album.get("artists") else None,
            album.get("total_tracks") or (album.get("tracks") or {}).get("total"),
        )

    def get_playlist(self, id_: str, preview: bool) -> AudioItem:
        playlist = self._call("playlist", id_)
        if playlist is None:
            return NO_TRACK

        tracks: List[ExtendedAudioTrack] = []
        offset = 0
        pages = 0
        while True:
            page = self._call("playlist_items", id_, limit=PLAYLIST_MAX_PAGE_ITEMS, offset=offset)
            if page is None:
                break
            offset += PLAYLIST_MAX_PAGE_ITEMS

            for value in page.get("items") or []:
                track = (value or {}).get("track")
                if not track or track.get("type") == "episode":
                    continue
                tracks.append(self.parse_track(track, preview))

            pages += 1
            if not page.get("next") or pages >= self.playlist_page_limit:
                break

        if not tracks:
            return NO_TRACK

        return AudioPlaylist(
            playlist.get("name"),
            tracks,
            PlaylistType.PLAYLIST,
            _spotify_url(playlist),
            _first_image(playlist.get("images")),
            (playlist.get("owner") or {}).get("display_name"),
            (playlist.get("tracks") or {}).get("total"),
        )

    def get_artist(self, id_: str, preview: bool) -> AudioItem:
        artist = self._call("artist", id_)
        if artist is None:
            return NO_TRACK

        res = self._call("artist_top_tracks", id_, country=self.country_code)
        items = [t for t in (res or {}).get("tracks") or [] if t]
        if not items:
            return NO_TRACK

        images = artist.get("images") or []
        return AudioPlaylist(
            f"{artist.get('name')}'s Top Tracks",
            [self.parse_track(t, preview, images) for t in items],
            PlaylistType.ARTIST,
            _spotify_url(artist),
            _first_image(images),
            artist.get("name"),
            len(items),
        )

    def get_track(self, id_: str, preview: bool) -> AudioItem:
        track = self._single_track(id_)
        if track is None:
            return NO_TRACK

        artist = self._call("artist", track["artists"][0]["id"]) if track.get("artists") else None
        return self.parse_track(track, preview, (artist or {}).get("images"))

    def parse_track_items(self, items: Iterable[dict], preview: bool) -> List[ExtendedAudioTrack]:
        return [self.parse_track(t, preview) for t in items]

    def parse_track(self,
                    track: dict,
                    preview: bool,
                    artist_images: Optional[Sequence[dict]] = None) -> ExtendedAudioTrack:
        artists = track.get("artists") or [{}]
        album = track.get("album") or {}
        author = artists[0].get("name") or UNKNOWN_AUTHOR

        return ExtendedAudioTrack(
            AudioTrackInfo(
                title=track.get("name") or "",
                author=author,
                length=PREVIEW_LENGTH if preview else int(track.get("duration_ms") or 0),
                identifier=track.get("id") or LOCAL_IDENTIFIER,
                is_stream=False,
                uri=_spotify_url(track),
                artwork_url=_first_image(album.get("images")),
                isrc=(track.get("external_ids") or {}).get("isrc"),
            ),
            source_name=self.source_name,
            album_name=album.get("name"),
            album_url=_spotify_url(album),
            artist_url=_spotify_url(artists[0]),
            artist_artwork_url=_first_image(artist_images),
            preview_url=track.get("preview_url"),
            is_preview=preview,
        )

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------
    def load_search(self, query: str, types: Iterable[SearchType]) -> Optional[SearchResult]:
        if query.startswith(SEARCH_PREFIX):
            return self.get_autocomplete(query[len(SEARCH_PREFIX):], types)
        return None

    def get_autocomplete(self, query: str, types: Iterable[SearchType]) -> SearchResult:
        wanted = [t for t in types if t in SEARCH_TYPES] or list(SEARCH_TYPES)
        res = self._call("search", query, type=",".join(t.value for t in wanted))
        if res is None:
            return SearchResult.EMPTY

        albums = [
            AudioPlaylist(
                a.get("name"), [], PlaylistType.ALBUM, _spotify_url(a), _first_image(a.get("images")),
                a["artists"][0]["name"] if a.get("artists") else None, a.get("total_tracks"),
            )
            for a in ((res.get("albums") or {}).get("items") or []) if a
        ]
        artists = [
            AudioPlaylist(
                f"{a.get('name')}'s Top Tracks", [], PlaylistType.ARTIST, _spotify_url(a),
                _first_image(a.get("images")), a.get("name"), None,
            )
            for a in ((res.get("artists") or {}).get("items") or []) if a
        ]
        playlists = [
            AudioPlaylist(
                p.get("name"), [], PlaylistType.PLAYLIST, _spotify_url(p), _first_image(p.get("images")),
                (p.get("owner") or {}).get("display_name"), (p.get("tracks") or {}).get("total"),
            )
            for p in ((res.get("playlists") or {}).get("items") or []) if p
        ]
        tracks = self.parse_track_items(
            (t for t in ((res.get("tracks") or {}).get("items") or []) if t), False
        )
        return SearchResult(tracks, albums, artists, playlists, [])

    # ------------------------------------------------------------------
    # lyrics
    # ------------------------------------------------------------------
    def load_lyrics(self, track: ExtendedAudioTrack) -> Optional[AudioLyrics]:
        spotify_id = track.identifier if track.source_name == self.source_name else ""

        if not spotify_id:
            item: AudioItem = NO_TRACK
            if track.info.isrc:
                item = self.get_search(f"isrc:{track.info.isrc}", False)
            if item == NO_TRACK:
                item = self.get_search(f"{track.info.title} {track.info.author}", False)

            if isinstance(item, ExtendedAudioTrack):
                spotify_id = item.identifier
            elif isinstance(item, AudioPlaylist) and item.tracks:
                spotify_id = item.tracks[0].identifier

        if not spotify_id or spotify_id == LOCAL_IDENTIFIER:
            return None
        return self.get_lyrics(spotify_id)

    def get_lyrics(self, id_: str) -> Optional[AudioLyrics]:
        js = fetch_json(
            self.session,
            f"{CLIENT_API_BASE}color-lyrics/v2/track/{id_}",
            params={"format": "json", "vocalRemoval": "false"},
            headers={
                "App-Platform": "WebPlayer",
                "Authorization": f"Bearer {self.web_player.get_token()}",
            },
            timeout=self.timeout,
        )
        if not js:
            return None

        lines = [
            LyricsLine(timestamp=int(line.get("startTimeMs") or 0), duration=None, line=line.get("words") or "")
            for line in ((js.get("lyrics") or {}).get("lines") or [])
        ]
        return AudioLyrics(self.source_name, "MusixMatch", None, lines)
