"""
Apple Music source
──────────────────
Catalog lookups through the Apple Music API (``api.music.apple.com``).

The API needs a *media API token* (a JWT). A configured token is used until it
expires; otherwise the public token embedded in the music.apple.com web
player bundle is scraped:

1. fetch ``https://music.apple.com`` and find the ``index-*.js`` module script
2. fetch that bundle and grab the first ``ey….….…`` JWT in it

The token's ``root_https_origin`` claim gives the ``Origin`` header to send.
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Dict, Iterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from lavasrc.exceptions import SourceError, TokenError
from lavasrc.http import fetch_json, fetch_text
from lavasrc.mirror import DefaultMirroringAudioTrackResolver, LoaderLike, MirroringAudioSourceManager
from lavasrc.tokens import AccessToken
from lavasrc.tracks import (
    NO_TRACK,
    UNKNOWN_AUTHOR,
    AudioItem,
    AudioPlaylist,
    AudioTrackInfo,
    ExtendedAudioTrack,
    PlaylistType,
)

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(
    r"(https?://)?(www\.)?music\.apple\.com/((?P<countrycode>[a-zA-Z]{2})/)?"
    r"(?P<type>album|playlist|artist|song)(/[^/?#]+)?/(?P<identifier>[a-zA-Z0-9\-.]+)"
    r"(\?i=(?P<identifier2>\d+))?"
)
SEARCH_PREFIX = "amsearch:"
PREVIEW_PREFIX = "amprev:"
PREVIEW_LENGTH = 30000
API_BASE = "https://api.music.apple.com/v1/"
WEB_PLAYER_URL = "https://music.apple.com"
MAX_PAGE_ITEMS = 300
ARTWORK_SIZE = 1000

_SCRIPT_SRC = re.compile(r"/assets/index.*\.js")
_TOKEN = re.compile(r"(ey[\w-]+)\.([\w-]+)\.([\w-]+)")


def artwork_url(artwork: Optional[dict]) -> Optional[str]:
    """Apple artwork urls are templates: ``…/{w}x{h}bb.jpg``."""
    if not artwork or not artwork.get("url"):
        return None
    width = min(int(artwork.get("width") or ARTWORK_SIZE), ARTWORK_SIZE)
    height = min(int(artwork.get("height") or ARTWORK_SIZE), ARTWORK_SIZE)
    return artwork["url"].replace("{w}", str(width)).replace("{h}", str(height))


class MediaApiTokenManager:
    """Keeps a valid media API token, scraping a fresh one when needed."""

    def __init__(self, session, configured_token: Optional[str] = None, timeout: float = 10):
        self._session = session
        self._timeout = timeout
        self._lock = threading.Lock()
        self._token: Optional[AccessToken] = None
        if configured_token:
            self._token = AccessToken.from_jwt(configured_token)

    def _origin(self) -> Optional[str]:
        origins = (self._token.claims.get("root_https_origin") if self._token else None) or []
        if isinstance(origins, str):
            origins = [origins]
        return origins[0] if origins else None

    def fetch_token(self) -> AccessToken:
        try:
            html = fetch_text(self._session, WEB_PLAYER_URL, timeout=self._timeout)
            soup = BeautifulSoup(html, "html.parser")
            script = soup.find("script", attrs={"type": "module", "src": _SCRIPT_SRC})
            if script is None:
                raise TokenError("Cannot find the web player script on music.apple.com")
            bundle = fetch_text(self._session, urljoin(WEB_PLAYER_URL, script["src"]), timeout=self._timeout)
        except SourceError as exc:
            raise TokenError("Cannot fetch the Apple Music web player") from exc

        match = _TOKEN.search(bundle)
        if not match:
            raise TokenError("Cannot find a media API token in the web player script")
        logger.debug("Fetched a new Apple Music media API token")
        return AccessToken.from_jwt(match.group(0))

    def headers(self) -> Dict[str, str]:
        with self._lock:
            if self._token is None or self._token.is_expired():
                self._token = self.fetch_token()
            headers = {"Authorization": f"Bearer {self._token.value}"}
            origin = self._origin()
            if origin:
                headers["Origin"] = f"https://{origin}"
            return headers


class AppleMusicSourceManager(MirroringAudioSourceManager):

    source_name = "applemusic"

    def __init__(self,
                 *,
                 media_api_token: Optional[str] = None,
                 country_code: Optional[str] = None,
                 item_loader: Optional[LoaderLike] = None,
                 resolver: Optional[DefaultMirroringAudioTrackResolver] = None,
                 playlist_page_limit: int = 0,
                 album_page_limit: int = 0,
                 timeout: float = 10):
        super().__init__(item_loader, resolver, timeout=timeout)
        self.country_code = (country_code or "us").lower()
        self.playlist_page_limit = playlist_page_limit
        self.album_page_limit = album_page_limit
        self.tokens = MediaApiTokenManager(self.session, media_api_token, timeout)

    def _get(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        url = path if path.startswith("http") else urljoin(API_BASE, path.lstrip("/"))
        return fetch_json(self.session, url, params=params, headers=self.tokens.headers(), timeout=self.timeout)

    def _paged(self, path: str, page_limit: int) -> Iterator[dict]:
        """Follow ``next`` links; ``page_limit`` 0 means unlimited."""
        url: Optional[str] = path
        params: Optional[dict] = {"limit": MAX_PAGE_ITEMS}
        pages = 0
        while url:
            page = self._get(url, params)
            if not page:
                return
            yield from page.get("data") or []
            pages += 1
            if page_limit and pages >= page_limit:
                return
            nxt = page.get("next")
            # next links are host-relative: /v1/catalog/us/albums/1/tracks?offset=300
            url = urljoin(API_BASE, nxt) if nxt else None
            params = None

    # ------------------------------------------------------------------
    def load_item(self, identifier: str) -> Optional[AudioItem]:
        preview = identifier.startswith(PREVIEW_PREFIX)
        if preview:
            identifier = identifier[len(PREVIEW_PREFIX):]

        if identifier.startswith(SEARCH_PREFIX):
            return self.get_search(identifier[len(SEARCH_PREFIX):].strip(), preview)

        match = URL_PATTERN.search(identifier)
        if not match:
            return None

        country = (match.group("countrycode") or self.country_code).lower()
        id_ = match.group("identifier")
        kind = match.group("type")
        if kind == "song":
            return self.get_song(id_, country, preview)
        if kind == "album":
            song_id = match.group("identifier2")
            if song_id:
                return self.get_song(song_id, country, preview)
            return self.get_album(id_, country, preview)
        if kind == "playlist":
            return self.get_playlist(id_, country, preview)
        if kind == "artist":
            return self.get_artist(id_, country, preview)
        return None

    def get_search(self, query: str, preview: bool) -> AudioItem:
        js = self._get(f"catalog/{self.country_code}/search",
                       {"term": query, "limit": 25, "types": "songs"})
        songs = (((js or {}).get("results") or {}).get("songs") or {}).get("data") or []
        if not songs:
            return NO_TRACK
        return AudioPlaylist(f"Apple Music Search: {query}", self.parse_tracks(songs, preview),
                             is_search_result=True)

    def get_song(self, id_: str, country: str, preview: bool) -> AudioItem:
        js = self._get(f"catalog/{country}/songs/{id_}")
        data = (js or {}).get("data") or []
        if not data:
            return NO_TRACK
        return self.parse_track(data[0], preview)

    def get_album(self, id_: str, country: str, preview: bool) -> AudioItem:
        js = self._get(f"catalog/{country}/albums/{id_}")
        data = (js or {}).get("data") or []
        if not data:
            return NO_TRACK
        album = data[0]
        attrs = album.get("attributes") or {}

        songs = list(self._paged(f"catalog/{country}/albums/{id_}/tracks", self.album_page_limit))
        tracks = self.parse_tracks(songs, preview)
        if not tracks:
            return NO_TRACK

        return AudioPlaylist(
            attrs.get("name"), tracks, PlaylistType.ALBUM, attrs.get("url"),
            artwork_url(attrs.get("artwork")), attrs.get("artistName"), attrs.get("trackCount"),
        )

    def get_playlist(self, id_: str, country: str, preview: bool) -> AudioItem:
        js = self._get(f"catalog/{country}/playlists/{id_}")
        data = (js or {}).get("data") or []
        if not data:
            return NO_TRACK
        attrs = data[0].get("attributes") or {}

        songs = list(self._paged(f"catalog/{country}/playlists/{id_}/tracks", self.playlist_page_limit))
        tracks = self.parse_tracks(songs, preview)
        if not tracks:
            return NO_TRACK

        return AudioPlaylist(
            attrs.get("name"), tracks, PlaylistType.PLAYLIST, attrs.get("url"),
            artwork_url(attrs.get("artwork")), attrs.get("curatorName"), len(tracks),
        )

    def get_artist(self, id_: str, country: str, preview: bool) -> AudioItem:
        js = self._get(f"catalog/{country}/artists/{id_}/view/top-songs")
        songs = (js or {}).get("data") or []
        if not songs:
            return NO_TRACK

        artist_js = self._get(f"catalog/{country}/artists/{id_}")
        artist = ((artist_js or {}).get("data") or [{}])[0]
        attrs = artist.get("attributes") or {}
        artist_art = artwork_url(attrs.get("artwork"))
        author = attrs.get("name") or (songs[0].get("attributes") or {}).get("artistName") or UNKNOWN_AUTHOR

        return AudioPlaylist(
            f"{author}'s Top Tracks", self.parse_tracks(songs, preview, artist_art),
            PlaylistType.ARTIST, attrs.get("url"), artist_art, author, len(songs),
        )

    def parse_tracks(self, songs: List[dict], preview: bool,
                     artist_artwork: Optional[str] = None) -> List[ExtendedAudioTrack]:
        return [self.parse_track(s, preview, artist_artwork) for s in songs
                if s and s.get("type", "songs") == "songs"]

    def parse_track(self, song: dict, preview: bool,
                    artist_artwork: Optional[str] = None) -> ExtendedAudioTrack:
        attrs = song.get("attributes") or {}
        previews = attrs.get("previews") or []
        song_url = attrs.get("url")
        album_url = song_url.split("?", 1)[0] if song_url and "?i=" in song_url else None

        return ExtendedAudioTrack(
            AudioTrackInfo(
                title=attrs.get("name") or "",
                author=attrs.get("artistName") or UNKNOWN_AUTHOR,
                length=PREVIEW_LENGTH if preview else int(attrs.get("durationInMillis") or 0),
                identifier=song.get("id") or "",
                is_stream=False,
                uri=song_url,
                artwork_url=artwork_url(attrs.get("artwork")),
                isrc=attrs.get("isrc"),
            ),
            source_name=self.source_name,
            album_name=attrs.get("albumName"),
            album_url=album_url,
            artist_url=None,
            artist_artwork_url=artist_artwork,
            preview_url=previews[0].get("url") if previews else None,
            is_preview=preview,
        )
