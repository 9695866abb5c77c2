"""
Plugin wiring
─────────────
``LavaSrcPlugin`` is what a host talks to. It is built from ``settings.LAVASRC``:
enabled catalog sources, lyrics sources, the optional metadata database and
the host's item loader used for mirroring.
"""
from __future__ import annotations

import functools
import logging
from typing import Iterable, List, Optional

from django.utils.module_loading import import_string

from lavasrc import conf
from lavasrc.exceptions import TrackNotFoundError
from lavasrc.mirror import DefaultMirroringAudioTrackResolver, LoaderLike, MirroringAudioSourceManager, first_track
from lavasrc.providers.base import AudioLyricsManager, AudioSearchManager, AudioSourceManager
from lavasrc.tracks import (
    AudioItem,
    AudioLyrics,
    ExtendedAudioTrack,
    SearchResult,
    SearchType,
)

logger = logging.getLogger(__name__)


class LavaSrcPlugin:

    def __init__(self,
                 sources: Iterable[AudioSourceManager] = (),
                 lyrics_managers: Iterable[AudioLyricsManager] = (),
                 *,
                 database=None):
        self.sources: List[AudioSourceManager] = list(sources)
        self.lyrics_managers: List[AudioLyricsManager] = list(lyrics_managers)
        self.database = database

    @classmethod
    def from_settings(cls) -> "LavaSrcPlugin":
        enabled = conf.get("SOURCES")
        lyrics_enabled = conf.get("LYRICS_SOURCES")
        timeout = float(conf.get("HTTP_TIMEOUT"))

        loader_path = conf.get("ITEM_LOADER")
        item_loader: Optional[LoaderLike] = import_string(loader_path) if loader_path else None
        resolver = DefaultMirroringAudioTrackResolver(conf.get("PROVIDERS"))

        sources: List[AudioSourceManager] = []
        lyrics: List[AudioLyricsManager] = []
        database = None

        if enabled.get("spotify") or lyrics_enabled.get("spotify"):
            from lavasrc.cache import TrackMetadataCache
            from lavasrc.spotify import SpotifySourceManager
            from lavasrc.spotify_api import SpotifyApiAccessor

            sp_cfg = conf.get("SPOTIFY")
            accessor = SpotifyApiAccessor(sp_cfg["CLIENT_ID"], sp_cfg["CLIENT_SECRET"])

            cache = TrackMetadataCache.from_settings()
            db_cfg = conf.get("DATABASE")
            if db_cfg["ENABLED"]:
                from lavasrc.database import Database

                database = Database(accessor, using=db_cfg["ALIAS"], cache=cache)

            spotify = SpotifySourceManager(
                accessor,
                sp_dc=sp_cfg["SP_DC"],
                country_code=sp_cfg["COUNTRY_CODE"],
                item_loader=item_loader,
                resolver=resolver,
                database=database,
                cache=cache,
                playlist_page_limit=int(sp_cfg["PLAYLIST_LOAD_LIMIT"]),
                album_page_limit=int(sp_cfg["ALBUM_LOAD_LIMIT"]),
                timeout=timeout,
            )
            if enabled.get("spotify"):
                sources.append(spotify)
            if lyrics_enabled.get("spotify"):
                lyrics.append(spotify)

        if enabled.get("applemusic"):
            from lavasrc.applemusic import AppleMusicSourceManager

            am_cfg = conf.get("APPLEMUSIC")
            sources.append(AppleMusicSourceManager(
                media_api_token=am_cfg["MEDIA_API_TOKEN"] or None,
                country_code=am_cfg["COUNTRY_CODE"],
                item_loader=item_loader,
                resolver=resolver,
                playlist_page_limit=int(am_cfg["PLAYLIST_LOAD_LIMIT"]),
                album_page_limit=int(am_cfg["ALBUM_LOAD_LIMIT"]),
                timeout=timeout,
            ))

        if enabled.get("deezer"):
            from lavasrc.deezer import DeezerSourceManager

            sources.append(DeezerSourceManager(
                api_root=conf.section("DEEZER", "API_ROOT"),
                item_loader=item_loader,
                resolver=resolver,
                timeout=timeout,
            ))

        if lyrics_enabled.get("lrclib"):
            from lavasrc.lrclib import LrcLibLyricsManager

            lyrics.append(LrcLibLyricsManager(api_root=conf.section("LRCLIB", "API_ROOT"), timeout=timeout))

        logger.info(
            "LavaSrc loaded sources: %s; lyrics: %s",
            ", ".join(s.source_name for s in sources) or "none",
            ", ".join(getattr(m, "source_name", type(m).__name__) for m in lyrics) or "none",
        )
        return cls(sources, lyrics, database=database)

    # ------------------------------------------------------------------
    def source(self, name: str) -> Optional[AudioSourceManager]:
        return next((s for s in self.sources if s.source_name == name), None)

    def load_item(self, identifier: str) -> Optional[AudioItem]:
        """First source that recognises ``identifier`` wins (``NO_TRACK`` counts)."""
        for src in self.sources:
            item = src.load_item(identifier)
            if item is not None:
                return item
        return None

    def load_search(self, query: str, types: Iterable[SearchType] = ()) -> Optional[SearchResult]:
        types = list(types)
        for src in self.sources:
            if isinstance(src, AudioSearchManager):
                result = src.load_search(query, types)
                if result is not None:
                    return result
        return None

    def load_lyrics(self, track: ExtendedAudioTrack) -> Optional[AudioLyrics]:
        for manager in self.lyrics_managers:
            lyrics = manager.load_lyrics(track)
            if lyrics is not None:
                return lyrics
        return None

    def load_lyrics_for(self, identifier: str) -> Optional[AudioLyrics]:
        """Load ``identifier`` first (playlists use their first track), then its lyrics."""
        track = first_track(self.load_item(identifier))
        if not isinstance(track, ExtendedAudioTrack):
            return None
        return self.load_lyrics(track)

    def resolve(self, track: ExtendedAudioTrack) -> AudioItem:
        src = self.source(track.source_name)
        if not isinstance(src, MirroringAudioSourceManager):
            raise TrackNotFoundError(f"No source named {track.source_name!r} is enabled")
        return src.resolve(track)

    def shutdown(self):
        seen = set()
        for component in [*self.sources, *self.lyrics_managers, self.database]:
            if component is None or id(component) in seen:
                continue
            seen.add(id(component))
            component.shutdown()


@functools.lru_cache(maxsize=None)
def get_plugin() -> LavaSrcPlugin:
    """Process-wide plugin, built on first use."""
    return LavaSrcPlugin.from_settings()
