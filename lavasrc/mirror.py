"""
Mirroring
─────────
Catalog sources (Spotify, Apple Music, Deezer) only know metadata. To play a
track the host loads a *mirror* of it from one of its own sources, using
provider templates such as ``ytsearch:"%ISRC%"`` or ``ytsearch:%QUERY%``.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Union

from lavasrc.exceptions import TrackNotFoundError
from lavasrc.http import new_session
from lavasrc.providers.base import ItemLoader
from lavasrc.tracks import NO_TRACK, UNKNOWN_AUTHOR, AudioItem, AudioPlaylist, ExtendedAudioTrack

logger = logging.getLogger(__name__)

ISRC_PATTERN = "%ISRC%"
QUERY_PATTERN = "%QUERY%"

# searches that would only find catalog tracks again
CATALOG_SEARCH_PREFIXES = ("spsearch:", "sprec:", "amsearch:", "dzsearch:", "dzisrc:", "dzrec:")

LoaderLike = Union[ItemLoader, Callable[[str], Optional[AudioItem]]]


def _load(loader: LoaderLike, identifier: str) -> Optional[AudioItem]:
    if callable(loader):
        return loader(identifier)
    return loader.load_item(identifier)


def first_track(item: Optional[AudioItem]) -> Optional[AudioItem]:
    """Playlists (search results) collapse to their first track."""
    if isinstance(item, AudioPlaylist):
        return item.tracks[0] if item.tracks else None
    if item is None or item == NO_TRACK:
        return None
    return item


def track_query(track: ExtendedAudioTrack) -> str:
    query = track.info.title
    if track.info.author and track.info.author.lower() != UNKNOWN_AUTHOR.lower():
        query += " " + track.info.author
    return query


class DefaultMirroringAudioTrackResolver:

    def __init__(self, providers: Optional[Sequence[str]] = None):
        self.providers: List[str] = list(providers or [])
        if not self.providers:
            self.providers = ['ytsearch:"' + ISRC_PATTERN + '"', "ytsearch:" + QUERY_PATTERN]

    def identifiers_for(self, track: ExtendedAudioTrack) -> List[str]:
        """Concrete identifiers to try for ``track``, in order."""
        identifiers = []
        for provider in self.providers:
            if provider.startswith(CATALOG_SEARCH_PREFIXES):
                logger.warning("Can not use %s as mirror provider!", provider.split(":", 1)[0])
                continue

            if ISRC_PATTERN in provider:
                if not track.info.isrc:
                    logger.debug("Ignoring identifier \"%s\" because this track does not have an ISRC!", provider)
                    continue
                provider = provider.replace(ISRC_PATTERN, track.info.isrc.replace("-", ""))

            identifiers.append(provider.replace(QUERY_PATTERN, track_query(track)))
        return identifiers

    def apply(self, track: ExtendedAudioTrack, loader: LoaderLike) -> Optional[AudioItem]:
        for identifier in self.identifiers_for(track):
            item = first_track(_load(loader, identifier))
            if item is not None:
                logger.debug("Mirrored %s via %s", track.identifier, identifier)
                return item
        return None


class MirroringAudioSourceManager:
    """Base for catalog sources whose tracks are played through a mirror."""

    source_name = "mirror"

    def __init__(self,
                 item_loader: Optional[LoaderLike] = None,
                 resolver: Optional[DefaultMirroringAudioTrackResolver] = None,
                 *,
                 timeout: float = 10):
        self.item_loader = item_loader
        self.resolver = resolver or DefaultMirroringAudioTrackResolver()
        self.timeout = timeout
        self.session = new_session()

    def resolve(self, track: ExtendedAudioTrack) -> AudioItem:
        """Find something the host can actually play for ``track``."""
        if self.item_loader is None:
            raise TrackNotFoundError("No item loader configured for mirroring")

        if track.is_preview:
            if not track.preview_url:
                raise TrackNotFoundError(f"Track {track.identifier} has no preview")
            item = first_track(_load(self.item_loader, track.preview_url))
        else:
            item = self.resolver.apply(track, self.item_loader)

        if item is None:
            raise TrackNotFoundError(f"No matching track found for {track_query(track)}")
        return item

    def configure_requests(self, *, timeout: Optional[float] = None, headers: Optional[dict] = None):
        if timeout is not None:
            self.timeout = timeout
        if headers:
            self.session.headers.update(headers)

    def shutdown(self):
        try:
            self.session.close()
        except Exception as exc:
            logger.error("Failed to close HTTP session of %s: %s", self.source_name, exc)
