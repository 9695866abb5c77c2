# lavasrc/providers/base.py
from typing import Iterable, Optional, Protocol, runtime_checkable

from lavasrc.tracks import AudioItem, AudioLyrics, ExtendedAudioTrack, SearchResult, SearchType


@runtime_checkable
class AudioSourceManager(Protocol):
    """Turns an identifier (URL or prefixed query) into tracks / playlists."""
    source_name: str

    def load_item(self, identifier: str) -> Optional[AudioItem]: ...
    def shutdown(self) -> None: ...


@runtime_checkable
class AudioSearchManager(Protocol):
    """Structured search over albums / artists / playlists / tracks."""
    def load_search(self, query: str, types: Iterable[SearchType]) -> Optional[SearchResult]: ...


@runtime_checkable
class AudioLyricsManager(Protocol):
    """Lyrics for any track, not only the manager's own."""
    def load_lyrics(self, track: ExtendedAudioTrack) -> Optional[AudioLyrics]: ...


@runtime_checkable
class ItemLoader(Protocol):
    """The host's own loader; mirrored tracks are played through it."""
    def load_item(self, identifier: str) -> Optional[AudioItem]: ...
