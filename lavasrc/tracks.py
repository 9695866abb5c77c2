"""
Normalized track / playlist / search / lyrics objects
─────────────────────────────────────────────────────
Every source maps its provider-specific JSON into these so the host only ever
sees one shape. Lengths and timestamps are milliseconds.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

UNKNOWN_AUTHOR = "Unknown"
LOCAL_IDENTIFIER = "local"


@dataclass
class AudioTrackInfo:
    title: str
    author: str
    length: int
    identifier: str
    is_stream: bool = False
    uri: Optional[str] = None
    artwork_url: Optional[str] = None
    isrc: Optional[str] = None


@dataclass
class ExtendedAudioTrack:
    """A catalog track: metadata only, played through a mirror."""

    info: AudioTrackInfo
    source_name: str
    album_name: Optional[str] = None
    album_url: Optional[str] = None
    artist_url: Optional[str] = None
    artist_artwork_url: Optional[str] = None
    preview_url: Optional[str] = None
    is_preview: bool = False

    @property
    def identifier(self) -> str:
        return self.info.identifier

    @property
    def is_local(self) -> bool:
        return self.info.identifier == LOCAL_IDENTIFIER

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtendedAudioTrack":
        payload = dict(data)
        payload["info"] = AudioTrackInfo(**payload["info"])
        return cls(**payload)


class PlaylistType(str, enum.Enum):
    ALBUM = "album"
    PLAYLIST = "playlist"
    ARTIST = "artist"
    RECOMMENDATIONS = "recommendations"


@dataclass
class AudioPlaylist:
    name: str
    tracks: List[ExtendedAudioTrack] = field(default_factory=list)
    type: Optional[PlaylistType] = None
    url: Optional[str] = None
    artwork_url: Optional[str] = None
    author: Optional[str] = None
    total_tracks: Optional[int] = None
    is_search_result: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value if self.type else None,
            "url": self.url,
            "artwork_url": self.artwork_url,
            "author": self.author,
            "total_tracks": self.total_tracks,
            "is_search_result": self.is_search_result,
            "tracks": [t.to_dict() for t in self.tracks],
        }


@dataclass(frozen=True)
class AudioReference:
    identifier: Optional[str] = None
    title: Optional[str] = None


#: Returned by every loader when the upstream has nothing for an identifier.
NO_TRACK = AudioReference()

AudioItem = Union[ExtendedAudioTrack, AudioPlaylist, AudioReference]


class SearchType(str, enum.Enum):
    TRACK = "track"
    ALBUM = "album"
    ARTIST = "artist"
    PLAYLIST = "playlist"
    TEXT = "text"

    @classmethod
    def parse(cls, raw: str) -> List["SearchType"]:
        """``"track,album"`` → ``[TRACK, ALBUM]`` (unknown names raise ValueError)."""
        return [cls(part.strip().lower()) for part in raw.split(",") if part.strip()]


@dataclass
class SearchText:
    text: str


@dataclass
class SearchResult:
    tracks: List[ExtendedAudioTrack] = field(default_factory=list)
    albums: List[AudioPlaylist] = field(default_factory=list)
    artists: List[AudioPlaylist] = field(default_factory=list)
    playlists: List[AudioPlaylist] = field(default_factory=list)
    texts: List[SearchText] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.tracks or self.albums or self.artists or self.playlists or self.texts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracks": [t.to_dict() for t in self.tracks],
            "albums": [p.to_dict() for p in self.albums],
            "artists": [p.to_dict() for p in self.artists],
            "playlists": [p.to_dict() for p in self.playlists],
            "texts": [asdict(t) for t in self.texts],
        }


SearchResult.EMPTY = SearchResult()  # type: ignore[attr-defined]


@dataclass
class LyricsLine:
    timestamp: int
    duration: Optional[int]
    line: str


@dataclass
class AudioLyrics:
    source_name: str
    provider: Optional[str]
    text: Optional[str]
    lines: List[LyricsLine] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def item_to_dict(item: AudioItem) -> Optional[Dict[str, Any]]:
    """Serialize any loader result; ``NO_TRACK`` becomes ``None``."""
    if isinstance(item, ExtendedAudioTrack):
        return {"load_type": "track", "data": item.to_dict()}
    if isinstance(item, AudioPlaylist):
        load_type = "search" if item.is_search_result else "playlist"
        return {"load_type": load_type, "data": item.to_dict()}
    return None
