import json

from django.conf import settings
from django.db import models

# Table name is fixed at import time (hosts set it once in settings).
SPOTIFY_TRACKS_TABLE = (
    getattr(settings, "LAVASRC", {}).get("DATABASE", {}).get("SPOTIFY_TRACKS_TABLE")
    or "spotify_track_metadata"
)


class SpotifyTrackMetadataQuerySet(models.QuerySet):
    def for_album(self, album_id: str):
        return self.filter(album_id=album_id)

    def for_artist(self, artist_id: str):
        return self.filter(
            models.Q(artist1_id=artist_id)
            | models.Q(artist2_id=artist_id)
            | models.Q(artist3_id=artist_id)
            | models.Q(artist4_id=artist_id)
        )


class SpotifyTrackMetadata(models.Model):
    """Raw Spotify track JSON plus the ids we look tracks up by."""

    album_id = models.CharField(max_length=100)
    artist1_id = models.CharField(max_length=100)
    artist2_id = models.CharField(max_length=100, null=True, blank=True)
    artist3_id = models.CharField(max_length=100, null=True, blank=True)
    artist4_id = models.CharField(max_length=100, null=True, blank=True)
    track_id = models.CharField(max_length=100, unique=True)
    track_explicit = models.BooleanField(default=False)
    track_popularity = models.PositiveSmallIntegerField(default=0)
    metadata = models.TextField()

    objects = SpotifyTrackMetadataQuerySet.as_manager()

    class Meta:
        db_table = SPOTIFY_TRACKS_TABLE
        indexes = [
            models.Index(fields=["album_id"], name="lavasrc_sp_album_idx"),
            models.Index(fields=["artist1_id"], name="lavasrc_sp_artist1_idx"),
            models.Index(fields=["artist2_id"], name="lavasrc_sp_artist2_idx"),
            models.Index(fields=["artist3_id"], name="lavasrc_sp_artist3_idx"),
            models.Index(fields=["artist4_id"], name="lavasrc_sp_artist4_idx"),
        ]

    def __str__(self):
        return f"{self.track_id} ({self.album_id})"

    @property
    def track(self) -> dict:
        return json.loads(self.metadata)

    @staticmethod
    def fields_from_track(track: dict) -> dict:
        """Column values for a Spotify track object (first four artists)."""
        artist_ids = [a.get("id") for a in (track.get("artists") or [])][:4]
        artist_ids += [None] * (4 - len(artist_ids))
        return {
            "album_id": (track.get("album") or {}).get("id") or "",
            "artist1_id": artist_ids[0] or "",
            "artist2_id": artist_ids[1],
            "artist3_id": artist_ids[2],
            "artist4_id": artist_ids[3],
            "track_explicit": bool(track.get("explicit")),
            "track_popularity": int(track.get("popularity") or 0),
            "metadata": json.dumps(track, ensure_ascii=False),
        }
