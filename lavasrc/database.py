"""
Spotify track metadata store
────────────────────────────
Lookup order for every track id:

1. metadata cache (``TrackMetadataCache``)
2. a lookup for the same id another caller already started
3. the ``SpotifyTrackMetadata`` table
4. the Spotify Web API, ≤ 50 ids per request

Tracks fetched from Spotify are written back to the table.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, TimeoutError
from typing import Dict, Iterable, List, Optional

import requests
import spotipy
from django.db import DatabaseError, close_old_connections, connections, transaction

from lavasrc.cache import TrackMetadataCache
from lavasrc.exceptions import PersistenceError, SourceError
from lavasrc.models import SpotifyTrackMetadata
from lavasrc.spotify_api import SpotifyApiAccessor

logger = logging.getLogger(__name__)

SEVERAL_TRACKS_LIMIT = 50


def _chunk(lst: List[str], size: int = SEVERAL_TRACKS_LIMIT):
    """[abcde] → [[a…size], …]"""
    for i in range(0, len(lst), size):
        yield lst[i : i + size]


class Database:

    def __init__(self,
                 accessor: SpotifyApiAccessor,
                 *,
                 using: str = "default",
                 cache: Optional[TrackMetadataCache] = None,
                 max_workers: int = 4,
                 lookup_timeout: float = 30):
        self.accessor = accessor
        self.using = using
        self.cache = cache or TrackMetadataCache.from_settings()
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers
        self.lookup_timeout = lookup_timeout

        self.test_connection()

    def test_connection(self):
        try:
            connections[self.using].ensure_connection()
        except DatabaseError as exc:
            raise PersistenceError("Failed to setup connection to database.") from exc

    # ------------------------------------------------------------------
    def get_spotify_track_info(self, *track_ids: str) -> List[dict]:
        """
        Spotify track objects for ``track_ids`` in the given order.
        Ids Spotify does not know are left out.
        """
        found: Dict[str, dict] = {}
        misses: List[str] = []
        for tid in dict.fromkeys(track_ids):
            cached = self.cache.get(tid)
            if cached is not None:
                found[tid] = cached
            else:
                misses.append(tid)

        waiting: Dict[str, Future] = {}
        owned: Dict[str, Future] = {}
        try:
            with self._lock:
                for tid in misses:
                    if tid in self._pending:
                        waiting[tid] = self._pending[tid]
                    else:
                        owned[tid] = self._pending[tid] = Future()

            if owned:
                try:
                    found.update(self._fetch(list(owned)))
                except Exception as exc:
                    for fut in owned.values():
                        fut.set_exception(exc)
                    raise
                for tid, fut in owned.items():
                    fut.set_result(found.get(tid))
        finally:
            with self._lock:
                for tid, fut in owned.items():
                    if not fut.done():
                        fut.cancel()
                    if self._pending.get(tid) is fut:
                        del self._pending[tid]

        for tid, fut in waiting.items():
            try:
                track = fut.result(timeout=self.lookup_timeout)
            except (TimeoutError, CancelledError) as exc:
                raise SourceError(f"Lookup of spotify track {tid} by another caller did not finish") from exc
            if track is not None:
                found[tid] = track

        return [found[tid] for tid in track_ids if found.get(tid) is not None]

    def get_spotify_track_info_async(self, *track_ids: str) -> "Future[List[dict]]":
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="lavasrc-db"
            )
        return self._executor.submit(self._run_in_thread, track_ids)

    def _run_in_thread(self, track_ids: Iterable[str]) -> List[dict]:
        try:
            return self.get_spotify_track_info(*track_ids)
        finally:
            close_old_connections()

    # ------------------------------------------------------------------
    def _fetch(self, track_ids: List[str]) -> Dict[str, dict]:
        found = self._load_rows(track_ids)
        for tid, track in found.items():
            self.cache.put(tid, track)

        missing = [tid for tid in track_ids if tid not in found]
        if not missing:
            return found

        fetched: Dict[str, dict] = {}
        for chunk in _chunk(missing):
            try:
                tracks = self.accessor.client.tracks(chunk).get("tracks") or []
            except (spotipy.SpotifyException, requests.exceptions.RequestException) as exc:
                raise SourceError(
                    "Exception retrieving spotify track metadata from API, trackIDs: "
                    + ", ".join(missing)
                ) from exc
            for track in tracks:
                if track is None or not track.get("id"):
                    continue
                fetched[track["id"]] = track

        not_found = [tid for tid in missing if tid not in fetched]
        if not_found:
            logger.debug("Spotify returned nothing for %s", ", ".join(not_found))

        self._save_tracks(fetched.values())
        for tid, track in fetched.items():
            self.cache.put(tid, track)

        found.update(fetched)
        return found

    def _load_rows(self, track_ids: List[str]) -> Dict[str, dict]:
        try:
            rows = (SpotifyTrackMetadata.objects.using(self.using)
                    .filter(track_id__in=track_ids)
                    .only("track_id", "metadata"))
            return {row.track_id: row.track for row in rows}
        except DatabaseError as exc:
            raise PersistenceError(
                "Exception retrieving spotify track metadata from database, trackToFetch: "
                + ", ".join(track_ids)
            ) from exc

    def _save_tracks(self, tracks: Iterable[dict]):
        tracks = list(tracks)
        if not tracks:
            return
        try:
            with transaction.atomic(using=self.using):
                for track in tracks:
                    SpotifyTrackMetadata.objects.using(self.using).update_or_create(
                        track_id=track["id"],
                        defaults=SpotifyTrackMetadata.fields_from_track(track),
                    )
        except DatabaseError as exc:
            raise PersistenceError("Failed to save spotify track metadata") from exc
        logger.debug("Saved %d spotify tracks", len(tracks))

    # ------------------------------------------------------------------
    def set_spotify_track_info(self, track_id: str, track: dict):
        self.cache.put(track_id, track)

    def invalidate_spotify_track_info(self, track_id: str):
        self.cache.invalidate(track_id)

    def invalidate_all_spotify_tracks_cache(self):
        self.cache.invalidate_all()

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
