import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from tunebridge.domain.entities import Playlist, PlaylistMembership, ResolvedTrack
from tunebridge.domain.errors import ConstraintViolation, PersistenceError


class InMemoryRecordStore:
    """Record store kept in process memory.

    Enforces the same uniqueness rules as the database-backed store: one track
    per external id and one membership per (playlist, track) pair.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._tracks: Dict[str, ResolvedTrack] = {}
        self._track_ids_by_external: Dict[str, str] = {}
        self._playlists: Dict[str, Playlist] = {}
        self._memberships: Dict[Tuple[str, str], PlaylistMembership] = {}

    def get_track_by_external_id(self, external_id: str) -> Optional[ResolvedTrack]:
        with self._lock:
            track_id = self._track_ids_by_external.get(external_id)
            return self._tracks.get(track_id) if track_id else None

    def insert_track(self, track: ResolvedTrack) -> ResolvedTrack:
        with self._lock:
            if track.external_id in self._track_ids_by_external:
                raise ConstraintViolation(f"Track with external id {track.external_id} already exists")
            stored = replace(track, id=track.id or str(uuid.uuid4()))
            if stored.id in self._tracks:
                raise ConstraintViolation(f"Track id {stored.id} already exists")
            self._tracks[stored.id] = stored
            self._track_ids_by_external[stored.external_id] = stored.id
            return stored

    def get_track(self, track_id: str) -> Optional[ResolvedTrack]:
        with self._lock:
            return self._tracks.get(track_id)

    def insert_playlist(self, playlist: Playlist) -> Playlist:
        with self._lock:
            stored = replace(
                playlist,
                id=playlist.id or str(uuid.uuid4()),
                created_at=playlist.created_at or datetime.now(timezone.utc),
            )
            if stored.id in self._playlists:
                raise ConstraintViolation(f"Playlist id {stored.id} already exists")
            self._playlists[stored.id] = stored
            return stored

    def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        with self._lock:
            return self._playlists.get(playlist_id)

    def upsert_memberships(self, memberships: Sequence[PlaylistMembership]) -> List[PlaylistMembership]:
        with self._lock:
            for membership in memberships:
                if membership.playlist_id not in self._playlists:
                    raise PersistenceError(f"Unknown playlist {membership.playlist_id}")
                if membership.track_id not in self._tracks:
                    raise PersistenceError(f"Unknown track {membership.track_id}")
            for membership in memberships:
                self._memberships[(membership.playlist_id, membership.track_id)] = membership
            return list(memberships)

    def list_memberships(self, playlist_id: str) -> List[PlaylistMembership]:
        with self._lock:
            rows = [m for (pid, _), m in self._memberships.items() if pid == playlist_id]
        return sorted(rows, key=lambda m: m.position)

    def counts(self) -> Dict[str, int]:
        """Row counts per record type."""
        with self._lock:
            return {
                'tracks': len(self._tracks),
                'playlists': len(self._playlists),
                'memberships': len(self._memberships),
            }

    def close(self) -> None:
        pass
