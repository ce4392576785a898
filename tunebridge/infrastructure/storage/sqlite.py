"""SQLite-backed record store for tracks, playlists and playlist memberships."""

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from tunebridge.domain.entities import Playlist, PlaylistMembership, ResolvedTrack
from tunebridge.domain.errors import ConstraintViolation, PersistenceError


logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    artist TEXT NOT NULL,
    album TEXT,
    source TEXT NOT NULL,
    source_id TEXT NOT NULL UNIQUE,
    stream_url TEXT NOT NULL,
    cover_image TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlist_tracks (
    playlist_id TEXT NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    track_id TEXT NOT NULL REFERENCES tracks(id),
    position INTEGER NOT NULL CHECK (position >= 0),
    PRIMARY KEY (playlist_id, track_id)
);

CREATE INDEX IF NOT EXISTS idx_playlist_tracks_position
    ON playlist_tracks (playlist_id, position);
"""


def _row_to_track(row: sqlite3.Row) -> ResolvedTrack:
    return ResolvedTrack(
        id=row["id"],
        title=row["title"],
        artist=row["artist"],
        album=row["album"],
        external_id=row["source_id"],
        playable_uri=row["stream_url"],
        thumbnail=row["cover_image"],
        source=row["source"],
    )


def _row_to_playlist(row: sqlite3.Row) -> Playlist:
    return Playlist(
        id=row["id"],
        name=row["name"],
        owner_id=row["user_id"],
        description=row["description"] or "",
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SqliteRecordStore:
    """Record store on a single SQLite database file.

    The database enforces uniqueness of ``tracks.source_id`` (the external id)
    and of ``(playlist_id, track_id)``; memberships are written with
    ``ON CONFLICT ... DO UPDATE`` so repeated writes only move the position.
    """

    def __init__(self, db_path: str = "tunebridge.sqlite3"):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False, timeout=30)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
            self._conn.commit()
            logger.info(f"Record store opened at {db_path}")
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open record store {db_path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _query_one(self, sql: str, params: Sequence) -> Optional[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(f"Record store read failed: {e}") from e

    def _write(self, sql: str, rows: Sequence[Sequence]) -> None:
        with self._lock:
            try:
                with self._conn:
                    self._conn.executemany(sql, rows)
            except sqlite3.IntegrityError as e:
                raise ConstraintViolation(str(e)) from e
            except sqlite3.Error as e:
                raise PersistenceError(f"Record store write failed: {e}") from e

    def get_track_by_external_id(self, external_id: str) -> Optional[ResolvedTrack]:
        row = self._query_one("SELECT * FROM tracks WHERE source_id = ?", (external_id,))
        return _row_to_track(row) if row else None

    def get_track(self, track_id: str) -> Optional[ResolvedTrack]:
        row = self._query_one("SELECT * FROM tracks WHERE id = ?", (track_id,))
        return _row_to_track(row) if row else None

    def insert_track(self, track: ResolvedTrack) -> ResolvedTrack:
        track_id = track.id or str(uuid.uuid4())
        self._write(
            """
            INSERT INTO tracks (id, title, artist, album, source, source_id, stream_url, cover_image, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [(track_id, track.title, track.artist, track.album, track.source, track.external_id,
              track.playable_uri, track.thumbnail, datetime.now(timezone.utc).isoformat())],
        )
        return self.get_track(track_id)

    def insert_playlist(self, playlist: Playlist) -> Playlist:
        playlist_id = playlist.id or str(uuid.uuid4())
        created_at = playlist.created_at or datetime.now(timezone.utc)
        self._write(
            "INSERT INTO playlists (id, user_id, name, description, created_at) VALUES (?, ?, ?, ?, ?)",
            [(playlist_id, playlist.owner_id, playlist.name, playlist.description, created_at.isoformat())],
        )
        return self.get_playlist(playlist_id)

    def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        row = self._query_one("SELECT * FROM playlists WHERE id = ?", (playlist_id,))
        return _row_to_playlist(row) if row else None

    def upsert_memberships(self, memberships: Sequence[PlaylistMembership]) -> List[PlaylistMembership]:
        try:
            self._write(
                """
                INSERT INTO playlist_tracks (playlist_id, track_id, position)
                VALUES (?, ?, ?)
                ON CONFLICT (playlist_id, track_id) DO UPDATE SET position = excluded.position
                """,
                [(m.playlist_id, m.track_id, m.position) for m in memberships],
            )
        except ConstraintViolation as e:
            # with the upsert the only reachable integrity error is a dangling reference
            raise PersistenceError(f"Membership write failed: {e}") from e
        return list(memberships)

    def list_memberships(self, playlist_id: str) -> List[PlaylistMembership]:
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT * FROM playlist_tracks WHERE playlist_id = ? ORDER BY position",
                    (playlist_id,),
                ).fetchall()
            except sqlite3.Error as e:
                raise PersistenceError(f"Record store read failed: {e}") from e
        return [
            PlaylistMembership(playlist_id=r["playlist_id"], track_id=r["track_id"], position=r["position"])
            for r in rows
        ]

    def counts(self) -> Dict[str, int]:
        """Row counts per table."""
        counts = {}
        for name, table in (('tracks', 'tracks'), ('playlists', 'playlists'), ('memberships', 'playlist_tracks')):
            row = self._query_one(f"SELECT COUNT(*) AS n FROM {table}", ())
            counts[name] = row["n"]
        return counts
