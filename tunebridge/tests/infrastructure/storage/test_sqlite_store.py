import os
import sqlite3
import tempfile

import pytest

from tunebridge.domain.entities import Playlist, PlaylistMembership, ResolvedTrack
from tunebridge.domain.errors import ConstraintViolation, PersistenceError
from tunebridge.infrastructure.storage.sqlite import SqliteRecordStore


class TestSqliteRecordStore:
    """Tests for the SQLite record store."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, 'tunebridge.sqlite3')
        self.store = SqliteRecordStore(self.db_path)

    def teardown_method(self):
        """Clean up test fixtures."""
        self.store.close()
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _track(self, external_id, **kwargs):
        return self.store.insert_track(ResolvedTrack(
            external_id=external_id,
            title=kwargs.get('title', 'Song'),
            artist=kwargs.get('artist', 'X'),
            album=kwargs.get('album'),
            playable_uri=f"https://www.youtube.com/watch?v={external_id}",
            thumbnail=kwargs.get('thumbnail'),
        ))

    def test_track_round_trip(self):
        track = self._track("vid1", album="LP", thumbnail="https://i.ytimg.com/t.jpg")

        assert track.id
        assert track.external_id == "vid1"
        assert track.album == "LP"
        assert track.thumbnail == "https://i.ytimg.com/t.jpg"
        assert track.source == "youtube"
        assert self.store.get_track_by_external_id("vid1") == track

    def test_duplicate_external_id_raises_constraint_violation(self):
        self._track("vid1")

        with pytest.raises(ConstraintViolation):
            self._track("vid1")

        assert self.store.counts()["tracks"] == 1

    def test_playlist_round_trip(self):
        playlist = self.store.insert_playlist(Playlist(id=None, name="Mix", owner_id="u1",
                                                       description="Imported 0 tracks"))

        assert playlist.id
        assert playlist.created_at is not None
        assert self.store.get_playlist(playlist.id) == playlist

    def test_membership_upsert_moves_position(self):
        playlist = self.store.insert_playlist(Playlist(id=None, name="Mix", owner_id="u1"))
        a, b = self._track("a"), self._track("b")

        self.store.upsert_memberships([
            PlaylistMembership(playlist.id, a.id, 0), PlaylistMembership(playlist.id, b.id, 1),
        ])
        self.store.upsert_memberships([PlaylistMembership(playlist.id, a.id, 2)])

        memberships = self.store.list_memberships(playlist.id)
        assert [(m.track_id, m.position) for m in memberships] == [(b.id, 1), (a.id, 2)]
        assert self.store.counts()["memberships"] == 2

    def test_membership_with_unknown_track_fails(self):
        playlist = self.store.insert_playlist(Playlist(id=None, name="Mix", owner_id="u1"))

        with pytest.raises(PersistenceError):
            self.store.upsert_memberships([PlaylistMembership(playlist.id, "ghost", 0)])

        assert self.store.list_memberships(playlist.id) == []

    def test_records_survive_reopen(self):
        track = self._track("vid1")
        self.store.close()

        self.store = SqliteRecordStore(self.db_path)

        assert self.store.get_track_by_external_id("vid1") == track

    def test_schema_enforces_uniqueness(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO tracks (id, title, artist, source, source_id, stream_url, created_at) "
                "VALUES ('x1', 't', 'a', 'youtube', 'dup', 'u', '2024-01-01')"
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO tracks (id, title, artist, source, source_id, stream_url, created_at) "
                    "VALUES ('x2', 't', 'a', 'youtube', 'dup', 'u', '2024-01-01')"
                )
        finally:
            conn.close()

    def test_unopenable_path_raises(self):
        with pytest.raises(PersistenceError):
            SqliteRecordStore(os.path.join(self.temp_dir, 'missing', 'dir', 'db.sqlite3'))
