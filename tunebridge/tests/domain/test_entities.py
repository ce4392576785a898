from datetime import datetime, timezone

import pytest

from tunebridge.domain.entities import (
    UNKNOWN_ARTIST, Playlist, PlaylistMembership, ResolvedTrack, TrackDescriptor
)


class TestTrackDescriptor:

    def test_known_artist(self):
        assert TrackDescriptor(title="Song", artist="X").has_known_artist

    def test_placeholder_and_empty_artist_are_unknown(self):
        assert not TrackDescriptor(title="Song", artist=UNKNOWN_ARTIST).has_known_artist
        assert not TrackDescriptor(title="Song", artist="").has_known_artist


class TestPlaylist:

    def test_to_json(self):
        created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        playlist = Playlist(id="p1", name="Mix", owner_id="u1", description="Imported 2 tracks",
                            created_at=created)

        assert playlist.to_json() == {
            "id": "p1",
            "user_id": "u1",
            "name": "Mix",
            "description": "Imported 2 tracks",
            "created_at": "2024-01-02T03:04:05+00:00",
        }

    def test_to_json_without_timestamp(self):
        assert Playlist(id=None, name="Mix", owner_id="u1").to_json()["created_at"] is None


class TestPlaylistMembership:

    def test_negative_position_rejected(self):
        with pytest.raises(ValueError):
            PlaylistMembership(playlist_id="p1", track_id="t1", position=-1)

    def test_zero_position_allowed(self):
        assert PlaylistMembership(playlist_id="p1", track_id="t1", position=0).position == 0


def test_resolved_track_defaults_to_youtube_source():
    assert ResolvedTrack(external_id="vid").source == "youtube"
