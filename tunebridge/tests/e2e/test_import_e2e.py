import json
import os
import tempfile

from tunebridge.crosscutting.config import Settings
from tunebridge.domain.entities import CandidateItem
from tunebridge.domain.errors import SearchError, UpstreamFetchError
from tunebridge.infrastructure.auth import StaticTokenAuthenticator
from tunebridge.infrastructure.storage.sqlite import SqliteRecordStore
from tunebridge.interfaces.factory import build_pipeline
from tunebridge.interfaces.http import create_app


AUTH = {'Authorization': 'Bearer tok1'}


class FakeSpotify:
    """Source catalog serving canned playlists and tracks."""

    def __init__(self, playlists, tracks=None):
        self.playlists = playlists
        self.tracks = tracks or {}

    def exchange_credential(self):
        return "app_token"

    def fetch_collection(self, collection_id, token):
        if collection_id not in self.playlists:
            raise UpstreamFetchError("Failed to fetch playlist: 404", status=404)
        return {"tracks": {"items": [
            {"track": {"name": title, "artists": [{"name": artist}] if artist else [],
                       "album": {"name": "LP"}}}
            for title, artist in self.playlists[collection_id]
        ]}}

    def fetch_item(self, item_id, token):
        title, artist = self.tracks[item_id]
        return {"name": title, "artists": [{"name": artist}]}


class FakeYouTubeMusic:
    """Target catalog answering from a query -> candidates table."""

    def __init__(self, results):
        self.results = results

    def search(self, query, limit=5):
        result = self.results.get(query, [])
        if isinstance(result, Exception):
            raise result
        return result[:limit]

    def playable_uri(self, external_id):
        return f"https://www.youtube.com/watch?v={external_id}"


class TestImportEndToEnd:
    """End-to-end imports through the HTTP binding into a SQLite store."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = SqliteRecordStore(os.path.join(self.temp_dir, 'e2e.sqlite3'))
        self.spotify = FakeSpotify(
            playlists={
                "road": [("Alpha", "A"), ("Beta", "B"), ("Gamma", "C")],
                "live": [("Song", "X")],
                "nameless": [("Mystery", None)],
            },
            tracks={"t1": ("Alpha", "A")},
        )
        self.youtube = FakeYouTubeMusic({
            "Alpha A": [CandidateItem(external_id="va", title="Alpha", artist="A")],
            "Beta B": SearchError("YouTube Music search timed out"),
            "Gamma C": [CandidateItem(external_id="vc", title="Gamma (Remastered)", artist="C")],
            "Song X": [
                CandidateItem(external_id="vlive", title="Song (Live)", artist="X"),
                CandidateItem(external_id="vstudio", title="Song", artist="X"),
            ],
            "Mystery": [CandidateItem(external_id="vm", title="Mystery", artist="Real Artist")],
        })
        settings = Settings(workers=2, store_backend='sqlite')
        pipeline = build_pipeline(settings, self.store, source_catalog=self.spotify,
                                  target_catalog=self.youtube)
        self.client = create_app(pipeline=pipeline,
                                 authenticator=StaticTokenAuthenticator({'tok1': 'user1'})).test_client()

    def teardown_method(self):
        """Clean up test fixtures."""
        self.store.close()
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _import(self, reference, **extra):
        body = dict(sourceReference=reference, **extra)
        response = self.client.post('/import', data=json.dumps(body), headers=AUTH,
                                    content_type='application/json')
        return response, json.loads(response.data)

    def _playlist_external_ids(self, playlist_id):
        return [self.store.get_track(m.track_id).external_id for m in self.store.list_memberships(playlist_id)]

    def test_partial_failure_keeps_order_and_counts(self):
        response, data = self._import("https://open.spotify.com/playlist/road?si=share")

        assert response.status_code == 200
        assert data['tracksTotal'] == 3
        assert data['tracksFound'] == 2
        assert data['playlist']['user_id'] == 'user1'
        assert data['playlist']['description'] == 'Imported 2 tracks'
        memberships = self.store.list_memberships(data['playlist']['id'])
        assert [m.position for m in memberships] == [0, 1]
        assert self._playlist_external_ids(data['playlist']['id']) == ["va", "vc"]

    def test_reimport_reuses_canonical_tracks(self):
        _, first = self._import("spotify:playlist:road")
        _, second = self._import("spotify:playlist:road", playlistName="Again")

        counts = self.store.counts()
        assert counts['tracks'] == 2
        assert counts['playlists'] == 2
        assert second['playlist']['name'] == 'Again'
        assert self._playlist_external_ids(first['playlist']['id']) == \
            self._playlist_external_ids(second['playlist']['id'])

    def test_first_containment_match_is_persisted(self):
        _, data = self._import("spotify:playlist:live")

        assert self._playlist_external_ids(data['playlist']['id']) == ["vlive"]
        track = self.store.get_track_by_external_id("vlive")
        assert track.title == "Song"
        assert track.playable_uri == "https://www.youtube.com/watch?v=vlive"

    def test_unknown_artist_uses_candidate_artist(self):
        _, data = self._import("spotify:playlist:nameless")

        assert data['tracksFound'] == 1
        assert self.store.get_track_by_external_id("vm").artist == "Real Artist"

    def test_single_track_import(self):
        response, data = self._import("https://open.spotify.com/track/t1")

        assert response.status_code == 200
        assert data['tracksTotal'] == 1
        assert self._playlist_external_ids(data['playlist']['id']) == ["va"]

    def test_bad_reference_creates_no_rows(self):
        response, data = self._import("https://example.com/nonsense")

        assert response.status_code == 400
        assert 'error' in data
        assert self.store.counts() == {'tracks': 0, 'playlists': 0, 'memberships': 0}

    def test_missing_playlist_is_404(self):
        response, data = self._import("spotify:playlist:gone")

        assert response.status_code == 404
        assert data == {'error': 'Failed to fetch playlist: 404'}
        assert self.store.counts()['playlists'] == 0
