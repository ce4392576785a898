import pytest

from tunebridge.domain.errors import InvalidReference
from tunebridge.domain.references import COLLECTION, SINGLE_ITEM, parse_reference


class TestParseReference:
    """Tests for share reference classification."""

    def test_playlist_share_link_is_collection(self):
        ref = parse_reference("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc123")

        assert ref.kind == COLLECTION
        assert ref.id == "37i9dQZF1DXcBWIGoYBM5M"
        assert ref.is_collection

    def test_track_share_link_is_single_item(self):
        ref = parse_reference("https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC")

        assert ref.kind == SINGLE_ITEM
        assert ref.id == "4uLU6hMCjMI75M1A2tKUQC"
        assert not ref.is_collection

    def test_uri_forms_are_accepted(self):
        assert parse_reference("spotify:playlist:abc123").id == "abc123"
        assert parse_reference("spotify:track:xyz789").kind == SINGLE_ITEM

    def test_collection_shape_wins_over_item_shape(self):
        """Test that a reference carrying both shapes is treated as a collection."""
        ref = parse_reference("https://open.spotify.com/track/t1?context=spotify:playlist:p1")

        assert ref.kind == COLLECTION
        assert ref.id == "p1"

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_reference("  https://open.spotify.com/playlist/abc  ").id == "abc"

    @pytest.mark.parametrize("reference", [
        "https://example.com/nonsense",
        "",
        None,
        "https://open.spotify.com/album/abc123",
    ])
    def test_unrecognized_reference_raises(self, reference):
        with pytest.raises(InvalidReference, match="Invalid Spotify URL"):
            parse_reference(reference)
