from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .entities import CandidateItem, Playlist, PlaylistMembership, ResolvedTrack


class SourceCatalog(Protocol):
    """Port for the catalog playlists are imported from.

    Implementations return the raw upstream payloads; mapping them into domain
    entities is the extractor's job.
    """

    def exchange_credential(self) -> str:
        """Return a bearer token with read access. Raises CredentialError."""

    def fetch_collection(self, collection_id: str, token: str) -> Dict[str, Any]:
        """Return the raw collection payload with every entry. Raises UpstreamFetchError."""

    def fetch_item(self, item_id: str, token: str) -> Dict[str, Any]:
        """Return the raw single-item payload. Raises UpstreamFetchError."""


class TargetCatalog(Protocol):
    """Port for the catalog matches are searched in."""

    def search(self, query: str, limit: int = 5) -> List[CandidateItem]:
        """Return candidates in catalog relevance order, possibly empty. Raises SearchError."""

    def playable_uri(self, external_id: str) -> str:
        """Return the deterministic playable URI for an item of this catalog."""


class RecordStore(Protocol):
    """Port for the keyed record store holding tracks, playlists and memberships."""

    def get_track_by_external_id(self, external_id: str) -> Optional[ResolvedTrack]:
        """Return the stored track for the external id, or None."""

    def insert_track(self, track: ResolvedTrack) -> ResolvedTrack:
        """Insert a new track and return it with its canonical id assigned.

        Raises ConstraintViolation if the external id is already stored.
        """

    def insert_playlist(self, playlist: Playlist) -> Playlist:
        """Insert a playlist and return it with its id and creation time assigned."""

    def upsert_memberships(self, memberships: Sequence[PlaylistMembership]) -> List[PlaylistMembership]:
        """Insert or update memberships keyed on (playlist_id, track_id)."""

    def list_memberships(self, playlist_id: str) -> List[PlaylistMembership]:
        """Return memberships of a playlist ordered by position."""


class Authenticator(Protocol):
    """Port resolving a caller credential into a user id."""

    def authenticate(self, credential: Optional[str]) -> str:
        """Return the user id for the credential. Raises Unauthenticated."""
