import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from tunebridge.domain.entities import Playlist, PlaylistMembership
from tunebridge.domain.errors import PersistenceError
from tunebridge.domain.ports import RecordStore


logger = logging.getLogger(__name__)


DEFAULT_PLAYLIST_NAME = "Imported from Spotify"


def dedupe_preserving_order(track_ids: Iterable[Optional[str]]) -> List[str]:
    """Drop missing entries and repeats, keeping each id at its first position."""
    seen = set()
    unique = []
    for track_id in track_ids:
        if not track_id or track_id in seen:
            continue
        seen.add(track_id)
        unique.append(track_id)
    return unique


def default_description(tracks_found: int) -> str:
    return f"Imported {tracks_found} tracks"


@dataclass
class AssembledPlaylist:
    """Playlist created by the assembler plus the import counts."""

    playlist: Playlist
    tracks_found: int
    tracks_total: int
    memberships: List[PlaylistMembership] = field(default_factory=list)


class PlaylistAssembler:
    """Creates the destination playlist and its ordered memberships."""

    def __init__(self, store: RecordStore, default_name: str = DEFAULT_PLAYLIST_NAME):
        self.store = store
        self.default_name = default_name

    def assemble(self,
                 owner_id: str,
                 resolved_track_ids: List[Optional[str]],
                 name: Optional[str] = None,
                 description: Optional[str] = None) -> AssembledPlaylist:
        """Build the playlist from per-descriptor resolution results.

        Args:
            owner_id: Requesting user
            resolved_track_ids: One entry per source descriptor in source order;
                None where resolution failed
            name: Playlist name, defaults to ``default_name``
            description: Playlist description, defaults to a found-count summary

        Raises:
            PersistenceError: playlist or membership write failed
        """
        unique_ids = dedupe_preserving_order(resolved_track_ids)
        tracks_found = len(unique_ids)

        playlist = self.store.insert_playlist(Playlist(
            id=None,
            name=name or self.default_name,
            owner_id=owner_id,
            description=description or default_description(tracks_found),
        ))
        if not playlist.id:
            raise PersistenceError("Record store returned a playlist without an id")
        logger.info(f"Created playlist {playlist.id} ({playlist.name})")

        memberships = [
            PlaylistMembership(playlist_id=playlist.id, track_id=track_id, position=index)
            for index, track_id in enumerate(unique_ids)
        ]
        if memberships:
            memberships = self.store.upsert_memberships(memberships)

        return AssembledPlaylist(
            playlist=playlist,
            tracks_found=tracks_found,
            tracks_total=len(resolved_track_ids),
            memberships=memberships,
        )
