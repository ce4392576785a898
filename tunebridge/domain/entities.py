from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True)
class TrackDescriptor:
    """Source-side track reference, not yet matched to any playable item."""

    title: str = ""
    artist: str = ""
    album: Optional[str] = None

    @property
    def has_known_artist(self) -> bool:
        return bool(self.artist) and self.artist != UNKNOWN_ARTIST


@dataclass(frozen=True)
class CandidateItem:
    """One search result from the target catalog.

    Only ``external_id`` is a durable key; the rest is display metadata as the
    catalog reported it.
    """

    external_id: str
    title: str = ""
    artist: str = ""
    thumbnail: Optional[str] = None


@dataclass(frozen=True)
class ResolvedTrack:
    """Persisted, canonical representation of a playable item."""

    id: Optional[str] = None
    title: str = ""
    artist: str = ""
    album: Optional[str] = None
    external_id: str = ""
    playable_uri: str = ""
    thumbnail: Optional[str] = None
    source: str = "youtube"


@dataclass(frozen=True)
class Playlist:
    """Destination playlist created by an import run."""

    id: Optional[str]
    name: str
    owner_id: str
    description: str = ""
    created_at: Optional[datetime] = None

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class PlaylistMembership:
    """Ordered link between a playlist and a canonical track."""

    playlist_id: str
    track_id: str
    position: int

    def __post_init__(self):
        if self.position < 0:
            raise ValueError(f"position must be >= 0, got {self.position}")
