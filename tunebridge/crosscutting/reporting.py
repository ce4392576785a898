import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Any, Optional

from tunebridge.domain.entities import CandidateItem, TrackDescriptor


class TrackStatus(str, Enum):
    """Outcome of resolving one source descriptor."""

    RESOLVED = "resolved"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    SEARCH_ERROR = "search_error"
    PERSISTENCE_ERROR = "persistence_error"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass
class TrackOutcome:
    """What happened to one descriptor during an import run."""

    index: int
    descriptor: TrackDescriptor
    status: TrackStatus
    candidate: Optional[CandidateItem] = None
    track_id: Optional[str] = None
    match_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.track_id is not None

    def to_json(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "title": self.descriptor.title,
            "artist": self.descriptor.artist,
            "album": self.descriptor.album,
            "status": self.status.value,
            "externalId": self.candidate.external_id if self.candidate else None,
            "trackId": self.track_id,
            "matchReason": self.match_reason,
            "error": self.error,
        }


@dataclass
class ReportHeader:
    """Header information for an import report."""

    import_id: str
    source_reference: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    snapshot_hash: str = ""
    playlist_id: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "importId": self.import_id,
            "sourceReference": self.source_reference,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "snapshotHash": self.snapshot_hash,
            "playlistId": self.playlist_id,
        }


@dataclass
class ImportReport:
    """Per-track report of an import run."""

    header: ReportHeader
    tracks: List[TrackOutcome] = field(default_factory=list)

    def totals(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for outcome in self.tracks:
            totals[outcome.status.value] = totals.get(outcome.status.value, 0) + 1
        return totals

    def to_json(self) -> Dict[str, Any]:
        return {
            "header": self.header.to_json(),
            "totals": self.totals(),
            "tracks": [t.to_json() for t in self.tracks],
        }

    def save(self, file_path: str) -> None:
        with open(file_path, 'w') as f:
            json.dump(self.to_json(), f, indent=2, ensure_ascii=False)


def create_report_header(import_id: str, source_reference: str,
                         snapshot_hash: str = "") -> ReportHeader:
    return ReportHeader(
        import_id=import_id,
        source_reference=source_reference,
        started_at=datetime.now(timezone.utc),
        snapshot_hash=snapshot_hash,
    )
