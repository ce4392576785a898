import logging
from typing import Callable

from tunebridge.domain.entities import CandidateItem, ResolvedTrack, TrackDescriptor
from tunebridge.domain.errors import ConstraintViolation, PersistenceError
from tunebridge.domain.ports import RecordStore


logger = logging.getLogger(__name__)


def build_resolved_track(candidate: CandidateItem, descriptor: TrackDescriptor,
                         playable_uri: str) -> ResolvedTrack:
    """Draft record for a candidate. Descriptor metadata wins; the candidate fills gaps."""
    title = descriptor.title or candidate.title
    artist = descriptor.artist if descriptor.has_known_artist else (candidate.artist or descriptor.artist)
    return ResolvedTrack(
        title=title,
        artist=artist,
        album=descriptor.album,
        external_id=candidate.external_id,
        playable_uri=playable_uri,
        thumbnail=candidate.thumbnail,
    )


class TrackResolver:
    """Maps a chosen candidate to a canonical track record, creating it at most once."""

    def __init__(self, store: RecordStore, uri_builder: Callable[[str], str]):
        """
        Args:
            store: Record store holding canonical tracks
            uri_builder: Maps a target catalog id to its playable URI
        """
        self.store = store
        self.uri_builder = uri_builder

    def resolve(self, candidate: CandidateItem, descriptor: TrackDescriptor) -> ResolvedTrack:
        """Return the stored track for the candidate's external id, inserting it if new.

        A concurrent insert of the same external id surfaces as ConstraintViolation;
        the row is then re-read so both runs converge on one record.

        Raises:
            PersistenceError: the store failed and no record could be obtained
        """
        if not candidate.external_id:
            raise PersistenceError("Candidate has no external id")

        existing = self.store.get_track_by_external_id(candidate.external_id)
        if existing is not None:
            logger.debug(f"Reusing track {existing.id} for {candidate.external_id}")
            return existing

        draft = build_resolved_track(candidate, descriptor, self.uri_builder(candidate.external_id))
        try:
            created = self.store.insert_track(draft)
        except ConstraintViolation:
            existing = self.store.get_track_by_external_id(candidate.external_id)
            if existing is None:
                logger.error(f"Error inserting track {candidate.external_id}: constraint hit but row not found")
                raise
            logger.debug(f"Track {candidate.external_id} inserted concurrently, reusing {existing.id}")
            return existing
        except PersistenceError as e:
            logger.error(f"Error inserting track {candidate.external_id}: {e}")
            raise

        logger.debug(f"Created track {created.id} for {candidate.external_id}")
        return created
