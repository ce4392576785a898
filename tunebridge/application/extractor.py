import logging
from typing import Any, Dict, List, Optional

from tunebridge.domain.entities import TrackDescriptor, UNKNOWN_ARTIST
from tunebridge.domain.errors import InvariantViolation
from tunebridge.domain.ports import SourceCatalog
from tunebridge.domain.references import parse_reference


logger = logging.getLogger(__name__)


def _primary_artist(raw_track: Dict[str, Any]) -> str:
    artists = raw_track.get("artists") or []
    if artists and isinstance(artists[0], dict):
        name = artists[0].get("name")
        if name:
            return name
    return UNKNOWN_ARTIST


def _album_name(raw_track: Dict[str, Any]) -> Optional[str]:
    album = raw_track.get("album")
    if isinstance(album, dict):
        return album.get("name") or None
    return None


def descriptor_from_raw_track(raw_track: Dict[str, Any]) -> TrackDescriptor:
    """Map one raw source track object into a TrackDescriptor.

    Raises:
        InvariantViolation: if the track has no title
    """
    title = raw_track.get("name")
    if not isinstance(title, str):
        raise InvariantViolation("Invalid track data from Spotify: missing track name")
    return TrackDescriptor(
        title=title,
        artist=_primary_artist(raw_track),
        album=_album_name(raw_track),
    )


def descriptors_from_collection(raw_collection: Dict[str, Any]) -> List[TrackDescriptor]:
    """Map a raw collection payload into descriptors, in playlist order.

    Entries without an underlying track (removed or unavailable items) are
    skipped.
    """
    tracks = raw_collection.get("tracks") if isinstance(raw_collection, dict) else None
    items = tracks.get("items") if isinstance(tracks, dict) else None
    if not isinstance(items, list):
        raise InvariantViolation("Invalid playlist data from Spotify: missing track list")

    descriptors = []
    skipped = 0
    for item in items:
        raw_track = item.get("track") if isinstance(item, dict) else None
        if not raw_track:
            skipped += 1
            continue
        descriptors.append(descriptor_from_raw_track(raw_track))

    if skipped:
        logger.info(f"Skipped {skipped} playlist entries without a track")
    return descriptors


class SourcePlaylistExtractor:
    """Turns a share reference into the ordered list of source track descriptors."""

    def __init__(self, source_catalog: SourceCatalog):
        self.source_catalog = source_catalog

    def extract(self, reference: str) -> List[TrackDescriptor]:
        """Extract descriptors for a collection or single-item reference.

        Raises:
            InvalidReference: reference matches neither shape
            CredentialError: read credential could not be obtained
            UpstreamFetchError: fetching the referenced entity failed
            InvariantViolation: the fetched payload is malformed
        """
        source_ref = parse_reference(reference)

        logger.info("Getting Spotify access token...")
        token = self.source_catalog.exchange_credential()

        if source_ref.is_collection:
            logger.info(f"Fetching playlist: {source_ref.id}")
            raw = self.source_catalog.fetch_collection(source_ref.id, token)
            descriptors = descriptors_from_collection(raw)
        else:
            logger.info(f"Fetching track: {source_ref.id}")
            raw = self.source_catalog.fetch_item(source_ref.id, token)
            if not isinstance(raw, dict):
                raise InvariantViolation("Invalid track data from Spotify")
            descriptors = [descriptor_from_raw_track(raw)]

        logger.info(f"Found {len(descriptors)} tracks from Spotify")
        return descriptors
