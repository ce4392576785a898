import logging
from typing import List

from tunebridge.domain.entities import CandidateItem, TrackDescriptor
from tunebridge.domain.errors import SearchError
from tunebridge.domain.ports import TargetCatalog


logger = logging.getLogger(__name__)


def build_search_query(descriptor: TrackDescriptor) -> str:
    """Free-text query combining title and artist.

    The "Unknown Artist" placeholder carries no information for the catalog and is
    left out.
    """
    parts = [descriptor.title or ""]
    if descriptor.has_known_artist:
        parts.append(descriptor.artist)
    return " ".join(p.strip() for p in parts if p and p.strip())


class CandidateSearchClient:
    """Queries the target catalog for candidates matching one descriptor."""

    def __init__(self, target_catalog: TargetCatalog, max_candidates: int = 5):
        if max_candidates < 1:
            raise ValueError("max_candidates must be at least 1")
        self.target_catalog = target_catalog
        self.max_candidates = max_candidates

    def find_candidates(self, descriptor: TrackDescriptor) -> List[CandidateItem]:
        """Return up to ``max_candidates`` candidates in catalog relevance order.

        An empty list means no results. Transport and parse failures surface as
        SearchError so the caller can skip just this track.
        """
        query = build_search_query(descriptor)
        if not query:
            logger.debug("Empty search query, skipping catalog lookup")
            return []

        logger.info(f"Searching for: {descriptor.title} by {descriptor.artist}")
        try:
            candidates = self.target_catalog.search(query, limit=self.max_candidates)
        except SearchError:
            raise
        except Exception as e:
            raise SearchError(f"Search failed for {query!r}: {e}") from e

        return list(candidates)[: self.max_candidates]
