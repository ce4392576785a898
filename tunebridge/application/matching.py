from dataclasses import dataclass
from typing import Optional, Sequence

from tunebridge.domain.entities import CandidateItem, TrackDescriptor


MATCHED = "matched"
DEFAULT_FIRST = "default_first"
NOT_FOUND = "not_found"


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


@dataclass
class MatchResult:
    """Result of selecting a candidate for one descriptor."""

    candidate: Optional[CandidateItem]
    reason: str

    @property
    def external_id(self) -> Optional[str]:
        return self.candidate.external_id if self.candidate else None


class MatchSelector:
    """Picks at most one candidate for a descriptor.

    The heuristic is substring containment, not similarity scoring:
    1. No candidates -> no match.
    2. Scan candidates in catalog order; the first one whose lowercased title
       contains the descriptor title and whose lowercased artist contains the
       descriptor artist wins.
    3. Otherwise the first (most relevant) candidate is kept.

    Candidates beyond ``max_candidates`` are never inspected.
    """

    def __init__(self, max_candidates: int = 5):
        """Initialize the selector.

        Args:
            max_candidates: Upper bound on how many candidates are scanned
        """
        self.max_candidates = max_candidates

    def is_containment_match(self, descriptor: TrackDescriptor, candidate: CandidateItem) -> bool:
        return (
            _lower(descriptor.title) in _lower(candidate.title)
            and _lower(descriptor.artist) in _lower(candidate.artist)
        )

    def find_best_match(self, descriptor: TrackDescriptor,
                        candidates: Sequence[CandidateItem]) -> MatchResult:
        """Select the candidate for a descriptor.

        Args:
            descriptor: Source track the candidates were searched for
            candidates: Target catalog results in relevance order

        Returns:
            MatchResult with the chosen candidate, or candidate=None and reason not_found
        """
        window = list(candidates or [])[: self.max_candidates]
        if not window:
            return MatchResult(candidate=None, reason=NOT_FOUND)

        for candidate in window:
            if self.is_containment_match(descriptor, candidate):
                return MatchResult(candidate=candidate, reason=MATCHED)

        return MatchResult(candidate=window[0], reason=DEFAULT_FIRST)

