import contextvars
import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from tunebridge.application.assembler import PlaylistAssembler
from tunebridge.application.extractor import SourcePlaylistExtractor
from tunebridge.application.idempotency import calculate_snapshot_hash
from tunebridge.application.matching import MatchSelector
from tunebridge.application.persistence import TrackResolver
from tunebridge.application.search import CandidateSearchClient
from tunebridge.crosscutting.logging import (
    CorrelationContext, log_error, log_import_complete, log_import_start, log_track_failure
)
from tunebridge.crosscutting.metrics import MetricsCollector
from tunebridge.crosscutting.reporting import TrackOutcome, TrackStatus
from tunebridge.domain.entities import Playlist, TrackDescriptor
from tunebridge.domain.errors import ImporterError, PersistenceError, SearchError


logger = logging.getLogger(__name__)


STAGE_EXTRACTING = "extracting"
STAGE_RESOLVING = "resolving"
STAGE_ASSEMBLING = "assembling"


@dataclass
class ImportResult:
    """Result of one import run."""

    import_id: str
    playlist: Playlist
    tracks_found: int
    tracks_total: int
    snapshot_hash: str = ""
    outcomes: List[TrackOutcome] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Success payload of the inbound request."""
        return {
            "success": True,
            "playlist": self.playlist.to_json(),
            "tracksFound": self.tracks_found,
            "tracksTotal": self.tracks_total,
        }


class ProgressTracker:
    """Logs resolution progress every ``every`` tracks. Safe to update from workers."""

    def __init__(self, total_tracks: int, every: int = 10):
        self.total_tracks = total_tracks
        self.every = max(1, every)
        self.processed = 0
        self.resolved = 0
        self.start_time = time.monotonic()
        self._lock = threading.Lock()

    def update(self, outcome: TrackOutcome) -> None:
        with self._lock:
            self.processed += 1
            if outcome.resolved:
                self.resolved += 1
            processed, resolved = self.processed, self.resolved

        if processed % self.every == 0 or processed == self.total_tracks:
            elapsed = time.monotonic() - self.start_time
            logger.info(f"Progress: {processed}/{self.total_tracks} tracks processed in {elapsed:.1f}s, "
                        f"resolved: {resolved}")


class ImportPipeline:
    """Runs one playlist import: extract, resolve every track, assemble.

    Only extraction failures and playlist/membership write failures abort the run.
    Search and persistence failures of a single track are logged and that track is
    left out of the playlist.
    """

    def __init__(self,
                 extractor: SourcePlaylistExtractor,
                 search_client: CandidateSearchClient,
                 selector: MatchSelector,
                 resolver: TrackResolver,
                 assembler: PlaylistAssembler,
                 workers: int = 1,
                 run_timeout_sec: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the pipeline.

        Args:
            extractor: Source playlist extractor
            search_client: Target catalog search client
            selector: Candidate selector
            resolver: Canonical track persistence
            assembler: Playlist assembler
            workers: Size of the per-track worker pool; 1 resolves sequentially
            run_timeout_sec: Deadline for starting per-track work, measured from run start
            clock: Monotonic clock, injectable for tests
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.extractor = extractor
        self.search_client = search_client
        self.selector = selector
        self.resolver = resolver
        self.assembler = assembler
        self.workers = workers
        self.run_timeout_sec = run_timeout_sec
        self._clock = clock

    def run(self,
            owner_id: str,
            source_reference: str,
            playlist_name: Optional[str] = None,
            description: Optional[str] = None,
            import_id: Optional[str] = None,
            metrics: Optional[MetricsCollector] = None) -> ImportResult:
        """Import the referenced source playlist for ``owner_id``.

        Raises:
            ImporterError: on a run-fatal failure (bad reference, credential,
                source fetch, malformed source payload, playlist write)
        """
        import_id = import_id or f"import_{uuid.uuid4().hex[:12]}"
        metrics = metrics or MetricsCollector(import_id, source_reference)
        metrics.start_import()
        deadline = None
        if self.run_timeout_sec is not None:
            deadline = self._clock() + self.run_timeout_sec

        log_import_start(logger, import_id, source_reference, owner_id)

        with CorrelationContext(import_id=import_id):
            try:
                with CorrelationContext(stage=STAGE_EXTRACTING), metrics.stage(STAGE_EXTRACTING):
                    descriptors = self.extractor.extract(source_reference)
            except ImporterError as e:
                log_error(logger, "Import failed while extracting source tracks", e)
                raise

            snapshot_hash = calculate_snapshot_hash(descriptors)
            if not descriptors:
                logger.warning("Source playlist has no importable tracks")

            with CorrelationContext(snapshot_hash=snapshot_hash, stage=STAGE_RESOLVING), \
                    metrics.stage(STAGE_RESOLVING):
                outcomes = self._resolve_all(descriptors, deadline, metrics)
                self._mark_duplicates(outcomes)
                for outcome in outcomes:
                    metrics.record_outcome(outcome.status.value)

            try:
                with CorrelationContext(snapshot_hash=snapshot_hash, stage=STAGE_ASSEMBLING), \
                        metrics.stage(STAGE_ASSEMBLING):
                    assembled = self.assembler.assemble(
                        owner_id=owner_id,
                        resolved_track_ids=[o.track_id for o in outcomes],
                        name=playlist_name,
                        description=description,
                    )
            except ImporterError as e:
                log_error(logger, "Import failed while assembling playlist", e)
                raise

        metrics.end_import(assembled.tracks_found, assembled.tracks_total)
        log_import_complete(logger, import_id, assembled.playlist.id,
                            assembled.tracks_found, assembled.tracks_total,
                            outcomes=metrics.get_metrics().outcome_counts)

        return ImportResult(
            import_id=import_id,
            playlist=assembled.playlist,
            tracks_found=assembled.tracks_found,
            tracks_total=assembled.tracks_total,
            snapshot_hash=snapshot_hash,
            outcomes=outcomes,
        )

    def _resolve_all(self, descriptors: List[TrackDescriptor], deadline: Optional[float],
                     metrics: MetricsCollector) -> List[TrackOutcome]:
        """Resolve every descriptor; the result is indexed by source position."""
        progress = ProgressTracker(len(descriptors))

        def work(index: int, descriptor: TrackDescriptor) -> TrackOutcome:
            outcome = self.resolve_track(index, descriptor, deadline, metrics)
            progress.update(outcome)
            return outcome

        if self.workers == 1 or len(descriptors) <= 1:
            return [work(i, d) for i, d in enumerate(descriptors)]

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="resolve") as executor:
            # each task gets its own context copy so correlation fields reach worker log lines
            futures = [
                executor.submit(contextvars.copy_context().run, work, i, d)
                for i, d in enumerate(descriptors)
            ]
            return [future.result() for future in futures]

    def resolve_track(self, index: int, descriptor: TrackDescriptor,
                      deadline: Optional[float] = None,
                      metrics: Optional[MetricsCollector] = None) -> TrackOutcome:
        """Search, select and persist one descriptor. Never raises for per-track failures."""
        if deadline is not None and self._clock() >= deadline:
            logger.warning(f"Run deadline passed, skipping track {index} ({descriptor.title})")
            return TrackOutcome(index=index, descriptor=descriptor,
                                status=TrackStatus.DEADLINE_EXCEEDED, error="run deadline exceeded")

        try:
            if metrics:
                metrics.record_search_call()
            candidates = self.search_client.find_candidates(descriptor)
        except SearchError as e:
            log_track_failure(logger, index, descriptor.title, descriptor.artist, e, stage_detail="search")
            return TrackOutcome(index=index, descriptor=descriptor,
                                status=TrackStatus.SEARCH_ERROR, error=str(e))

        match = self.selector.find_best_match(descriptor, candidates)
        if match.candidate is None:
            logger.info(f"No match for track {index} ({descriptor.title} by {descriptor.artist})")
            return TrackOutcome(index=index, descriptor=descriptor,
                                status=TrackStatus.NOT_FOUND, match_reason=match.reason)

        try:
            track = self.resolver.resolve(match.candidate, descriptor)
        except PersistenceError as e:
            log_track_failure(logger, index, descriptor.title, descriptor.artist, e, stage_detail="persist")
            return TrackOutcome(index=index, descriptor=descriptor, status=TrackStatus.PERSISTENCE_ERROR,
                                candidate=match.candidate, match_reason=match.reason, error=str(e))

        return TrackOutcome(index=index, descriptor=descriptor, status=TrackStatus.RESOLVED,
                            candidate=match.candidate, track_id=track.id, match_reason=match.reason)

    @staticmethod
    def _mark_duplicates(outcomes: List[TrackOutcome]) -> None:
        """Flag later outcomes resolving to an already-seen track; first occurrence wins."""
        seen = set()
        for outcome in outcomes:
            if outcome.track_id is None:
                continue
            if outcome.track_id in seen:
                outcome.status = TrackStatus.DUPLICATE
            else:
                seen.add(outcome.track_id)
