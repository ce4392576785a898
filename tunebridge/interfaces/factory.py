import logging
from typing import Optional

from tunebridge.application.assembler import PlaylistAssembler
from tunebridge.application.extractor import SourcePlaylistExtractor
from tunebridge.application.matching import MatchSelector
from tunebridge.application.persistence import TrackResolver
from tunebridge.application.pipeline import ImportPipeline
from tunebridge.application.search import CandidateSearchClient
from tunebridge.crosscutting.config import Settings
from tunebridge.domain.ports import RecordStore, SourceCatalog, TargetCatalog
from tunebridge.infrastructure.providers.spotify import SpotifySourceCatalog
from tunebridge.infrastructure.providers.youtube_music import YouTubeMusicCatalog
from tunebridge.infrastructure.storage.memory import InMemoryRecordStore
from tunebridge.infrastructure.storage.sqlite import SqliteRecordStore


logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> RecordStore:
    """Create the record store selected by ``settings.store_backend``."""
    if settings.store_backend == 'memory':
        logger.warning("Using in-memory record store; records are lost on exit")
        return InMemoryRecordStore()
    return SqliteRecordStore(settings.db_path)


def create_source_catalog(settings: Settings) -> SpotifySourceCatalog:
    return SpotifySourceCatalog(
        client_id=settings.spotify_client_id,
        client_secret=settings.spotify_client_secret,
        timeout_sec=settings.http_timeout_sec,
    )


def create_target_catalog(settings: Settings) -> YouTubeMusicCatalog:
    return YouTubeMusicCatalog(
        language=settings.ytmusic_language,
        songs_only=settings.songs_only,
        timeout_sec=settings.http_timeout_sec,
    )


def build_pipeline(settings: Settings,
                   store: RecordStore,
                   source_catalog: Optional[SourceCatalog] = None,
                   target_catalog: Optional[TargetCatalog] = None) -> ImportPipeline:
    """Wire an ImportPipeline from settings; catalogs can be injected for tests."""
    source_catalog = source_catalog or create_source_catalog(settings)
    target_catalog = target_catalog or create_target_catalog(settings)

    return ImportPipeline(
        extractor=SourcePlaylistExtractor(source_catalog),
        search_client=CandidateSearchClient(target_catalog, max_candidates=settings.max_candidates),
        selector=MatchSelector(max_candidates=settings.max_candidates),
        resolver=TrackResolver(store, uri_builder=target_catalog.playable_uri),
        assembler=PlaylistAssembler(store, default_name=settings.default_playlist_name),
        workers=settings.workers,
        run_timeout_sec=settings.run_timeout_sec,
    )
