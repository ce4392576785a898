import logging
import threading
from typing import Any, Dict, List, Optional

import requests
from ytmusicapi import YTMusic
from ytmusicapi.exceptions import YTMusicError

from tunebridge.domain.entities import CandidateItem
from tunebridge.domain.errors import SearchError


logger = logging.getLogger(__name__)


SONGS_FILTER = 'songs'


class TimeoutSession(requests.Session):
    """requests session applying a default timeout to every call."""

    def __init__(self, timeout_sec: int):
        super().__init__()
        self.timeout_sec = timeout_sec

    def request(self, method, url, **kwargs):
        kwargs.setdefault('timeout', self.timeout_sec)
        return super().request(method, url, **kwargs)


def _artist_name(result: Dict[str, Any]) -> str:
    for artist in result.get('artists') or []:
        if isinstance(artist, dict) and artist.get('name'):
            return artist['name']
    return ''


def candidate_from_result(result: Any) -> Optional[CandidateItem]:
    """Map one ytmusicapi search result to a candidate; None when it is not playable."""
    if not isinstance(result, dict) or not result.get('videoId'):
        return None

    thumbnails = result.get('thumbnails') or []
    thumbnail = thumbnails[0].get('url') if thumbnails and isinstance(thumbnails[0], dict) else None

    return CandidateItem(
        external_id=result['videoId'],
        title=result.get('title') or '',
        artist=_artist_name(result),
        thumbnail=thumbnail,
    )


def candidates_from_results(results: Any, limit: Optional[int] = None) -> List[CandidateItem]:
    """Map search results into candidates in result order, skipping repeats.

    Raises:
        SearchError: if ``results`` is not a list of results
    """
    if not isinstance(results, list):
        raise SearchError("Malformed YouTube Music search response")

    candidates: List[CandidateItem] = []
    seen = set()
    for result in results:
        candidate = candidate_from_result(result)
        if candidate is None or candidate.external_id in seen:
            continue
        seen.add(candidate.external_id)
        candidates.append(candidate)
        if limit is not None and len(candidates) >= limit:
            break
    return candidates


def watch_uri(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class YouTubeMusicCatalog:
    """YouTube Music as the target catalog, queried through ytmusicapi."""

    def __init__(self,
                 songs_only: bool = True,
                 timeout_sec: int = 15,
                 language: str = 'en',
                 client: Optional[YTMusic] = None):
        """Initialize the catalog.

        Args:
            songs_only: Restrict results to songs, which the catalog ranks by popularity
            timeout_sec: Timeout for every HTTP call made by the client
            language: Language of result metadata
            client: Optional ready YTMusic client; created on first search otherwise
        """
        self.songs_only = songs_only
        self.timeout_sec = timeout_sec
        self.language = language
        self._client = client
        self._client_lock = threading.Lock()

    def _get_client(self) -> YTMusic:
        with self._client_lock:
            if self._client is None:
                self._client = YTMusic(requests_session=TimeoutSession(self.timeout_sec),
                                       language=self.language)
            return self._client

    def search(self, query: str, limit: int = 5) -> List[CandidateItem]:
        """Search the catalog.

        Raises:
            SearchError: transport failure, timeout, error response or unparseable result
        """
        logger.debug(f"YouTube Music search: {query!r} (limit={limit})")
        try:
            results = self._get_client().search(
                query,
                filter=SONGS_FILTER if self.songs_only else None,
                limit=limit,
            )
        except requests.Timeout as e:
            raise SearchError(f"YouTube Music search timed out: {e}") from e
        except requests.RequestException as e:
            raise SearchError(f"YouTube Music search failed: {e}") from e
        except YTMusicError as e:
            raise SearchError(f"YouTube Music search failed: {e}") from e

        candidates = candidates_from_results(results, limit=limit)
        logger.debug(f"YouTube Music returned {len(candidates)} candidates for {query!r}")
        return candidates

    def playable_uri(self, external_id: str) -> str:
        return watch_uri(external_id)
