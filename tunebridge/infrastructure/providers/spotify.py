import os
import time
import logging
from typing import Any, Dict, Optional

import requests
import spotipy

from tunebridge.domain.errors import CredentialError, UpstreamFetchError


logger = logging.getLogger(__name__)


class SpotifySourceCatalog:
    """Spotify as the source catalog, read with an app-only (client credentials) token."""

    TOKEN_URL = 'https://accounts.spotify.com/api/token'

    def __init__(self,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 timeout_sec: int = 15):
        """Initialize the catalog.

        Args:
            client_id: Spotify client ID, defaults to SPOTIFY_CLIENT_ID
            client_secret: Spotify client secret, defaults to SPOTIFY_CLIENT_SECRET
            timeout_sec: Timeout for every HTTP call
        """
        self.client_id = client_id or os.getenv('SPOTIFY_CLIENT_ID')
        self.client_secret = client_secret or os.getenv('SPOTIFY_CLIENT_SECRET')
        self.timeout_sec = timeout_sec

        self._access_token: Optional[str] = None
        self._expires_at: float = 0.0

    def exchange_credential(self) -> str:
        """Obtain a bearer token via the client credentials grant.

        The token is cached until shortly before it expires.

        Raises:
            CredentialError: credentials missing, exchange rejected or no token returned
        """
        if not self.client_id or not self.client_secret:
            raise CredentialError("Spotify credentials not configured")

        now = time.time()
        if self._access_token and now < self._expires_at:
            return self._access_token

        try:
            response = requests.post(
                self.TOKEN_URL,
                data={'grant_type': 'client_credentials'},
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout_sec,
            )
        except requests.RequestException as e:
            logger.error(f"Spotify token request failed: {e}")
            raise CredentialError(f"Failed to get Spotify access token: {e}") from e

        if response.status_code != 200:
            logger.error(f"Spotify token error: {response.status_code} - {response.text[:200]}")
            raise CredentialError("Failed to get Spotify access token")

        try:
            payload = response.json()
        except ValueError as e:
            raise CredentialError("Spotify token response is not JSON") from e

        token = payload.get('access_token') if isinstance(payload, dict) else None
        if not token:
            raise CredentialError("No access token received from Spotify")

        try:
            expires_in = int(payload.get('expires_in') or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid Spotify token lifetime: {payload.get('expires_in')!r}")
            expires_in = 0
        self._access_token = token
        self._expires_at = now + max(0, expires_in - 30)
        return token

    def _make_client(self, token: str) -> spotipy.Spotify:
        # retries are disabled: a failed fetch is reported, never repeated
        return spotipy.Spotify(
            auth=token,
            requests_timeout=self.timeout_sec,
            retries=0,
            status_retries=0,
        )

    def _fetch(self, operation: str, call):
        try:
            return call()
        except spotipy.SpotifyException as e:
            status = getattr(e, 'http_status', None)
            logger.error(f"Spotify {operation} error: {status} - {e}")
            raise UpstreamFetchError(f"Failed to fetch {operation}: {status}", status=status) from e
        except requests.RequestException as e:
            logger.error(f"Spotify {operation} request failed: {e}")
            raise UpstreamFetchError(f"Failed to fetch {operation}: {e}") from e

    def fetch_collection(self, collection_id: str, token: str) -> Dict[str, Any]:
        """Fetch a playlist with every page of its entries merged into ``tracks.items``.

        Raises:
            UpstreamFetchError: any page could not be fetched
        """
        client = self._make_client(token)
        playlist = self._fetch('playlist', lambda: client.playlist(collection_id))
        if not isinstance(playlist, dict):
            return playlist

        page = playlist.get('tracks')
        if not isinstance(page, dict) or not isinstance(page.get('items'), list):
            # shape is validated by the extractor
            return playlist

        items = list(page['items'])
        while page.get('next'):
            current = page
            page = self._fetch('playlist', lambda: client.next(current))
            if not isinstance(page, dict):
                break
            items.extend(page.get('items') or [])
            logger.debug(f"Fetched {len(items)} playlist entries so far")

        merged = dict(playlist)
        merged['tracks'] = dict(playlist['tracks'], items=items, next=None)
        return merged

    def fetch_item(self, item_id: str, token: str) -> Dict[str, Any]:
        """Fetch a single track.

        Raises:
            UpstreamFetchError: the track could not be fetched
        """
        client = self._make_client(token)
        return self._fetch('track', lambda: client.track(item_id))
