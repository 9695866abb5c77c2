"""
Spotify credentials
───────────────────
・client-credentials flow (Spotipy) for the public Web API
・web-player token from the ``sp_dc`` cookie for the lyrics API
Both tokens are refreshed lazily once they are within 30 s of expiring.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

import requests
import spotipy
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from lavasrc.exceptions import CredentialsError, SourceError, TokenError
from lavasrc.http import fetch_json, new_session
from lavasrc.tokens import AccessToken

logger = logging.getLogger(__name__)

WEB_PLAYER_TOKEN_URL = "https://open.spotify.com/get_access_token"


class SpotifyApiAccessor:
    """Hands out a ``spotipy.Spotify`` bound to a valid app token."""

    def __init__(self,
                 client_id: Optional[str],
                 client_secret: Optional[str],
                 *,
                 requests_timeout: int = 5,
                 retries: int = 2):
        self.client_id = client_id
        self.client_secret = client_secret
        if not self.has_valid_credentials():
            raise CredentialsError("You must provide a valid client id and client secret")

        self._auth = SpotifyClientCredentials(client_id=client_id, client_secret=client_secret)
        self._requests_timeout = requests_timeout
        self._retries = retries
        self._token: Optional[AccessToken] = None
        self._sp: Optional[spotipy.Spotify] = None
        self._lock = threading.Lock()

    def has_valid_credentials(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)

    def get_access_token(self) -> str:
        if self._token is None or self._token.is_expired():
            with self._lock:
                if self._token is None or self._token.is_expired():
                    self._refresh_access_token()
        return self._token.value

    def _refresh_access_token(self):
        if not self.has_valid_credentials():
            raise CredentialsError("You must provide a valid client id and client secret")
        try:
            tk = self._auth.get_access_token(as_dict=True, check_cache=False)
        except (SpotifyOauthError, requests.exceptions.RequestException) as exc:
            raise TokenError("Access token refreshing failed") from exc

        self._token = AccessToken(value=tk["access_token"], expires_at=float(tk["expires_at"]))
        self._sp = spotipy.Spotify(
            auth=self._token.value,
            requests_timeout=self._requests_timeout,
            retries=self._retries,
        )
        logger.debug("Spotify access token refreshed, expires at %s", self._token.expires_at)

    @property
    def client(self) -> spotipy.Spotify:
        self.get_access_token()
        return self._sp


class WebPlayerTokenProvider:
    """Web-player token (needed by spclient endpoints such as color-lyrics)."""

    def __init__(self, sp_dc: Optional[str], session: Optional[requests.Session] = None, timeout: float = 10):
        self.sp_dc = sp_dc
        self._session = session or new_session()
        self._timeout = timeout
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def request_token(self) -> AccessToken:
        if not self.sp_dc:
            raise CredentialsError("Spotify spDc must be set")
        try:
            js = fetch_json(
                self._session,
                WEB_PLAYER_TOKEN_URL,
                params={"reason": "transport", "productType": "web_player"},
                headers={"App-Platform": "WebPlayer", "Cookie": f"sp_dc={self.sp_dc}"},
                timeout=self._timeout,
            )
        except SourceError as exc:
            raise TokenError("Web player token request failed") from exc
        if not js or not js.get("accessToken"):
            raise TokenError("Web player token response had no accessToken")

        self._token = AccessToken(
            value=js["accessToken"],
            expires_at=int(js.get("accessTokenExpirationTimestampMs", 0)) / 1000,
        )
        logger.debug("Spotify web player token refreshed")
        return self._token

    def get_token(self) -> str:
        with self._lock:
            if self._token is None or self._token.is_expired():
                self.request_token()
            return self._token.value
