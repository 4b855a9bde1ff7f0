"""SoundCloud implementation of SocialPlatformClient.

OAuth 2.1 authorization-code flow with PKCE (S256) against
secure.soundcloud.com; API calls against api.soundcloud.com with the
``Authorization: OAuth <token>`` header SoundCloud expects.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from authlib.common.security import generate_token
from authlib.common.urls import add_params_to_uri
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from config import SoundCloudSettings
from infrastructure.http_client import HttpClient
from infrastructure.social.protocol import (
    OperationResult,
    PKCEPair,
    PlatformProfile,
    SocialPlatformError,
    TokenResponse,
    TrackInfo,
)
from shared.logging import get_logger

log = get_logger(__name__)

# RFC 7636 allows 43-128 characters
_PKCE_VERIFIER_LENGTH = 64


class SoundCloudClient:
    def __init__(self, settings: SoundCloudSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client
        self._api = settings.soundcloud_api_base.rstrip("/")
        self._auth = settings.soundcloud_auth_base.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    # ── OAuth ────────────────────────────────────────────────────────────────

    def generate_pkce(self) -> PKCEPair:
        verifier = generate_token(_PKCE_VERIFIER_LENGTH)
        return PKCEPair(verifier=verifier, challenge=create_s256_code_challenge(verifier))

    def build_authorization_url(self, state: str, redirect_uri: str, challenge: str) -> str:
        return add_params_to_uri(
            f"{self._auth}/authorize",
            [
                ("client_id", self._settings.soundcloud_client_id),
                ("redirect_uri", redirect_uri),
                ("response_type", "code"),
                ("code_challenge", challenge),
                ("code_challenge_method", "S256"),
                ("state", state),
            ],
        )

    async def exchange_code(self, code: str, redirect_uri: str, verifier: str) -> TokenResponse:
        response = await self._http.post(
            f"{self._auth}/oauth/token",
            data={
                "grant_type": "authorization_code",
                "client_id": self._settings.soundcloud_client_id,
                "client_secret": self._settings.soundcloud_client_secret,
                "redirect_uri": redirect_uri,
                "code_verifier": verifier,
                "code": code,
            },
            headers={"Accept": "application/json; charset=utf-8"},
        )
        if response.status_code != 200:
            log.error(
                "soundcloud_token_exchange_failed",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise SocialPlatformError(
                f"Token exchange failed: {response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        if not data.get("access_token"):
            raise SocialPlatformError("Token exchange returned no access token")
        return TokenResponse(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            expires_in=data.get("expires_in"),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )

    async def get_profile(self, access_token: str) -> PlatformProfile:
        response = await self._http.get(f"{self._api}/me", headers=self._headers(access_token))
        if response.status_code != 200:
            log.error(
                "soundcloud_profile_fetch_failed",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise SocialPlatformError(
                f"Failed to get user profile: {response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        return PlatformProfile(
            user_id=str(data["id"]),
            username=data.get("username") or "",
            profile_url=data.get("permalink_url"),
            avatar_url=data.get("avatar_url"),
        )

    # ── Write actions ────────────────────────────────────────────────────────

    async def create_repost(self, access_token: str, track_id: str) -> OperationResult:
        return await self._write(
            "repost", "POST", f"/reposts/tracks/{track_id}", access_token
        )

    async def create_favorite(self, access_token: str, track_id: str) -> OperationResult:
        return await self._write(
            "favorite", "POST", f"/likes/tracks/{track_id}", access_token
        )

    async def create_follow(self, access_token: str, user_id: str) -> OperationResult:
        return await self._write(
            "follow", "PUT", f"/me/followings/{user_id}", access_token
        )

    async def post_comment(
        self, access_token: str, track_id: str, text: str, timestamp: Optional[int] = None
    ) -> str:
        comment: dict[str, Any] = {"body": text}
        if timestamp is not None:
            comment["timestamp"] = timestamp
        response = await self._http.post(
            f"{self._api}/tracks/{track_id}/comments",
            json={"comment": comment},
            headers=self._headers(access_token),
        )
        if response.status_code not in (200, 201):
            raise SocialPlatformError(
                f"Failed to post comment: {response.status_code}",
                status_code=response.status_code,
            )
        return str(response.json().get("id", ""))

    async def get_track_info(self, access_token: str, track_id: str) -> TrackInfo:
        response = await self._http.get(
            f"{self._api}/tracks/{track_id}", headers=self._headers(access_token)
        )
        if response.status_code != 200:
            raise SocialPlatformError(
                f"Failed to get track: {response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        return TrackInfo(
            track_id=str(data.get("id", track_id)),
            duration_ms=int(data.get("duration") or 0),
            title=data.get("title"),
        )

    async def update_purchase_link(
        self, access_token: str, track_id: str, url: str, title: Optional[str] = None
    ) -> OperationResult:
        track: dict[str, Any] = {"purchase_url": url}
        if title:
            track["purchase_title"] = title
        return await self._write(
            "purchase_link_update",
            "PUT",
            f"/tracks/{track_id}",
            access_token,
            json={"track": track},
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"OAuth {access_token}",
            "Accept": "application/json; charset=utf-8",
        }

    async def _write(
        self,
        action: str,
        method: str,
        path: str,
        access_token: str,
        json: Optional[dict[str, Any]] = None,
    ) -> OperationResult:
        send = self._http.post if method == "POST" else self._http.put
        try:
            response = await send(
                f"{self._api}{path}", json=json, headers=self._headers(access_token)
            )
        except httpx.HTTPError as e:
            log.warning(
                f"soundcloud_{action}_request_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return OperationResult(success=False, error=str(e))

        if 200 <= response.status_code < 300:
            return OperationResult(success=True)
        log.warning(
            f"soundcloud_{action}_rejected",
            status_code=response.status_code,
            response_text=response.text[:200],
        )
        return OperationResult(
            success=False, error=f"{action} failed: {response.status_code}"
        )
