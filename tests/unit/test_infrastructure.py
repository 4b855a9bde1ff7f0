"""Unit tests for the infrastructure layer (HTTP, SoundCloud, pixel dispatch)."""

from __future__ import annotations

import base64
import hashlib
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from config import PixelSettings, SoundCloudSettings
from infrastructure.http_client import HttpClient
from infrastructure.pixel.dispatcher import HttpPixelDispatcher
from infrastructure.pixel.protocol import PixelEventData
from infrastructure.social.protocol import SocialPlatformError
from infrastructure.social.soundcloud import SoundCloudClient
from schemas.models.pixel import PixelConfig, PixelPlatform


# ── Helpers ───────────────────────────────────────────────────────────────────


def _resp(status_code: int = 200, json_body=None, text: str = "") -> MagicMock:
    resp = MagicMock(status_code=status_code, text=text)
    resp.json.return_value = json_body if json_body is not None else {}
    return resp


def _soundcloud(**overrides):
    settings = SoundCloudSettings(
        soundcloud_client_id="cid",
        soundcloud_client_secret="csecret",
        **overrides,
    )
    http = MagicMock()
    http.get = AsyncMock()
    http.post = AsyncMock()
    http.put = AsyncMock()
    return SoundCloudClient(settings, http), http


def _pixel_event() -> PixelEventData:
    return PixelEventData(
        event_id="evt-1",
        event_name="CompleteRegistration",
        event_time=1_772_366_400,
        event_source_url="https://thebackstage.app/gate/summer-mix",
        email_hash="e" * 64,
        ip_address="1.2.3.4",
        user_agent="Mozilla/5.0",
    )


def _pixel_config(fb_token="fb-token", tt_token="tt-token") -> PixelConfig:
    return PixelConfig.model_validate(
        {
            "facebook": {"enabled": True, "pixel_id": "fb-pixel", "access_token": fb_token},
            "google": {"enabled": True, "tag_id": "G-123"},
            "tiktok": {"enabled": True, "pixel_id": "tt-pixel", "access_token": tt_token},
        }
    )


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_put_sends_service_user_agent(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        transport = httpx.MockTransport(handler)
        async with HttpClient(service="soundcloud", transport=transport) as client:
            resp = await client.put("https://api.soundcloud.com/me/track_reposts/1")

        assert resp.status_code == 200
        assert seen[0].method == "PUT"
        assert seen[0].headers["User-Agent"] == "download-gate (soundcloud)"

    async def test_error_status_is_returned_not_raised(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with HttpClient(transport=transport) as client:
            resp = await client.get("https://graph.facebook.com/v18.0/px/events")

        assert resp.status_code == 503

    async def test_transport_error_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = httpx.MockTransport(handler)
        async with HttpClient(service="pixel", transport=transport) as client:
            with pytest.raises(httpx.ConnectError):
                await client.post("https://business-api.tiktok.com/open_api/v1.3/event/track/")


# ── SoundCloudClient: OAuth ───────────────────────────────────────────────────


class TestSoundCloudOAuth:
    def test_is_configured(self):
        client, _ = _soundcloud()
        assert client.is_configured is True

    def test_pkce_pair_is_s256(self):
        client, _ = _soundcloud()
        pair = client.generate_pkce()

        digest = hashlib.sha256(pair.verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        assert pair.challenge == expected
        assert 43 <= len(pair.verifier) <= 128

    def test_pkce_verifiers_differ(self):
        client, _ = _soundcloud()
        assert client.generate_pkce().verifier != client.generate_pkce().verifier

    def test_authorization_url(self):
        client, _ = _soundcloud()
        url = client.build_authorization_url(
            "state-abc", "https://thebackstage.app/api/auth/soundcloud/callback", "chal"
        )

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
            "https://secure.soundcloud.com/authorize"
        )
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}
        assert params == {
            "client_id": "cid",
            "redirect_uri": "https://thebackstage.app/api/auth/soundcloud/callback",
            "response_type": "code",
            "code_challenge": "chal",
            "code_challenge_method": "S256",
            "state": "state-abc",
        }

    async def test_exchange_code_success(self):
        client, http = _soundcloud()
        http.post.return_value = _resp(
            200, {"access_token": "tok", "refresh_token": "ref", "expires_in": 3600}
        )

        token = await client.exchange_code("code-1", "https://cb", "verifier-1")

        assert token.access_token == "tok"
        assert token.refresh_token == "ref"
        args, kwargs = http.post.call_args
        assert args[0] == "https://secure.soundcloud.com/oauth/token"
        assert kwargs["data"]["grant_type"] == "authorization_code"
        assert kwargs["data"]["code_verifier"] == "verifier-1"
        assert kwargs["data"]["code"] == "code-1"

    @pytest.mark.parametrize(
        "resp",
        [_resp(401, {"error": "invalid_grant"}), _resp(200, {})],
        ids=["rejected", "no_access_token"],
    )
    async def test_exchange_code_failure_raises(self, resp):
        client, http = _soundcloud()
        http.post.return_value = resp
        with pytest.raises(SocialPlatformError):
            await client.exchange_code("code-1", "https://cb", "verifier-1")

    async def test_get_profile(self):
        client, http = _soundcloud()
        http.get.return_value = _resp(
            200,
            {
                "id": 12345,
                "username": "fan",
                "permalink_url": "https://soundcloud.com/fan",
                "avatar_url": "https://i1.sndcdn.com/a.jpg",
            },
        )

        profile = await client.get_profile("tok")

        assert profile.user_id == "12345"
        assert profile.username == "fan"
        assert http.get.call_args.kwargs["headers"]["Authorization"] == "OAuth tok"

    async def test_get_profile_failure_raises(self):
        client, http = _soundcloud()
        http.get.return_value = _resp(401)
        with pytest.raises(SocialPlatformError) as exc:
            await client.get_profile("tok")
        assert exc.value.status_code == 401


# ── SoundCloudClient: write actions ───────────────────────────────────────────


class TestSoundCloudWrites:
    @pytest.mark.parametrize(
        "method_name, arg, verb, path",
        [
            ("create_repost", "111", "post", "/reposts/tracks/111"),
            ("create_favorite", "111", "post", "/likes/tracks/111"),
            ("create_follow", "222", "put", "/me/followings/222"),
        ],
        ids=["repost", "favorite", "follow"],
    )
    async def test_success(self, method_name, arg, verb, path):
        client, http = _soundcloud()
        getattr(http, verb).return_value = _resp(201)

        result = await getattr(client, method_name)("tok", arg)

        assert result.success is True
        assert getattr(http, verb).call_args.args[0] == f"https://api.soundcloud.com{path}"

    async def test_refusal_is_reported_not_raised(self):
        client, http = _soundcloud()
        http.post.return_value = _resp(403, text="forbidden")

        result = await client.create_repost("tok", "111")

        assert result.success is False
        assert "403" in result.error

    async def test_transport_error_is_reported_not_raised(self):
        client, http = _soundcloud()
        http.put.side_effect = httpx.ConnectError("connection refused")

        result = await client.create_follow("tok", "222")

        assert result.success is False
        assert "connection refused" in result.error

    async def test_update_purchase_link_body(self):
        client, http = _soundcloud()
        http.put.return_value = _resp(200)

        result = await client.update_purchase_link(
            "tok", "111", "https://thebackstage.app/gate/summer-mix", "Download Free Track"
        )

        assert result.success is True
        assert http.put.call_args.kwargs["json"] == {
            "track": {
                "purchase_url": "https://thebackstage.app/gate/summer-mix",
                "purchase_title": "Download Free Track",
            }
        }

    async def test_post_comment_with_timestamp(self):
        client, http = _soundcloud()
        http.post.return_value = _resp(201, {"id": 777})

        comment_id = await client.post_comment("tok", "111", "great track", timestamp=42_000)

        assert comment_id == "777"
        assert http.post.call_args.kwargs["json"] == {
            "comment": {"body": "great track", "timestamp": 42_000}
        }

    async def test_post_comment_without_timestamp(self):
        client, http = _soundcloud()
        http.post.return_value = _resp(201, {"id": 1})

        await client.post_comment("tok", "111", "great track")

        assert http.post.call_args.kwargs["json"] == {"comment": {"body": "great track"}}

    async def test_post_comment_failure_raises(self):
        client, http = _soundcloud()
        http.post.return_value = _resp(422)
        with pytest.raises(SocialPlatformError):
            await client.post_comment("tok", "111", "great track")

    async def test_get_track_info(self):
        client, http = _soundcloud()
        http.get.return_value = _resp(200, {"id": 111, "duration": 215_000, "title": "Mix"})

        info = await client.get_track_info("tok", "111")

        assert info.duration_ms == 215_000
        assert info.title == "Mix"


# ── HttpPixelDispatcher ───────────────────────────────────────────────────────


class TestHttpPixelDispatcher:
    def _make(self):
        http = MagicMock()
        http.post = AsyncMock()
        return HttpPixelDispatcher(PixelSettings(), http), http

    async def test_facebook_payload(self):
        dispatcher, http = self._make()
        http.post.return_value = _resp(200, {"events_received": 1})

        result = await dispatcher.send_event(
            PixelPlatform.FACEBOOK, _pixel_config(), _pixel_event()
        )

        assert result.success is True
        args, kwargs = http.post.call_args
        assert args[0] == "https://graph.facebook.com/v19.0/fb-pixel/events"
        assert kwargs["params"] == {"access_token": "fb-token"}
        data = kwargs["json"]["data"][0]
        assert data["event_name"] == "CompleteRegistration"
        assert data["event_id"] == "evt-1"
        assert data["user_data"]["em"] == ["e" * 64]
        assert data["user_data"]["client_ip_address"] == "1.2.3.4"

    async def test_tiktok_payload(self):
        dispatcher, http = self._make()
        http.post.return_value = _resp(200, {"code": 0, "message": "OK"})

        result = await dispatcher.send_event(PixelPlatform.TIKTOK, _pixel_config(), _pixel_event())

        assert result.success is True
        kwargs = http.post.call_args.kwargs
        assert kwargs["headers"] == {"Access-Token": "tt-token"}
        assert kwargs["json"]["event_source_id"] == "tt-pixel"
        assert kwargs["json"]["data"][0]["user"]["email"] == "e" * 64

    async def test_tiktok_api_error_code(self):
        dispatcher, http = self._make()
        http.post.return_value = _resp(200, {"code": 40001, "message": "invalid"})

        result = await dispatcher.send_event(PixelPlatform.TIKTOK, _pixel_config(), _pixel_event())

        assert result.success is False

    async def test_google_is_skipped(self):
        dispatcher, http = self._make()

        result = await dispatcher.send_event(PixelPlatform.GOOGLE, _pixel_config(), _pixel_event())

        assert result.success is True
        assert result.skipped is True
        http.post.assert_not_called()

    @pytest.mark.parametrize(
        "platform", [PixelPlatform.FACEBOOK, PixelPlatform.TIKTOK], ids=["facebook", "tiktok"]
    )
    async def test_missing_access_token(self, platform):
        dispatcher, http = self._make()
        config = _pixel_config(fb_token=None, tt_token=None)

        result = await dispatcher.send_event(platform, config, _pixel_event())

        assert result.success is False
        http.post.assert_not_called()

    async def test_transport_error_never_raises(self):
        dispatcher, http = self._make()
        http.post.side_effect = httpx.ReadTimeout("timed out")

        result = await dispatcher.send_event(
            PixelPlatform.FACEBOOK, _pixel_config(), _pixel_event()
        )

        assert result.success is False
        assert result.platform == PixelPlatform.FACEBOOK
