"""Outbound HTTP for the SoundCloud and ad-pixel integrations."""

from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)


class HttpClient:
    """httpx.AsyncClient bound to one external service.

    app.py builds one per integration so each carries its own timeout and
    shows up under its own ``service`` name when a request fails in transit.
    Transport errors are logged and re-raised; status codes are left to the
    caller.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        *,
        service: str = "external",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.service = service
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": f"download-gate ({service})"},
            transport=transport,
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            log.warning(
                "outbound_request_failed",
                service=self.service,
                method=method,
                host=httpx.URL(url).host,
                error_type=type(e).__name__,
            )
            raise

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
