"""HTTP client for the NoteMemo sync server.

A thin async wrapper over ``httpx.AsyncClient`` that injects the access code
and device id headers into every request and translates transport and HTTP
failures into the remote store error taxonomy:

- connect errors, timeouts, 5xx           → :class:`RemoteStoreUnavailable`
- non-JSON bodies                          → :class:`MalformedResponseError`
- 401 / 403                                → :class:`RemoteAuthError`
- 400 with sync switched off on the server → :class:`RemoteSyncDisabled`

The client is constructed and owned by the hosting process and passed into
the stores that use it.

Usage::

    async with NoteMemoClient(url, access_code, device_id) as client:
        status = await client.get_json("/api/sync")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from notememo.constants import ACCESS_CODE_HEADER, DEVICE_ID_HEADER
from notememo.remote_gateway.base import (
    MalformedResponseError,
    RemoteAuthError,
    RemoteStoreUnavailable,
    RemoteSyncDisabled,
)

logger = logging.getLogger(__name__)


class NoteMemoClient:
    """Async client for the NoteMemo REST API.

    Args:
        url: Base URL of the sync server (trailing slash is stripped).
        access_code: Shared-secret access code sent in ``x-access-code``.
        device_id: This installation's device token sent in ``x-device-id``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (e.g. ``ASGITransport`` in tests).
    """

    def __init__(
        self,
        url: str,
        access_code: str,
        device_id: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url: str = url.rstrip("/")
        self._access_code: str = access_code
        self._device_id: str | None = device_id
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=self._url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @device_id.setter
    def device_id(self, value: str | None) -> None:
        self._device_id = value

    def _headers(self) -> dict[str, str]:
        headers = {ACCESS_CODE_HEADER: self._access_code}
        if self._device_id:
            headers[DEVICE_ID_HEADER] = self._device_id
        return headers

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET *path* and return the decoded JSON body."""
        return await self._send("GET", path, params=params)

    async def post_json(self, path: str, payload: Any) -> Any:
        """POST *payload* as JSON to *path* and return the decoded JSON body."""
        return await self._send("POST", path, json=payload)

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteStoreUnavailable(f"{method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise RemoteAuthError(response.status_code, _detail(response))
        if response.status_code == 400:
            # The only 400 the server emits for a well-formed request is "sync disabled".
            raise RemoteSyncDisabled(_detail(response))
        if response.status_code >= 400:
            logger.warning("%s %s returned HTTP %d", method, path, response.status_code)
            raise RemoteStoreUnavailable(
                f"{method} {path} returned HTTP {response.status_code}: {_detail(response)}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{method} {path} returned non-JSON body") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Dispose the underlying ``httpx.AsyncClient``."""
        await self._client.aclose()

    async def __aenter__(self) -> NoteMemoClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def _detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        return str(detail) if detail is not None else None
    return None
