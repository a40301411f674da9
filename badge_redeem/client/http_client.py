import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import aiohttp

from badge_redeem.exceptions import HTTPRequestError, ResponseFormatError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class BinaryResponse:
    status: int
    content: bytes
    headers: Mapping[str, str]


class HttpClient:
    def __init__(self, base_url: str, timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        # Created lazily: a ClientSession wants a running loop
        self.session = session
        self._owns_session = session is None

    def _get_headers(self, accept: str = "application/json"):
        return {
            "Content-Type": "application/json",
            "Accept": accept,
        }

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            kwargs = {"timeout": self.timeout} if self.timeout else {}
            self.session = aiohttp.ClientSession(**kwargs)
            self._owns_session = True
        return self.session

    async def _raise_for_status(self, response: aiohttp.ClientResponse, method: str):
        if 200 <= response.status < 300:
            return
        # Error pages are not always UTF-8
        body = await response.text(errors="replace")
        raise HTTPRequestError(response.status, str(response.url), response.reason, method, body)

    async def _read_json(self, response: aiohttp.ClientResponse, url: str) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            raise ResponseFormatError(f"Response body is not valid JSON: {e}", url=url)

    async def get(self, endpoint: str, params=None) -> Any:
        url = self._url(endpoint)
        headers = self._get_headers()
        try:
            async with self._get_session().get(url, headers=headers, params=params) as response:
                await self._raise_for_status(response, "GET")
                return await self._read_json(response, url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, "GET", str(e) or type(e).__name__)

    async def post(self, endpoint: str, data=None, raise_for_status: bool = True) -> Any:
        """
        POST a JSON body and decode the JSON answer.

        With raise_for_status=False the body is decoded whatever the status,
        for endpoints that report failures inside a JSON payload.
        """
        url = self._url(endpoint)
        headers = self._get_headers()
        try:
            async with self._get_session().post(url, headers=headers, json=data) as response:
                if raise_for_status:
                    await self._raise_for_status(response, "POST")
                logger.debug(f"POST {url} -> {response.status}")
                return await self._read_json(response, url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, "POST", str(e) or type(e).__name__)

    async def post_for_bytes(self, endpoint: str, data=None) -> BinaryResponse:
        """POST a JSON body and read the whole binary answer."""
        url = self._url(endpoint)
        headers = self._get_headers(accept="*/*")
        try:
            async with self._get_session().post(url, headers=headers, json=data) as response:
                await self._raise_for_status(response, "POST")
                content = await response.read()
                logger.debug(f"POST {url} -> {response.status} ({len(content)} bytes)")
                return BinaryResponse(status=response.status, content=content, headers=response.headers.copy())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, "POST", str(e) or type(e).__name__)

    async def close(self):
        if self.session is not None and self._owns_session and not self.session.closed:
            await self.session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
