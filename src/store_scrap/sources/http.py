from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import aiohttp

from store_scrap.config.models import RefreshSettings
from store_scrap.core.errors import TransportError

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 200


class HttpClient:
    """Thin aiohttp wrapper that turns every transport problem into TransportError."""

    def __init__(self, config: RefreshSettings):
        self._config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> HttpClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._session is not None and not self._session.closed:
            return
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"User-Agent": self._config.user_agent},
        )

    async def stop(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get_json(self, url: str, *, params: Optional[Mapping[str, str]] = None) -> Any:
        text = await self.get_text(url, params=params)
        try:
            return json.loads(text)
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}", url=url) from e

    async def get_text(self, url: str, *, params: Optional[Mapping[str, str]] = None) -> str:
        await self.start()
        assert self._session is not None
        logger.debug("http.get url=%s params=%s", url, params)
        try:
            async with self._session.get(url, params=params) as response:
                body = await response.text()
                if response.status >= 400:
                    raise TransportError(
                        f"Request failed ({response.status}) for {url}: {body[:ERROR_BODY_LIMIT]}",
                        url=url,
                        status=response.status,
                    )
                return body
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request timed out for {url}", url=url) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request failed for {url}: {e}", url=url) from e
