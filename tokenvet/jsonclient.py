import asyncio
import json as _json
import logging
from typing import Any, Dict, Optional

import aiohttp

from .metrics import PROVIDER_FAILURES


USER_AGENT = "tokenvet/1.0 (+local)"
RETRY_STATUSES = (429, 500, 502, 503, 504)


class JsonClient:
    """Best-effort JSON-over-HTTP client shared by the provider adapters.

    Never raises: transport errors, non-200 responses and undecodable bodies
    all come back as None. 429/5xx and timeouts are retried a few times with
    linear backoff inside the same call.
    """

    provider = "http"

    def __init__(
        self,
        base_url: str,
        timeout_ms: int,
        retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=max(0.2, timeout_ms / 1000.0))
        self.retries = max(1, retries)
        self.headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
            **(headers or {}),
        }
        self.calls = 0
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            async with self._lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(timeout=self.timeout, headers=self.headers)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Optional[Any]:
        url = self.url(path)
        attempts = 0
        while attempts < self.retries:
            attempts += 1
            self.calls += 1
            try:
                session = await self._get_session()
                async with session.request(method, url, **kwargs) as resp:
                    if resp.status == 200:
                        # Some providers send odd content-types; be lenient
                        text = await resp.text()
                        try:
                            return _json.loads(text)
                        except ValueError:
                            logging.debug(f"{self.provider}: non-JSON body from {url}")
                            break
                    if resp.status in RETRY_STATUSES:
                        await asyncio.sleep(0.4 * attempts)
                        continue
                    logging.debug(f"{self.provider}: HTTP {resp.status} from {url}")
                    break
            except asyncio.TimeoutError:
                logging.debug(f"{self.provider}: timeout on {url} (attempt {attempts})")
                await asyncio.sleep(0.2 * attempts)
            except aiohttp.ClientError as e:
                logging.debug(f"{self.provider}: {type(e).__name__} on {url}: {e}")
                await asyncio.sleep(0.2 * attempts)
        PROVIDER_FAILURES.labels(provider=self.provider).inc()
        return None

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> Optional[Any]:
        return await self._request("GET", path, params=params, headers=headers)

    async def post_json(self, path: str, payload: Any) -> Optional[Any]:
        return await self._request("POST", path, json=payload)

    async def head_ok(self, url: str) -> bool:
        self.calls += 1
        try:
            session = await self._get_session()
            async with session.head(url, allow_redirects=True) as resp:
                return resp.status == 200
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logging.debug(f"{self.provider}: HEAD {url} failed: {e}")
            return False
