# social_publisher/infrastructure/http_client.py
import httpx
import random
from typing import List, Optional


class ProxyManager:
    def __init__(self, proxies: Optional[List[str]] = None):
        self.proxies = proxies or []

    def pick(self) -> Optional[str]:
        if not self.proxies:
            return None
        return random.choice(self.proxies)


class ExternalAPIClient:
    """
    Thin async HTTP client shared by the platform adapters.
    Returns the raw response; adapters map status codes to their own errors.
    `transport` lets tests swap in an httpx.MockTransport.
    """

    def __init__(
        self,
        proxy_manager: Optional[ProxyManager] = None,
        timeout: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.proxy_manager = proxy_manager
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        proxy = self.proxy_manager.pick() if self.proxy_manager else None
        if self.transport is not None:
            return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)
        return httpx.AsyncClient(proxy=proxy, timeout=self.timeout)

    async def get(self, url, headers=None, params=None) -> httpx.Response:
        async with self._client() as client:
            return await client.get(url, headers=headers, params=params)

    async def post(self, url, headers=None, json=None, data=None) -> httpx.Response:
        async with self._client() as client:
            return await client.post(url, headers=headers, json=json, data=data)

    async def put(self, url, headers=None, content=None) -> httpx.Response:
        async with self._client() as client:
            return await client.put(url, headers=headers, content=content)
