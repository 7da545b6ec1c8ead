"""
Thin async wrapper over the remote REST API.

Produces the callables the collection store consumes:
- fetcher()      -> list of entities (envelope unwrapped)
- mutation_fn()  -> response body of a create / update / delete

Transport and HTTP failures surface as APIError with a readable message
and, when there was a response, its status code.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from competency_kernel.models.client import ClientConfig

logger = logging.getLogger("competency_kernel.client")


class APIError(Exception):
    """A failed call to the remote competency API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("message", "error", "detail"):
            if isinstance(body.get(field), str):
                return body[field]
    return f"{response.request.method} {response.request.url.path} returned {response.status_code}"


def unwrap(body: Any, envelope: Optional[str]) -> List[dict]:
    """Pull the entity list out of a response body."""
    if envelope is None:
        items = body
    elif isinstance(body, dict):
        items = body.get(envelope)
    else:
        items = None
    if not isinstance(items, list):
        raise APIError(f"Response has no list under {envelope or 'body'!r}")
    return items


class CompetencyAPIClient:
    """
    Async client for the competency API. Pass `transport` to substitute
    httpx.MockTransport in tests.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ClientConfig()
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.config.headers,
            timeout=self.config.timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise APIError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s -> %d: %s", method, path, response.status_code, message)
            raise APIError(message, status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    # --- Collections ---

    async def list_resource(
        self,
        path: str,
        envelope: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[dict]:
        body = await self._request("GET", path, params=params or {})
        return unwrap(body, envelope)

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def create(self, path: str, payload: dict) -> Any:
        return await self._request("POST", path, json=payload)

    async def update(self, path: str, payload: dict) -> Any:
        return await self._request("PUT", path, json=payload)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    # --- Store adapters ---

    def fetcher(
        self,
        path: str,
        envelope: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Callable[[], Awaitable[List[dict]]]:
        """A zero-argument fetcher for RemoteCollectionStore.subscribe."""
        async def fetch() -> List[dict]:
            return await self.list_resource(path, envelope, params)
        return fetch

    def creator(self, path: str, payload: dict) -> Callable[[], Awaitable[Any]]:
        async def run() -> Any:
            return await self.create(path, payload)
        return run

    def updater(self, path: str, payload: dict) -> Callable[[], Awaitable[Any]]:
        async def run() -> Any:
            return await self.update(path, payload)
        return run

    def deleter(self, path: str) -> Callable[[], Awaitable[Any]]:
        async def run() -> Any:
            return await self.delete(path)
        return run
