"""Async HTTP client for the mite REST API."""

import logging
from typing import Any, Dict, Optional

import httpx

from . import __version__
from .config import MiteConfig
from .errors import MiteApiError


logger = logging.getLogger(__name__)


class MiteApiClient:
    """Authenticated client for https://<account>.mite.de.

    Usage::

        client = MiteApiClient(config)
        projects = await client.get("/projects.json", {"limit": 10})
        await client.aclose()
    """

    def __init__(
        self,
        config: MiteConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        self.base_url = f"https://{config.account_name}.mite.de"
        self.headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "User-Agent": f"mite-mcp/{__version__}",
        }

        auth: Optional[httpx.Auth] = None
        if config.api_key:
            self.headers["X-MiteApiKey"] = config.api_key
        elif config.email and config.password:
            auth = httpx.BasicAuth(config.email, config.password)

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            auth=auth,
            transport=transport,
            timeout=timeout,
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            MiteApiError: On non-2xx responses or transport failures
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        json_body = body if method in ("POST", "PATCH") and body is not None else None

        logger.debug(f"{method} {path} params={query}")
        try:
            response = await self._client.request(
                method,
                path,
                params=query or None,
                json=json_body,
            )
        except httpx.HTTPError as e:
            raise MiteApiError(f"Request failed: {e}") from e

        if response.is_error:
            raise MiteApiError(
                f"API Error ({response.status_code}): {self._error_message(response)}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.reason_phrase or "Unknown error"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or response.reason_phrase)
        return response.reason_phrase or "Unknown error"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any) -> Any:
        return await self.request("POST", path, body=body)

    async def patch(self, path: str, body: Any) -> Any:
        return await self.request("PATCH", path, body=body)

    async def delete(self, path: str) -> None:
        await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()
