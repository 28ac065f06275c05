"""
HTTP transport to the hosted backend (Supabase REST and auth endpoints).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)

_ERROR_KEYS = ("msg", "message", "error_description", "error")


class BackendError(Exception):
    """A request the backend rejected or that never reached it."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.message = message
        self.status = status


class BackendClient:
    """Thin wrapper over one httpx.Client carrying the project's API key."""

    def __init__(self, url: Optional[str] = None, anon_key: Optional[str] = None,
                 timeout: Optional[float] = config.HTTP_TIMEOUT_SECONDS,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Args:
            url: Project base URL; defaults to config.SUPABASE_URL
            anon_key: Public anon key; defaults to config.SUPABASE_ANON_KEY
            timeout: Seconds before a request is abandoned, None for no limit
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.url = (url if url is not None else config.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else config.SUPABASE_ANON_KEY
        if not self.url or not self.anon_key:
            raise ValueError("Backend URL and anon key must be configured "
                             "(CREDVAULT_SUPABASE_URL / CREDVAULT_SUPABASE_ANON_KEY)")
        self._client = httpx.Client(base_url=self.url, timeout=timeout, transport=transport)

    def request(self, method: str, path: str, *, token: Optional[str] = None,
                params: Optional[Dict[str, Any]] = None, json: Any = None,
                headers: Optional[Dict[str, str]] = None) -> Any:
        """
        Send one request and return the decoded JSON body (None when empty).

        Raises:
            BackendError: On a non-2xx status or a transport failure
        """
        request_headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        if headers:
            request_headers.update(headers)

        try:
            response = self._client.request(method, path, params=params, json=json, headers=request_headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(str(e) or "Network error") from e

        if response.is_error:
            message = self._error_message(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise BackendError(message, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def url_for(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Absolute URL for ``path``; used for browser redirects."""
        return str(httpx.URL(self.url + path, params=params))

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in _ERROR_KEYS:
                if body.get(key):
                    return str(body[key])
        return response.reason_phrase or f"HTTP {response.status_code}"

    def close(self) -> None:
        self._client.close()
