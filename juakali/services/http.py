# JUAKALI/backend/juakali/services/http.py

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30)


class ProviderError(Exception):
    """A third-party API answered with an error or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.status = status
        self.data = data or {}

    @property
    def error_code(self):
        if isinstance(self.data, dict):
            return self.data.get("errorCode")
        return None


async def request_json(method: str, url: str, *, headers: Optional[Dict[str, str]] = None,
                       json: Any = None, data: Any = None, params: Optional[Dict[str, Any]] = None,
                       auth: Optional[aiohttp.BasicAuth] = None) -> Dict[str, Any]:
    """One JSON request/response round trip; non-2xx answers raise ProviderError."""
    try:
        async with aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT) as session:
            async with session.request(method, url, headers=headers, json=json, data=data,
                                       params=params, auth=auth) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = {"raw": await resp.text()}
                if resp.status >= 400:
                    message = None
                    if isinstance(body, dict):
                        message = body.get("errorMessage") or body.get("error_description") or body.get("message")
                    raise ProviderError(message or f"HTTP {resp.status}", status=resp.status, data=body)
                return body if body is not None else {}
    except aiohttp.ClientError as e:
        raise ProviderError(str(e)) from e
    except asyncio.TimeoutError as e:
        raise ProviderError("Request timed out") from e
