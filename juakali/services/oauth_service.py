# JUAKALI/backend/juakali/services/oauth_service.py : client of the users service (Google OAuth)

import logging
from typing import Any, Dict, Optional

from juakali.config import USERS_SERVICE_CONFIG
from juakali.services.http import ProviderError, request_json

logger = logging.getLogger(__name__)


class UsersServiceClient:
    """Thin client over the hosted users service that runs the OAuth handshake."""

    def __init__(self, config: Optional[Dict[str, str]] = None):
        self.config = config or USERS_SERVICE_CONFIG
        self.api_url = (self.config.get("api_url") or "").rstrip("/")
        self.api_key = self.config.get("api_key") or ""

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        return await request_json(method, url, **kwargs)

    def _headers(self, session_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"x-api-key": self.api_key, "Content-Type": "application/json"}
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"
        return headers

    def _check_configured(self):
        if not self.api_url:
            raise ProviderError("Users service not configured")

    async def get_redirect_url(self, provider: str = "google") -> str:
        self._check_configured()
        data = await self._request("GET", f"{self.api_url}/oauth/{provider}/redirect_url", headers=self._headers())
        redirect_url = data.get("redirect_url") or data.get("redirectUrl")
        if not redirect_url:
            raise ProviderError("Users service returned no redirect URL", data=data)
        return redirect_url

    async def exchange_code(self, code: str) -> str:
        """Trades an OAuth authorization code for an upstream session token."""
        self._check_configured()
        data = await self._request("POST", f"{self.api_url}/sessions", json={"code": code}, headers=self._headers())
        token = data.get("session_token")
        if not token:
            raise ProviderError("Users service returned no session token", data=data)
        return token

    async def get_current_user(self, session_token: str) -> Optional[Dict[str, Any]]:
        self._check_configured()
        data = await self._request("GET", f"{self.api_url}/users/me", headers=self._headers(session_token))
        return data.get("data") if "data" in data else data

    async def delete_session(self, session_token: str):
        self._check_configured()
        await self._request("DELETE", f"{self.api_url}/sessions", headers=self._headers(session_token))
        logger.info("👋 Upstream session deleted")


users_service = UsersServiceClient()


def get_users_service() -> UsersServiceClient:
    return users_service
