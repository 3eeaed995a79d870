# JUAKALI/backend/juakali/services/token_cache.py

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Tuple

from juakali.config import TOKEN_EXPIRY_BUFFER_SECONDS

logger = logging.getLogger(__name__)

# A fetcher returns (access_token, expires_in_seconds)
TokenFetcher = Callable[[], Awaitable[Tuple[str, int]]]


class TokenCache:
    """OAuth access token kept until its expiry minus a safety buffer.

    Refreshes go through a lock so concurrent callers that find the token
    stale share a single fetch.
    """

    def __init__(self, name: str, buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.buffer_seconds = buffer_seconds
        self.clock = clock
        self.token: Optional[str] = None
        self.expires_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def is_valid(self) -> bool:
        return self.token is not None and self.expires_at is not None and self.clock() < self.expires_at

    def store(self, token: str, expires_in: int):
        self.token = token
        self.expires_at = self.clock() + int(expires_in) - self.buffer_seconds

    def clear(self):
        self.token = None
        self.expires_at = None

    async def get(self, fetch: TokenFetcher) -> str:
        if self.is_valid():
            return self.token
        async with self._lock:
            # Another caller may have refreshed while we waited
            if self.is_valid():
                return self.token
            token, expires_in = await fetch()
            self.store(token, expires_in)
            logger.info(f"🔑 {self.name} access token obtained")
            return token
