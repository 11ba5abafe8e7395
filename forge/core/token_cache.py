"""
Process-wide bearer token cache.

Holds one CachedToken cell. A cached token is returned without any remote call
while `now < expires_at`; otherwise a fresh one is acquired and the cell is
replaced with a single assignment, so a stale token can never be paired with a
fresh expiry.

Concurrent callers that both observe an expired cell may each acquire a token;
the last writer wins. Either token is individually valid.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from forge.schema.models import AcquiredToken, CachedToken, ServiceCredential

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    async def acquire(self, credential: ServiceCredential) -> AcquiredToken: ...


class TokenCache:
    def __init__(
        self,
        acquirer: TokenSource,
        credential: ServiceCredential,
        *,
        safety_margin: float = 0.9,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not 0 < safety_margin <= 1:
            raise ValueError(f"safety_margin must be in (0, 1], got {safety_margin}")
        self._acquirer = acquirer
        self._credential = credential
        self._safety_margin = safety_margin
        self._clock = clock
        self._cell: Optional[CachedToken] = None

    @property
    def cached(self) -> Optional[CachedToken]:
        return self._cell

    def invalidate(self, token: Optional[str] = None) -> None:
        """
        Drop the cached token so the next caller re-acquires.

        With `token` given, the cell is dropped only while it still holds that
        token; a rejection of an already-replaced token leaves the newer one alone.
        """
        cell = self._cell
        if cell is None:
            return
        if token is not None and cell.token_value != token:
            logger.debug("Rejected token already replaced; keeping cached access token")
            return
        logger.info("Cached access token invalidated")
        self._cell = None

    async def get_valid_token(self) -> str:
        """
        Return a token that is valid on this cache's clock.

        Raises:
            AuthFailure: propagated from the acquirer; the previous cell is kept.
        """
        cell = self._cell
        if cell is not None and cell.is_valid(self._clock()):
            logger.debug("Using cached access token")
            return cell.token_value

        acquired = await self._acquirer.acquire(self._credential)
        # Expiry is computed after the exchange returns so the margin covers the round trip
        expires_at = self._clock() + acquired.expires_in * self._safety_margin
        self._cell = CachedToken(token_value=acquired.access_token, expires_at=expires_at)
        return acquired.access_token
