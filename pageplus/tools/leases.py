"""Time-boxed download URLs released by a scheduled callback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from pageplus.models.messages import utc_now

logger = logging.getLogger(__name__)

DEFAULT_LEASE_S = 300.0


@dataclass(frozen=True, slots=True)
class DownloadLease:
    url: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class LeaseManager:
    """Grants leases on transient URLs and releases each one when it expires.

    Release happens after the fixed window whether or not the URL was used.
    """

    def __init__(
        self,
        release: Callable[[str], None],
        *,
        duration_s: float = DEFAULT_LEASE_S,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._release = release
        self._duration_s = duration_s
        self._clock = clock
        self._active: dict[str, tuple[DownloadLease, asyncio.TimerHandle]] = {}

    @property
    def active(self) -> list[DownloadLease]:
        return [lease for lease, _ in self._active.values()]

    def grant(self, url: str) -> DownloadLease:
        loop = asyncio.get_running_loop()
        lease = DownloadLease(url=url, expires_at=self._clock() + timedelta(seconds=self._duration_s))
        previous = self._active.pop(url, None)
        if previous is not None:
            previous[1].cancel()
        handle = loop.call_later(self._duration_s, self._expire, url)
        self._active[url] = (lease, handle)
        return lease

    def _expire(self, url: str) -> None:
        if self._active.pop(url, None) is None:
            return
        self._invoke_release(url)

    def _invoke_release(self, url: str) -> None:
        try:
            self._release(url)
        except Exception:
            logger.warning("failed to release download url %s", url, exc_info=True)

    def release(self, url: str) -> bool:
        """Release ahead of expiry; ``False`` when no lease is held."""
        entry = self._active.pop(url, None)
        if entry is None:
            return False
        entry[1].cancel()
        self._invoke_release(url)
        return True

    def release_all(self) -> None:
        for url in list(self._active):
            self.release(url)


__all__ = ["DEFAULT_LEASE_S", "DownloadLease", "LeaseManager"]
