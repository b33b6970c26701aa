from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.logging_utils import get_logger
from app.services.export_service import ReportSpec

LOGGER = get_logger(__name__)

DEFAULT_TTL = timedelta(seconds=120)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class _PendingDownload:
    spec: ReportSpec
    created_at: datetime


class DownloadTokenBroker:
    """Process-local table of single-use report download tokens.

    A token moves from issued to either redeemed or expired and the entry is
    removed in both cases. Nothing is shared across processes.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = _now) -> None:
        if ttl <= timedelta(0):
            raise ValueError('Download token TTL must be positive')
        self.ttl = ttl
        self._clock = clock
        self._pending: dict[str, _PendingDownload] = {}
        self._lock = threading.Lock()

    def _is_expired(self, pending: _PendingDownload, now: datetime) -> bool:
        return now - pending.created_at > self.ttl

    def _sweep_locked(self, now: datetime) -> int:
        expired = [token for token, pending in self._pending.items() if self._is_expired(pending, now)]
        for token in expired:
            del self._pending[token]
        return len(expired)

    def issue(self, spec: ReportSpec) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            while token in self._pending:
                token = secrets.token_urlsafe(32)
            self._pending[token] = _PendingDownload(spec=spec, created_at=now)
            pending_total = len(self._pending)
        LOGGER.info(
            'Issued %s download token for organization=%s range=%s..%s (pending=%s)',
            spec.format.value,
            spec.organization_id,
            spec.start_date.isoformat(),
            spec.end_date.isoformat(),
            pending_total,
        )
        return token

    def redeem(self, token: str) -> ReportSpec | None:
        now = self._clock()
        with self._lock:
            pending = self._pending.pop(token, None)
            self._sweep_locked(now)
        if pending is None:
            LOGGER.debug('Download token rejected: unknown or already used')
            return None
        if self._is_expired(pending, now):
            LOGGER.debug('Download token rejected: expired')
            return None
        return pending.spec

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)
