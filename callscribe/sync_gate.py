"""
Coordination for the external call-record cache sync.

The sync itself runs elsewhere (a serverless function mirroring the
telephony database into a read cache); callers only need to avoid starting
it while one is already running or more often than ``min_interval``.
:class:`SyncGate` holds that state explicitly so each owner (the HTTP app, a
test) gets its own deterministic instance.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests

from .errors import RemoteError, TransportFailure

logger = logging.getLogger(__name__)

MIN_SYNC_INTERVAL = 10.0
SYNC_TIMEOUT = 30


class SyncGate:
    def __init__(self, min_interval: float = MIN_SYNC_INTERVAL, clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._in_progress = False
        self._last_acquired: Optional[float] = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def last_acquired(self) -> Optional[float]:
        return self._last_acquired

    def try_acquire(self) -> bool:
        """Claim the gate; ``False`` if a sync is running or ran too recently."""
        with self._lock:
            now = self._clock()
            if self._in_progress:
                return False
            if self._last_acquired is not None and now - self._last_acquired < self.min_interval:
                return False
            self._in_progress = True
            self._last_acquired = now
            return True

    def release(self) -> None:
        with self._lock:
            self._in_progress = False


def trigger_cache_sync(
    gate: SyncGate,
    url: str,
    *,
    timeout: float = SYNC_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
) -> Optional[Dict[str, Any]]:
    """Ask the external sync function to refresh the cache.

    Returns:
        The function's JSON reply, or ``None`` when the gate refused the call
        or the request timed out.

    Raises:
        RemoteError: The function answered with a non-2xx status.
        TransportFailure: The function could not be reached.
    """
    if not gate.try_acquire():
        logger.info("Cache sync skipped: already running or ran less than %.0fs ago", gate.min_interval)
        return None
    try:
        response = requests.post(url, json={"lastSync": time.time()}, headers=headers, timeout=timeout)
        if not response.ok:
            raise RemoteError(f"Cache sync failed: {response.text or response.status_code}", response.status_code)
        data = response.json() if response.content else {}
        if isinstance(data, dict) and data.get("message"):
            logger.info("Cache sync result: %s", data["message"])
        return data
    except requests.Timeout:
        logger.warning("Cache sync timed out after %ss", timeout)
        return None
    except requests.RequestException as exc:
        raise TransportFailure(f"Cache sync request failed: {exc}") from exc
    finally:
        gate.release()
