"""Deployment health checks."""

import logging
from dataclasses import dataclass

from lossy_mint.services.store import KeyValueStore

_logger = logging.getLogger(__name__)

_PING_KEY = "health-ping"


@dataclass(frozen=True)
class HealthReport:
    checks: dict[str, bool]
    kv_connected: bool

    @property
    def ok(self) -> bool:
        return all(self.checks.values())


@dataclass
class HealthService:
    """Reports configured secrets and KV reachability."""

    kv: KeyValueStore
    checks: dict[str, bool]

    async def report(self) -> HealthReport:
        """Return which secrets are present and whether the KV round-trips."""
        kv_connected = False
        try:
            await self.kv.set(_PING_KEY, "1", 10)
            kv_connected = await self.kv.get(_PING_KEY) == "1"
        except Exception:
            _logger.exception("KV health ping failed")
        return HealthReport(checks=dict(self.checks), kv_connected=kv_connected)
