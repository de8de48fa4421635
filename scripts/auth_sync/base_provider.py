"""Abstract base class for sync providers."""

from __future__ import annotations

import logging
import time
import traceback
from abc import ABC, abstractmethod

from scripts.auth_sync.config import SyncConfig
from scripts.auth_sync.db import UpsertSink

logger = logging.getLogger("auth_sync.provider")


class BaseProvider(ABC):
    """Each provider overrides sync() and declares PROVIDER_NAME.

    RECORD_KEYS names the entries of the sync() result that count as
    upserted records; anything else (failure counters) is informational.
    """

    PROVIDER_NAME: str = ""
    RECORD_KEYS: tuple[str, ...] = ()

    def __init__(self, config: SyncConfig, db: UpsertSink) -> None:
        self.config = config
        self.db = db
        self.rate_limit_sleep_s = config.rate_limit_sleep_s

    @abstractmethod
    def sync(self) -> dict[str, int]:
        """Run the provider sync. Returns {entity_type: count}."""

    def sync_with_tracking(self) -> dict[str, int]:
        """Wrap sync() with ingestion_runs tracking. Failures are recorded and re-raised."""
        run_id = self.db.record_run_start(provider=self.PROVIDER_NAME)
        started = time.monotonic()
        try:
            results = self.sync()
            total = sum(results.get(k, 0) for k in self.RECORD_KEYS)
            self.db.record_run_end(
                run_id=run_id,
                status="SUCCESS",
                records_upserted=total,
            )
            logger.info(
                "Sync complete",
                extra={
                    "provider": self.PROVIDER_NAME,
                    "records": total,
                    "run_id": run_id,
                    "duration_s": round(time.monotonic() - started, 3),
                },
            )
            return results
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error(
                "Sync failed: %s",
                exc,
                extra={"provider": self.PROVIDER_NAME, "run_id": run_id},
            )
            raise

    def _rate_limit_sleep(self) -> None:
        """Fixed pause between API requests to stay under the provider's rate limit."""
        if self.rate_limit_sleep_s > 0:
            time.sleep(self.rate_limit_sleep_s)
