# ABOUTME: Multi-site ingestion run: fetch, normalize, validate and store per site
# ABOUTME: One site's failure is reported in its result and never aborts its siblings

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from waterman.config import Config
from waterman.forecast.models import ForecastSlot, Site, datetime_to_ms
from waterman.forecast.normalizer import NormalizedForecast, normalize_payload
from waterman.forecast.source import ForecastSourceClient
from waterman.store.memory import DataStore

log = logging.getLogger(__name__)

MIN_BATCH_SLOTS = 10
MIN_FUTURE_COVERAGE_MS = 24 * 60 * 60 * 1000


@dataclass
class IngestionResult:
    """Outcome of ingesting one site"""
    site_id: str
    site_name: str
    success: bool
    slot_count: int = 0
    error: Optional[str] = None
    is_complete: Optional[bool] = None  # False when the batch failed validation

    def to_dict(self) -> dict:
        data = {"site": self.site_name, "siteId": self.site_id, "success": self.success}
        if self.success:
            data["slotCount"] = self.slot_count
            data["isComplete"] = self.is_complete
        if self.error:
            data["error"] = self.error
        return data


def validate_batch(slots: list[ForecastSlot], now_ms: int) -> tuple[bool, Optional[str]]:
    """
    Check a batch looks like a complete forecast.

    Returns:
        (is_valid, error_message)
    """
    if len(slots) < MIN_BATCH_SLOTS:
        return False, f"Insufficient slots: {len(slots)} < {MIN_BATCH_SLOTS}"

    if not any(s.timestamp > now_ms for s in slots):
        return False, "No future forecast data found"

    if max(s.timestamp for s in slots) < now_ms + MIN_FUTURE_COVERAGE_MS:
        return False, "Insufficient future forecast coverage"

    return True, None


def _fetch_and_normalize(
    site: Site,
    client: ForecastSourceClient,
    now: datetime,
    timeout: Optional[float],
    scrape_timestamp: int
) -> NormalizedForecast:
    raw = client.fetch(site, timeout=timeout)
    return normalize_payload(site, raw, now=now, scrape_timestamp=scrape_timestamp)


def ingest_sites(
    sites: list[Site],
    client: ForecastSourceClient,
    store: DataStore,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
    max_workers: Optional[int] = None
) -> list[IngestionResult]:
    """
    Fetch and normalize every site concurrently, then store each batch.

    Args:
        sites: Sites to ingest
        client: Forecast source client
        store: Data store receiving slots, tides and scrape records
        now: Reference instant (defaults to current UTC time)
        timeout: Per-fetch timeout in seconds
        max_workers: Thread pool size (defaults to Config.INGEST_WORKERS)

    Returns:
        One IngestionResult per site, in input order
    """
    now = now or datetime.now(timezone.utc)
    now_ms = datetime_to_ms(now)
    timeout = timeout if timeout is not None else Config.SOURCE_TIMEOUT_SECONDS
    workers = max(1, min(max_workers or Config.INGEST_WORKERS, len(sites) or 1))

    print(f"[INGEST] Starting ingestion for {len(sites)} sites", flush=True)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_fetch_and_normalize, site, client, now, timeout, now_ms)
            for site in sites
        ]

        results = []
        for site, future in zip(sites, futures):
            try:
                forecast = future.result()
            except Exception as e:
                log.error(f"Ingestion failed for {site.name}: {e}")
                print(f"[INGEST] {site.name}: failed - {e}", flush=True)
                results.append(IngestionResult(
                    site_id=site.id, site_name=site.name, success=False, error=str(e)
                ))
                continue

            results.append(_store_batch(site, forecast, store, now_ms))

    succeeded = sum(1 for r in results if r.success)
    print(f"[INGEST] Complete: {succeeded}/{len(results)} sites succeeded", flush=True)
    return results


def _store_batch(site: Site, forecast: NormalizedForecast, store: DataStore, now_ms: int) -> IngestionResult:
    if not forecast.slots:
        # Keep the last successful scrape current
        print(f"[INGEST] {site.name}: no slots collected, skipping write", flush=True)
        return IngestionResult(
            site_id=site.id, site_name=site.name, success=False, error="No slots collected"
        )

    is_valid, reason = validate_batch(forecast.slots, now_ms)
    store.save_forecast(
        site.id,
        forecast.slots,
        forecast.tides,
        scrape_timestamp=now_ms,
        is_successful=is_valid,
        error_message=reason,
    )

    if is_valid:
        print(f"[INGEST] {site.name}: saved {len(forecast.slots)} slots", flush=True)
    else:
        print(f"[INGEST] {site.name}: saved {len(forecast.slots)} slots (incomplete: {reason})", flush=True)

    return IngestionResult(
        site_id=site.id,
        site_name=site.name,
        success=True,
        slot_count=len(forecast.slots),
        error=reason,
        is_complete=is_valid,
    )
