from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from oddsledger.config import Settings
from oddsledger.domain.errors import ProviderEmpty, ProviderUnavailable, StoreWriteError
from oddsledger.domain.types import RawGameOdds
from oddsledger.integrations.providers import ProviderAdapter, build_adapters
from oddsledger.services.snapshots import append_batch

logger = logging.getLogger(__name__)


@dataclass
class SportFetch:
    sport: str
    provider: str | None = None
    games: list[RawGameOdds] = field(default_factory=list)
    skipped: int = 0
    fallback_used: bool = False
    error: str | None = None


def in_season(sport: str, month: int, windows: Mapping[str, tuple[int, int]]) -> bool:
    window = windows.get(sport.upper())
    if window is None:
        return True
    start, end = window
    if start <= end:
        return start <= month <= end
    return month >= start or month <= end


def resolve_sports(settings: Settings, now: datetime, only: Sequence[str] | None = None) -> tuple[list[str], list[str]]:
    requested = [sport.upper() for sport in only] if only else list(settings.sports)
    active: list[str] = []
    skipped: list[str] = []
    for sport in dict.fromkeys(requested):
        if in_season(sport, now.month, settings.season_windows):
            active.append(sport)
        else:
            skipped.append(sport)
    return active, skipped


def fetch_with_failover(
    sport: str,
    day: date,
    primary: ProviderAdapter | None,
    backup: ProviderAdapter | None,
) -> SportFetch:
    failures: list[str] = []
    empty = 0
    skipped = 0
    for adapter, is_backup in ((primary, False), (backup, True)):
        if adapter is None:
            continue
        try:
            result = adapter.fetch_detailed(sport, day)
        except ProviderEmpty as exc:
            logger.info("%s", exc)
            empty += 1
            skipped += exc.skipped
            continue
        except ProviderUnavailable as exc:
            logger.warning("%s", exc)
            failures.append(str(exc))
            continue
        return SportFetch(
            sport=sport,
            provider=adapter.name,
            games=result.games,
            skipped=result.skipped,
            fallback_used=is_backup,
        )
    if empty and not failures:
        # An empty slate is not a failure; nothing is scheduled today.
        return SportFetch(sport=sport, skipped=skipped, fallback_used=backup is not None)
    return SportFetch(
        sport=sport,
        skipped=skipped,
        fallback_used=backup is not None,
        error="; ".join(failures) or "no provider configured",
    )


def _chunks(rows: list[RawGameOdds], size: int) -> list[list[RawGameOdds]]:
    return [rows[index : index + size] for index in range(0, len(rows), size)]


def _sport_summary(fetched: SportFetch) -> dict[str, object]:
    summary: dict[str, object] = {
        "saved": 0,
        "openings": 0,
        "errors": fetched.skipped,
        "provider": fetched.provider,
        "fallback_used": fetched.fallback_used,
        "skipped_duplicates": 0,
    }
    if fetched.error is not None:
        summary["errors"] = fetched.skipped + 1
        summary["error"] = fetched.error
    return summary


def collect_snapshots(
    session: Session,
    settings: Settings,
    *,
    now: datetime | None = None,
    adapters: Mapping[str, ProviderAdapter] | None = None,
    sports: Sequence[str] | None = None,
) -> dict:
    started = time.monotonic()
    deadline = started + settings.collect_deadline_sec
    now = now or datetime.now(timezone.utc)
    adapters = adapters if adapters is not None else build_adapters(settings)
    primary = adapters.get(settings.primary_provider)
    backup = adapters.get(settings.backup_provider)
    if backup is primary:
        backup = None

    active, skipped_sports = resolve_sports(settings, now, sports)
    per_sport: dict[str, dict[str, object]] = {}
    timed_out = False

    fetched: dict[str, SportFetch] = {}
    if active:
        executor = ThreadPoolExecutor(max_workers=max(1, min(settings.provider_max_workers, len(active))))
        try:
            futures: dict[Future[SportFetch], str] = {
                executor.submit(fetch_with_failover, sport, now.date(), primary, backup): sport for sport in active
            }
            pending = set(futures)
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    sport = futures[future]
                    try:
                        fetched[sport] = future.result()
                    except Exception as exc:  # noqa: BLE001
                        logger.exception("collect: fetch crashed for %s", sport)
                        fetched[sport] = SportFetch(sport=sport, error=str(exc))
            for future in pending:
                sport = futures[future]
                timed_out = True
                logger.warning("collect: deadline reached before %s finished fetching", sport)
                fetched[sport] = SportFetch(sport=sport, error="deadline exceeded")
        finally:
            # Stragglers are bounded by their own HTTP timeout; never block the run on them.
            executor.shutdown(wait=False, cancel_futures=True)

    for sport in active:
        result = fetched[sport]
        summary = _sport_summary(result)
        per_sport[sport] = summary
        for batch in _chunks(result.games, settings.snapshot_batch_size):
            if time.monotonic() >= deadline:
                timed_out = True
                summary["errors"] = int(summary["errors"]) + len(batch)
                summary["error"] = "deadline exceeded"
                continue
            try:
                stored = append_batch(session, batch, now)
            except StoreWriteError as exc:
                logger.error("collect: %s batch failed: %s", sport, exc)
                summary["errors"] = int(summary["errors"]) + len(batch)
                continue
            summary["saved"] = int(summary["saved"]) + stored.inserted
            summary["openings"] = int(summary["openings"]) + stored.openings
            summary["skipped_duplicates"] = int(summary["skipped_duplicates"]) + stored.duplicates
        logger.info(
            "collect: %s saved=%s errors=%s provider=%s fallback=%s",
            sport,
            summary["saved"],
            summary["errors"],
            summary["provider"],
            summary["fallback_used"],
        )

    return {
        "per_sport": per_sport,
        "total": sum(int(item["saved"]) for item in per_sport.values()),
        "skipped_sports": skipped_sports,
        "timed_out": timed_out,
        "duration_ms": int((time.monotonic() - started) * 1000),
    }
