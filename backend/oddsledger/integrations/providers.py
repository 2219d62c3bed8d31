from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from oddsledger.config import Settings
from oddsledger.domain.errors import MalformedRecord, ProviderEmpty, ProviderUnavailable
from oddsledger.domain.types import RawGameOdds

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; oddsledger/1.0)"


@dataclass
class FetchResult:
    provider: str
    sport: str
    games: list[RawGameOdds] = field(default_factory=list)
    skipped: int = 0


def parse_line(value: Any, name: str) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise MalformedRecord(f"{name} is not numeric: {value!r}")
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise MalformedRecord(f"{name} is not numeric: {value!r}") from exc
    if not parsed.is_finite():
        raise MalformedRecord(f"{name} is not finite: {value!r}")
    return parsed


def parse_price(value: Any, name: str, default: int | None = None) -> int | None:
    if isinstance(value, str) and value.strip().lower() in {"even", "ev"}:
        return 100
    parsed = parse_line(value, name)
    if parsed is None:
        return default
    price = int(parsed.to_integral_value())
    if abs(price) < 100:
        # Feeds send 0 for markets that are off the board.
        return default
    return price


def parse_start_time(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise MalformedRecord(f"start time missing: {value!r}")
    raw = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        # ESPN sends minute precision without seconds, e.g. 2025-01-05T18:00Z
        try:
            parsed = datetime.strptime(raw, "%Y-%m-%dT%H:%M%z")
        except ValueError as exc:
            raise MalformedRecord(f"unparseable start time {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ProviderAdapter(ABC):
    """Normalizes one upstream odds feed into ``RawGameOdds`` records."""

    name: str = ""

    def __init__(self, base_url: str, timeout_sec: float, default_juice: int = -110) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.default_juice = default_juice

    @abstractmethod
    def request_for(self, sport: str, day: date) -> tuple[str, dict[str, str]] | None:
        """Return (url, params) for the sport, or None when the feed does not carry it."""

    @abstractmethod
    def extract_records(self, payload: Any) -> Iterable[Any]:
        ...

    @abstractmethod
    def parse_record(self, record: Any, sport: str) -> RawGameOdds:
        ...

    def get_json(self, url: str, params: dict[str, str], sport: str) -> Any:
        try:
            response = requests.get(
                url,
                params=params,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=(self.timeout_sec, self.timeout_sec),
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderUnavailable(self.name, sport, str(exc)) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(self.name, sport, "response body is not JSON") from exc

    def fetch_detailed(self, sport: str, day: date) -> FetchResult:
        request = self.request_for(sport, day)
        if request is None:
            raise ProviderEmpty(self.name, sport)
        url, params = request
        payload = self.get_json(url, params, sport)

        result = FetchResult(provider=self.name, sport=sport)
        try:
            records = list(self.extract_records(payload))
        except (AttributeError, TypeError) as exc:
            raise ProviderUnavailable(self.name, sport, f"unexpected payload shape: {exc}") from exc

        for record in records:
            try:
                result.games.append(self.parse_record(record, sport))
            except MalformedRecord as exc:
                result.skipped += 1
                logger.info("%s: skipping malformed %s record: %s", self.name, sport, exc)
            except (KeyError, TypeError, AttributeError, ValueError) as exc:
                result.skipped += 1
                logger.info("%s: skipping malformed %s record: %r", self.name, sport, exc)

        if not result.games:
            raise ProviderEmpty(self.name, sport, skipped=result.skipped)
        return result

    def fetch(self, sport: str, day: date) -> list[RawGameOdds]:
        return self.fetch_detailed(sport, day).games


def build_record(**fields: Any) -> RawGameOdds:
    try:
        return RawGameOdds(**fields)
    except ValueError as exc:
        raise MalformedRecord(str(exc)) from exc


def build_adapters(settings: Settings) -> dict[str, ProviderAdapter]:
    from oddsledger.integrations.action_network import ActionNetworkAdapter
    from oddsledger.integrations.espn import EspnOddsAdapter

    adapters: list[ProviderAdapter] = [
        ActionNetworkAdapter(
            settings.action_network_base_url,
            timeout_sec=settings.provider_timeout_sec,
            default_juice=settings.default_juice,
        ),
        EspnOddsAdapter(
            settings.espn_base_url,
            timeout_sec=settings.provider_timeout_sec,
            default_juice=settings.default_juice,
        ),
    ]
    return {adapter.name: adapter for adapter in adapters}
