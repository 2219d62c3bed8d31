from __future__ import annotations


class OddsLedgerError(Exception):
    """Base class for every failure the batch jobs catch and aggregate."""


class ProviderUnavailable(OddsLedgerError):
    """Transport failure, timeout, non-2xx status or a body that is not JSON."""

    def __init__(self, provider: str, sport: str, reason: str) -> None:
        super().__init__(f"{provider} unavailable for {sport}: {reason}")
        self.provider = provider
        self.sport = sport
        self.reason = reason


class ProviderEmpty(OddsLedgerError):
    """The provider answered with valid JSON that held no usable games."""

    def __init__(self, provider: str, sport: str, skipped: int = 0) -> None:
        super().__init__(f"{provider} returned no games for {sport} (skipped={skipped})")
        self.provider = provider
        self.sport = sport
        self.skipped = skipped


class MalformedRecord(OddsLedgerError):
    pass


class StoreWriteError(OddsLedgerError):
    pass


class UnsettleablePick(OddsLedgerError):
    pass
