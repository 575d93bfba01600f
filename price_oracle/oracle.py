"""Read-only sources of the reserve-to-stablecoin exchange rate."""

from pathlib import Path
from typing import Protocol
import json

from core.amount import Amount, AmountError


class PriceUnavailableError(RuntimeError):
    """Raised when no usable rate can be read."""


class PriceOracle(Protocol):
    def current_rate(self) -> Amount:
        ...


class FixedPriceOracle:
    def __init__(self, rate: Amount) -> None:
        self._rate = rate

    def set_rate(self, rate: Amount) -> None:
        self._rate = rate

    def current_rate(self) -> Amount:
        return self._rate


class FilePriceOracle:
    """Reads ``{"rate": "<decimal>"}`` from a feed file on every call."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def current_rate(self) -> Amount:
        if not self._path.exists():
            raise PriceUnavailableError(f"Price feed not found: {self._path}")
        try:
            payload = json.loads(self._path.read_text())
            return Amount.of(str(payload["rate"]))
        except (ValueError, KeyError, TypeError, AmountError) as exc:
            raise PriceUnavailableError(f"Could not read rate from {self._path}: {exc}") from exc
