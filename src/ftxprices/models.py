from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Final

from ftxprices.exceptions import InvalidResolutionError
from ftxprices.utils.time import parse_api_timestamp

# Candle widths, in seconds, accepted by the exchange below one day.
BASE_RESOLUTIONS: Final[frozenset[int]] = frozenset(
    {15, 60, 300, 900, 3600, 14400, 86400}
)
SECONDS_PER_DAY: Final[int] = 86400
MAX_RESOLUTION_DAYS: Final[int] = 30


def is_valid_resolution(resolution: int) -> bool:
    """Whether `resolution` is a candle width the exchange will serve."""
    if isinstance(resolution, bool) or not isinstance(resolution, int):
        return False
    if resolution in BASE_RESOLUTIONS:
        return True
    return (
        resolution % SECONDS_PER_DAY == 0
        and 0 < resolution <= MAX_RESOLUTION_DAYS * SECONDS_PER_DAY
    )


def validate_resolution(resolution: int) -> int:
    """Returns `resolution` unchanged, or raises InvalidResolutionError."""
    if not is_valid_resolution(resolution):
        err_msg = (
            f"Unsupported resolution: {resolution!r}. Expected one of "
            f"{sorted(BASE_RESOLUTIONS)} or a multiple of {SECONDS_PER_DAY} "
            f"up to {MAX_RESOLUTION_DAYS} days."
        )
        raise InvalidResolutionError(err_msg)
    return resolution


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    try:
        # str() first, so floats keep their shortest repr instead of binary noise.
        return Decimal(str(value))
    except InvalidOperation as e:
        err_msg = f"Not a decimal number: {value!r}"
        raise ValueError(err_msg) from e


@dataclass(frozen=True)
class TimeWindow:
    """An inclusive UTC time range to download."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            err_msg = "TimeWindow bounds must be timezone-aware."
            raise ValueError(err_msg)
        if self.start > self.end:
            err_msg = f"Window start {self.start} is after its end {self.end}."
            raise ValueError(err_msg)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class Candle:
    """One OHLCV bucket starting at `start_time` (UTC)."""

    start_time: datetime
    open: Decimal
    close: Decimal
    low: Decimal
    high: Decimal
    volume: Decimal

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Candle":
        """Builds a Candle from one element of the candles endpoint's result.

        Raises:
            ValueError: If a field is missing or malformed.
        """
        try:
            raw_time = payload.get("startTime")
            if raw_time is None:
                raw_time = payload["time"]
            return cls(
                start_time=parse_api_timestamp(raw_time),
                open=_to_decimal(payload["open"]),
                close=_to_decimal(payload["close"]),
                low=_to_decimal(payload["low"]),
                high=_to_decimal(payload["high"]),
                volume=_to_decimal(payload.get("volume")),
            )
        except (KeyError, TypeError) as e:
            err_msg = f"Malformed candle payload: {payload!r}"
            raise ValueError(err_msg) from e


@dataclass(frozen=True)
class FutureMarket:
    """Metadata for one futures market, as listed by the exchange."""

    name: str
    underlying: str
    type: str
    perpetual: bool
    expired: bool
    enabled: bool
    last: Decimal
    mark: Decimal
    change24h: Decimal
    volume_usd24h: Decimal
    open_interest_usd: Decimal

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "FutureMarket":
        """Builds a FutureMarket from one element of the futures endpoint's result.

        Raises:
            ValueError: If the market name is missing or a number is malformed.
        """
        try:
            name = payload["name"]
        except KeyError as e:
            err_msg = f"Malformed future payload: {payload!r}"
            raise ValueError(err_msg) from e
        return cls(
            name=name,
            underlying=payload.get("underlying") or "",
            type=payload.get("type") or "",
            perpetual=bool(payload.get("perpetual", False)),
            expired=bool(payload.get("expired", False)),
            enabled=bool(payload.get("enabled", True)),
            last=_to_decimal(payload.get("last")),
            mark=_to_decimal(payload.get("mark")),
            change24h=_to_decimal(payload.get("change24h")),
            volume_usd24h=_to_decimal(payload.get("volumeUsd24h")),
            open_interest_usd=_to_decimal(payload.get("openInterestUsd")),
        )
