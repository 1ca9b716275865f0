import abc
from dataclasses import dataclass
from datetime import datetime

from ftxprices.models import Candle, FutureMarket


@dataclass(frozen=True)
class GetHistoricalPrices:
    """Request for the candles of one market inside a time range."""

    market_name: str
    resolution: int
    start_time: datetime | None = None
    end_time: datetime | None = None
    # None lets the server apply its default page size.
    limit: int | None = None


@dataclass(frozen=True)
class GetFutures:
    """Request for the list of all futures markets."""


class ExchangeClient(abc.ABC):
    """An abstract base class for exchange REST clients.

    Implementations translate each request type into an API call and return
    parsed models, raising RemoteRequestError on any failure.
    """

    @property
    @abc.abstractmethod
    def venue_name(self) -> str:
        """A unique, lowercase identifier for the exchange (e.g., 'ftx')."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_historical_prices(
        self, request: GetHistoricalPrices
    ) -> list[Candle]:
        """Fetches one page of historical candles.

        Args:
            request: The market, resolution and time range to query.

        Returns:
            The candles the exchange returned, in the order it returned them.

        Raises:
            RemoteRequestError: If the request fails for any reason.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get_futures(self, request: GetFutures) -> list[FutureMarket]:
        """Fetches metadata for all futures markets.

        Raises:
            RemoteRequestError: If the request fails for any reason.
        """
        raise NotImplementedError
