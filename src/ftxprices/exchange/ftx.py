import types
from decimal import Decimal
from typing import Any, Self

import httpx
from loguru import logger

from ftxprices.exceptions import RemoteRequestError
from ftxprices.exchange.base import ExchangeClient, GetFutures, GetHistoricalPrices
from ftxprices.models import Candle, FutureMarket
from ftxprices.utils.time import to_epoch_seconds

DEFAULT_BASE_URL = "https://ftx.com/api"
DEFAULT_TIMEOUT_SECONDS = 20.0


class FtxClient(ExchangeClient):
    """Client for the FTX public REST API.

    The client can either borrow a shared `httpx.AsyncClient` or create its
    own; only a client it created is closed on exit.

    Usage:
        async with FtxClient() as client:
            candles = await client.get_historical_prices(
                GetHistoricalPrices("BTC-PERP", 60, start_time=start, end_time=end)
            )
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            http2=True, timeout=timeout, follow_redirects=True
        )

    @property
    def venue_name(self) -> str:
        return "ftx"

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        await self.close()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Issues a GET request and returns the `result` field of the envelope.

        Every failure mode (transport, HTTP status, `success: false`, bad JSON)
        is reported as RemoteRequestError with the cause chained.
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.get(url, params=params)
        except httpx.HTTPError as e:
            err_msg = f"[{self.venue_name}] Request to {path} failed: {e!r}"
            raise RemoteRequestError(err_msg) from e

        try:
            # Decode floats as Decimal so prices never pass through binary floats.
            payload = response.json(parse_float=Decimal)
        except ValueError as e:
            err_msg = (
                f"[{self.venue_name}] Invalid JSON from {path} "
                f"(HTTP {response.status_code})."
            )
            raise RemoteRequestError(err_msg, response.status_code) from e

        if response.is_error or not isinstance(payload, dict) or not payload.get(
            "success", False
        ):
            reason = payload.get("error") if isinstance(payload, dict) else None
            err_msg = (
                f"[{self.venue_name}] Request to {path} was rejected "
                f"(HTTP {response.status_code}): {reason or 'unknown error'}"
            )
            raise RemoteRequestError(err_msg, response.status_code)

        return payload.get("result")

    async def get_historical_prices(
        self, request: GetHistoricalPrices
    ) -> list[Candle]:
        """Fetches one page of candles from `/markets/{market}/candles`."""
        params: dict[str, Any] = {"resolution": request.resolution}
        if request.start_time is not None:
            params["start_time"] = to_epoch_seconds(request.start_time)
        if request.end_time is not None:
            params["end_time"] = to_epoch_seconds(request.end_time)
        if request.limit is not None:
            params["limit"] = request.limit

        path = f"/markets/{request.market_name}/candles"
        logger.debug(f"[{self.venue_name}] GET {path} {params}")
        result = await self._get(path, params=params)
        if not isinstance(result, list):
            err_msg = f"[{self.venue_name}] Unexpected candles payload: {result!r}"
            raise RemoteRequestError(err_msg)

        try:
            return [Candle.from_api(item) for item in result]
        except ValueError as e:
            err_msg = f"[{self.venue_name}] Could not parse candles: {e}"
            raise RemoteRequestError(err_msg) from e

    async def get_futures(self, request: GetFutures) -> list[FutureMarket]:
        """Fetches all futures markets from `/futures`."""
        logger.debug(f"[{self.venue_name}] GET /futures")
        result = await self._get("/futures")
        if not isinstance(result, list):
            err_msg = f"[{self.venue_name}] Unexpected futures payload: {result!r}"
            raise RemoteRequestError(err_msg)

        try:
            return [FutureMarket.from_api(item) for item in result]
        except ValueError as e:
            err_msg = f"[{self.venue_name}] Could not parse futures: {e}"
            raise RemoteRequestError(err_msg) from e
