"""Ranking of futures markets by 24h traded volume."""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Final

from loguru import logger

from ftxprices.exchange.base import ExchangeClient, GetFutures
from ftxprices.models import FutureMarket

DEFAULT_TOP_COUNT: Final[int] = 10

_COLUMNS: Final[list[tuple[str, int]]] = [
    ("#", 4),
    ("Market", 16),
    ("Last", 14),
    ("24h Change", 11),
    ("24h Volume (USD)", 20),
]


def rank_by_volume(
    futures: Iterable[FutureMarket], count: int = DEFAULT_TOP_COUNT
) -> list[FutureMarket]:
    """Returns the `count` tradable futures with the highest 24h USD volume."""
    if count <= 0:
        err_msg = "count must be a positive integer."
        raise ValueError(err_msg)
    tradable = [f for f in futures if f.enabled and not f.expired]
    tradable.sort(key=lambda f: f.volume_usd24h, reverse=True)
    return tradable[:count]


async def fetch_top_markets(
    client: ExchangeClient, count: int = DEFAULT_TOP_COUNT
) -> list[FutureMarket]:
    """Fetches all futures from the exchange and ranks them by 24h volume."""
    futures = await client.get_futures(GetFutures())
    logger.info(f"[{client.venue_name}] Received {len(futures)} futures markets.")
    return rank_by_volume(futures, count)


def _format_volume(value: Decimal) -> str:
    return f"{value.quantize(Decimal(1)):,f}"


def render_table(futures: Sequence[FutureMarket]) -> str:
    """Renders ranked futures as a fixed-width text table."""
    header = "".join(
        title.ljust(width) if i < 2 else title.rjust(width)
        for i, (title, width) in enumerate(_COLUMNS)
    )
    lines = [header, "-" * len(header)]
    widths = [width for _, width in _COLUMNS]
    for rank, future in enumerate(futures, start=1):
        cells = [
            str(rank).ljust(widths[0]),
            future.name.ljust(widths[1]),
            f"{future.last:f}".rjust(widths[2]),
            f"{future.change24h * 100:+.2f}%".rjust(widths[3]),
            _format_volume(future.volume_usd24h).rjust(widths[4]),
        ]
        lines.append("".join(cells))
    return "\n".join(lines)
