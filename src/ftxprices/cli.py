"""Command-line interface: `ftxprices tops` and `ftxprices download`."""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from ftxprices import __version__
from ftxprices.config import Settings
from ftxprices.exceptions import FtxPricesError
from ftxprices.exchange.base import ExchangeClient
from ftxprices.exchange.ftx import FtxClient
from ftxprices.exporter import CsvExporter
from ftxprices.fetcher import HistoricalCandleFetcher
from ftxprices.logging_config import setup_logging
from ftxprices.markets import DEFAULT_TOP_COUNT, fetch_top_markets, render_table
from ftxprices.time_range import resolve

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        err_msg = f"expected a positive integer, got {value}"
        raise argparse.ArgumentTypeError(err_msg)
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftxprices",
        description="A tool to download price data from FTX.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to a TOML config file."
    )
    parser.add_argument(
        "--log-level", default=None, help="Console log level (e.g. DEBUG, INFO)."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    tops = subparsers.add_parser(
        "tops", help="Print the futures markets with the highest 24h volume."
    )
    tops.add_argument(
        "count", nargs="?", type=_positive_int, default=DEFAULT_TOP_COUNT
    )

    download = subparsers.add_parser(
        "download", help="Download historical candles of a market to CSV."
    )
    download.add_argument("market_name", help="Market name, e.g. BTC-PERP.")
    download.add_argument("start_date", help="First day, YYYY-MM-DD (local time).")
    download.add_argument(
        "end_date", nargs="?", default=None, help="Last day, YYYY-MM-DD. Default: now."
    )
    download.add_argument(
        "--resolution",
        type=int,
        default=None,
        help="Candle width in seconds (default from config, 15).",
    )
    download.add_argument(
        "--output-dir", type=Path, default=None, help="Directory for the CSV file."
    )
    download.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the whole download after this many seconds.",
    )
    return parser


async def run_download(  # noqa: PLR0913
    client: ExchangeClient,
    settings: Settings,
    market_name: str,
    start_date: str,
    end_date: str | None = None,
    resolution: int | None = None,
    output_dir: Path | None = None,
    timeout: float | None = None,
) -> Path:
    """Resolves the date range, downloads the candles and exports them to CSV.

    Returns:
        The path of the written CSV file.

    Raises:
        FtxPricesError: On any failure; nothing is written in that case.
        TimeoutError: If `timeout` expires before the download completes.
    """
    window = resolve(start_date, end_date)
    fetcher = HistoricalCandleFetcher(
        client,
        request_interval=settings.api.request_interval_seconds,
        progress_every=settings.download.progress_every_pages,
    )
    candles = await asyncio.wait_for(
        fetcher.fetch(
            market_name,
            resolution
            if resolution is not None
            else settings.download.default_resolution,
            window,
        ),
        timeout=timeout,
    )
    exporter = CsvExporter(output_dir or Path(settings.download.output_directory))
    return await exporter.export(candles, market_name)


async def run_tops(client: ExchangeClient, count: int) -> str:
    """Fetches the top markets by volume and renders them as a table."""
    futures = await fetch_top_markets(client, count)
    return render_table(futures)


async def _dispatch(args: argparse.Namespace, settings: Settings) -> None:
    async with FtxClient(
        base_url=settings.api.base_url, timeout=settings.api.timeout_seconds
    ) as client:
        if args.command == "tops":
            print(await run_tops(client, args.count))
        elif args.command == "download":
            path = await run_download(
                client,
                settings,
                market_name=args.market_name,
                start_date=args.start_date,
                end_date=args.end_date,
                resolution=args.resolution,
                output_dir=args.output_dir,
                timeout=args.timeout,
            )
            print(path)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the `ftxprices` console script.

    Returns:
        The process exit code.
    """
    args = build_parser().parse_args(argv)
    settings = Settings.get_instance(args.config)

    log_dir = settings.general.log_directory
    setup_logging(
        console_level=args.log_level or settings.general.log_level_console,
        file_level=settings.general.log_level_file,
        log_dir=Path(log_dir).expanduser() if log_dir else None,
    )

    try:
        asyncio.run(_dispatch(args, settings))
    except FtxPricesError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except TimeoutError:
        logger.error(
            f"Gave up after {getattr(args, 'timeout', None)} seconds; "
            "nothing was written."
        )
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted; nothing was written.")
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
