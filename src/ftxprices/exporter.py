import contextlib
import csv
import io
import os
from collections.abc import Sequence
from datetime import timezone, tzinfo
from decimal import ROUND_HALF_EVEN, Decimal, localcontext
from pathlib import Path
from typing import Final

import aiofiles
import aiofiles.os
from loguru import logger

from ftxprices.exceptions import EmptyResultError, FileWriteError
from ftxprices.models import Candle
from ftxprices.utils.time import format_local

# --- Constants ---

CSV_HEADER: Final[list[str]] = [
    "Start Time (Local)",
    "Open",
    "Close",
    "Low",
    "High",
    "Volume",
]

# Every numeric column is written with exactly four decimal places.
DECIMAL_QUANTUM: Final[Decimal] = Decimal("0.0001")

FILENAME_DATE_FORMAT: Final[str] = "%Y-%m-%d"


def format_decimal(value: Decimal) -> str:
    """Formats a Decimal with exactly four decimal places, without going through float.

    Raises:
        ValueError: If `value` is NaN or infinite.
    """
    if not value.is_finite():
        err_msg = f"Cannot format non-finite number: {value}"
        raise ValueError(err_msg)
    with localcontext() as ctx:
        # Room for every integer digit plus the four decimals.
        ctx.prec = max(ctx.prec, value.adjusted() + 1 + 4)
        quantized = value.quantize(DECIMAL_QUANTUM, rounding=ROUND_HALF_EVEN)
    return f"{quantized:f}"


def export_filename(candles: Sequence[Candle], market: str) -> str:
    """Derives `<market>-<first date>-<last date>.csv` from a sorted candle series.

    Dates are the UTC calendar dates of the first and last candle.

    Raises:
        EmptyResultError: If `candles` is empty.
    """
    if not candles:
        err_msg = f"No candles to export for {market}."
        raise EmptyResultError(err_msg)
    first = candles[0].start_time.astimezone(timezone.utc)
    last = candles[-1].start_time.astimezone(timezone.utc)
    sanitized_market = market.lower().replace("/", "-")
    return (
        f"{sanitized_market}-{first.strftime(FILENAME_DATE_FORMAT)}"
        f"-{last.strftime(FILENAME_DATE_FORMAT)}.csv"
    )


class CsvExporter:
    """Writes a downloaded candle series to a CSV file.

    The file is written to a temporary name in the output directory and
    renamed into place once complete, so an interrupted export never leaves a
    truncated file under the final name.
    """

    def __init__(
        self, output_directory: Path = Path(), tz: tzinfo | None = None
    ) -> None:
        """Initializes the exporter.

        Args:
            output_directory: Directory the CSV file is written to.
            tz: Time zone of the time column. None means the system's local zone.
        """
        self.output_directory = output_directory
        self.tz = tz

    def _format_row(self, candle: Candle) -> list[str]:
        return [
            format_local(candle.start_time, self.tz),
            format_decimal(candle.open),
            format_decimal(candle.close),
            format_decimal(candle.low),
            format_decimal(candle.high),
            format_decimal(candle.volume),
        ]

    def render(self, candles: Sequence[Candle]) -> str:
        """Renders the header and one row per candle as CSV text."""
        string_io = io.StringIO()
        writer = csv.writer(string_io, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for candle in candles:
            writer.writerow(self._format_row(candle))
        return string_io.getvalue()

    async def export(self, candles: Sequence[Candle], market: str) -> Path:
        """Writes `candles` to `<output_directory>/<market>-<first>-<last>.csv`.

        Args:
            candles: The candle series, sorted by start time.
            market: The market name the file is named after.

        Returns:
            The path of the written file.

        Raises:
            EmptyResultError: If `candles` is empty.
            FileWriteError: If the file cannot be written. No file is left
                under the final name in that case.
        """
        target = self.output_directory / export_filename(candles, market)
        tmp_path = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        try:
            content = self.render(candles)
        except ValueError as e:
            err_msg = f"Cannot export {market}: {e}"
            raise FileWriteError(err_msg) from e

        try:
            await aiofiles.os.makedirs(self.output_directory, exist_ok=True)
            async with aiofiles.open(
                tmp_path, mode="w", encoding="utf-8", newline=""
            ) as handle:
                await handle.write(content)
                await handle.flush()
            await aiofiles.os.replace(tmp_path, target)
        except OSError as e:
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            err_msg = f"Failed to write {target}: {e}"
            raise FileWriteError(err_msg) from e

        logger.success(f"Wrote {len(candles)} candles to '{target}'.")
        return target
