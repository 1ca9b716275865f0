"""Error types raised by ftxprices.

Every error is fatal for the invocation that raised it; the CLI logs it and
exits with a non-zero status.
"""


class FtxPricesError(Exception):
    """Base class for all errors raised by this package."""


class DateParseError(FtxPricesError, ValueError):
    """A date string did not match the `YYYY-MM-DD` format, or the range is empty."""


class InvalidResolutionError(FtxPricesError, ValueError):
    """A candle resolution outside the set accepted by the exchange."""


class RemoteRequestError(FtxPricesError):
    """A request to the exchange failed.

    The underlying cause, when there is one, is chained as `__cause__`.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyResultError(FtxPricesError):
    """There are no candles to export."""


class FileWriteError(FtxPricesError):
    """Writing the CSV export failed. No partial file is left behind."""
