"""ftxprices: download historical price candles from the FTX REST API.

The package walks a market's candle history backward from the requested end
time, one paced request at a time, and writes the merged series to CSV.

Key modules:
- `exchange`: REST client for the exchange and its request types.
- `fetcher`: the backward-paginating historical candle download loop.
- `exporter`: CSV serialization of a downloaded candle series.
- `markets`: ranking of futures markets by 24h volume.
- `cli`: the `ftxprices` command-line entry point.
"""

# The version is managed in pyproject.toml and retrieved here at runtime.
import importlib.metadata

try:
    __version__: str = importlib.metadata.version("ftxprices")
except importlib.metadata.PackageNotFoundError:
    # Source checkout without an installed distribution.
    __version__ = "0.0.0-dev"
