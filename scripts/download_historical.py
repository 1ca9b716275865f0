#!/usr/bin/env python
r"""A command-line utility to download historical candlestick data to CSV.

Equivalent to `ftxprices download`; kept as a script for checkouts where the
package is importable but the console script is not installed.

Usage:
    python scripts/download_historical.py <MARKET> <START_DATE> [END_DATE] \
        [--resolution SECONDS] [--output-dir DIR] [--timeout SECONDS]

Example:
    python scripts/download_historical.py BTC-PERP 2022-01-01 2022-01-31 --resolution 60
"""

import sys

from ftxprices.cli import main

if __name__ == "__main__":
    sys.exit(main(["download", *sys.argv[1:]]))
