"""REST clients for the exchange.

`ExchangeClient` in `ftxprices.exchange.base` defines the requests the
downloader and the market ranking depend on; `FtxClient` in
`ftxprices.exchange.ftx` implements them over HTTP.
"""
