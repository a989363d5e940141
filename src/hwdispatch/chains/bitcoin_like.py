"""Bitcoin-family coins addressed by symbol (``coin`` parameter)."""

from hwdispatch.chains.bitcoin import build_handlers, family_coin

HANDLERS = build_handlers(family_coin)
