"""
Chain and resource handlers.

Each module exposes a ``HANDLERS`` mapping of operation name to handler
callable. The router assembles them into its dispatch table.
"""

from hwdispatch.chains import (
    account,
    address,
    backup,
    binance_chain,
    bitcoin,
    bitcoin_like,
    cardano,
    coinjoin,
    device,
    eos,
    ethereum,
    evm_chains,
    firmware,
    label,
    multi_currency,
    passphrase,
    ripple,
    security,
    signing,
    solana,
    stellar,
    suite,
    tezos,
    transaction,
    utility,
    webauthn,
)

HANDLERS_BY_RESOURCE = {
    "account": account.HANDLERS,
    "address": address.HANDLERS,
    "bitcoin": bitcoin.HANDLERS,
    "bitcoinLike": bitcoin_like.HANDLERS,
    "ethereum": ethereum.HANDLERS,
    "evmChains": evm_chains.HANDLERS,
    "cardano": cardano.HANDLERS,
    "solana": solana.HANDLERS,
    "ripple": ripple.HANDLERS,
    "stellar": stellar.HANDLERS,
    "tezos": tezos.HANDLERS,
    "eos": eos.HANDLERS,
    "binanceChain": binance_chain.HANDLERS,
    "multiCurrency": multi_currency.HANDLERS,
    "transaction": transaction.HANDLERS,
    "signing": signing.HANDLERS,
    "passphrase": passphrase.HANDLERS,
    "backup": backup.HANDLERS,
    "security": security.HANDLERS,
    "coinjoin": coinjoin.HANDLERS,
    "firmware": firmware.HANDLERS,
    "label": label.HANDLERS,
    "webauthn": webauthn.HANDLERS,
    "suite": suite.HANDLERS,
    "utility": utility.HANDLERS,
    "device": device.HANDLERS,
}

__all__ = ["HANDLERS_BY_RESOURCE"]
