"""
Address format checks that need no device.

The coin's regex is only a pre-filter. Every family with a checksummed
encoding is then decoded so a single mistyped character is caught.
"""

from __future__ import annotations

import base58
from bip_utils import (
    BchBech32Decoder,
    Bech32ChecksumError,
    Bech32Decoder,
    SegwitBech32Decoder,
    XlmAddrDecoder,
    XlmAddrTypes,
)
from eth_utils import is_address

from hwdispatch.core.coin_registry import DEFAULT_REGISTRY, CoinDescriptor, CoinRegistry

HASH160_LENGTH = 20
SOLANA_KEY_LENGTH = 32
TEZOS_PREFIX_LENGTH = 3
CASHADDR_PREFIX = "bitcoincash:"


def _base58_payload(address: str, alphabet: bytes = base58.BITCOIN_ALPHABET) -> bytes | None:
    try:
        return base58.b58decode_check(address, alphabet=alphabet)
    except ValueError:
        return None


def _bitcoin_family(address: str, descriptor: CoinDescriptor) -> bool:
    hrp = descriptor.bech32_hrp
    if hrp and address.startswith(hrp + "1"):
        try:
            SegwitBech32Decoder.Decode(hrp, address)
        except (ValueError, Bech32ChecksumError):
            return False
        return True
    if descriptor.symbol == "bch" and (address.startswith(CASHADDR_PREFIX) or address[:1] in ("q", "p")):
        cashaddr = address if address.startswith(CASHADDR_PREFIX) else CASHADDR_PREFIX + address
        try:
            BchBech32Decoder.Decode(CASHADDR_PREFIX[:-1], cashaddr)
        except (ValueError, Bech32ChecksumError):
            return False
        return True
    payload = _base58_payload(address)
    if payload is None:
        return False
    for version in (descriptor.p2pkh_version, descriptor.p2sh_version):
        if version and payload[: len(version)] == version and len(payload) == len(version) + HASH160_LENGTH:
            return True
    return False


def _bech32_data(address: str, hrp: str) -> bytes | None:
    try:
        return Bech32Decoder.Decode(hrp, address)
    except (ValueError, Bech32ChecksumError):
        return None


def _cardano(address: str, descriptor: CoinDescriptor) -> bool:
    hrp = address[: address.rfind("1")]
    return bool(_bech32_data(address, hrp))


def _binance(address: str, descriptor: CoinDescriptor) -> bool:
    data = _bech32_data(address, descriptor.bech32_hrp or "bnb")
    return data is not None and len(data) == HASH160_LENGTH


def _solana(address: str, descriptor: CoinDescriptor) -> bool:
    try:
        return len(base58.b58decode(address)) == SOLANA_KEY_LENGTH
    except ValueError:
        return False


def _ripple(address: str, descriptor: CoinDescriptor) -> bool:
    payload = _base58_payload(address, base58.XRP_ALPHABET)
    return payload is not None and payload[:1] == b"\x00" and len(payload) == 1 + HASH160_LENGTH


def _stellar(address: str, descriptor: CoinDescriptor) -> bool:
    try:
        XlmAddrDecoder.DecodeAddr(address, addr_type=XlmAddrTypes.PUB_KEY)
    except ValueError:
        return False
    return True


def _tezos(address: str, descriptor: CoinDescriptor) -> bool:
    payload = _base58_payload(address)
    return payload is not None and len(payload) == TEZOS_PREFIX_LENGTH + HASH160_LENGTH


def _ethereum(address: str, descriptor: CoinDescriptor) -> bool:
    # mixed case must carry a valid EIP-55 checksum
    return is_address(address)


_DECODERS = {
    "bitcoin": _bitcoin_family,
    "ethereum": _ethereum,
    "cardano": _cardano,
    "solana": _solana,
    "ripple": _ripple,
    "stellar": _stellar,
    "tezos": _tezos,
    "binance": _binance,
}


def validate_address(address: str, coin: str, registry: CoinRegistry = DEFAULT_REGISTRY) -> bool:
    """True when ``address`` matches the coin's format and checksum. Unknown coins never match."""
    descriptor = registry.lookup(coin)
    if descriptor is None:
        return False
    address = address.strip() if address else ""
    if not descriptor.matches_address(address):
        return False
    decoder = _DECODERS.get(descriptor.family)
    return decoder(address, descriptor) if decoder else True


def address_type(address: str, coin: str) -> str:
    """Describe the script/address kind implied by an address prefix."""
    symbol = (coin or "").lower()
    if symbol in ("btc", "bitcoin"):
        if address.startswith("bc1q"):
            return "P2WPKH (Native SegWit)"
        if address.startswith("bc1p"):
            return "P2TR (Taproot)"
        if address.startswith("3"):
            return "P2SH (SegWit Compatible)"
        if address.startswith("1"):
            return "P2PKH (Legacy)"
    elif symbol in ("eth", "ethereum"):
        return "Ethereum Address"
    elif symbol in ("ltc", "litecoin"):
        if address.startswith("ltc1"):
            return "Native SegWit"
        if address.startswith("M"):
            return "SegWit Compatible"
        if address.startswith("L"):
            return "Legacy"
    return "Unknown"


def addresses_match(first: str, second: str) -> bool:
    return (first or "").strip().lower() == (second or "").strip().lower()


def shorten_address(address: str, chars: int = 4) -> str:
    if len(address) <= chars * 2 + 3:
        return address
    return f"{address[:chars + 2]}...{address[-chars:]}"
