"""
Coin unit helpers.

Conversions between display amounts and integer base units (satoshi, wei,
lovelace, lamports, drops) without relying on floats. ``from_*`` helpers
return plain decimal strings with trailing zeros removed.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Any

SATOSHI_DECIMALS = 8
WEI_DECIMALS = 18
GWEI_DECIMALS = 9
LOVELACE_DECIMALS = 6
LAMPORT_DECIMALS = 9
DROP_DECIMALS = 6

FEE_DECIMALS = {"btc": 8, "eth": 18, "ada": 6, "sol": 9, "xrp": 6}

# Bitcoin-family and EVM unit scales, expressed in the family's base unit.
BITCOIN_UNITS = {"btc": 8, "mbtc": 5, "satoshi": 0}
ETHER_UNITS = {"eth": 18, "gwei": 9, "wei": 0}


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("Amount must be int, float, str, or Decimal")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float, str)):
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount value: {value}") from exc
    else:
        raise ValueError("Amount must be int, float, str, or Decimal")

    if dec.is_nan():
        raise ValueError("Amount cannot be NaN")
    if dec.is_infinite():
        raise ValueError("Amount cannot be infinite")
    return dec


def _strip(dec: Decimal) -> str:
    text = f"{dec:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def to_base_units(value: Any, decimals: int) -> int:
    """Convert a display amount to integer base units, truncating extra precision."""
    dec = _to_decimal(value)
    if dec < 0:
        raise ValueError("Amount cannot be negative")
    return int((dec.scaleb(decimals)).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: Any, decimals: int) -> str:
    """Convert integer base units to a display string with no trailing zeros."""
    dec = _to_decimal(value)
    if dec != dec.to_integral_value():
        raise ValueError("Base units must be a whole number")
    return _strip(dec.scaleb(-decimals))


def format_amount(value: Any, decimals: int = 8) -> str:
    """Truncate to ``decimals`` places and drop trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = 78
        dec = _to_decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)
    return _strip(dec)


def format_fee(fee: Any, coin: str) -> str:
    return format_amount(fee, FEE_DECIMALS.get(coin.lower(), 8))


def to_satoshis(btc: Any) -> int:
    return to_base_units(btc, SATOSHI_DECIMALS)


def from_satoshis(satoshis: Any) -> str:
    return from_base_units(satoshis, SATOSHI_DECIMALS)


def to_wei(eth: Any) -> int:
    return to_base_units(eth, WEI_DECIMALS)


def from_wei(wei: Any) -> str:
    return from_base_units(wei, WEI_DECIMALS)


def gwei_to_wei(gwei: Any) -> int:
    return to_base_units(gwei, GWEI_DECIMALS)


def to_lovelace(ada: Any) -> int:
    return to_base_units(ada, LOVELACE_DECIMALS)


def from_lovelace(lovelace: Any) -> str:
    return from_base_units(lovelace, LOVELACE_DECIMALS)


def to_lamports(sol: Any) -> int:
    return to_base_units(sol, LAMPORT_DECIMALS)


def from_lamports(lamports: Any) -> str:
    return from_base_units(lamports, LAMPORT_DECIMALS)


def to_drops(xrp: Any) -> int:
    return to_base_units(xrp, DROP_DECIMALS)


def from_drops(drops: Any) -> str:
    return from_base_units(drops, DROP_DECIMALS)


def convert_units(amount: Any, from_unit: str, to_unit: str) -> str:
    """
    Convert between units of the same coin family.

    Args:
        amount: Amount expressed in ``from_unit``
        from_unit: One of btc, mbtc, satoshi, eth, gwei, wei
        to_unit: Target unit in the same family

    Returns:
        Converted amount as a decimal string without trailing zeros

    Raises:
        ValueError: If the units belong to different families or are unknown
    """
    source = from_unit.lower()
    target = to_unit.lower()
    for table in (BITCOIN_UNITS, ETHER_UNITS):
        if source in table and target in table:
            dec = _to_decimal(amount)
            return _strip(dec.scaleb(table[source] - table[target]))
    raise ValueError("Cannot convert between different cryptocurrency types")


__all__ = [
    "to_base_units",
    "from_base_units",
    "format_amount",
    "format_fee",
    "to_satoshis",
    "from_satoshis",
    "to_wei",
    "from_wei",
    "gwei_to_wei",
    "to_lovelace",
    "from_lovelace",
    "to_lamports",
    "from_lamports",
    "to_drops",
    "from_drops",
    "convert_units",
]
