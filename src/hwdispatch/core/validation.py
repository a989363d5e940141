"""
Input validation for dispatch parameters.

All validators raise InvalidParameterError (a ValueError) with a message that
is safe to surface to the workflow user, and return the normalized value.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlparse

from mnemonic import Mnemonic

from hwdispatch.core.exceptions import InvalidParameterError

MAX_LABEL_LENGTH = 16
MAX_PIN_LENGTH = 50
MIN_ENTROPY_SIZE = 1
MAX_ENTROPY_SIZE = 1024
MNEMONIC_WORD_COUNTS = (12, 15, 18, 21, 24)

_HASH_PATTERN = re.compile(r"(0x)?[a-fA-F0-9]{64}")
_HEX_PATTERN = re.compile(r"(0x)?[a-fA-F0-9]*")
_PUBLIC_KEY_PATTERN = re.compile(r"(0x)?[a-fA-F0-9]{66,130}")
_SIGNATURE_PATTERN = re.compile(r"(0x)?[a-fA-F0-9]{128,144}")
_EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_mnemonic = Mnemonic("english")


def validate_hex(value: Any, *, field: str = "value") -> str:
    """Return ``value`` if it is a (possibly 0x-prefixed) hex string."""
    if not isinstance(value, str) or not _HEX_PATTERN.fullmatch(value):
        raise InvalidParameterError(f"{field} must be a hexadecimal string")
    return value


def validate_hash(value: Any) -> str:
    """
    Validate a 32-byte hash given as hex.

    Examples:
        >>> validate_hash("ab" * 32)[:4]
        'abab'
    """
    if not isinstance(value, str) or not _HASH_PATTERN.fullmatch(value.strip()):
        raise InvalidParameterError("Hash must be a 32-byte hex string")
    return value.strip()


def validate_transaction_hash(value: Any) -> str:
    if not isinstance(value, str) or not _HASH_PATTERN.fullmatch(value):
        raise InvalidParameterError("Invalid transaction hash format")
    return value


def validate_public_key(value: Any) -> str:
    if not isinstance(value, str) or not _PUBLIC_KEY_PATTERN.fullmatch(value):
        raise InvalidParameterError("Invalid public key format")
    return value


def validate_signature(value: Any) -> str:
    if not isinstance(value, str) or not _SIGNATURE_PATTERN.fullmatch(value):
        raise InvalidParameterError("Invalid signature format")
    return value


def validate_entropy_size(size: Any) -> int:
    try:
        value = int(size)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError("Entropy size must be an integer") from exc
    if value < MIN_ENTROPY_SIZE or value > MAX_ENTROPY_SIZE:
        raise InvalidParameterError("Entropy size must be between 1 and 1024 bytes")
    return value


def validate_label(label: Any, max_length: int = MAX_LABEL_LENGTH) -> str:
    if label is None:
        return ""
    if not isinstance(label, str):
        raise InvalidParameterError("Device label must be a string")
    if len(label) > max_length:
        raise InvalidParameterError(f"Device label must be {max_length} characters or less")
    return label


def validate_pin(pin: Any, max_length: int = MAX_PIN_LENGTH) -> str:
    if not isinstance(pin, str) or not pin:
        raise InvalidParameterError("PIN cannot be empty")
    if len(pin) > max_length:
        raise InvalidParameterError(f"PIN cannot exceed {max_length} characters")
    if not pin.isdigit():
        raise InvalidParameterError("PIN must contain only digits")
    return pin


def validate_chain_id(chain_id: Any) -> int:
    if isinstance(chain_id, bool):
        raise InvalidParameterError("Chain ID must be a positive integer")
    try:
        value = int(chain_id)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError("Chain ID must be a positive integer") from exc
    if value <= 0 or (isinstance(chain_id, float) and not chain_id.is_integer()):
        raise InvalidParameterError("Chain ID must be a positive integer")
    return value


def validate_amount(amount: Any, *, min_value: Decimal | int = 0, field: str = "Amount") -> Decimal:
    """
    Validate a non-negative numeric amount.

    Returns:
        Amount as Decimal (never float)
    """
    if amount is None or isinstance(amount, bool) or amount == "":
        raise InvalidParameterError(f"{field} is required")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise InvalidParameterError(f"{field} must be a valid number") from exc
    if not value.is_finite():
        raise InvalidParameterError(f"{field} must be a valid number")
    if value < Decimal(min_value):
        raise InvalidParameterError(f"{field} must be at least {min_value}")
    return value


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not _EMAIL_PATTERN.fullmatch(email.strip()):
        raise InvalidParameterError("Invalid email format")
    return email.strip()


def validate_url(url: Any) -> str:
    if not isinstance(url, str):
        raise InvalidParameterError("Invalid URL format")
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise InvalidParameterError("Invalid URL format")
    return url.strip()


def mnemonic_words(phrase: str) -> list[str]:
    return phrase.strip().split()


def check_mnemonic(phrase: Any) -> dict[str, Any]:
    """
    Check a BIP-39 phrase for word count and checksum.

    Never raises for an invalid phrase; the verdict is in the result.
    """
    if not isinstance(phrase, str):
        raise InvalidParameterError("Mnemonic must be a string")
    words = mnemonic_words(phrase)
    length_ok = len(words) in MNEMONIC_WORD_COUNTS
    checksum_ok = length_ok and _mnemonic.check(" ".join(words).lower())
    if not length_ok:
        message = (
            f"Invalid word count: {len(words)}. "
            f"Expected: {', '.join(str(n) for n in MNEMONIC_WORD_COUNTS)}"
        )
    elif not checksum_ok:
        message = "Mnemonic checksum is invalid"
    else:
        message = "Mnemonic is valid"
    return {
        "valid": bool(checksum_ok),
        "wordCount": len(words),
        "expectedLengths": list(MNEMONIC_WORD_COUNTS),
        "checksumValid": bool(checksum_ok),
        "message": message,
    }


__all__ = [
    "validate_hex",
    "validate_hash",
    "validate_transaction_hash",
    "validate_public_key",
    "validate_signature",
    "validate_entropy_size",
    "validate_label",
    "validate_pin",
    "validate_chain_id",
    "validate_amount",
    "validate_email",
    "validate_url",
    "check_mnemonic",
]
