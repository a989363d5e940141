from decimal import Decimal

import pytest

from hwdispatch.core.addresses import address_type, addresses_match, shorten_address, validate_address
from hwdispatch.core.exceptions import InvalidParameterError
from hwdispatch.core.format_utils import bytes_to_hex, format_timestamp, hex_to_bytes
from hwdispatch.core.validation import (
    check_mnemonic,
    validate_amount,
    validate_chain_id,
    validate_entropy_size,
    validate_hash,
    validate_hex,
    validate_label,
    validate_pin,
)

VALID_MNEMONIC = "abandon " * 11 + "about"


def test_hash_must_be_32_bytes_of_hex():
    assert validate_hash("0x" + "ab" * 32).endswith("ab")
    for bad in ("ab" * 31, "zz" * 32, 42, None):
        with pytest.raises(InvalidParameterError):
            validate_hash(bad)


def test_entropy_size_bounds():
    assert validate_entropy_size("32") == 32
    for bad in (0, 1025, "many"):
        with pytest.raises(InvalidParameterError):
            validate_entropy_size(bad)


def test_label_length_limit():
    assert validate_label("A" * 16) == "A" * 16
    assert validate_label(None) == ""
    with pytest.raises(InvalidParameterError, match="16 characters"):
        validate_label("A" * 17)


def test_pin_rules():
    assert validate_pin("1234") == "1234"
    for bad in ("", "12a4", "1" * 51):
        with pytest.raises(InvalidParameterError):
            validate_pin(bad)


def test_chain_id_must_be_positive_integer():
    assert validate_chain_id("137") == 137
    for bad in (0, -1, "abc", True, 1.5):
        with pytest.raises(InvalidParameterError):
            validate_chain_id(bad)


def test_amount_returns_decimal():
    assert validate_amount("0.1") == Decimal("0.1")
    with pytest.raises(InvalidParameterError):
        validate_amount("-1")
    with pytest.raises(InvalidParameterError):
        validate_amount("")


def test_hex_validation():
    assert validate_hex("0xdeadbeef", field="data") == "0xdeadbeef"
    with pytest.raises(InvalidParameterError, match="data"):
        validate_hex("0xnothex", field="data")


def test_mnemonic_check_reports_checksum_and_length():
    assert check_mnemonic(VALID_MNEMONIC)["valid"] is True
    bad_checksum = check_mnemonic("abandon " * 12)
    assert bad_checksum["valid"] is False
    assert bad_checksum["message"] == "Mnemonic checksum is invalid"
    short = check_mnemonic("abandon abandon")
    assert short["wordCount"] == 2
    assert "Invalid word count" in short["message"]


def test_address_helpers():
    assert validate_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq", "btc")
    assert not validate_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq", "eth")
    assert not validate_address("anything", "unknown")
    assert address_type("bc1p" + "a" * 58, "btc") == "P2TR (Taproot)"
    assert address_type("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy", "btc") == "P2SH (SegWit Compatible)"
    assert address_type("0xabc", "eth") == "Ethereum Address"
    assert addresses_match(" 0xAbC ", "0xabc")
    assert shorten_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq") == "bc1qar...5mdq"


def test_hex_and_timestamp_formatting():
    assert hex_to_bytes("0x00ff") == b"\x00\xff"
    assert bytes_to_hex(b"\x01", prefix=False) == "01"
    with pytest.raises(InvalidParameterError):
        hex_to_bytes("xyz")
    assert format_timestamp(0) == "1970-01-01T00:00:00.000Z"
