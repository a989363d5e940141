from decimal import Decimal

import pytest

from hwdispatch.core.units import (
    convert_units,
    format_amount,
    from_drops,
    from_satoshis,
    from_wei,
    gwei_to_wei,
    to_drops,
    to_lovelace,
    to_satoshis,
    to_wei,
)


def test_satoshi_round_trip():
    assert from_satoshis(to_satoshis("0.00000001")) == "0.00000001"
    assert to_satoshis("1.5") == 150_000_000


def test_wei_round_trip():
    assert from_wei(to_wei(1)) == "1"
    assert to_wei("0.000000000000000001") == 1
    assert gwei_to_wei("20") == 20_000_000_000


def test_extra_precision_is_truncated_not_rounded():
    assert to_satoshis("0.123456789") == 12_345_678
    assert to_drops("1.0000009") == 1_000_000


def test_small_coin_units():
    assert to_lovelace("2.5") == 2_500_000
    assert from_drops(1_500_000) == "1.5"


@pytest.mark.parametrize("value", ["-1", "abc", "NaN", "Infinity", True, None])
def test_invalid_amounts_raise_value_error(value):
    with pytest.raises(ValueError):
        to_satoshis(value)


def test_fractional_base_units_rejected():
    with pytest.raises(ValueError):
        from_satoshis(Decimal("1.5"))


def test_convert_units_within_family():
    assert convert_units("1", "btc", "satoshi") == "100000000"
    assert convert_units("150000", "satoshi", "mbtc") == "1.5"
    assert convert_units("1", "gwei", "wei") == "1000000000"
    assert convert_units("2", "ETH", "gwei") == "2000000000"


def test_convert_units_across_families_fails():
    with pytest.raises(ValueError, match="different cryptocurrency types"):
        convert_units("1", "btc", "wei")


def test_format_amount_truncates():
    assert format_amount("1.123456789", 8) == "1.12345678"
    assert format_amount("2.50000000") == "2.5"
