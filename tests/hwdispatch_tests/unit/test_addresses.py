"""Checksum-aware address validation."""

import pytest

from hwdispatch.core.addresses import validate_address
from hwdispatch.core.results import ErrorKind

SEGWIT = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
LEGACY = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
NESTED = "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"
EIP55 = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


@pytest.mark.parametrize("address", [SEGWIT, LEGACY, NESTED])
def test_known_bitcoin_addresses_are_valid(address):
    assert validate_address(address, "btc")


@pytest.mark.parametrize(
    "address",
    [
        SEGWIT[:-1] + "x",
        LEGACY[:-1] + "b",
        NESTED[:-1] + "z",
    ],
)
def test_single_character_typo_fails_checksum(address):
    assert not validate_address(address, "btc")


def test_mainnet_address_is_not_a_litecoin_address():
    # right checksum, wrong version byte
    assert not validate_address(LEGACY, "ltc")


def test_ethereum_checksum_rules():
    assert validate_address(EIP55, "eth")
    assert validate_address(EIP55.lower(), "eth")
    assert validate_address("0x" + EIP55[2:].upper(), "eth")
    assert not validate_address(EIP55[:-1] + "D", "eth")


def test_validate_operation_rejects_broken_bech32(mock_router):
    result = mock_router.dispatch("address", "validate", {"address": SEGWIT[:-1] + "x", "coin": "btc"})
    assert result.ok
    assert result.payload["valid"] is False


@pytest.mark.parametrize(
    "resource,coin,params",
    [
        ("bitcoin", "btc", {"addressType": "p2tr"}),
        ("bitcoin", "btc", {"addressType": "p2pkh"}),
        ("bitcoinLike", "ltc", {"coin": "ltc"}),
        ("bitcoinLike", "doge", {"coin": "doge"}),
        ("ethereum", "eth", {}),
        ("cardano", "ada", {}),
        ("ripple", "xrp", {}),
        ("stellar", "xlm", {}),
        ("tezos", "xtz", {}),
        ("binanceChain", "bnb", {}),
    ],
)
def test_device_addresses_pass_validation(mock_router, resource, coin, params):
    result = mock_router.dispatch(resource, "getAddress", params)
    assert result.ok, result.to_dict()
    address = result.payload["address"]
    assert validate_address(address, coin)
    assert not validate_address(address[:-1] + ("2" if address[-1] != "2" else "3"), coin)


def test_sign_transaction_rejects_bad_recipient_checksum(mock_router, mock_link):
    result = mock_router.dispatch(
        "ethereum",
        "signTransaction",
        {"to": EIP55[:-1] + "D", "gasPrice": "20", "nonce": 0},
    )
    assert result.error_kind is ErrorKind.INVALID_PARAMETER
    assert "checksum" in result.message
    assert not mock_link.requests


def test_solana_address_must_decode_to_a_32_byte_key(mock_router):
    address = mock_router.dispatch("solana", "getAddress", {}).payload["address"]
    assert validate_address(address, "sol")
    assert not validate_address(address[:-4], "sol")
