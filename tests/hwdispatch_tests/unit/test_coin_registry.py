import pytest

from hwdispatch.core.coin_registry import (
    DEFAULT_REGISTRY,
    CoinDescriptor,
    CoinRegistry,
    EvmChain,
    script_type_for_path,
)
from hwdispatch.core.derivation_path import parse_path
from hwdispatch.core.exceptions import CoinRegistryError, InvalidParameterError


def _coin(symbol, aliases=()):
    return CoinDescriptor(
        symbol=symbol,
        display_name=symbol.upper(),
        slip44_type=0,
        supports_segwit=False,
        decimals=8,
        default_path_template="m/44'/0'/{account}'/0/0",
        account_path_template="m/44'/0'/{account}'",
        aliases=aliases,
    )


@pytest.mark.parametrize(
    "symbol,slip44",
    [("btc", 0), ("ltc", 2), ("eth", 60), ("ada", 1815), ("sol", 501), ("xrp", 144),
     ("xlm", 148), ("xtz", 1729), ("eos", 194), ("bnb", 714)],
)
def test_slip44_types(symbol, slip44):
    assert DEFAULT_REGISTRY.slip44_type(symbol) == slip44


def test_lookup_is_case_insensitive_and_accepts_aliases():
    assert DEFAULT_REGISTRY.lookup("BTC").symbol == "btc"
    assert DEFAULT_REGISTRY.lookup("Bitcoin").symbol == "btc"
    assert DEFAULT_REGISTRY.lookup("nope") is None
    assert DEFAULT_REGISTRY.lookup(None) is None


def test_require_raises_typed_error():
    with pytest.raises(CoinRegistryError):
        DEFAULT_REGISTRY.require("nope")
    assert issubclass(CoinRegistryError, InvalidParameterError)


def test_default_paths():
    assert str(DEFAULT_REGISTRY.default_path("btc")) == "m/84'/0'/0'/0/0"
    assert str(DEFAULT_REGISTRY.default_path("eth", 2)) == "m/44'/60'/2'/0/0"
    assert str(DEFAULT_REGISTRY.default_path("doge")) == "m/44'/3'/0'/0/0"
    assert str(DEFAULT_REGISTRY.default_path("sol")) == "m/44'/501'/0'/0'"
    assert str(DEFAULT_REGISTRY.default_path("ada")) == "m/1852'/1815'/0'/0/0"


def test_unknown_coin_falls_back_to_bitcoin_path():
    assert DEFAULT_REGISTRY.default_path("unknown") == DEFAULT_REGISTRY.default_path("btc")
    assert str(DEFAULT_REGISTRY.account_path(None, 1)) == "m/84'/0'/1'"
    assert DEFAULT_REGISTRY.slip44_type("unknown") == 0


def test_evm_chain_table():
    assert DEFAULT_REGISTRY.evm_chain(137).name == "Polygon"
    assert DEFAULT_REGISTRY.evm_chain(999999) is None
    assert any(chain.chain_id == 1 for chain in DEFAULT_REGISTRY.list_evm_chains())


def test_address_patterns():
    btc = DEFAULT_REGISTRY.require("btc")
    assert btc.matches_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq")
    assert not btc.matches_address("0x0000000000000000000000000000000000000000")
    assert DEFAULT_REGISTRY.require("eth").matches_address("0x" + "ab" * 20)


def test_duplicate_symbols_and_aliases_rejected():
    with pytest.raises(CoinRegistryError):
        CoinRegistry([_coin("aaa"), _coin("aaa")])
    with pytest.raises(CoinRegistryError):
        CoinRegistry([_coin("aaa", aliases=("x",)), _coin("bbb", aliases=("x",))])
    with pytest.raises(CoinRegistryError):
        CoinRegistry([])
    with pytest.raises(CoinRegistryError):
        CoinRegistry([_coin("aaa")], [EvmChain("A", "A", 1), EvmChain("B", "B", 1)])


@pytest.mark.parametrize(
    "path,expected",
    [("m/84'/0'/0'/0/0", "p2wpkh"), ("m/49'/0'/0'/0/0", "p2sh-p2wpkh"), ("m/86'/0'/0'/0/0", "p2tr"),
     ("m/44'/0'/0'/0/0", "p2pkh"), ("m", "p2pkh")],
)
def test_script_type_for_path(path, expected):
    assert script_type_for_path(parse_path(path)) == expected
