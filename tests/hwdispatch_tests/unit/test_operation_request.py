import pytest

from hwdispatch.core.derivation_path import parse_path
from hwdispatch.core.exceptions import InvalidParameterError, MalformedPathError
from hwdispatch.core.router import OperationRequest, ResourceKind


def build(**params):
    return OperationRequest.build(ResourceKind.BITCOIN, "getAddress", params)


def test_build_lifts_path_and_coin():
    request = build(path="m/84'/0'/0'/0/0", coin=" BTC ", network="mainnet")
    assert request.path == parse_path("m/84'/0'/0'/0/0")
    assert request.coin == "btc"
    assert request.extra == {"network": "mainnet"}


def test_build_treats_empty_path_and_coin_as_absent():
    request = build(path="", coin="")
    assert request.path is None
    assert request.coin is None
    assert request.coin_or("eth") == "eth"


def test_build_rejects_malformed_path():
    with pytest.raises(MalformedPathError):
        build(path="m/44'/abc")


def test_require_reports_parameter_name():
    with pytest.raises(InvalidParameterError, match="Missing required parameter: message"):
        build(message="   ").require("message")
    with pytest.raises(InvalidParameterError, match="Missing required parameter: path"):
        build().require_path()


@pytest.mark.parametrize(
    "raw,expected",
    [(True, True), ("yes", True), ("1", True), ("false", False), ("off", False), (None, False)],
)
def test_get_bool_accepts_common_spellings(raw, expected):
    assert build(flag=raw).get_bool("flag") is expected


def test_get_bool_rejects_garbage():
    with pytest.raises(InvalidParameterError):
        build(flag="maybe").get_bool("flag")


def test_integer_accessors():
    request = build(count="12", fraction=1.5, flag=True, low=-1)
    assert request.get_int("count") == 12
    assert request.get_int("absent", 7) == 7
    with pytest.raises(InvalidParameterError):
        request.get_int("fraction")
    with pytest.raises(InvalidParameterError):
        request.get_int("flag")
    with pytest.raises(InvalidParameterError, match="at least 0"):
        request.require_int("low", minimum=0)


def test_get_json_parses_text_and_passes_values_through():
    request = build(text='{"a": 1}', value=[1, 2], bad="{nope")
    assert request.get_json("text") == {"a": 1}
    assert request.get_json("value") == [1, 2]
    assert request.get_json("absent", []) == []
    with pytest.raises(InvalidParameterError, match="valid JSON"):
        request.get_json("bad")


def test_path_param_parses_named_paths():
    request = build(stakingPath="m/1852'/1815'/0'/2/0")
    assert request.path_param("stakingPath").depth == 5
    assert request.path_param("other") is None


def test_resource_kind_parse():
    assert ResourceKind.parse("bitcoinLike") is ResourceKind.BITCOIN_LIKE
    assert ResourceKind.parse(ResourceKind.UTILITY) is ResourceKind.UTILITY
    assert ResourceKind.parse("dogecoinLike") is None
