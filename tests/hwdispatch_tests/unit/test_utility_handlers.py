"""Offline utility operations go through the router without any device session."""

import pytest

from hwdispatch.core.derivation_path import HARDENED_OFFSET
from hwdispatch.core.results import ErrorKind
from hwdispatch.core.router import OperationRouter
from hwdispatch.core.validation import MNEMONIC_WORD_COUNTS

VALID_MNEMONIC = "abandon " * 11 + "about"


@pytest.fixture
def router(factory_spy, scripted_link):
    spy = factory_spy(scripted_link())
    router = OperationRouter(spy)
    router.spy = spy
    return router


def test_parse_path_breaks_out_components(router):
    result = router.dispatch("utility", "parsePath", {"path": "m/84h/0h/0h/1/7"})
    assert result.ok
    payload = result.payload
    assert payload["path"] == "m/84'/0'/0'/1/7"
    assert (payload["purpose"], payload["coinType"], payload["account"]) == (84, 0, 0)
    assert (payload["change"], payload["addressIndex"], payload["depth"]) == (1, 7, 5)
    assert payload["components"][0] == {"value": 84, "hardened": True, "fullValue": HARDENED_OFFSET + 84}
    assert payload["components"][3] == {"value": 1, "hardened": False, "fullValue": 1}
    assert router.spy.calls == 0


def test_parse_path_short_paths_leave_missing_fields_empty(router):
    payload = router.dispatch("utility", "parsePath", {"path": "m/44'/60'"}).payload
    assert payload["account"] is None
    assert payload["addressIndex"] is None


def test_parse_path_requires_path(router):
    result = router.dispatch("utility", "parsePath", {})
    assert result.error_kind is ErrorKind.INVALID_PARAMETER


def test_generate_path_defaults_and_overrides(router):
    assert router.dispatch("utility", "generatePath").payload["path"] == "m/44'/0'/0'/0/0"
    payload = router.dispatch(
        "utility", "generatePath", {"purpose": 84, "coinType": 2, "account": 3, "change": 1, "addressIndex": 9}
    ).payload
    assert payload["path"] == "m/84'/2'/3'/1/9"


def test_convert_units(router):
    payload = router.dispatch(
        "utility", "convertUnits", {"amount": "1.5", "fromUnit": "btc", "toUnit": "satoshi"}
    ).payload
    assert payload["converted"] == "150000000"
    mixed = router.dispatch("utility", "convertUnits", {"amount": "1", "fromUnit": "btc", "toUnit": "wei"})
    assert mixed.error_kind is ErrorKind.INVALID_PARAMETER


def test_validate_mnemonic(router):
    good = router.dispatch("utility", "validateMnemonic", {"mnemonic": VALID_MNEMONIC}).payload
    assert good["valid"] is True
    assert good["wordCount"] == 12
    assert good["expectedLengths"] == list(MNEMONIC_WORD_COUNTS)

    short = router.dispatch("utility", "validateMnemonic", {"mnemonic": "abandon abandon"}).payload
    assert short["valid"] is False
    assert short["message"].startswith("Invalid word count: 2")
    assert router.spy.calls == 0
