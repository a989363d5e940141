import pytest

from hwdispatch.core.derivation_path import (
    HARDENED_OFFSET,
    DerivationPath,
    account_index,
    address_index,
    change_path,
    format_path,
    increment_address_index,
    is_hardened_path,
    parse_path,
)
from hwdispatch.core.exceptions import InvalidParameterError, MalformedPathError, PathTooShortError


@pytest.mark.parametrize(
    "text",
    ["m/84'/0'/0'/0/0", "m/44'/60'/0'/0/0", "m/1852'/1815'/3'/2/0", "m/0", "m/44'/501'/0'/0'"],
)
def test_format_inverts_parse(text):
    assert format_path(parse_path(text)) == text


def test_hardened_components_are_offset():
    assert parse_path("m/84'/0'/0'").components == (
        84 + HARDENED_OFFSET,
        HARDENED_OFFSET,
        HARDENED_OFFSET,
    )
    assert parse_path("m/84/0/0").components == (84, 0, 0)


def test_h_marker_and_missing_prefix_are_accepted():
    assert parse_path("84h/0H/0'") == parse_path("m/84'/0'/0'")
    assert str(parse_path("84h/0h/0h")) == "m/84'/0'/0'"


def test_root_path_is_empty():
    assert parse_path("m").depth == 0
    assert format_path(()) == "m/"


@pytest.mark.parametrize("text", ["", "m//0", "m/a", "m/1'/x", "m/-1", "m/2147483648", "m/0''"])
def test_malformed_paths_are_rejected(text):
    with pytest.raises(MalformedPathError):
        parse_path(text)


def test_path_errors_are_invalid_parameters():
    with pytest.raises(InvalidParameterError):
        parse_path("m/not-a-path")


def test_account_and_address_index():
    path = parse_path("m/84'/0'/2'/0/5")
    assert account_index(path) == 2
    assert address_index(path) == 5
    assert account_index(parse_path("m/84'")) == 0
    assert address_index(DerivationPath(())) == 0


def test_increment_preserves_hardening():
    assert str(increment_address_index(parse_path("m/44'/0'/0'/0/0'"))) == "m/44'/0'/0'/0/1'"
    assert str(increment_address_index(parse_path("m/44'/0'/0'/0/0"))) == "m/44'/0'/0'/0/1"


def test_change_path_sets_internal_chain():
    assert str(change_path(parse_path("m/84'/0'/0'/0/7"))) == "m/84'/0'/0'/1/7"
    assert str(change_path(parse_path("m/84'/0'/0'/1/7"))) == "m/84'/0'/0'/1/7"
    with pytest.raises(PathTooShortError):
        change_path(parse_path("m/84'/0'/0'"))


def test_with_account_keeps_hardened_flag():
    path = parse_path("m/44'/60'/0'/0/0")
    assert str(path.with_account(4)) == "m/44'/60'/4'/0/0"
    with pytest.raises(PathTooShortError):
        parse_path("m/44'/60'").with_account(1)


def test_bip44_builder_and_fully_hardened():
    assert str(DerivationPath.bip44(84, 0, 1, 0, 3)) == "m/84'/0'/1'/0/3"
    with pytest.raises(MalformedPathError):
        DerivationPath.bip44(44, 0, 0, address_index=1)
    assert str(parse_path("m/44'/501'/0'/0/0").fully_hardened()) == "m/44'/501'/0'/0'/0'"


def test_is_hardened_path():
    assert is_hardened_path("m/44'/501'/0'")
    assert not is_hardened_path("m/44'/501'/0")
