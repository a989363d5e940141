"""
End-to-end flows against the simulated device.

Keys come from a fixed test mnemonic, so assertions check address formats
and signature round-trips rather than specific values.
"""

import base58
import pytest
from eth_utils import is_checksum_address

from hwdispatch.core.addresses import validate_address
from hwdispatch.core.mock_device_link import MAX_RECORDED_REQUESTS
from hwdispatch.core.results import ErrorKind


def ok_payload(result):
    assert result.ok, result.to_dict()
    return result.payload


class TestBitcoin:
    def test_mainnet_and_testnet_addresses(self, mock_router):
        mainnet = ok_payload(mock_router.dispatch("bitcoin", "getAddress", {}))
        testnet = ok_payload(
            mock_router.dispatch("bitcoin", "getAddress", {"network": "testnet", "path": "m/84'/1'/0'/0/0"})
        )
        assert mainnet["address"].startswith("bc1q")
        assert validate_address(mainnet["address"], "btc")
        assert testnet["address"].startswith("tb1q")

    @pytest.mark.parametrize(
        "address_type,prefix",
        [("p2pkh", "1"), ("p2sh-p2wpkh", "3"), ("p2tr", "bc1p")],
    )
    def test_address_types(self, mock_router, address_type, prefix):
        payload = ok_payload(mock_router.dispatch("bitcoin", "getAddress", {"addressType": address_type}))
        assert payload["address"].startswith(prefix)
        assert payload["addressType"] == address_type

    def test_sign_then_verify_message(self, mock_router):
        signed = ok_payload(mock_router.dispatch("bitcoin", "signMessage", {"message": "hello"}))
        params = {"address": signed["address"], "signature": signed["signature"]}

        verified = ok_payload(mock_router.dispatch("bitcoin", "verifyMessage", {**params, "message": "hello"}))
        tampered = ok_payload(mock_router.dispatch("bitcoin", "verifyMessage", {**params, "message": "hellO"}))

        assert verified["valid"] is True
        assert tampered["valid"] is False

    def test_litecoin_through_bitcoin_like(self, mock_router):
        payload = ok_payload(mock_router.dispatch("bitcoinLike", "getAddress", {"coin": "ltc"}))
        assert payload["coin"] == "ltc"
        assert payload["address"].startswith("ltc1")

    def test_bitcoin_like_rejects_other_families(self, mock_router):
        result = mock_router.dispatch("bitcoinLike", "getAddress", {"coin": "eth"})
        assert result.error_kind is ErrorKind.INVALID_PARAMETER


class TestEthereum:
    def test_address_is_checksummed(self, mock_router):
        payload = ok_payload(mock_router.dispatch("ethereum", "getAddress", {}))
        assert is_checksum_address(payload["address"])
        assert payload["chainId"] == 1

    def test_sign_then_verify_message(self, mock_router):
        signed = ok_payload(mock_router.dispatch("ethereum", "signMessage", {"message": "gm"}))
        verified = ok_payload(
            mock_router.dispatch(
                "ethereum",
                "verifyMessage",
                {"address": signed["address"], "message": "gm", "signature": signed["signature"]},
            )
        )
        assert verified["valid"] is True

    def test_sign_transaction_returns_signature_parts(self, mock_router):
        payload = ok_payload(
            mock_router.dispatch(
                "ethereum",
                "signTransaction",
                {
                    "to": "0x" + "11" * 20,
                    "value": "0.01",
                    "gasPrice": "20",
                    "nonce": 0,
                },
            )
        )
        assert {"v", "r", "s"} <= set(payload)
        assert payload["chainId"] == 1

    def test_bad_recipient_is_rejected_before_device(self, mock_router, mock_link):
        result = mock_router.dispatch(
            "ethereum", "signTransaction", {"to": "0x1234", "gasPrice": "20", "nonce": 0}
        )
        assert result.error_kind is ErrorKind.INVALID_PARAMETER
        assert not mock_link.requests


class TestOtherChains:
    def test_cardano_addresses(self, mock_router):
        address = ok_payload(mock_router.dispatch("cardano", "getAddress", {}))
        stake = ok_payload(mock_router.dispatch("cardano", "getStakeAddress", {}))
        assert address["address"].startswith("addr1")
        assert stake["stakeAddress"].startswith("stake1")

    def test_solana_address_is_ed25519_key(self, mock_router):
        payload = ok_payload(mock_router.dispatch("solana", "getAddress", {}))
        assert len(base58.b58decode(payload["address"])) == 32
        assert payload["network"] == "mainnet-beta"

    def test_account_xpub_and_discovery(self, mock_router):
        xpub = ok_payload(mock_router.dispatch("account", "getXpub", {"coin": "btc"}))
        discovered = ok_payload(mock_router.dispatch("account", "discover", {"coin": "btc"}))
        assert xpub["xpub"].startswith("xpub")
        assert discovered["count"] == 5
        assert len({account["publicKey"] for account in discovered["accounts"]}) == 5

    def test_multi_currency_portfolio(self, mock_router):
        payload = ok_payload(mock_router.dispatch("multiCurrency", "getAllAddresses", {}))
        assert [entry["coin"] for entry in payload["addresses"]] == ["btc", "eth", "ltc"]


class TestDeviceManagement:
    def test_label_round_trip(self, mock_router):
        ok_payload(mock_router.dispatch("label", "setLabel", {"deviceLabel": "Cold Storage"}))
        assert ok_payload(mock_router.dispatch("label", "getLabel", {}))["label"] == "Cold Storage"
        ok_payload(mock_router.dispatch("label", "clearLabel", {}))
        assert ok_payload(mock_router.dispatch("label", "getLabel", {}))["label"] == ""

    def test_passphrase_toggle(self, mock_router):
        ok_payload(mock_router.dispatch("passphrase", "enable", {}))
        assert ok_payload(mock_router.dispatch("passphrase", "getStatus", {}))["passphraseProtection"] is True
        ok_payload(mock_router.dispatch("passphrase", "setSource", {"passphraseSource": "device"}))
        assert ok_payload(mock_router.dispatch("passphrase", "getStatus", {}))["passphraseAlwaysOnDevice"] is True

    def test_reset_requires_wiped_device(self, mock_router):
        refused = mock_router.dispatch("device", "reset", {})
        assert refused.error_kind is ErrorKind.DEVICE_REJECTED
        ok_payload(mock_router.dispatch("device", "wipe", {}))
        ok_payload(mock_router.dispatch("device", "reset", {"seedStrength": 128}))
        assert ok_payload(mock_router.dispatch("backup", "startBackup", {}))["status"] == "backup_initiated"

    def test_user_cancellation_is_device_rejected(self, mock_router, mock_link):
        mock_link.rejected = frozenset({"GetAddress"})
        result = mock_router.dispatch("bitcoin", "getAddress", {})
        assert result.error_kind is ErrorKind.DEVICE_REJECTED

    def test_webauthn_credential_lifecycle(self, mock_router):
        added = ok_payload(
            mock_router.dispatch("webauthn", "addCredential", {"rpId": "example.com", "userId": "alice"})
        )
        assert added["created"] is True
        listed = ok_payload(mock_router.dispatch("webauthn", "listCredentials", {}))
        assert listed["count"] == 1
        assertion = ok_payload(
            mock_router.dispatch("webauthn", "getAssertion", {"rpId": "example.com", "challenge": "abc"})
        )
        assert assertion["assertion"]["credentialId"] == added["credential"]["credentialId"]
        ok_payload(mock_router.dispatch("webauthn", "removeCredential", {"credentialIndex": 0}))
        assert ok_payload(mock_router.dispatch("webauthn", "listCredentials", {}))["count"] == 0


class TestTransactions:
    def test_compose_validates_outputs(self, mock_router):
        address = ok_payload(mock_router.dispatch("bitcoin", "getAddress", {}))["address"]
        composed = ok_payload(
            mock_router.dispatch(
                "transaction", "compose", {"outputs": [{"address": address, "amount": "0.001"}], "feeRate": 5}
            )
        )
        assert composed["estimatedFee"] == 1250
        assert composed["outputs"][0]["address"] == address

        invalid = mock_router.dispatch(
            "transaction", "compose", {"outputs": [{"address": "not-an-address", "amount": "1"}]}
        )
        assert invalid.error_kind is ErrorKind.INVALID_PARAMETER

    def test_estimate_fee(self, mock_router, mock_link):
        payload = ok_payload(
            mock_router.dispatch("transaction", "estimateFee", {"inputCount": 2, "outputCount": 2, "feeRate": 10})
        )
        assert payload["estimatedVsize"] == 11 + 68 * 2 + 31 * 2
        assert payload["estimatedFee"] == payload["estimatedVsize"] * 10
        assert not mock_link.requests

    def test_sign_hash(self, mock_router):
        payload = ok_payload(
            mock_router.dispatch("signing", "signHash", {"hash": "ab" * 32, "path": "m/44'/0'/0'/0/0"})
        )
        assert payload["hash"] == "ab" * 32
        assert payload["signature"]


class TestLongLivedLink:
    def test_request_log_is_bounded(self, mock_router, mock_link):
        for _ in range(MAX_RECORDED_REQUESTS + 10):
            ok_payload(mock_router.dispatch("device", "ping", {}))
        assert len(mock_link.requests) == MAX_RECORDED_REQUESTS

    def test_close_drops_derived_keys_but_keeps_issued_addresses(self, mock_router, mock_link):
        signed = ok_payload(mock_router.dispatch("bitcoin", "signMessage", {"message": "hello"}))
        assert not mock_link._nodes

        verified = ok_payload(
            mock_router.dispatch(
                "bitcoin",
                "verifyMessage",
                {"address": signed["address"], "signature": signed["signature"], "message": "hello"},
            )
        )
        assert verified["valid"] is True
