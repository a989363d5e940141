"""
Router contract: session scoping, error mapping and reply projection.

These tests drive the router with recording link doubles so every open,
close and request can be counted.
"""

import pytest

from hwdispatch.core import device_requests as req
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.mock_device_link import MockDeviceLink
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.results import ErrorKind, OperationResult
from hwdispatch.core.router import OperationRouter, ResourceKind


class TestSessionScoping:
    def test_unknown_operation_creates_no_session(self, factory_spy, scripted_link):
        spy = factory_spy(scripted_link())
        router = OperationRouter(spy)

        result = router.dispatch("bitcoin", "getBalance", {})

        assert result.error_kind is ErrorKind.UNKNOWN_OPERATION
        assert result.message == "Unknown operation: getBalance"
        assert spy.calls == 0

    def test_unknown_resource_creates_no_session(self, factory_spy, scripted_link):
        spy = factory_spy(scripted_link())
        result = OperationRouter(spy).dispatch("dogecoinLike", "getAddress", {})
        assert result.error_kind is ErrorKind.UNKNOWN_OPERATION
        assert spy.calls == 0

    def test_success_closes_link_once(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({"address": "bc1qmock"}))
        spy = factory_spy(link)

        result = OperationRouter(spy).dispatch("bitcoin", "getAddress", {})

        assert result.ok
        assert spy.calls == 1
        assert (link.open_calls, link.close_calls) == (1, 1)

    def test_handler_crash_still_closes_link(self, factory_spy, scripted_link):
        def crash(request, session):
            session.get_features()
            raise RuntimeError("handler bug")

        link = scripted_link()
        router = OperationRouter(factory_spy(link), {ResourceKind.DEVICE: {"crash": crash}})

        with pytest.raises(RuntimeError, match="handler bug"):
            router.dispatch("device", "crash", {})
        assert link.close_calls == 1

    def test_parameter_error_before_device_access_never_opens_link(self, factory_spy, scripted_link):
        link = scripted_link()
        spy = factory_spy(link)

        result = OperationRouter(spy).dispatch("ethereum", "signMessage", {})

        assert result.error_kind is ErrorKind.INVALID_PARAMETER
        assert link.open_calls == 0
        assert link.close_calls == 0

    def test_malformed_path_is_invalid_parameter(self, factory_spy, scripted_link):
        spy = factory_spy(scripted_link())
        result = OperationRouter(spy).dispatch("bitcoin", "getAddress", {"path": "m/84'/x"})
        assert result.error_kind is ErrorKind.INVALID_PARAMETER
        assert spy.calls == 0


class TestReplyProjection:
    def test_bitcoin_get_address_shapes_payload(self, factory_spy, scripted_link):
        link = scripted_link(
            lambda request: DeviceReply.ok({"address": "bc1qmock", "serializedPath": "m/84'/0'/0'/0/0"})
        )

        result = OperationRouter(factory_spy(link)).dispatch("bitcoin", "getAddress", {"network": "mainnet"})

        assert result == OperationResult.success(
            {"address": "bc1qmock", "path": "m/84'/0'/0'/0/0", "addressType": "p2wpkh", "network": "mainnet"}
        )
        (sent,) = link.sent
        assert isinstance(sent, req.GetAddress)
        assert sent.coin == "btc"
        assert sent.script_type == "p2wpkh"

    def test_address_type_follows_path_purpose(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({"address": "1mock"}))
        result = OperationRouter(factory_spy(link)).dispatch("bitcoin", "getAddress", {"path": "m/44'/0'/0'/0/0"})
        assert result.payload["addressType"] == "p2pkh"
        assert result.payload["path"] == "m/44'/0'/0'/0/0"

    def test_device_refusal_maps_to_rejected(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.fail("Action cancelled by user"))
        result = OperationRouter(factory_spy(link)).dispatch("ethereum", "getAddress", {})
        assert result.to_dict() == {
            "ok": False,
            "error": {"kind": "DeviceRejected", "message": "Action cancelled by user"},
        }

    def test_missing_reply_field_maps_to_malformed(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({"path": [0]}))
        result = OperationRouter(factory_spy(link)).dispatch("account", "getPublicKey", {})
        assert result.error_kind is ErrorKind.MALFORMED_REPLY

    def test_transport_failure_maps_to_unavailable(self, factory_spy):
        class UnpluggedLink:
            def open(self):
                raise OSError("No Trezor device found")

            def close(self):
                pass

            def send(self, request):
                raise AssertionError("never reached")

        result = OperationRouter(factory_spy(UnpluggedLink())).dispatch("device", "getFeatures", {})
        assert result.error_kind is ErrorKind.DEVICE_UNAVAILABLE


class TestMalformedFields:
    NULL_FIELDS = {"node": None, "devices": None, "credentials": None}

    @pytest.mark.parametrize(
        "resource,operation", [("suite", "listDevices"), ("webauthn", "listCredentials")]
    )
    def test_null_list_field_is_malformed(self, factory_spy, scripted_link, resource, operation):
        link = scripted_link(lambda request: DeviceReply.ok(dict(self.NULL_FIELDS)))
        result = OperationRouter(factory_spy(link)).dispatch(resource, operation, {})

        assert result.error_kind is ErrorKind.MALFORMED_REPLY
        assert "must be a list" in result.message
        assert link.close_calls == 1

    def test_null_node_leaves_chain_code_empty(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({**self.NULL_FIELDS, "publicKey": "02ab"}))
        result = OperationRouter(factory_spy(link)).dispatch("account", "getPublicKey", {})

        assert result.ok
        assert result.payload["chainCode"] is None

    def test_null_node_uses_path_depth_for_xpub(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({**self.NULL_FIELDS, "xpub": "xpub6mock"}))
        result = OperationRouter(factory_spy(link)).dispatch("account", "getXpub", {})

        assert result.ok
        assert result.payload["depth"] == 3
        assert result.payload["fingerprint"] is None

    def test_non_object_node_is_malformed(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({"publicKey": "02ab", "node": "garbage"}))
        result = OperationRouter(factory_spy(link)).dispatch("account", "getPublicKey", {})
        assert result.error_kind is ErrorKind.MALFORMED_REPLY


class TestPartialFanOut:
    def test_multi_currency_skips_refused_coin(self, factory_spy, scripted_link):
        def answer(request):
            if request.coin == "eth":
                return DeviceReply.fail("Action cancelled by user")
            return DeviceReply.ok({"address": f"{request.coin}-address"})

        link = scripted_link(answer)
        result = OperationRouter(factory_spy(link)).dispatch(
            "multiCurrency", "getAllAddresses", {"coins": ["btc", "eth", "ltc"]}
        )

        assert result.ok
        assert result.payload["count"] == 2
        assert [entry["coin"] for entry in result.payload["addresses"]] == ["btc", "ltc"]
        assert link.close_calls == 1

    def test_unknown_coin_is_skipped(self, factory_spy, scripted_link):
        link = scripted_link(lambda request: DeviceReply.ok({"address": "x", "publicKey": "02ab"}))
        result = OperationRouter(factory_spy(link)).dispatch(
            "multiCurrency", "discoverAccounts", {"coins": "btc,notacoin"}
        )
        assert result.payload["count"] == 1
        assert result.payload["accounts"][0]["discovered"] is True

    def test_account_discovery_keeps_index_order(self, factory_spy, scripted_link):
        def answer(request):
            if request.path.components[2] & 0x7FFFFFFF == 1:
                return DeviceReply.fail("Account locked")
            return DeviceReply.ok({"publicKey": "02" + "00" * 32})

        result = OperationRouter(factory_spy(scripted_link(answer))).dispatch("account", "discover", {"coin": "btc"})

        assert result.payload["count"] == 4
        assert [account["index"] for account in result.payload["accounts"]] == [0, 2, 3, 4]


def test_every_registered_operation_returns_a_result():
    router = OperationRouter(lambda: DeviceSession(MockDeviceLink()))
    assert len({resource for resource, _ in router.operations()}) == len(ResourceKind)
    for resource, operation in router.operations():
        result = router.dispatch(resource, operation, {})
        assert isinstance(result, OperationResult), (resource, operation)
        if not result.ok:
            assert isinstance(result.error_kind, ErrorKind), (resource, operation)
            assert result.message


def test_every_registered_operation_survives_null_reply_fields(factory_spy, scripted_link):
    link = scripted_link(lambda request: DeviceReply.ok(dict(TestMalformedFields.NULL_FIELDS)))
    router = OperationRouter(factory_spy(link))
    for resource, operation in router.operations():
        result = router.dispatch(resource, operation, {})
        assert isinstance(result, OperationResult), (resource, operation)
