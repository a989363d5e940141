"""
Trezor device link backed by trezorlib.

Talks to a physical device (or the Trezor emulator) over the bridge or USB.
Private keys never leave the device; every signing request is confirmed on
the device screen. Requests that trezorlib cannot express from the fields
available here come back as failure replies naming the request.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Callable, Dict, List, Optional

try:
    from trezorlib import (
        binance,
        btc,
        cardano,
        device,
        eos,
        ethereum,
        fido,
        messages,
        misc,
        protobuf,
        ripple,
        solana,
        stellar,
        tezos,
    )
    from trezorlib.client import TrezorClient
    from trezorlib.exceptions import Cancelled, TrezorException, TrezorFailure
    from trezorlib.transport import enumerate_devices, get_transport
    from trezorlib.ui import ClickUI
except ImportError as exc:  # pragma: no cover - optional dependency
    raise ImportError("trezorlib is required for Trezor support. pip install trezor") from exc

from hwdispatch.core import device_requests as req
from hwdispatch.core.coin_registry import DEFAULT_REGISTRY, CoinRegistry
from hwdispatch.core.derivation_path import DerivationPath
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.exceptions import DeviceLinkError

logger = logging.getLogger(__name__)

# trezorlib coin names that differ from the registry display names
_COIN_NAMES = {"bch": "Bcash", "test": "Testnet"}

_SCRIPT_TYPES = {
    "p2wpkh": "SPENDWITNESS",
    "p2sh-p2wpkh": "SPENDP2SHWITNESS",
    "p2pkh": "SPENDADDRESS",
    "p2tr": "SPENDTAPROOT",
}


def _n(path: DerivationPath) -> List[int]:
    return path.to_list()


def _bytes(value: str) -> bytes:
    text = value[2:] if value[:2] in ("0x", "0X") else value
    return bytes.fromhex(text)


class TrezorDeviceLink:
    """
    DeviceLink for a real Trezor.

    Attributes:
        options: Link options forwarded from ConnectConfig
        device_path: Transport path; the first enumerated device when empty
    """

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        device_path: str = "",
        registry: CoinRegistry = DEFAULT_REGISTRY,
    ):
        self.options = dict(options or {})
        self.device_path = device_path
        self.registry = registry
        self._client: Optional[TrezorClient] = None
        self._handlers: Dict[type, Callable[[Any], DeviceReply]] = {
            req.GetFeatures: self._get_features,
            req.Ping: lambda r: DeviceReply.ok({"message": self._client.ping(r.message)}),
            req.ListDevices: self._list_devices,
            req.WipeDevice: self._wipe,
            req.ResetDevice: self._reset,
            req.RecoverDevice: self._recover,
            req.ChangePin: self._change_pin,
            req.ApplySettings: self._apply_settings,
            req.BackupDevice: self._backup,
            req.LockDevice: self._lock,
            req.GetEntropy: lambda r: DeviceReply.ok({"entropy": "0x" + misc.get_entropy(self._client, r.size).hex()}),
            req.GetPublicKey: self._get_public_key,
            req.GetAddress: self._get_address,
            req.SignTransaction: self._sign_transaction,
            req.SignMessage: self._sign_message,
            req.VerifyMessage: self._verify_message,
            req.GetOwnershipId: self._get_ownership_id,
            req.GetOwnershipProof: self._get_ownership_proof,
            req.AuthorizeCoinjoin: self._authorize_coinjoin,
            req.EthereumSignTransaction: self._ethereum_sign_transaction,
            req.EthereumSignMessage: self._ethereum_sign_message,
            req.EthereumSignTypedData: self._ethereum_sign_typed_data,
            req.EthereumVerifyMessage: self._ethereum_verify_message,
            req.CardanoGetAddress: self._cardano_get_address,
            req.SolanaGetAddress: lambda r: self._address_reply(
                r.path, solana.get_address(self._client, _n(r.path), show_display=r.show_on_device)
            ),
            req.SolanaSignTransaction: self._solana_sign_transaction,
            req.RippleGetAddress: lambda r: self._address_reply(
                r.path, ripple.get_address(self._client, _n(r.path), show_display=r.show_on_device)
            ),
            req.RippleSignTransaction: self._ripple_sign_transaction,
            req.StellarGetAddress: lambda r: self._address_reply(
                r.path, stellar.get_address(self._client, _n(r.path), show_display=r.show_on_device)
            ),
            req.TezosGetAddress: lambda r: self._address_reply(
                r.path, tezos.get_address(self._client, _n(r.path), show_display=r.show_on_device)
            ),
            req.EosGetPublicKey: self._eos_get_public_key,
            req.EosSignTransaction: self._eos_sign_transaction,
            req.BinanceGetAddress: lambda r: self._address_reply(
                r.path, binance.get_address(self._client, _n(r.path), show_display=r.show_on_device)
            ),
            req.BinanceSignTransaction: self._binance_sign_transaction,
            req.WebAuthnListCredentials: self._webauthn_list_credentials,
            req.WebAuthnRemoveCredential: self._webauthn_remove_credential,
        }

    # ------------------------------------------------------------------
    # DeviceLink protocol
    # ------------------------------------------------------------------

    def open(self) -> None:
        try:
            transport = get_transport(self.device_path or None)
        except TrezorException as exc:
            raise DeviceLinkError("No Trezor device found.", {"device_path": self.device_path}) from exc
        self._client = TrezorClient(transport, ui=ClickUI())
        logger.info(
            "Trezor device link opened",
            extra={"event": "trezor_link.open", "device_path": transport.get_path()},
        )

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.end_session()
        finally:
            self._client = None
            logger.debug("Trezor device link closed", extra={"event": "trezor_link.close"})

    def send(self, request: req.DeviceRequest) -> DeviceReply:
        if self._client is None:
            raise DeviceLinkError("Device link is not open")
        handler = self._handlers.get(type(request))
        if handler is None:
            return DeviceReply.fail(f"{request.name} is not supported by the Trezor backend")
        try:
            return handler(request)
        except Cancelled:
            return DeviceReply.fail("Action cancelled by user")
        except TrezorFailure as exc:
            return DeviceReply.fail(exc.message or str(exc))
        except TrezorException as exc:
            return DeviceReply.fail(str(exc))
        except (ValueError, KeyError) as exc:
            return DeviceReply.fail(str(exc) or f"Invalid {request.name} request")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _coin_name(self, coin: str) -> str:
        descriptor = self.registry.require(coin)
        return _COIN_NAMES.get(descriptor.symbol, descriptor.display_name)

    @staticmethod
    def _script_type(name: str):
        try:
            return getattr(messages.InputScriptType, _SCRIPT_TYPES[name.lower()])
        except KeyError:
            raise ValueError(f"Unsupported script type: {name}") from None

    @staticmethod
    def _address_reply(path: DerivationPath, result: Any) -> DeviceReply:
        address = getattr(result, "address", result)
        return DeviceReply.ok({"address": address, "path": path.to_list(), "serializedPath": str(path)})

    # ------------------------------------------------------------------
    # Device management
    # ------------------------------------------------------------------

    def _get_features(self, request: req.GetFeatures) -> DeviceReply:
        self._client.refresh_features()
        return DeviceReply.ok(protobuf.to_dict(self._client.features))

    def _list_devices(self, request: req.ListDevices) -> DeviceReply:
        devices = [{"path": transport.get_path(), "status": "available"} for transport in enumerate_devices()]
        return DeviceReply.ok({"devices": devices})

    def _wipe(self, request: req.WipeDevice) -> DeviceReply:
        device.wipe(self._client)
        return DeviceReply.ok({"message": "Device wiped successfully"})

    def _reset(self, request: req.ResetDevice) -> DeviceReply:
        device.reset(
            self._client,
            strength=request.strength,
            passphrase_protection=request.use_passphrase,
            label=request.label or None,
        )
        return DeviceReply.ok({"message": "Device reset successfully"})

    def _recover(self, request: req.RecoverDevice) -> DeviceReply:
        device.recover(self._client, word_count=request.word_count, passphrase_protection=request.use_passphrase)
        return DeviceReply.ok({"message": "Device recovered successfully"})

    def _change_pin(self, request: req.ChangePin) -> DeviceReply:
        device.change_pin(self._client, remove=request.remove)
        return DeviceReply.ok({"message": "PIN removed" if request.remove else "PIN changed successfully"})

    def _apply_settings(self, request: req.ApplySettings) -> DeviceReply:
        changes = request.changes()
        if "safety_checks" in changes:
            changes["safety_checks"] = getattr(messages.SafetyCheckLevel, changes["safety_checks"])
        device.apply_settings(self._client, **changes)
        return DeviceReply.ok({"message": "Settings applied successfully"})

    def _backup(self, request: req.BackupDevice) -> DeviceReply:
        device.backup(self._client)
        return DeviceReply.ok({"message": "Backup completed successfully"})

    def _lock(self, request: req.LockDevice) -> DeviceReply:
        self._client.lock()
        return DeviceReply.ok({"message": "Device locked"})

    # ------------------------------------------------------------------
    # Bitcoin family
    # ------------------------------------------------------------------

    def _get_public_key(self, request: req.GetPublicKey) -> DeviceReply:
        descriptor = self.registry.lookup(request.coin)
        family = descriptor.family if descriptor else "bitcoin"
        if family == "ethereum":
            result = ethereum.get_public_node(self._client, _n(request.path), show_display=request.show_on_device)
        elif family == "tezos":
            public = tezos.get_public_key(self._client, _n(request.path), show_display=request.show_on_device)
            return DeviceReply.ok({"path": _n(request.path), "serializedPath": str(request.path), "publicKey": public})
        elif family == "binance":
            public = binance.get_public_key(self._client, _n(request.path), show_display=request.show_on_device)
            return DeviceReply.ok(
                {"path": _n(request.path), "serializedPath": str(request.path), "publicKey": bytes(public).hex()}
            )
        else:
            result = btc.get_public_node(
                self._client,
                _n(request.path),
                coin_name=self._coin_name(request.coin if family == "bitcoin" else "btc"),
                show_display=request.show_on_device,
            )
        node = result.node
        return DeviceReply.ok(
            {
                "path": _n(request.path),
                "serializedPath": str(request.path),
                "publicKey": node.public_key.hex(),
                "chainCode": node.chain_code.hex(),
                "xpub": result.xpub,
                "node": {
                    "depth": node.depth,
                    "fingerprint": node.fingerprint,
                    "childNum": node.child_num,
                    "chainCode": node.chain_code.hex(),
                    "publicKey": node.public_key.hex(),
                },
            }
        )

    def _get_address(self, request: req.GetAddress) -> DeviceReply:
        descriptor = self.registry.require(request.coin)
        if descriptor.family == "ethereum":
            address = ethereum.get_address(self._client, _n(request.path), show_display=request.show_on_device)
        elif descriptor.family == "bitcoin":
            address = btc.get_address(
                self._client,
                self._coin_name(request.coin),
                _n(request.path),
                show_display=request.show_on_device,
                script_type=self._script_type(request.script_type),
            )
        else:
            return DeviceReply.fail(f"GetAddress is not supported for {request.coin} by the Trezor backend")
        return self._address_reply(request.path, address)

    def _sign_transaction(self, request: req.SignTransaction) -> DeviceReply:
        inputs = [
            messages.TxInputType(
                address_n=list(item["address_n"]),
                prev_hash=_bytes(item["prev_hash"]),
                prev_index=int(item["prev_index"]),
                amount=int(item["amount"]),
                script_type=getattr(messages.InputScriptType, item.get("script_type", "SPENDWITNESS")),
            )
            for item in request.inputs
        ]
        outputs = []
        for item in request.outputs:
            output = messages.TxOutputType(
                amount=int(item["amount"]),
                script_type=getattr(messages.OutputScriptType, item.get("script_type", "PAYTOADDRESS")),
            )
            if "address" in item:
                output.address = item["address"]
            else:
                output.address_n = list(item["address_n"])
            outputs.append(output)
        signatures, serialized = btc.sign_tx(
            self._client,
            self._coin_name(request.coin),
            inputs,
            outputs,
            prev_txes=request.options.get("prev_txes", {}),
        )
        return DeviceReply.ok(
            {"signatures": [signature.hex() for signature in signatures], "serializedTx": serialized.hex()}
        )

    def _sign_message(self, request: req.SignMessage) -> DeviceReply:
        descriptor = self.registry.require(request.coin)
        if descriptor.family == "ethereum":
            return self._ethereum_sign_message(req.EthereumSignMessage(request.path, request.message))
        result = btc.sign_message(self._client, self._coin_name(request.coin), _n(request.path), request.message)
        return DeviceReply.ok({"address": result.address, "signature": base64.b64encode(result.signature).decode()})

    def _verify_message(self, request: req.VerifyMessage) -> DeviceReply:
        valid = btc.verify_message(
            self._client,
            self._coin_name(request.coin),
            request.address,
            base64.b64decode(request.signature),
            request.message,
        )
        return DeviceReply.ok({"valid": bool(valid)})

    def _get_ownership_id(self, request: req.GetOwnershipId) -> DeviceReply:
        ownership_id = btc.get_ownership_id(
            self._client, self._coin_name(request.coin), _n(request.path), self._script_type(request.script_type)
        )
        return DeviceReply.ok({"ownershipId": "0x" + ownership_id.hex()})

    def _get_ownership_proof(self, request: req.GetOwnershipProof) -> DeviceReply:
        proof, _signature = btc.get_ownership_proof(
            self._client,
            self._coin_name(request.coin),
            _n(request.path),
            self._script_type(request.script_type),
            commitment_data=request.commitment_data.encode(),
        )
        return DeviceReply.ok({"ownershipProof": "0x" + proof.hex()})

    def _authorize_coinjoin(self, request: req.AuthorizeCoinjoin) -> DeviceReply:
        btc.authorize_coinjoin(
            self._client,
            request.coordinator,
            request.max_rounds,
            request.max_coordinator_fee_rate,
            request.max_fee_per_kvbyte,
            _n(request.path),
            self._coin_name(request.coin),
            script_type=self._script_type(request.script_type),
        )
        return DeviceReply.ok({"authorized": True, "message": "CoinJoin authorization granted"})

    # ------------------------------------------------------------------
    # Ethereum
    # ------------------------------------------------------------------

    def _ethereum_sign_transaction(self, request: req.EthereumSignTransaction) -> DeviceReply:
        v, r, s = ethereum.sign_tx(
            self._client,
            _n(request.path),
            nonce=request.nonce,
            gas_price=request.gas_price,
            gas_limit=request.gas_limit,
            to=request.to,
            value=request.value,
            data=_bytes(request.data or "0x"),
            chain_id=request.chain_id,
        )
        return DeviceReply.ok({"v": hex(v), "r": "0x" + r.hex(), "s": "0x" + s.hex()})

    def _ethereum_sign_message(self, request: req.EthereumSignMessage) -> DeviceReply:
        result = ethereum.sign_message(self._client, _n(request.path), request.message)
        return DeviceReply.ok({"address": result.address, "signature": "0x" + result.signature.hex()})

    def _ethereum_sign_typed_data(self, request: req.EthereumSignTypedData) -> DeviceReply:
        result = ethereum.sign_typed_data(
            self._client, _n(request.path), dict(request.data), metamask_v4_compat=request.metamask_v4_compat
        )
        return DeviceReply.ok({"address": result.address, "signature": "0x" + result.signature.hex()})

    def _ethereum_verify_message(self, request: req.EthereumVerifyMessage) -> DeviceReply:
        valid = ethereum.verify_message(self._client, request.address, _bytes(request.signature), request.message)
        return DeviceReply.ok({"valid": bool(valid)})

    # ------------------------------------------------------------------
    # Other chains
    # ------------------------------------------------------------------

    def _cardano_get_address(self, request: req.CardanoGetAddress) -> DeviceReply:
        if request.path == request.staking_path:
            parameters = cardano.create_address_parameters(
                messages.CardanoAddressType.REWARD, [], address_n_staking=_n(request.staking_path)
            )
        else:
            parameters = cardano.create_address_parameters(
                messages.CardanoAddressType.BASE, _n(request.path), address_n_staking=_n(request.staking_path)
            )
        address = cardano.get_address(
            self._client,
            parameters,
            network_id=request.network_id,
            show_display=request.show_on_device,
        )
        return self._address_reply(request.path, address)

    def _solana_sign_transaction(self, request: req.SolanaSignTransaction) -> DeviceReply:
        result = solana.sign_tx(self._client, _n(request.path), _bytes(request.serialized_tx))
        signature = getattr(result, "signature", result)
        return DeviceReply.ok({"signature": bytes(signature).hex()})

    def _ripple_sign_transaction(self, request: req.RippleSignTransaction) -> DeviceReply:
        transaction = request.transaction
        message = messages.RippleSignTx(
            address_n=_n(request.path),
            fee=int(transaction["Fee"]),
            sequence=int(transaction["Sequence"]),
            flags=int(transaction.get("Flags", 0)),
            payment=messages.RipplePayment(
                amount=int(transaction["Amount"]),
                destination=transaction["Destination"],
                destination_tag=transaction.get("DestinationTag"),
            ),
        )
        result = ripple.sign_tx(self._client, _n(request.path), message)
        return DeviceReply.ok({"signatures": [result.signature.hex()], "serializedTx": result.serialized_tx.hex()})

    def _eos_get_public_key(self, request: req.EosGetPublicKey) -> DeviceReply:
        result = eos.get_public_key(self._client, _n(request.path), show_display=request.show_on_device)
        return DeviceReply.ok({"wifPublicKey": result.wif_public_key, "rawPublicKey": result.raw_public_key.hex()})

    def _eos_sign_transaction(self, request: req.EosSignTransaction) -> DeviceReply:
        transaction = dict(request.transaction)
        chain_id = transaction.pop("chain_id", None) or transaction.pop("chainId")
        result = eos.sign_tx(self._client, _n(request.path), transaction, chain_id)
        return DeviceReply.ok({"signature": result.signature})

    def _binance_sign_transaction(self, request: req.BinanceSignTransaction) -> DeviceReply:
        result = binance.sign_tx(self._client, _n(request.path), dict(request.transaction))
        return DeviceReply.ok({"signature": result.signature.hex(), "publicKey": result.public_key.hex()})

    # ------------------------------------------------------------------
    # WebAuthn
    # ------------------------------------------------------------------

    def _webauthn_list_credentials(self, request: req.WebAuthnListCredentials) -> DeviceReply:
        credentials = [
            {
                "index": credential.index,
                "rpId": credential.rp_id,
                "rpName": credential.rp_name,
                "userName": credential.user_name,
                "userDisplayName": credential.user_display_name,
                "creationTime": credential.creation_time,
            }
            for credential in fido.list_credentials(self._client)
        ]
        return DeviceReply.ok({"credentials": credentials})

    def _webauthn_remove_credential(self, request: req.WebAuthnRemoveCredential) -> DeviceReply:
        fido.remove_credential(self._client, request.index)
        return DeviceReply.ok({"message": f"Credential at index {request.index} removed"})


__all__ = ["TrezorDeviceLink"]
