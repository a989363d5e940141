"""
Scoped access to one device link.

A DeviceSession is created per dispatch, opened lazily on the first request
and released exactly once when the dispatch ends, whichever way it ends.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from hwdispatch.core import device_requests as req
from hwdispatch.core.derivation_path import DerivationPath
from hwdispatch.core.device_link import DeviceLink, DeviceReply
from hwdispatch.core.exceptions import DeviceLinkError, SessionStateError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    DISPOSED = "disposed"


class DeviceSession:
    """
    Lifecycle wrapper around a DeviceLink.

    Request methods never raise for device-level problems: refusals and
    transport failures both come back as ``DeviceReply(success=False)``.
    Using a session after release() is a programming error and raises
    SessionStateError.

    Usage:
        with DeviceSession(link) as session:
            reply = session.get_features()
    """

    def __init__(self, link: DeviceLink):
        self.link = link
        self.state = SessionState.UNINITIALIZED

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def acquire(self) -> None:
        """
        Open the underlying link once.

        Raises:
            SessionStateError: If the session was already released
            DeviceLinkError: If the link cannot be opened
        """
        if self.state is SessionState.ACTIVE:
            return
        if self.state is SessionState.DISPOSED:
            raise SessionStateError("Device session has already been released")
        self.link.open()
        self.state = SessionState.ACTIVE
        logger.debug("Device session acquired", extra={"event": "session.acquire"})

    def release(self) -> None:
        """Close the link if it was opened. Later calls do nothing."""
        if self.state is SessionState.DISPOSED:
            return
        was_active = self.state is SessionState.ACTIVE
        self.state = SessionState.DISPOSED
        if was_active:
            self.link.close()
        logger.debug("Device session released", extra={"event": "session.release", "was_active": was_active})

    def send(self, request: req.DeviceRequest) -> DeviceReply:
        """Send one typed request, acquiring the link on first use."""
        if self.state is SessionState.DISPOSED:
            raise SessionStateError(f"Cannot send {request.name}: device session has been released")
        try:
            self.acquire()
            reply = self.link.send(request)
        except (DeviceLinkError, OSError) as exc:
            logger.warning(
                "Device transport failure",
                extra={"event": "session.transport_error", "request": request.name, "error": str(exc)},
            )
            return DeviceReply.transport_failure(f"Device unavailable: {exc}")
        logger.debug(
            "Device request completed",
            extra={"event": "session.request", "request": request.name, "success": reply.success},
        )
        return reply

    # ==================== Generic ====================

    def get_features(self) -> DeviceReply:
        return self.send(req.GetFeatures())

    def ping(self, message: str = "ping") -> DeviceReply:
        return self.send(req.Ping(message))

    def list_devices(self) -> DeviceReply:
        return self.send(req.ListDevices())

    def get_public_key(self, path: DerivationPath, coin: str = "btc", show_on_device: bool = False) -> DeviceReply:
        return self.send(req.GetPublicKey(path, coin, show_on_device))

    def get_address(
        self, path: DerivationPath, coin: str = "btc", show_on_device: bool = False, script_type: str = "p2wpkh"
    ) -> DeviceReply:
        return self.send(req.GetAddress(path, coin, show_on_device, script_type))

    def sign_transaction(
        self,
        coin: str,
        inputs: Sequence[Mapping[str, Any]],
        outputs: Sequence[Mapping[str, Any]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> DeviceReply:
        return self.send(req.SignTransaction(coin, tuple(inputs), tuple(outputs), dict(options or {})))

    def sign_message(self, path: DerivationPath, message: str, coin: str = "btc") -> DeviceReply:
        return self.send(req.SignMessage(path, message, coin))

    def verify_message(self, address: str, message: str, signature: str, coin: str = "btc") -> DeviceReply:
        return self.send(req.VerifyMessage(address, message, signature, coin))

    def sign_hash(self, path: DerivationPath, digest: bytes) -> DeviceReply:
        return self.send(req.SignHash(path, digest))

    # ==================== Ethereum ====================

    def ethereum_sign_transaction(
        self,
        path: DerivationPath,
        to: str,
        value: int,
        gas_limit: int,
        gas_price: int,
        nonce: int,
        chain_id: int,
        data: str = "0x",
    ) -> DeviceReply:
        return self.send(req.EthereumSignTransaction(path, to, value, gas_limit, gas_price, nonce, chain_id, data))

    def ethereum_sign_message(self, path: DerivationPath, message: str) -> DeviceReply:
        return self.send(req.EthereumSignMessage(path, message))

    def ethereum_sign_typed_data(
        self, path: DerivationPath, data: Mapping[str, Any], metamask_v4_compat: bool = True
    ) -> DeviceReply:
        return self.send(req.EthereumSignTypedData(path, data, metamask_v4_compat))

    def ethereum_verify_message(self, address: str, message: str, signature: str) -> DeviceReply:
        return self.send(req.EthereumVerifyMessage(address, message, signature))

    # ==================== Cardano ====================

    def cardano_get_address(
        self,
        path: DerivationPath,
        staking_path: DerivationPath,
        network_id: int = 1,
        show_on_device: bool = False,
    ) -> DeviceReply:
        return self.send(req.CardanoGetAddress(path, staking_path, network_id, show_on_device))

    def cardano_sign_transaction(
        self,
        inputs: Sequence[Mapping[str, Any]],
        outputs: Sequence[Mapping[str, Any]],
        fee: str,
        ttl: str,
        network_id: int = 1,
        certificates: Sequence[Mapping[str, Any]] = (),
        withdrawals: Sequence[Mapping[str, Any]] = (),
        metadata: Optional[str] = None,
    ) -> DeviceReply:
        return self.send(
            req.CardanoSignTransaction(
                tuple(inputs), tuple(outputs), fee, ttl, network_id, tuple(certificates), tuple(withdrawals), metadata
            )
        )

    # ==================== Solana / Ripple / Stellar ====================

    def solana_get_address(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.SolanaGetAddress(path, show_on_device))

    def solana_sign_transaction(self, path: DerivationPath, serialized_tx: str) -> DeviceReply:
        return self.send(req.SolanaSignTransaction(path, serialized_tx))

    def ripple_get_address(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.RippleGetAddress(path, show_on_device))

    def ripple_sign_transaction(self, path: DerivationPath, transaction: Mapping[str, Any]) -> DeviceReply:
        return self.send(req.RippleSignTransaction(path, transaction))

    def stellar_get_address(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.StellarGetAddress(path, show_on_device))

    def stellar_sign_transaction(
        self, path: DerivationPath, network_passphrase: str, transaction: str
    ) -> DeviceReply:
        return self.send(req.StellarSignTransaction(path, network_passphrase, transaction))

    # ==================== Tezos / EOS / Binance Chain ====================

    def tezos_get_address(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.TezosGetAddress(path, show_on_device))

    def tezos_sign_transaction(
        self, path: DerivationPath, branch: str, operation: Mapping[str, Any]
    ) -> DeviceReply:
        return self.send(req.TezosSignTransaction(path, branch, operation))

    def eos_get_public_key(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.EosGetPublicKey(path, show_on_device))

    def eos_sign_transaction(self, path: DerivationPath, transaction: Mapping[str, Any]) -> DeviceReply:
        return self.send(req.EosSignTransaction(path, transaction))

    def binance_get_address(self, path: DerivationPath, show_on_device: bool = False) -> DeviceReply:
        return self.send(req.BinanceGetAddress(path, show_on_device))

    def binance_sign_transaction(self, path: DerivationPath, transaction: Mapping[str, Any]) -> DeviceReply:
        return self.send(req.BinanceSignTransaction(path, transaction))

    # ==================== Device management ====================

    def wipe_device(self) -> DeviceReply:
        return self.send(req.WipeDevice())

    def reset_device(self, strength: int = 256, use_passphrase: bool = False, label: str = "") -> DeviceReply:
        return self.send(req.ResetDevice(strength, use_passphrase, label))

    def recover_device(self, word_count: int = 24, use_passphrase: bool = False) -> DeviceReply:
        return self.send(req.RecoverDevice(word_count, use_passphrase))

    def change_pin(self, remove: bool = False) -> DeviceReply:
        return self.send(req.ChangePin(remove))

    def apply_settings(self, **settings: Any) -> DeviceReply:
        return self.send(req.ApplySettings(**settings))

    def backup_device(self) -> DeviceReply:
        return self.send(req.BackupDevice())

    def lock_device(self) -> DeviceReply:
        return self.send(req.LockDevice())

    def get_entropy(self, size: int) -> DeviceReply:
        return self.send(req.GetEntropy(size))

    # ==================== CoinJoin ====================

    def get_ownership_proof(
        self, path: DerivationPath, script_type: str = "p2wpkh", commitment_data: str = "", coin: str = "btc"
    ) -> DeviceReply:
        return self.send(req.GetOwnershipProof(path, script_type, commitment_data, coin))

    def get_ownership_id(self, path: DerivationPath, script_type: str = "p2wpkh", coin: str = "btc") -> DeviceReply:
        return self.send(req.GetOwnershipId(path, script_type, coin))

    def authorize_coinjoin(
        self,
        path: DerivationPath,
        coordinator: str,
        max_rounds: int,
        max_coordinator_fee_rate: int,
        max_fee_per_kvbyte: int,
        script_type: str = "p2wpkh",
        coin: str = "btc",
    ) -> DeviceReply:
        return self.send(
            req.AuthorizeCoinjoin(
                path, coordinator, max_rounds, max_coordinator_fee_rate, max_fee_per_kvbyte, script_type, coin
            )
        )

    # ==================== WebAuthn ====================

    def webauthn_list_credentials(self) -> DeviceReply:
        return self.send(req.WebAuthnListCredentials())

    def webauthn_add_credential(self, rp_id: str, user_id: str, **details: Any) -> DeviceReply:
        return self.send(req.WebAuthnAddCredential(rp_id, user_id, **details))

    def webauthn_remove_credential(self, index: int) -> DeviceReply:
        return self.send(req.WebAuthnRemoveCredential(index))

    def webauthn_get_assertion(self, rp_id: str, challenge: str, user_verification: bool = True) -> DeviceReply:
        return self.send(req.WebAuthnGetAssertion(rp_id, challenge, user_verification))


__all__ = ["DeviceSession", "SessionState"]
