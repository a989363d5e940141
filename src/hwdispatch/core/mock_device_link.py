"""
Mock device link for TESTING ONLY.

Derives real keys from a fixed BIP-39 mnemonic and answers every device
request the way a connected, unlocked device would: addresses are valid
for their network and signatures verify against the returned public keys.

Security Note:
    The seed lives in process memory, which defeats the purpose of a
    hardware signer. Never enable this backend outside of tests.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
from collections import deque
from datetime import datetime, timezone
from functools import singledispatchmethod
from typing import Any, Dict, Iterable, Optional

import base58
from bip_utils import (
    AtomAddrEncoder,
    Bech32Encoder,
    Bip32Slip10Ed25519,
    Bip32Slip10Secp256k1,
    Bip39SeedGenerator,
    EosAddrEncoder,
    P2PKHAddrEncoder,
    P2SHAddrEncoder,
    P2TRAddrEncoder,
    P2WPKHAddrEncoder,
    XlmAddrEncoder,
    XlmAddrTypes,
    XrpAddrEncoder,
    XtzAddrEncoder,
    XtzAddrPrefixes,
)
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_checksum_address
from mnemonic import Mnemonic

from hwdispatch.core import device_requests as req
from hwdispatch.core.coin_registry import DEFAULT_REGISTRY, CoinDescriptor, CoinRegistry, script_type_for_path
from hwdispatch.core.derivation_path import DerivationPath, format_path, parse_path
from hwdispatch.core.device_link import DeviceReply
from hwdispatch.core.exceptions import DeviceLinkError, MalformedPathError

logger = logging.getLogger(__name__)

# Public test vector used by device vendors for emulator fixtures.
MOCK_MNEMONIC = "all all all all all all all all all all all all"
MOCK_DEVICE_ID = "mock-device-id"

_CURVE = ec.SECP256K1()
_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
_ED25519_FAMILIES = {"cardano", "solana", "stellar", "tezos"}
_BITCOIN_MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"
_TEZOS_EDPK_PREFIX = bytes.fromhex("0d0f25d9")
_TEZOS_EDSIG_PREFIX = bytes.fromhex("09f5cd8612")
_CARDANO_STAKING_PATH = "m/1852'/1815'/0'/2/0"

USER_CANCELLED = "Action cancelled by user"
MAX_RECORDED_REQUESTS = 256


def _canonical(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str).encode()


def _sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _varint(length: int) -> bytes:
    if length < 0xFD:
        return bytes([length])
    if length <= 0xFFFF:
        return b"\xfd" + length.to_bytes(2, "little")
    return b"\xfe" + length.to_bytes(4, "little")


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def _unhex(value: str) -> bytes:
    text = value[2:] if value[:2] in ("0x", "0X") else value
    return bytes.fromhex(text)


def _blake2b(data: bytes, size: int) -> bytes:
    return hashlib.blake2b(data, digest_size=size).digest()


def _path_from(value: Any) -> DerivationPath:
    if isinstance(value, DerivationPath):
        return value
    if isinstance(value, str):
        return parse_path(value)
    if isinstance(value, (list, tuple)):
        return DerivationPath(tuple(int(v) for v in value))
    raise MalformedPathError(f"Unsupported path value: {value!r}")


class _SecpSigner:
    """secp256k1 key pair with low-s ECDSA signatures."""

    def __init__(self, private_bytes: bytes):
        self.private_bytes = private_bytes
        self.private_key = ec.derive_private_key(int.from_bytes(private_bytes, "big"), _CURVE)
        self.public_key = self.private_key.public_key()

    def sign_digest(self, digest: bytes) -> tuple[int, int]:
        der = self.private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der)
        if s > _CURVE_ORDER // 2:
            s = _CURVE_ORDER - s
        return r, s

    def sign_compact(self, digest: bytes) -> bytes:
        r, s = self.sign_digest(digest)
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def sign_der(self, digest: bytes) -> bytes:
        r, s = self.sign_digest(digest)
        return encode_dss_signature(r, s)


def _verify_compact(public_key: ec.EllipticCurvePublicKey, digest: bytes, signature: bytes) -> bool:
    if len(signature) != 64:
        return False
    der = encode_dss_signature(int.from_bytes(signature[:32], "big"), int.from_bytes(signature[32:], "big"))
    try:
        public_key.verify(der, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        return False
    return True


class MockDeviceLink:
    """
    In-memory device for TESTING ONLY.

    The link can be opened and closed repeatedly, so one instance can back
    several sessions and keep device settings (label, PIN, passphrase,
    WebAuthn credentials) between them.

    Attributes:
        options: Link options forwarded from ConnectConfig (unused by the mock)
        rejected: Request class names the simulated user declines on device
    """

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        label: str = "My Trezor",
        mnemonic: str = MOCK_MNEMONIC,
        registry: CoinRegistry = DEFAULT_REGISTRY,
        rejected: Iterable[str] = (),
    ):
        self.options = dict(options or {})
        self.registry = registry
        self.rejected = frozenset(rejected)
        self.is_open = False
        self.open_count = 0
        self.requests: deque[req.DeviceRequest] = deque(maxlen=MAX_RECORDED_REQUESTS)
        self._issued: Dict[str, tuple[str, Any]] = {}
        self._credentials: list[Dict[str, Any]] = []
        self._coinjoin_authorization: Optional[Dict[str, Any]] = None
        self._features: Dict[str, Any] = {
            "vendor": "trezor.io",
            "major_version": 2,
            "minor_version": 6,
            "patch_version": 0,
            "bootloader_mode": False,
            "device_id": MOCK_DEVICE_ID,
            "pin_protection": True,
            "passphrase_protection": False,
            "passphrase_always_on_device": False,
            "language": "en-US",
            "label": label,
            "initialized": True,
            "model": "T",
            "needs_backup": False,
            "unfinished_backup": False,
            "no_backup": False,
            "auto_lock_delay_ms": 600000,
            "safety_checks": "Strict",
            "unlocked": True,
        }
        self._load_seed(mnemonic)
        logger.warning(
            "MockDeviceLink initialized - FOR TESTING ONLY",
            extra={"event": "mock_link.init", "device_id": MOCK_DEVICE_ID},
        )

    # ------------------------------------------------------------------
    # DeviceLink protocol
    # ------------------------------------------------------------------

    def open(self) -> None:
        self.is_open = True
        self.open_count += 1
        logger.debug("Mock device link opened", extra={"event": "mock_link.open"})

    def close(self) -> None:
        self.is_open = False
        # _issued is kept so a later session can still verifyMessage
        self._nodes.clear()
        logger.debug("Mock device link closed", extra={"event": "mock_link.close"})

    def send(self, request: req.DeviceRequest) -> DeviceReply:
        if not self.is_open:
            raise DeviceLinkError("Device link is not open")
        self.requests.append(request)
        if request.name in self.rejected:
            return DeviceReply.fail(USER_CANCELLED)
        try:
            return self._handle(request)
        except (ValueError, TypeError, KeyError) as exc:
            # Malformed request content is refused by the device itself.
            logger.debug(
                "Mock device refused request",
                extra={"event": "mock_link.refused", "request": request.name, "reason": str(exc)},
            )
            return DeviceReply.fail(str(exc) or f"Invalid {request.name} request")

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    def _load_seed(self, mnemonic: str) -> None:
        seed = Bip39SeedGenerator(mnemonic).Generate()
        self._secp_root = Bip32Slip10Secp256k1.FromSeed(seed)
        self._ed_root = Bip32Slip10Ed25519.FromSeed(seed)
        self._nodes: Dict[tuple[str, DerivationPath], Any] = {}
        self._issued.clear()

    def _secp_node(self, path: DerivationPath):
        key = ("secp256k1", path)
        if key not in self._nodes:
            self._nodes[key] = self._secp_root.DerivePath(str(path)) if path.depth else self._secp_root
        return self._nodes[key]

    def _ed_node(self, path: DerivationPath):
        hardened = path.fully_hardened()
        key = ("ed25519", hardened)
        if key not in self._nodes:
            self._nodes[key] = self._ed_root.DerivePath(str(hardened)) if hardened.depth else self._ed_root
        return self._nodes[key]

    def _secp_signer(self, path: DerivationPath) -> _SecpSigner:
        return _SecpSigner(self._secp_node(path).PrivateKey().Raw().ToBytes())

    def _ed_signer(self, path: DerivationPath) -> ed25519.Ed25519PrivateKey:
        raw = self._ed_node(path).PrivateKey().Raw().ToBytes()
        return ed25519.Ed25519PrivateKey.from_private_bytes(raw)

    def _ed_public(self, path: DerivationPath) -> bytes:
        return self._ed_node(path).PublicKey().RawCompressed().ToBytes()[1:]

    def _secp_public(self, path: DerivationPath) -> bytes:
        return self._secp_node(path).PublicKey().RawCompressed().ToBytes()

    def _family(self, coin: str) -> tuple[str, Optional[CoinDescriptor]]:
        descriptor = self.registry.lookup(coin)
        return (descriptor.family if descriptor else "bitcoin"), descriptor

    def _require_initialized(self) -> None:
        if not self._features["initialized"]:
            raise ValueError("Device is not initialized")
        self._features["unlocked"] = True

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def _address(self, path: DerivationPath, coin: str, script_type: Optional[str] = None) -> str:
        self._require_initialized()
        family, descriptor = self._family(coin)
        if family == "bitcoin":
            descriptor = descriptor or self.registry.require("btc")
            public = self._secp_public(path)
            kind = (script_type or script_type_for_path(path)).lower()
            if kind in ("p2wpkh", "p2tr") and not descriptor.bech32_hrp:
                raise ValueError(f"{descriptor.display_name} does not support SegWit addresses")
            if kind == "p2wpkh":
                address = P2WPKHAddrEncoder.EncodeKey(public, hrp=descriptor.bech32_hrp)
            elif kind == "p2sh-p2wpkh":
                address = P2SHAddrEncoder.EncodeKey(public, net_ver=descriptor.p2sh_version)
            elif kind == "p2pkh":
                address = P2PKHAddrEncoder.EncodeKey(public, net_ver=descriptor.p2pkh_version)
            elif kind == "p2tr":
                address = P2TRAddrEncoder.EncodeKey(public, hrp=descriptor.bech32_hrp)
            else:
                raise ValueError(f"Unsupported script type: {script_type}")
            self._issued[address] = ("bitcoin", self._secp_signer(path).public_key)
            return address
        if family == "ethereum":
            return Account.from_key(self._secp_signer(path).private_bytes).address
        if family == "cardano":
            return self._cardano_address(path, parse_path(_CARDANO_STAKING_PATH), 1)
        if family == "solana":
            return base58.b58encode(self._ed_public(path)).decode()
        if family == "ripple":
            return XrpAddrEncoder.EncodeKey(self._secp_public(path))
        if family == "stellar":
            return XlmAddrEncoder.EncodeKey(self._ed_public(path), addr_type=XlmAddrTypes.PUB_KEY)
        if family == "tezos":
            return XtzAddrEncoder.EncodeKey(self._ed_public(path), prefix=XtzAddrPrefixes.TZ1)
        if family == "eos":
            return EosAddrEncoder.EncodeKey(self._secp_public(path))
        if family == "binance":
            return AtomAddrEncoder.EncodeKey(self._secp_public(path), hrp="bnb")
        raise ValueError(f"Unsupported coin: {coin}")

    def _cardano_address(self, path: DerivationPath, staking_path: DerivationPath, network_id: int) -> str:
        stake_hash = _blake2b(self._ed_public(staking_path), 28)
        if path == staking_path:
            header = bytes([0xE0 | network_id])
            hrp = "stake" if network_id == 1 else "stake_test"
            return Bech32Encoder.Encode(hrp, header + stake_hash)
        header = bytes([0x00 | network_id])
        hrp = "addr" if network_id == 1 else "addr_test"
        return Bech32Encoder.Encode(hrp, header + _blake2b(self._ed_public(path), 28) + stake_hash)

    def _address_payload(self, path: DerivationPath, address: str) -> DeviceReply:
        return DeviceReply.ok({"address": address, "path": path.to_list(), "serializedPath": str(path)})

    # ------------------------------------------------------------------
    # Request handlers
    # ------------------------------------------------------------------

    @singledispatchmethod
    def _handle(self, request: req.DeviceRequest) -> DeviceReply:
        return DeviceReply.fail(f"Unsupported request: {request.name}")

    @_handle.register(req.GetFeatures)
    def _(self, request: req.GetFeatures) -> DeviceReply:
        return DeviceReply.ok(dict(self._features))

    @_handle.register(req.Ping)
    def _(self, request: req.Ping) -> DeviceReply:
        return DeviceReply.ok({"message": request.message})

    @_handle.register(req.ListDevices)
    def _(self, request: req.ListDevices) -> DeviceReply:
        features = self._features
        if features["bootloader_mode"]:
            mode = "bootloader"
        elif not features["initialized"]:
            mode = "initialize"
        else:
            mode = "normal"
        device = {
            "path": self.options.get("devicePath", "mock-device-1"),
            "deviceId": features["device_id"],
            "label": features["label"],
            "model": features["model"],
            "status": "connected",
            "mode": mode,
        }
        return DeviceReply.ok({"devices": [device]})

    @_handle.register(req.WipeDevice)
    def _(self, request: req.WipeDevice) -> DeviceReply:
        self._features.update(
            initialized=False, label="", pin_protection=False, passphrase_protection=False, needs_backup=False
        )
        self._issued.clear()
        self._credentials.clear()
        return DeviceReply.ok({"message": "Device wiped successfully"})

    @_handle.register(req.ResetDevice)
    def _(self, request: req.ResetDevice) -> DeviceReply:
        if request.strength not in (128, 192, 256):
            raise ValueError("Seed strength must be 128, 192 or 256 bits")
        if self._features["initialized"]:
            raise ValueError("Device is already initialized")
        self._load_seed(Mnemonic("english").generate(strength=request.strength))
        self._features.update(
            initialized=True,
            needs_backup=True,
            passphrase_protection=request.use_passphrase,
            label=request.label or self._features["label"],
        )
        return DeviceReply.ok({"message": "Device reset successfully"})

    @_handle.register(req.RecoverDevice)
    def _(self, request: req.RecoverDevice) -> DeviceReply:
        if request.word_count not in (12, 18, 24):
            raise ValueError("Word count must be 12, 18 or 24")
        if self._features["initialized"]:
            raise ValueError("Device is already initialized")
        self._load_seed(MOCK_MNEMONIC)
        self._features.update(initialized=True, needs_backup=False, passphrase_protection=request.use_passphrase)
        return DeviceReply.ok({"message": "Device recovered successfully"})

    @_handle.register(req.ChangePin)
    def _(self, request: req.ChangePin) -> DeviceReply:
        self._require_initialized()
        self._features["pin_protection"] = not request.remove
        return DeviceReply.ok({"message": "PIN removed" if request.remove else "PIN changed successfully"})

    @_handle.register(req.ApplySettings)
    def _(self, request: req.ApplySettings) -> DeviceReply:
        changes = request.changes()
        if not changes:
            raise ValueError("No setting provided")
        if "use_passphrase" in changes:
            self._features["passphrase_protection"] = changes.pop("use_passphrase")
        self._features.update(changes)
        return DeviceReply.ok({"message": "Settings applied successfully"})

    @_handle.register(req.BackupDevice)
    def _(self, request: req.BackupDevice) -> DeviceReply:
        self._require_initialized()
        if self._features["no_backup"]:
            raise ValueError("Seed backup is disabled on this device")
        if not self._features["needs_backup"]:
            raise ValueError("Seed already backed up")
        self._features.update(needs_backup=False, unfinished_backup=False)
        return DeviceReply.ok({"message": "Backup completed successfully"})

    @_handle.register(req.LockDevice)
    def _(self, request: req.LockDevice) -> DeviceReply:
        self._features["unlocked"] = False
        return DeviceReply.ok({"message": "Device locked"})

    @_handle.register(req.GetEntropy)
    def _(self, request: req.GetEntropy) -> DeviceReply:
        return DeviceReply.ok({"entropy": _hex(os.urandom(request.size))})

    @_handle.register(req.GetPublicKey)
    def _(self, request: req.GetPublicKey) -> DeviceReply:
        self._require_initialized()
        family, _ = self._family(request.coin)
        path = request.path
        if family in _ED25519_FAMILIES:
            node = self._ed_node(path)
            public = self._ed_public(path)
            xpub = None
        else:
            node = self._secp_node(path)
            public = self._secp_public(path)
            xpub = node.PublicKey().ToExtended()
        chain_code = node.ChainCode().ToBytes()
        payload = {
            "path": path.to_list(),
            "serializedPath": str(path),
            "publicKey": public.hex(),
            "chainCode": chain_code.hex(),
            "node": {
                "depth": node.Depth().ToInt(),
                "fingerprint": int.from_bytes(node.ParentFingerPrint().ToBytes(), "big"),
                "childNum": node.Index().ToInt(),
                "chainCode": chain_code.hex(),
                "publicKey": public.hex(),
            },
        }
        if xpub is not None:
            payload["xpub"] = xpub
        return DeviceReply.ok(payload)

    @_handle.register(req.GetAddress)
    def _(self, request: req.GetAddress) -> DeviceReply:
        address = self._address(request.path, request.coin, request.script_type)
        return self._address_payload(request.path, address)

    @_handle.register(req.SignMessage)
    def _(self, request: req.SignMessage) -> DeviceReply:
        family, _ = self._family(request.coin)
        if family == "ethereum":
            return self._ethereum_sign_message(request.path, request.message)
        if family != "bitcoin":
            raise ValueError(f"Message signing is not supported for {request.coin}")
        address = self._address(request.path, request.coin)
        message = request.message.encode()
        digest = _sha256d(_BITCOIN_MESSAGE_MAGIC + _varint(len(message)) + message)
        signature = self._secp_signer(request.path).sign_compact(digest)
        return DeviceReply.ok({"address": address, "signature": base64.b64encode(signature).decode()})

    @_handle.register(req.VerifyMessage)
    def _(self, request: req.VerifyMessage) -> DeviceReply:
        family, _ = self._family(request.coin)
        if family == "ethereum":
            return DeviceReply.ok({"valid": self._ethereum_verify(request.address, request.message, request.signature)})
        issued = self._issued.get(request.address)
        if issued is None:
            return DeviceReply.ok({"valid": False})
        try:
            signature = base64.b64decode(request.signature, validate=True)
        except (ValueError, TypeError):
            return DeviceReply.ok({"valid": False})
        message = request.message.encode()
        digest = _sha256d(_BITCOIN_MESSAGE_MAGIC + _varint(len(message)) + message)
        return DeviceReply.ok({"valid": _verify_compact(issued[1], digest, signature)})

    @_handle.register(req.SignTransaction)
    def _(self, request: req.SignTransaction) -> DeviceReply:
        self._require_initialized()
        family, descriptor = self._family(request.coin)
        if family != "bitcoin" or descriptor is None:
            raise ValueError(f"Transaction signing is not supported for {request.coin}")
        if not request.inputs:
            raise ValueError("Transaction must have at least one input")
        if not request.outputs:
            raise ValueError("Transaction must have at least one output")
        inputs = []
        for position, item in enumerate(request.inputs):
            prev_hash = str(item["prev_hash"])
            if len(_unhex(prev_hash)) != 32:
                raise ValueError(f"Input {position}: prev_hash must be 32 bytes")
            prev_index = int(item["prev_index"])
            if prev_index < 0:
                raise ValueError(f"Input {position}: prev_index cannot be negative")
            path = _path_from(item["address_n"])
            inputs.append(
                {
                    "address_n": format_path(path),
                    "prev_hash": prev_hash,
                    "prev_index": prev_index,
                    "amount": str(item["amount"]),
                    "script_type": item.get("script_type", "SPENDWITNESS"),
                }
            )
        outputs = []
        for position, item in enumerate(request.outputs):
            if "address" not in item and "address_n" not in item:
                raise ValueError(f"Output {position}: address or address_n is required")
            entry = {"amount": str(item["amount"]), "script_type": item.get("script_type", "PAYTOADDRESS")}
            if "address" in item:
                entry["address"] = item["address"]
            else:
                entry["address_n"] = format_path(_path_from(item["address_n"]))
            outputs.append(entry)
        body = _canonical(
            {
                "coin": descriptor.symbol,
                "version": int(request.options.get("version", 2)),
                "lock_time": int(request.options.get("lock_time", 0)),
                "inputs": inputs,
                "outputs": outputs,
            }
        )
        signatures = []
        for position, item in enumerate(inputs):
            sighash = _sha256d(body + position.to_bytes(4, "little"))
            signatures.append(self._secp_signer(parse_path(item["address_n"])).sign_der(sighash).hex())
        return DeviceReply.ok(
            {"signatures": signatures, "serializedTx": body.hex(), "txid": _sha256d(body)[::-1].hex()}
        )

    @_handle.register(req.SignHash)
    def _(self, request: req.SignHash) -> DeviceReply:
        self._require_initialized()
        if len(request.digest) != 32:
            raise ValueError("Hash must be 32 bytes")
        signer = self._secp_signer(request.path)
        return DeviceReply.ok({"signature": _hex(signer.sign_compact(request.digest))})

    # ---------------------------- CoinJoin ----------------------------

    def _ownership_id(self, path: DerivationPath, script_type: str) -> bytes:
        # SLIP-19 style identifier bound to the account key and script type.
        return hashlib.sha256(b"SLIP-0019" + self._secp_public(path) + script_type.encode()).digest()

    @_handle.register(req.GetOwnershipId)
    def _(self, request: req.GetOwnershipId) -> DeviceReply:
        self._require_initialized()
        return DeviceReply.ok({"ownershipId": _hex(self._ownership_id(request.path, request.script_type))})

    @_handle.register(req.GetOwnershipProof)
    def _(self, request: req.GetOwnershipProof) -> DeviceReply:
        self._require_initialized()
        ownership_id = self._ownership_id(request.path, request.script_type)
        body = b"SL\x00\x19" + b"\x00" + b"\x01" + ownership_id
        digest = hashlib.sha256(body + request.commitment_data.encode()).digest()
        signature = self._secp_signer(request.path).sign_compact(digest)
        return DeviceReply.ok({"ownershipProof": _hex(body + signature), "ownershipId": _hex(ownership_id)})

    @_handle.register(req.AuthorizeCoinjoin)
    def _(self, request: req.AuthorizeCoinjoin) -> DeviceReply:
        self._require_initialized()
        if not request.coordinator:
            raise ValueError("Coordinator name is required")
        if request.max_rounds <= 0:
            raise ValueError("Max rounds must be positive")
        self._coinjoin_authorization = {
            "coordinator": request.coordinator,
            "maxRounds": request.max_rounds,
            "maxCoordinatorFeeRate": request.max_coordinator_fee_rate,
            "maxFeePerKvbyte": request.max_fee_per_kvbyte,
        }
        return DeviceReply.ok({"authorized": True, "message": "CoinJoin authorization granted"})

    # ---------------------------- Ethereum ----------------------------

    def _eth_account(self, path: DerivationPath):
        self._require_initialized()
        return Account.from_key(self._secp_signer(path).private_bytes)

    def _ethereum_sign_message(self, path: DerivationPath, message: str) -> DeviceReply:
        account = self._eth_account(path)
        signed = account.sign_message(encode_defunct(text=message))
        return DeviceReply.ok({"address": account.address, "signature": _hex(bytes(signed.signature))})

    @staticmethod
    def _ethereum_verify(address: str, message: str, signature: str) -> bool:
        try:
            recovered = Account.recover_message(encode_defunct(text=message), signature=_unhex(signature))
        except (ValueError, TypeError):
            return False
        return recovered.lower() == address.lower()

    @_handle.register(req.EthereumSignTransaction)
    def _(self, request: req.EthereumSignTransaction) -> DeviceReply:
        account = self._eth_account(request.path)
        transaction = {
            "to": to_checksum_address(request.to),
            "value": request.value,
            "gas": request.gas_limit,
            "gasPrice": request.gas_price,
            "nonce": request.nonce,
            "chainId": request.chain_id,
            "data": request.data or "0x",
        }
        signed = account.sign_transaction(transaction)
        return DeviceReply.ok(
            {
                "v": hex(signed.v),
                "r": f"0x{signed.r:064x}",
                "s": f"0x{signed.s:064x}",
                "serializedTx": _hex(bytes(signed.raw_transaction)),
                "hash": _hex(bytes(signed.hash)),
            }
        )

    @_handle.register(req.EthereumSignMessage)
    def _(self, request: req.EthereumSignMessage) -> DeviceReply:
        return self._ethereum_sign_message(request.path, request.message)

    @_handle.register(req.EthereumSignTypedData)
    def _(self, request: req.EthereumSignTypedData) -> DeviceReply:
        account = self._eth_account(request.path)
        try:
            signed = account.sign_typed_data(full_message=dict(request.data))
        except AttributeError as exc:
            raise ValueError(f"Invalid typed data: {exc}") from exc
        return DeviceReply.ok({"address": account.address, "signature": _hex(bytes(signed.signature))})

    @_handle.register(req.EthereumVerifyMessage)
    def _(self, request: req.EthereumVerifyMessage) -> DeviceReply:
        return DeviceReply.ok({"valid": self._ethereum_verify(request.address, request.message, request.signature)})

    # ---------------------------- Cardano -----------------------------

    @_handle.register(req.CardanoGetAddress)
    def _(self, request: req.CardanoGetAddress) -> DeviceReply:
        self._require_initialized()
        if request.network_id not in (0, 1):
            raise ValueError("Cardano network id must be 0 (testnet) or 1 (mainnet)")
        address = self._cardano_address(request.path, request.staking_path, request.network_id)
        return self._address_payload(request.path, address)

    @_handle.register(req.CardanoSignTransaction)
    def _(self, request: req.CardanoSignTransaction) -> DeviceReply:
        self._require_initialized()
        if not request.inputs:
            raise ValueError("Transaction must have at least one input")
        if not request.outputs:
            raise ValueError("Transaction must have at least one output")
        fee = int(request.fee)
        ttl = int(request.ttl)
        if fee < 0 or ttl < 0:
            raise ValueError("Fee and TTL cannot be negative")
        body = _canonical(
            {
                "inputs": list(request.inputs),
                "outputs": list(request.outputs),
                "fee": fee,
                "ttl": ttl,
                "certificates": list(request.certificates),
                "withdrawals": list(request.withdrawals),
                "metadata": request.metadata,
                "networkId": request.network_id,
            }
        )
        tx_hash = _blake2b(body, 32)
        witnesses = []
        seen: set[DerivationPath] = set()
        for item in request.inputs:
            path = _path_from(item.get("path", "m/1852'/1815'/0'/0/0"))
            if path in seen:
                continue
            seen.add(path)
            witnesses.append(
                {"pubKey": self._ed_public(path).hex(), "signature": self._ed_signer(path).sign(tx_hash).hex()}
            )
        return DeviceReply.ok({"hash": tx_hash.hex(), "signatures": witnesses, "serializedTx": body.hex()})

    # ------------------------ Solana / Ripple / Stellar ------------------------

    @_handle.register(req.SolanaGetAddress)
    def _(self, request: req.SolanaGetAddress) -> DeviceReply:
        return self._address_payload(request.path, self._address(request.path, "sol"))

    @_handle.register(req.SolanaSignTransaction)
    def _(self, request: req.SolanaSignTransaction) -> DeviceReply:
        self._require_initialized()
        text = request.serialized_tx.strip()
        if not text:
            raise ValueError("Serialized transaction is required")
        try:
            message = _unhex(text)
        except ValueError:
            message = base58.b58decode(text)
        return DeviceReply.ok({"signature": self._ed_signer(request.path).sign(message).hex()})

    @_handle.register(req.RippleGetAddress)
    def _(self, request: req.RippleGetAddress) -> DeviceReply:
        return self._address_payload(request.path, self._address(request.path, "xrp"))

    @_handle.register(req.RippleSignTransaction)
    def _(self, request: req.RippleSignTransaction) -> DeviceReply:
        self._require_initialized()
        for key in ("Destination", "Amount", "Fee", "Sequence"):
            if key not in request.transaction:
                raise ValueError(f"Ripple transaction is missing {key}")
        public = self._secp_public(request.path)
        transaction = dict(request.transaction)
        transaction["Account"] = XrpAddrEncoder.EncodeKey(public)
        transaction["SigningPubKey"] = public.hex().upper()
        blob = _canonical(transaction)
        digest = hashlib.sha512(b"STX\x00" + blob).digest()[:32]
        signature = self._secp_signer(request.path).sign_der(digest)
        transaction["TxnSignature"] = signature.hex().upper()
        return DeviceReply.ok({"signatures": [signature.hex()], "serializedTx": _canonical(transaction).hex()})

    @_handle.register(req.StellarGetAddress)
    def _(self, request: req.StellarGetAddress) -> DeviceReply:
        return self._address_payload(request.path, self._address(request.path, "xlm"))

    @_handle.register(req.StellarSignTransaction)
    def _(self, request: req.StellarSignTransaction) -> DeviceReply:
        self._require_initialized()
        if not request.network_passphrase:
            raise ValueError("Network passphrase is required")
        try:
            envelope = base64.b64decode(request.transaction, validate=True)
        except (ValueError, TypeError) as exc:
            raise ValueError("Transaction envelope must be base64-encoded XDR") from exc
        network_id = hashlib.sha256(request.network_passphrase.encode()).digest()
        digest = hashlib.sha256(network_id + b"\x00\x00\x00\x02" + envelope).digest()
        return DeviceReply.ok(
            {
                "publicKey": self._ed_public(request.path).hex(),
                "signature": self._ed_signer(request.path).sign(digest).hex(),
            }
        )

    # ------------------------ Tezos / EOS / Binance ------------------------

    @_handle.register(req.TezosGetAddress)
    def _(self, request: req.TezosGetAddress) -> DeviceReply:
        return self._address_payload(request.path, self._address(request.path, "xtz"))

    @_handle.register(req.TezosSignTransaction)
    def _(self, request: req.TezosSignTransaction) -> DeviceReply:
        self._require_initialized()
        branch = base58.b58decode_check(request.branch)
        operation = _canonical(dict(request.operation))
        digest = _blake2b(b"\x03" + branch + operation, 32)
        signature = self._ed_signer(request.path).sign(digest)
        return DeviceReply.ok(
            {
                "signature": base58.b58encode_check(_TEZOS_EDSIG_PREFIX + signature).decode(),
                "sigOpContents": (branch + operation + signature).hex(),
                "publicKey": base58.b58encode_check(_TEZOS_EDPK_PREFIX + self._ed_public(request.path)).decode(),
            }
        )

    @_handle.register(req.EosGetPublicKey)
    def _(self, request: req.EosGetPublicKey) -> DeviceReply:
        self._require_initialized()
        public = self._secp_public(request.path)
        return DeviceReply.ok({"wifPublicKey": EosAddrEncoder.EncodeKey(public), "rawPublicKey": public.hex()})

    @_handle.register(req.EosSignTransaction)
    def _(self, request: req.EosSignTransaction) -> DeviceReply:
        self._require_initialized()
        if not request.transaction:
            raise ValueError("EOS transaction is required")
        digest = hashlib.sha256(_canonical(dict(request.transaction))).digest()
        signature = self._secp_signer(request.path).sign_compact(digest)
        checksum = hashlib.sha256(signature + b"K1").digest()[:4]
        return DeviceReply.ok({"signature": "SIG_K1_" + base58.b58encode(signature + checksum).decode()})

    @_handle.register(req.BinanceGetAddress)
    def _(self, request: req.BinanceGetAddress) -> DeviceReply:
        return self._address_payload(request.path, self._address(request.path, "bnb"))

    @_handle.register(req.BinanceSignTransaction)
    def _(self, request: req.BinanceSignTransaction) -> DeviceReply:
        self._require_initialized()
        if not request.transaction:
            raise ValueError("Binance transaction is required")
        digest = hashlib.sha256(_canonical(dict(request.transaction))).digest()
        signature = self._secp_signer(request.path).sign_compact(digest)
        return DeviceReply.ok({"signature": signature.hex(), "publicKey": self._secp_public(request.path).hex()})

    # ---------------------------- WebAuthn ----------------------------

    @_handle.register(req.WebAuthnListCredentials)
    def _(self, request: req.WebAuthnListCredentials) -> DeviceReply:
        credentials = [
            {key: value for key, value in entry.items() if not key.startswith("_")} for entry in self._credentials
        ]
        return DeviceReply.ok({"credentials": credentials})

    @_handle.register(req.WebAuthnAddCredential)
    def _(self, request: req.WebAuthnAddCredential) -> DeviceReply:
        self._require_initialized()
        if not request.rp_id or not request.user_id:
            raise ValueError("Relying party id and user id are required")
        private_key = ec.generate_private_key(ec.SECP256R1())
        public = private_key.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        credential_id = hashlib.sha256(
            f"{request.rp_id}:{request.user_id}:{len(self._credentials)}:{time.time_ns()}".encode()
        ).digest()
        attestation = private_key.sign(
            hashlib.sha256(request.rp_id.encode()).digest() + credential_id, ec.ECDSA(hashes.SHA256())
        )
        entry = {
            "index": len(self._credentials),
            "rpId": request.rp_id,
            "rpName": request.rp_name or request.rp_id,
            "userId": request.user_id,
            "userName": request.user_name,
            "userDisplayName": request.user_display_name or request.user_name,
            "creationTime": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "credentialId": _hex(credential_id),
            "publicKey": _hex(public),
            "_key": private_key,
            "_counter": 0,
        }
        self._credentials.append(entry)
        credential = {key: value for key, value in entry.items() if not key.startswith("_")}
        credential["attestation"] = _hex(attestation)
        return DeviceReply.ok({"credential": credential})

    @_handle.register(req.WebAuthnRemoveCredential)
    def _(self, request: req.WebAuthnRemoveCredential) -> DeviceReply:
        if request.index < 0 or request.index >= len(self._credentials):
            raise ValueError(f"No credential at index {request.index}")
        del self._credentials[request.index]
        for position, entry in enumerate(self._credentials):
            entry["index"] = position
        return DeviceReply.ok({"message": f"Credential at index {request.index} removed"})

    @_handle.register(req.WebAuthnGetAssertion)
    def _(self, request: req.WebAuthnGetAssertion) -> DeviceReply:
        entry = next((item for item in self._credentials if item["rpId"] == request.rp_id), None)
        if entry is None:
            raise ValueError(f"No credential registered for {request.rp_id}")
        entry["_counter"] += 1
        flags = 0x01 | (0x04 if request.user_verification else 0x00)
        authenticator_data = (
            hashlib.sha256(request.rp_id.encode()).digest() + bytes([flags]) + entry["_counter"].to_bytes(4, "big")
        )
        client_hash = hashlib.sha256(request.challenge.encode()).digest()
        signature = entry["_key"].sign(authenticator_data + client_hash, ec.ECDSA(hashes.SHA256()))
        return DeviceReply.ok(
            {
                "assertion": {
                    "credentialId": entry["credentialId"],
                    "authenticatorData": _hex(authenticator_data),
                    "signature": _hex(signature),
                    "userHandle": _hex(entry["userId"].encode()),
                },
                "userVerified": request.user_verification,
            }
        )


__all__ = ["MockDeviceLink", "MOCK_MNEMONIC", "MOCK_DEVICE_ID", "USER_CANCELLED"]
