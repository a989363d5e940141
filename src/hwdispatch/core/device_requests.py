"""
Typed requests sent through a device link.

Each device call is its own frozen dataclass so that a backend handles every
variant explicitly and required fields cannot be left out. Paths are always
``DerivationPath`` values; string parsing happens before a request is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from hwdispatch.core.derivation_path import DerivationPath


@dataclass(frozen=True)
class DeviceRequest:
    """Base class for all device requests."""

    @property
    def name(self) -> str:
        return type(self).__name__


# ==================== Device ====================


@dataclass(frozen=True)
class GetFeatures(DeviceRequest):
    pass


@dataclass(frozen=True)
class Ping(DeviceRequest):
    message: str = "ping"


@dataclass(frozen=True)
class WipeDevice(DeviceRequest):
    pass


@dataclass(frozen=True)
class ResetDevice(DeviceRequest):
    strength: int = 256
    use_passphrase: bool = False
    label: str = ""


@dataclass(frozen=True)
class RecoverDevice(DeviceRequest):
    word_count: int = 24
    use_passphrase: bool = False


@dataclass(frozen=True)
class ChangePin(DeviceRequest):
    remove: bool = False


@dataclass(frozen=True)
class ApplySettings(DeviceRequest):
    """Only fields that are not None are sent to the device."""

    label: Optional[str] = None
    use_passphrase: Optional[bool] = None
    passphrase_always_on_device: Optional[bool] = None
    auto_lock_delay_ms: Optional[int] = None
    safety_checks: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        values = {
            "label": self.label,
            "use_passphrase": self.use_passphrase,
            "passphrase_always_on_device": self.passphrase_always_on_device,
            "auto_lock_delay_ms": self.auto_lock_delay_ms,
            "safety_checks": self.safety_checks,
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class BackupDevice(DeviceRequest):
    pass


@dataclass(frozen=True)
class LockDevice(DeviceRequest):
    pass


@dataclass(frozen=True)
class GetEntropy(DeviceRequest):
    size: int


@dataclass(frozen=True)
class ListDevices(DeviceRequest):
    pass


# ==================== Generic keys and Bitcoin family ====================


@dataclass(frozen=True)
class GetPublicKey(DeviceRequest):
    path: DerivationPath
    coin: str = "btc"
    show_on_device: bool = False


@dataclass(frozen=True)
class GetAddress(DeviceRequest):
    path: DerivationPath
    coin: str = "btc"
    show_on_device: bool = False
    script_type: str = "p2wpkh"


@dataclass(frozen=True)
class SignTransaction(DeviceRequest):
    coin: str
    inputs: tuple[Mapping[str, Any], ...]
    outputs: tuple[Mapping[str, Any], ...]
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SignMessage(DeviceRequest):
    path: DerivationPath
    message: str
    coin: str = "btc"


@dataclass(frozen=True)
class VerifyMessage(DeviceRequest):
    address: str
    message: str
    signature: str
    coin: str = "btc"


@dataclass(frozen=True)
class SignHash(DeviceRequest):
    path: DerivationPath
    digest: bytes


@dataclass(frozen=True)
class GetOwnershipProof(DeviceRequest):
    path: DerivationPath
    script_type: str = "p2wpkh"
    commitment_data: str = ""
    coin: str = "btc"


@dataclass(frozen=True)
class GetOwnershipId(DeviceRequest):
    path: DerivationPath
    script_type: str = "p2wpkh"
    coin: str = "btc"


@dataclass(frozen=True)
class AuthorizeCoinjoin(DeviceRequest):
    path: DerivationPath
    coordinator: str
    max_rounds: int
    max_coordinator_fee_rate: int
    max_fee_per_kvbyte: int
    script_type: str = "p2wpkh"
    coin: str = "btc"


# ==================== Ethereum / EVM ====================


@dataclass(frozen=True)
class EthereumSignTransaction(DeviceRequest):
    """All numeric fields are integers in base units (wei)."""

    path: DerivationPath
    to: str
    value: int
    gas_limit: int
    gas_price: int
    nonce: int
    chain_id: int
    data: str = "0x"


@dataclass(frozen=True)
class EthereumSignMessage(DeviceRequest):
    path: DerivationPath
    message: str


@dataclass(frozen=True)
class EthereumSignTypedData(DeviceRequest):
    path: DerivationPath
    data: Mapping[str, Any]
    metamask_v4_compat: bool = True


@dataclass(frozen=True)
class EthereumVerifyMessage(DeviceRequest):
    address: str
    message: str
    signature: str


# ==================== Cardano ====================


@dataclass(frozen=True)
class CardanoGetAddress(DeviceRequest):
    path: DerivationPath
    staking_path: DerivationPath
    network_id: int = 1
    show_on_device: bool = False


@dataclass(frozen=True)
class CardanoSignTransaction(DeviceRequest):
    inputs: tuple[Mapping[str, Any], ...]
    outputs: tuple[Mapping[str, Any], ...]
    fee: str
    ttl: str
    network_id: int = 1
    certificates: tuple[Mapping[str, Any], ...] = ()
    withdrawals: tuple[Mapping[str, Any], ...] = ()
    metadata: Optional[str] = None


# ==================== Solana / Ripple / Stellar ====================


@dataclass(frozen=True)
class SolanaGetAddress(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class SolanaSignTransaction(DeviceRequest):
    path: DerivationPath
    serialized_tx: str


@dataclass(frozen=True)
class RippleGetAddress(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class RippleSignTransaction(DeviceRequest):
    path: DerivationPath
    transaction: Mapping[str, Any]


@dataclass(frozen=True)
class StellarGetAddress(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class StellarSignTransaction(DeviceRequest):
    path: DerivationPath
    network_passphrase: str
    transaction: str


# ==================== Tezos / EOS / Binance Chain ====================


@dataclass(frozen=True)
class TezosGetAddress(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class TezosSignTransaction(DeviceRequest):
    path: DerivationPath
    branch: str
    operation: Mapping[str, Any]


@dataclass(frozen=True)
class EosGetPublicKey(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class EosSignTransaction(DeviceRequest):
    path: DerivationPath
    transaction: Mapping[str, Any]


@dataclass(frozen=True)
class BinanceGetAddress(DeviceRequest):
    path: DerivationPath
    show_on_device: bool = False


@dataclass(frozen=True)
class BinanceSignTransaction(DeviceRequest):
    path: DerivationPath
    transaction: Mapping[str, Any]


# ==================== WebAuthn / FIDO2 ====================


@dataclass(frozen=True)
class WebAuthnListCredentials(DeviceRequest):
    pass


@dataclass(frozen=True)
class WebAuthnAddCredential(DeviceRequest):
    rp_id: str
    user_id: str
    rp_name: str = ""
    user_name: str = ""
    user_display_name: str = ""
    user_verification: bool = True
    resident_key: bool = True


@dataclass(frozen=True)
class WebAuthnRemoveCredential(DeviceRequest):
    index: int


@dataclass(frozen=True)
class WebAuthnGetAssertion(DeviceRequest):
    rp_id: str
    challenge: str
    user_verification: bool = True
