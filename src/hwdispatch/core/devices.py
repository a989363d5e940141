"""
Trezor device model metadata and firmware release information.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DeviceState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    BOOTLOADER = "bootloader"
    INITIALIZE = "initialize"
    SEEDLESS = "seedless"
    ACQUIRED = "acquired"
    USED = "used"


@dataclass(frozen=True)
class DeviceModel:
    id: str
    name: str
    vendor_id: int
    product_id: int
    supports_bip39_passphrase: bool = True
    supports_shamir: bool = False
    has_secure_element: bool = False
    has_touchscreen: bool = False
    max_pin_length: int = 50


DEVICE_MODELS: dict[str, DeviceModel] = {
    "1": DeviceModel("1", "Trezor Model One", 0x534C, 0x0001, max_pin_length=9),
    "T": DeviceModel("T", "Trezor Model T", 0x1209, 0x53C1, supports_shamir=True, has_touchscreen=True),
    "Safe3": DeviceModel("Safe3", "Trezor Safe 3", 0x1209, 0x53C1, supports_shamir=True, has_secure_element=True),
    "Safe5": DeviceModel(
        "Safe5",
        "Trezor Safe 5",
        0x1209,
        0x53C1,
        supports_shamir=True,
        has_secure_element=True,
        has_touchscreen=True,
    ),
}

LATEST_FIRMWARE: dict[str, str] = {
    "1": "1.12.1",
    "T": "2.6.4",
    "Safe3": "2.6.4",
    "Safe5": "2.6.4",
}

FIRMWARE_RELEASES: tuple[dict, ...] = (
    {
        "version": "2.6.4",
        "releaseDate": "2024-01-15",
        "changelog": "Security improvements and bug fixes",
        "required": False,
    },
    {
        "version": "2.6.3",
        "releaseDate": "2023-11-20",
        "changelog": "Added Taproot support improvements",
        "required": False,
    },
)

SAFETY_CHECK_LEVELS = ("Strict", "PromptAlways", "PromptTemporarily")


def get_model(model_id: str | None) -> DeviceModel | None:
    if not model_id:
        return None
    return DEVICE_MODELS.get(model_id)


def latest_firmware(model_id: str | None) -> str:
    """Latest known firmware for a model; unknown models report the Model T line."""
    return LATEST_FIRMWARE.get(model_id or "T", LATEST_FIRMWARE["T"])


def version_tuple(version: str) -> tuple[int, ...]:
    parts = []
    for piece in version.split("."):
        parts.append(int(piece) if piece.isdigit() else 0)
    return tuple(parts)
