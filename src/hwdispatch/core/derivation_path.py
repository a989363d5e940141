"""
BIP32 derivation path codec.

Paths are stored as tuples of encoded u32 components. A hardened component
has the 0x80000000 bit set; in string form it carries a trailing ``'`` (``h``
is accepted on input). Parsing and formatting are exact inverses for paths
written with ``'``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from hwdispatch.core.exceptions import MalformedPathError, PathTooShortError

HARDENED_OFFSET = 0x80000000
MAX_RAW_INDEX = HARDENED_OFFSET - 1
MAX_ENCODED = 0xFFFFFFFF

_DIGITS = re.compile(r"[0-9]+")
_HARDENED_MARKERS = ("'", "h", "H")


def harden(index: int) -> int:
    """Return the hardened encoding of a raw index."""
    if index < 0 or index > MAX_RAW_INDEX:
        raise MalformedPathError(f"Index {index} out of range for hardening")
    return index + HARDENED_OFFSET


def is_hardened(component: int) -> bool:
    return component >= HARDENED_OFFSET


def unharden(component: int) -> int:
    return component - HARDENED_OFFSET if component >= HARDENED_OFFSET else component


@dataclass(frozen=True)
class DerivationPath:
    """Immutable ordered sequence of encoded path components."""

    components: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        components = tuple(self.components)
        for value in components:
            if not isinstance(value, int) or isinstance(value, bool):
                raise MalformedPathError(f"Path component must be an integer, got {value!r}")
            if value < 0 or value > MAX_ENCODED:
                raise MalformedPathError(f"Path component {value} outside u32 range")
        object.__setattr__(self, "components", components)

    def __str__(self) -> str:
        return format_path(self.components)

    def __len__(self) -> int:
        return len(self.components)

    def __iter__(self) -> Iterator[int]:
        return iter(self.components)

    @property
    def depth(self) -> int:
        return len(self.components)

    def pairs(self) -> list[tuple[int, bool]]:
        """Return ``(raw_index, hardened)`` for every component."""
        return [(unharden(c), is_hardened(c)) for c in self.components]

    def to_list(self) -> list[int]:
        return list(self.components)

    @classmethod
    def bip44(
        cls,
        purpose: int,
        coin_type: int,
        account: int,
        change: int | None = None,
        address_index: int | None = None,
    ) -> "DerivationPath":
        """
        Build a BIP44-style path ``m/purpose'/coin'/account'[/change[/index]]``.

        The first three levels are hardened; change and address index are not.
        An address index without a change level is rejected.
        """
        if address_index is not None and change is None:
            raise MalformedPathError("Address index requires a change component")
        components = [harden(purpose), harden(coin_type), harden(account)]
        for value in (change, address_index):
            if value is None:
                continue
            if value < 0 or value > MAX_RAW_INDEX:
                raise MalformedPathError(f"Index {value} out of range")
            components.append(value)
        return cls(tuple(components))

    def with_account(self, account: int) -> "DerivationPath":
        """Return a copy with component 2 replaced, keeping its hardened flag."""
        if self.depth < 3:
            raise PathTooShortError("Path too short to have an account component")
        hardened = is_hardened(self.components[2])
        value = harden(account) if hardened else _checked_raw(account)
        return DerivationPath(self.components[:2] + (value,) + self.components[3:])

    def fully_hardened(self) -> "DerivationPath":
        """Return a copy where every component is hardened (SLIP-10 ed25519)."""
        return DerivationPath(tuple(c if is_hardened(c) else harden(c) for c in self.components))


def _checked_raw(value: int) -> int:
    if value < 0 or value > MAX_RAW_INDEX:
        raise MalformedPathError(f"Index {value} out of range")
    return value


def _parse_component(token: str) -> int:
    if not token:
        raise MalformedPathError("Empty path component")
    hardened = token.endswith(_HARDENED_MARKERS)
    digits = token[:-1] if hardened else token
    if not _DIGITS.fullmatch(digits):
        raise MalformedPathError(f"Invalid path component: {token!r}")
    index = int(digits)
    if index > MAX_RAW_INDEX:
        raise MalformedPathError(f"Path index {index} collides with the hardened offset")
    return index + HARDENED_OFFSET if hardened else index


def parse_path(path: str | DerivationPath) -> DerivationPath:
    """
    Parse a derivation path string.

    Args:
        path: String such as ``m/84'/0'/0'/0/0``. The ``m/`` prefix is
            optional; ``m`` or ``m/`` alone is the root path.

    Returns:
        DerivationPath with hardened components offset by 2^31

    Raises:
        MalformedPathError: On empty input, empty components, non-numeric
            residue, or a raw index >= 2^31

    Examples:
        >>> parse_path("m/84'/0'/0'").components
        (2147483732, 2147483648, 2147483648)
    """
    if isinstance(path, DerivationPath):
        return path
    if not isinstance(path, str):
        raise MalformedPathError("Derivation path must be a string")
    text = path.strip()
    if not text:
        raise MalformedPathError("Derivation path cannot be empty")
    if text in ("m", "M", "m/", "M/"):
        return DerivationPath(())
    if text[:2] in ("m/", "M/"):
        text = text[2:]
    return DerivationPath(tuple(_parse_component(token) for token in text.split("/")))


def format_path(components: Iterable[int] | DerivationPath) -> str:
    """Render encoded components as ``m/...`` with ``'`` for hardened levels."""
    values = components.components if isinstance(components, DerivationPath) else tuple(components)
    rendered = []
    for value in values:
        if value < 0 or value > MAX_ENCODED:
            raise MalformedPathError(f"Path component {value} outside u32 range")
        rendered.append(f"{unharden(value)}'" if is_hardened(value) else str(value))
    return "m/" + "/".join(rendered)


def account_index(path: DerivationPath | Sequence[int]) -> int:
    """
    Return the de-hardened third component, or 0 if the path is shorter.

    Only meaningful for BIP44-shaped paths (purpose/coin/account/...).
    """
    components = tuple(path)
    if len(components) < 3:
        return 0
    return unharden(components[2])


def address_index(path: DerivationPath | Sequence[int]) -> int:
    components = tuple(path)
    if not components:
        return 0
    return unharden(components[-1])


def increment_address_index(path: DerivationPath | Sequence[int]) -> DerivationPath:
    """Return a path whose last index is one higher, same hardened flag."""
    components = tuple(path)
    if not components:
        return DerivationPath((0,))
    last = components[-1]
    raw = unharden(last) + 1
    if raw > MAX_RAW_INDEX:
        raise MalformedPathError("Address index overflow")
    bumped = raw + HARDENED_OFFSET if is_hardened(last) else raw
    return DerivationPath(components[:-1] + (bumped,))


def change_path(path: DerivationPath | Sequence[int]) -> DerivationPath:
    """
    Return the internal-chain sibling of an address path.

    The second-to-last component is set to the non-hardened value 1, the
    BIP44 internal (change) chain, whatever it was before.

    Raises:
        PathTooShortError: If the path has fewer than 4 components
    """
    components = tuple(path)
    if len(components) < 4:
        raise PathTooShortError("Path too short to have a change component")
    return DerivationPath(components[:-2] + (1, components[-1]))


def is_hardened_path(path: str) -> bool:
    """True when every component of the path string is hardened."""
    parsed = parse_path(path)
    return bool(parsed.components) and all(is_hardened(c) for c in parsed.components)


__all__ = [
    "HARDENED_OFFSET",
    "DerivationPath",
    "parse_path",
    "format_path",
    "account_index",
    "address_index",
    "increment_address_index",
    "change_path",
    "harden",
    "is_hardened",
    "unharden",
    "is_hardened_path",
]
