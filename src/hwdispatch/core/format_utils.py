"""Hex and timestamp formatting helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from hwdispatch.core.exceptions import InvalidParameterError


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def hex_to_bytes(value: str) -> bytes:
    try:
        return bytes.fromhex(strip_hex_prefix(value.strip()))
    except (AttributeError, ValueError) as exc:
        raise InvalidParameterError(f"Invalid hexadecimal string: {value!r}") from exc


def bytes_to_hex(data: bytes, prefix: bool = True) -> str:
    text = bytes(data).hex()
    return f"0x{text}" if prefix else text


def format_timestamp(timestamp: int | float | str) -> str:
    """Unix seconds to an ISO-8601 UTC string with millisecond precision."""
    seconds = float(timestamp)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
