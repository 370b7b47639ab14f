"""Validation helpers for Sui addresses, object ids and MIST amounts."""

from __future__ import annotations

import re

from .errors import InvalidInput

SUI_ADDRESS_LENGTH = 32
MIST_PER_SUI = 1_000_000_000
MAX_U64 = 2**64 - 1

_HEX_RE = re.compile(r"^(0x|0X)?[0-9a-fA-F]+$")


def is_valid_address(value: str | None) -> bool:
    """Return ``True`` for a 32-byte hex address with optional ``0x`` prefix."""

    if not value or not _HEX_RE.match(value):
        return False
    digits = value[2:] if value[:2].lower() == "0x" else value
    return len(digits) == SUI_ADDRESS_LENGTH * 2


# Object ids share the address format.
is_valid_object_id = is_valid_address


def normalize_address(value: str) -> str:
    """Lower-case and zero-pad an address to the canonical ``0x`` + 64 form.

    Short forms such as ``0x2`` are accepted so framework package ids can be
    compared with the fully padded ids the ledger returns.
    """

    if not value or not _HEX_RE.match(value):
        raise InvalidInput(f"Invalid Sui address: {value!r}", subject=value)
    digits = value[2:] if value[:2].lower() == "0x" else value
    if len(digits) > SUI_ADDRESS_LENGTH * 2:
        raise InvalidInput(f"Invalid Sui address: {value!r}", subject=value)
    return "0x" + digits.lower().rjust(SUI_ADDRESS_LENGTH * 2, "0")


def require_address(value: str | None, label: str = "address") -> str:
    if not is_valid_address(value):
        raise InvalidInput(f"Invalid {label}: {value!r}", subject=value)
    return normalize_address(value)  # type: ignore[arg-type]


def require_object_id(value: str | None, label: str = "object ID") -> str:
    if not is_valid_object_id(value):
        raise InvalidInput(f"Invalid {label}: {value!r}", subject=value)
    return normalize_address(value)  # type: ignore[arg-type]


def require_amount(value: str | int, label: str = "amount") -> int:
    """Parse a non-negative u64 MIST amount."""

    try:
        amount = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Invalid {label}: {value!r}", subject=str(value)) from exc
    if amount < 0 or amount > MAX_U64:
        raise InvalidInput(f"Invalid {label}: {value!r} is outside the u64 range", subject=str(value))
    return amount


def format_address(address: str) -> str:
    """Shorten an address to ``0xabcd…wxyz`` for display."""

    offset = 2 if address.startswith("0x") else 0
    return f"0x{address[offset:offset + 4]}…{address[-4:]}"
