"""Domain models for kiosk marketplace state.

The dataclasses defined here are read-only snapshots of ledger objects taken
when a command runs. They are parsed from Sui JSON-RPC payloads and are never
persisted; every command fetches them again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .errors import ResolutionError
from .identifiers import normalize_address

KIOSK_TYPE = "0x2::kiosk::Kiosk"
KIOSK_OWNER_CAP_TYPE = "0x2::kiosk::KioskOwnerCap"
KIOSK_ITEM_KEY = "0x2::kiosk::Item"
KIOSK_LISTING_KEY = "0x2::kiosk::Listing"
KIOSK_LOCK_KEY = "0x2::kiosk::Lock"
TRANSFER_POLICY_TYPE = "0x2::transfer_policy::TransferPolicy"
TRANSFER_POLICY_CREATED_EVENT = "0x2::transfer_policy::TransferPolicyCreated"
PUBLISHER_TYPE = "0x2::package::Publisher"


# Owner variants ---------------------------------------------------------


@dataclass(frozen=True)
class AddressOwner:
    address: str


@dataclass(frozen=True)
class ObjectOwner:
    object_id: str


@dataclass(frozen=True)
class SharedOwner:
    initial_shared_version: int


@dataclass(frozen=True)
class ImmutableOwner:
    pass


Owner = Union[AddressOwner, ObjectOwner, SharedOwner, ImmutableOwner]


def parse_owner(raw: Any, object_id: str | None = None) -> Owner:
    """Map the ledger's owner JSON onto an :data:`Owner` variant.

    Unrecognized shapes raise :class:`ResolutionError` instead of falling
    through, so a new ownership kind on chain cannot be mistaken for one of
    the known ones.
    """

    if raw == "Immutable":
        return ImmutableOwner()
    if isinstance(raw, dict) and len(raw) == 1:
        (kind, value), = raw.items()
        if kind == "AddressOwner":
            return AddressOwner(normalize_address(value))
        if kind == "ObjectOwner":
            return ObjectOwner(normalize_address(value))
        if kind == "Shared" and isinstance(value, dict):
            return SharedOwner(int(value.get("initial_shared_version", 0)))
    raise ResolutionError(
        f"Object {object_id} has an unrecognized owner shape: {raw!r}", subject=object_id
    )


def describe_owner(owner: Owner) -> str:
    if isinstance(owner, AddressOwner):
        return owner.address
    if isinstance(owner, ObjectOwner):
        return f"object {owner.object_id}"
    if isinstance(owner, SharedOwner):
        return "Shared"
    if isinstance(owner, ImmutableOwner):
        return "Immutable"
    raise TypeError(f"Unhandled owner variant: {owner!r}")


# Payload helpers --------------------------------------------------------


def unwrap_fields(value: Any) -> Any:
    """Return the ``fields`` of a nested Move struct rendering, if present."""

    if isinstance(value, dict) and "fields" in value and isinstance(value["fields"], dict):
        return value["fields"]
    return value


def content_fields(data: dict[str, Any]) -> dict[str, Any]:
    content = data.get("content") or {}
    fields = content.get("fields")
    if not isinstance(fields, dict):
        raise ResolutionError(
            f"Object {data.get('objectId')} has no Move content", subject=data.get("objectId")
        )
    return fields


def _uid(value: Any) -> str:
    value = unwrap_fields(value)
    if isinstance(value, dict):
        value = value.get("id")
    return normalize_address(str(value))


def _to_int(value: Any) -> int:
    value = unwrap_fields(value)
    if isinstance(value, dict):
        value = value.get("value", 0)
    return int(value or 0)


# Ledger objects ---------------------------------------------------------


@dataclass(frozen=True)
class Item:
    """An object snapshot as returned by ``sui_getObject``."""

    id: str
    type: str
    owner: Owner
    version: str | None = None
    digest: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Item":
        object_id = normalize_address(data["objectId"])
        return cls(
            id=object_id,
            type=data.get("type") or (data.get("content") or {}).get("type", ""),
            owner=parse_owner(data.get("owner"), object_id),
            version=data.get("version"),
            digest=data.get("digest"),
            raw=data,
        )


@dataclass(frozen=True)
class Kiosk:
    id: str
    owner: str
    profits: int
    item_count: int
    allow_extensions: bool

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Kiosk":
        fields = content_fields(data)
        return cls(
            id=normalize_address(data["objectId"]),
            owner=normalize_address(fields.get("owner", "0x0")),
            profits=_to_int(fields.get("profits")),
            item_count=int(fields.get("item_count", 0)),
            allow_extensions=bool(fields.get("allow_extensions", False)),
        )


@dataclass(frozen=True)
class KioskOwnerCap:
    id: str
    kiosk_id: str
    version: str | None = None
    digest: str | None = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "KioskOwnerCap":
        fields = content_fields(data)
        return cls(
            id=normalize_address(data["objectId"]),
            kiosk_id=_uid(fields["for"]),
            version=data.get("version"),
            digest=data.get("digest"),
        )


@dataclass(frozen=True)
class Listing:
    item_id: str
    kiosk_id: str
    price: int
    is_exclusive: bool = False

    @classmethod
    def from_field_object(cls, kiosk_id: str, data: dict[str, Any]) -> "Listing":
        fields = content_fields(data)
        key = unwrap_fields(fields.get("name", {}))
        return cls(
            item_id=_uid(key.get("id")),
            kiosk_id=kiosk_id,
            price=_to_int(fields.get("value")),
            is_exclusive=bool(key.get("is_exclusive", False)),
        )


@dataclass(frozen=True)
class KioskItem:
    id: str
    type: str
    is_locked: bool = False
    listing: Listing | None = None


@dataclass(frozen=True)
class RuleType:
    """Fully qualified rule type, e.g. ``0xbd8f…::royalty_rule::Rule``."""

    package: str
    module: str
    name: str

    @classmethod
    def parse(cls, raw: str) -> "RuleType":
        # Type arguments stay in ``name``, e.g. ``Rule<0x2::sui::SUI>``.
        parts = raw.split("::", 2)
        if len(parts) != 3:
            raise ResolutionError(f"Malformed rule type name: {raw!r}", subject=raw)
        package, module, name = parts
        return cls(normalize_address(package), module, name)

    @property
    def short_name(self) -> str:
        return f"{self.module}::{self.name}"

    def __str__(self) -> str:
        return f"{self.package}::{self.module}::{self.name}"


@dataclass(frozen=True)
class TransferPolicy:
    id: str
    type: str
    owner: Owner
    rules: tuple[RuleType, ...]
    balance: int

    @property
    def asset_type(self) -> str:
        prefix = f"{TRANSFER_POLICY_TYPE}<"
        if self.type.startswith(prefix) and self.type.endswith(">"):
            return self.type[len(prefix):-1]
        return self.type

    @classmethod
    def from_rpc(cls, data: dict[str, Any], asset_type: str) -> "TransferPolicy":
        object_id = normalize_address(data["objectId"])
        fields = content_fields(data)
        rules_set = unwrap_fields(fields.get("rules", {}))
        contents = rules_set.get("contents", []) if isinstance(rules_set, dict) else rules_set
        rules = []
        for entry in contents or []:
            entry = unwrap_fields(entry)
            name = entry.get("name") if isinstance(entry, dict) else entry
            rules.append(RuleType.parse(str(name)))
        return cls(
            id=object_id,
            type=f"{TRANSFER_POLICY_TYPE}<{asset_type}>",
            owner=parse_owner(data.get("owner"), object_id),
            rules=tuple(rules),
            balance=_to_int(fields.get("balance")),
        )


@dataclass(frozen=True)
class ListingEvent:
    item_id: str
    kiosk_id: str
    price: int
    timestamp_ms: int

    @classmethod
    def from_rpc(cls, event: dict[str, Any]) -> "ListingEvent":
        parsed = event.get("parsedJson") or {}
        return cls(
            item_id=normalize_address(parsed["id"]),
            kiosk_id=normalize_address(parsed.get("kiosk", "0x0")),
            price=int(parsed.get("price", 0) or 0),
            timestamp_ms=int(event.get("timestampMs", 0) or 0),
        )


@dataclass(frozen=True)
class Publisher:
    id: str
    package: str
    module_name: str

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Publisher":
        fields = content_fields(data)
        return cls(
            id=normalize_address(data["objectId"]),
            package=str(fields.get("package", "")),
            module_name=str(fields.get("module_name", "")),
        )


@dataclass(frozen=True)
class OwnedObject:
    """Row of an address inventory page."""

    id: str
    type: str
    has_display: bool


@dataclass(frozen=True)
class InventoryPage:
    owner: str
    objects: list[OwnedObject]
    next_cursor: str | None = None
    has_next_page: bool = False


@dataclass(frozen=True)
class KioskContents:
    kiosk: Kiosk
    items: list[KioskItem]
