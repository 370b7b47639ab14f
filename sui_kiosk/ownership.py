"""Resolve where an item lives: an address inventory or a kiosk."""

from __future__ import annotations

import logging

from .errors import NotFound, NotInKiosk, ResolutionError
from .identifiers import require_object_id
from .model import AddressOwner, ImmutableOwner, Item, ObjectOwner, SharedOwner, describe_owner
from .rpc_client import SuiRPCClient, ledger_read, response_data

logger = logging.getLogger(__name__)


class OwnershipResolver:
    """Follow the item -> dynamic field -> kiosk ownership chain.

    Kiosks store items as dynamic object fields, so an item placed in a kiosk
    is owned by the field wrapper, and the wrapper is owned by the kiosk.
    """

    def __init__(self, rpc: SuiRPCClient) -> None:
        self.rpc = rpc

    def fetch_item(self, item_id: str) -> Item:
        item_id = require_object_id(item_id, "item ID")
        with ledger_read(item_id):
            response = self.rpc.get_object(item_id, show_type=True, show_owner=True)
        data = response_data(response)
        if data is None:
            error = (response or {}).get("error")
            raise NotFound(f"Item {item_id} not found; {error}", subject=item_id)
        return Item.from_rpc(data)

    def resolve_kiosk(self, item_id: str, explicit_kiosk_id: str | None = None) -> str:
        """Return the id of the kiosk holding ``item_id``.

        A well-formed ``explicit_kiosk_id`` is returned in normalized form
        (``0x`` plus 64 lowercase hex digits) without any ledger read.
        """

        if explicit_kiosk_id is not None:
            return require_object_id(explicit_kiosk_id, "Kiosk ID")
        return self.kiosk_of(self.fetch_item(item_id))

    def kiosk_of(self, item: Item) -> str:
        """Resolve the kiosk id for an already fetched item."""

        owner = item.owner
        if isinstance(owner, AddressOwner):
            raise NotInKiosk(item.id, owner.address)
        if isinstance(owner, (SharedOwner, ImmutableOwner)):
            raise ResolutionError(
                f"Item {item.id} is {describe_owner(owner)} and cannot be held in a kiosk",
                subject=item.id,
            )
        if not isinstance(owner, ObjectOwner):
            raise TypeError(f"Unhandled owner variant: {owner!r}")

        key_id = owner.object_id
        logger.debug("Item %s is held by dynamic field %s", item.id, key_id)
        with ledger_read(key_id):
            response = self.rpc.get_object(key_id, show_type=False, show_owner=True)
        data = response_data(response)
        if data is None:
            raise ResolutionError(
                f"Dynamic field {key_id} holding item {item.id} not found", subject=key_id
            )
        key = Item.from_rpc(data)
        if not isinstance(key.owner, ObjectOwner):
            raise ResolutionError(
                f"Dynamic field {key_id} holding item {item.id} is not owned by a kiosk "
                f"({describe_owner(key.owner)})",
                subject=key_id,
            )
        logger.debug("Dynamic field %s is held by kiosk %s", key_id, key.owner.object_id)
        return key.owner.object_id

    def ensure_owned_by(self, item: Item, address: str) -> None:
        if not isinstance(item.owner, AddressOwner) or item.owner.address != address:
            raise ResolutionError(
                f"Item {item.id} is not owned by {address}; use `inventory` to see your items",
                subject=item.id,
            )

    def ensure_in_kiosk(self, item: Item, kiosk_id: str) -> None:
        """Fail unless ``item`` currently sits in ``kiosk_id``."""

        holder = self.kiosk_of(item)
        if holder != kiosk_id:
            raise ResolutionError(
                f"Item {item.id} is in kiosk {holder}, not in your kiosk {kiosk_id}",
                subject=item.id,
            )
