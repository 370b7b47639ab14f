"""Kiosk command workflows.

Each mutating command is split into a ``prepare_*`` step, which resolves
fresh ledger state and returns a :class:`TransactionPlan`, and
:meth:`KioskWorkflows.execute`, which builds and submits it once. Plans are
never cached: running a command again resolves everything from scratch.

Read-only commands (inventory, contents, search, policy, publisher) return
model objects for the CLI to render.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from . import kiosk
from .capability import CapabilityStore
from .config import KioskConfig
from .errors import InvalidInput, KioskExists, NoKiosk, NotFound, NotInKiosk
from .identifiers import normalize_address, require_address, require_amount, require_object_id
from .model import (
    KIOSK_ITEM_KEY,
    KIOSK_LISTING_KEY,
    KIOSK_LOCK_KEY,
    PUBLISHER_TYPE,
    AddressOwner,
    InventoryPage,
    Kiosk,
    KioskContents,
    KioskItem,
    Listing,
    ListingEvent,
    OwnedObject,
    Publisher,
    TransferPolicy,
    unwrap_fields,
)
from .ownership import OwnershipResolver
from .policy import PolicyResolver
from .rpc_client import SuiRPCClient, ledger_read, response_data
from .rules import Destination, PurchaseContext, RuleEngine, ToAddress, ToKiosk
from .signer import Signer
from .transaction import TransactionPlan
from .tx_builder import ExecutionResult, TransactionBuilder

logger = logging.getLogger(__name__)

KIOSK_EVENT_MODULE = "0x2::kiosk"
EVENT_QUERY_LIMIT = 1000


def parse_destination(target: str | None) -> Destination | None:
    """Map a purchase ``--target`` value to a destination."""

    if target is None:
        return None
    if target == "kiosk":
        return ToKiosk()
    return ToAddress(require_address(target, 'target address (use "kiosk" to store in your Kiosk)'))


def _is_kiosk_key(name_type: str, key_type: str) -> bool:
    package, _, rest = name_type.partition("::")
    key_package, _, key_rest = key_type.partition("::")
    try:
        return rest == key_rest and normalize_address(package) == normalize_address(key_package)
    except InvalidInput:
        return False


class KioskWorkflows:
    """Resolve ledger state and assemble transactions for kiosk commands."""

    def __init__(
        self, rpc: SuiRPCClient, signer: Signer, config: KioskConfig, max_workers: int = 3
    ) -> None:
        self.rpc = rpc
        self.signer = signer
        self.config = config
        self.max_workers = max_workers
        self.capabilities = CapabilityStore(rpc)
        self.ownership = OwnershipResolver(rpc)
        self.policies = PolicyResolver(rpc)
        self.rules = RuleEngine(config.rule_packages)
        self.builder = TransactionBuilder(signer, config.gas_budget)

    def sender(self) -> str:
        return self.signer.get_address()

    def execute(self, plan: TransactionPlan, *, dry_run: bool = False) -> ExecutionResult:
        return self.builder.build_and_submit(plan, dry_run=dry_run)

    # Shared lookups -------------------------------------------------------

    def fetch_kiosk(self, kiosk_id: str) -> Kiosk:
        with ledger_read(kiosk_id):
            response = self.rpc.get_object(kiosk_id, show_content=True)
        data = response_data(response)
        if data is None:
            raise NotFound(f"Kiosk {kiosk_id} not found", subject=kiosk_id)
        return Kiosk.from_rpc(data)

    def fetch_listing(self, kiosk_id: str, item_id: str) -> Listing | None:
        name = {"type": KIOSK_LISTING_KEY, "value": {"id": item_id, "is_exclusive": False}}
        with ledger_read(item_id):
            response = self.rpc.get_dynamic_field_object(kiosk_id, name)
        data = response_data(response)
        if data is None:
            return None
        return Listing.from_field_object(kiosk_id, data)

    # Mutating commands ----------------------------------------------------

    def prepare_new_kiosk(self) -> TransactionPlan:
        sender = self.sender()
        try:
            existing = self.capabilities.find_capability(sender)
        except NoKiosk:
            existing = None
        if existing is not None:
            raise KioskExists(sender, existing.kiosk_id)

        plan = TransactionPlan()
        cap = kiosk.create_kiosk_and_share(plan)
        kiosk.transfer(plan, [cap], sender, disposition=True)
        return plan

    def prepare_place(self, item_id: str) -> TransactionPlan:
        item_id = require_object_id(item_id, "Item ID")
        sender = self.sender()
        cap = self.capabilities.find_capability(sender)
        item = self.ownership.fetch_item(item_id)
        self.ownership.ensure_owned_by(item, sender)

        plan = TransactionPlan()
        kiosk.place(plan, item.type, cap.kiosk_id, cap.id, item.id)
        return plan

    def prepare_lock(self, item_id: str) -> TransactionPlan:
        item_id = require_object_id(item_id, "Item ID")
        sender = self.sender()
        cap = self.capabilities.find_capability(sender)
        item = self.ownership.fetch_item(item_id)
        self.ownership.ensure_owned_by(item, sender)
        policy = self.policies.select_policy(self.policies.find_policies(item.type), item.type)

        plan = TransactionPlan()
        kiosk.lock(plan, item.type, cap.kiosk_id, cap.id, policy.id, item.id)
        return plan

    def prepare_take(self, item_id: str, address: str | None = None) -> TransactionPlan:
        item_id = require_object_id(item_id, "Item ID")
        receiver = require_address(address, "receiver address") if address else None
        sender = self.sender()
        cap = self.capabilities.find_capability(sender)
        item = self.ownership.fetch_item(item_id)
        self.ownership.ensure_in_kiosk(item, cap.kiosk_id)

        plan = TransactionPlan()
        taken = kiosk.take(plan, item.type, cap.kiosk_id, cap.id, item.id)
        kiosk.transfer(plan, [taken], receiver or sender, disposition=True)
        return plan

    def prepare_list(self, item_id: str, amount: str | int) -> TransactionPlan:
        item_id = require_object_id(item_id, "Item ID")
        price = require_amount(amount, "amount (MIST)")
        cap = self.capabilities.find_capability(self.sender())
        item = self.ownership.fetch_item(item_id)
        self.ownership.ensure_in_kiosk(item, cap.kiosk_id)

        plan = TransactionPlan()
        kiosk.list_item(plan, item.type, cap.kiosk_id, cap.id, item.id, price)
        return plan

    def prepare_delist(self, item_id: str) -> TransactionPlan:
        item_id = require_object_id(item_id, "Item ID")
        cap = self.capabilities.find_capability(self.sender())
        item = self.ownership.fetch_item(item_id)
        self.ownership.ensure_in_kiosk(item, cap.kiosk_id)
        if self.fetch_listing(cap.kiosk_id, item.id) is None:
            raise NotFound(f"Item {item.id} is not listed in Kiosk {cap.kiosk_id}", subject=item.id)

        plan = TransactionPlan()
        kiosk.delist(plan, item.type, cap.kiosk_id, cap.id, item.id)
        return plan

    def prepare_withdraw(self) -> TransactionPlan:
        sender = self.sender()
        cap = self.capabilities.find_capability(sender)

        plan = TransactionPlan()
        coin = kiosk.withdraw(plan, cap.kiosk_id, cap.id)
        kiosk.transfer(plan, [coin], sender, disposition=True)
        return plan

    def prepare_purchase(
        self, item_id: str, kiosk_id: str | None = None, target: str | None = None
    ) -> TransactionPlan:
        """Resolve a listed item and build the plan that buys it.

        The seller kiosk is found through the item's ownership chain unless
        ``kiosk_id`` is given. The kiosk object, the transfer policies for the
        item type and the listing are then read concurrently.
        """

        destination = parse_destination(target)
        explicit_kiosk = require_object_id(kiosk_id, "Kiosk ID") if kiosk_id else None
        item_id = require_object_id(item_id, "Item ID")

        sender = self.sender()
        cap = self.capabilities.find_capability(
            sender, "use `new` to create one; purchases need your Kiosk"
        )
        item = self.ownership.fetch_item(item_id)
        if isinstance(item.owner, AddressOwner):
            raise NotInKiosk(item.id, item.owner.address)
        if explicit_kiosk is not None:
            seller_kiosk_id = self.ownership.resolve_kiosk(item.id, explicit_kiosk)
        else:
            seller_kiosk_id = self.ownership.kiosk_of(item)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            kiosk_future = pool.submit(self.fetch_kiosk, seller_kiosk_id)
            policies_future = pool.submit(self.policies.find_policies, item.type)
            listing_future = pool.submit(self.fetch_listing, seller_kiosk_id, item.id)
            listing = listing_future.result()
            seller_kiosk = kiosk_future.result()
            policies = policies_future.result()

        if listing is None:
            raise NotFound(
                f"Item {item.id} not listed in Kiosk {seller_kiosk_id}", subject=item.id
            )
        policy = self.policies.select_policy(policies, item.type)

        context = PurchaseContext(
            item_id=item.id,
            item_type=item.type,
            price=listing.price,
            seller_kiosk_id=seller_kiosk.id,
            buyer=sender,
            destination=destination,
            owned_kiosk_id=cap.kiosk_id,
            owned_cap_id=cap.id,
        )
        plan = self.rules.resolve_rules(policy, context)
        logger.info(
            "Purchase of %s for %d MIST resolved to %s (can_transfer=%s)",
            item.id,
            listing.price,
            plan.steps,
            plan.can_transfer,
        )
        return plan

    # Read-only commands ---------------------------------------------------

    def inventory(
        self, address: str | None = None, cursor: str | None = None, type_filter: str | None = None
    ) -> InventoryPage:
        owner = require_address(address) if address else self.sender()
        struct_type = self.config.resolve_type(type_filter) if type_filter else None
        with ledger_read(owner):
            page = self.rpc.get_owned_objects(
                owner, struct_type=struct_type, cursor=cursor, show_type=True, show_display=True
            )
        objects = []
        for entry in page.get("data", []):
            data = response_data(entry)
            if data is None:
                continue
            display = data.get("display") or {}
            objects.append(
                OwnedObject(
                    id=normalize_address(data["objectId"]),
                    type=data.get("type", ""),
                    has_display=bool(display.get("data")),
                )
            )
        objects.sort(key=lambda obj: obj.type)
        return InventoryPage(
            owner=owner,
            objects=objects,
            next_cursor=page.get("nextCursor"),
            has_next_page=bool(page.get("hasNextPage")),
        )

    def kiosk_contents(self, kiosk_id: str | None = None, address: str | None = None) -> KioskContents:
        if kiosk_id:
            kiosk_id = require_object_id(kiosk_id, "Kiosk ID")
        else:
            owner = require_address(address) if address else self.sender()
            kiosk_id = self.capabilities.find_capability(owner, hint=None).kiosk_id

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            kiosk_future = pool.submit(self.fetch_kiosk, kiosk_id)
            fields_future = pool.submit(self._kiosk_fields, kiosk_id)
            fields = fields_future.result()
            kiosk_object = kiosk_future.result()

        items: dict[str, dict[str, Any]] = {}
        listing_fields: dict[str, str] = {}
        locked: set[str] = set()
        for entry in fields:
            name = entry.get("name") or {}
            name_type = name.get("type", "")
            key = unwrap_fields(name.get("value")) or {}
            key_id = normalize_address(key["id"]) if isinstance(key, dict) and key.get("id") else None
            if _is_kiosk_key(name_type, KIOSK_ITEM_KEY):
                items[normalize_address(entry["objectId"])] = entry
            elif _is_kiosk_key(name_type, KIOSK_LISTING_KEY) and key_id:
                listing_fields[key_id] = entry["objectId"]
            elif _is_kiosk_key(name_type, KIOSK_LOCK_KEY) and key_id:
                locked.add(key_id)

        listings: dict[str, Listing] = {}
        if listing_fields:
            with ledger_read(kiosk_id):
                responses = self.rpc.multi_get_objects(list(listing_fields.values()))
            for response in responses:
                data = response_data(response)
                if data is not None:
                    listing = Listing.from_field_object(kiosk_id, data)
                    listings[listing.item_id] = listing

        contents = [
            KioskItem(
                id=item_id,
                type=entry.get("objectType", ""),
                is_locked=item_id in locked,
                listing=listings.get(item_id),
            )
            for item_id, entry in items.items()
        ]
        return KioskContents(kiosk=kiosk_object, items=contents)

    def _kiosk_fields(self, kiosk_id: str) -> list[dict[str, Any]]:
        with ledger_read(kiosk_id):
            return list(self.rpc.iter_dynamic_fields(kiosk_id))

    def search_listings(self, type_or_alias: str) -> list[ListingEvent]:
        """Return listings of a type that were not later delisted or purchased."""

        item_type = self.config.resolve_type(type_or_alias)

        def events(kind: str) -> list[ListingEvent]:
            with ledger_read(item_type):
                raw = self.rpc.query_events(
                    f"{KIOSK_EVENT_MODULE}::{kind}<{item_type}>", limit=EVENT_QUERY_LIMIT
                )
            return [ListingEvent.from_rpc(event) for event in raw]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            listed_future = pool.submit(events, "ItemListed")
            delisted_future = pool.submit(events, "ItemDelisted")
            purchased_future = pool.submit(events, "ItemPurchased")
            listed = listed_future.result()
            closed = delisted_future.result() + purchased_future.result()

        return [
            event
            for event in listed
            if not any(
                other.item_id == event.item_id and event.timestamp_ms < other.timestamp_ms
                for other in closed
            )
        ]

    def find_policies(self, type_or_alias: str) -> list[TransferPolicy]:
        return self.policies.find_policies(self.config.resolve_type(type_or_alias))

    def publishers(self) -> list[Publisher]:
        sender = self.sender()
        with ledger_read(sender):
            entries = list(
                self.rpc.iter_owned_objects(sender, struct_type=PUBLISHER_TYPE, show_content=True)
            )
        return [Publisher.from_rpc(data) for data in map(response_data, entries) if data is not None]
