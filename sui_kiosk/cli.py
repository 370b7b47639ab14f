"""Command-line interface for Sui Kiosk marketplaces.

The CLI is a thin layer over :class:`sui_kiosk.workflows.KioskWorkflows`:
it parses arguments, prints tables and decides the process exit code. All
resolution and transaction assembly happens in the workflows; signing is
delegated to the ``sui`` binary's active address and keystore.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Sequence

from .config import ConfigurationError, KioskConfig, load_config, set_default_config_path
from .errors import KioskError
from .identifiers import MIST_PER_SUI, format_address
from .model import KioskContents, SharedOwner
from .rpc_client import RPCError, RPCTransportError, SuiRPCClient
from .signer import SuiCliSigner
from .tx_builder import ExecutionResult
from .workflows import KioskWorkflows

logger = logging.getLogger(__name__)

_FULL_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{64}")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""

    exit_code = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sui-kiosk",
        description="Simple CLI to interact with Kiosk smart contracts. Signs with the active `sui client` address.",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file (default: ~/.sui-kiosk.yaml)")
    parser.add_argument(
        "--network",
        choices=["mainnet", "testnet", "devnet", "localnet"],
        default=None,
        help="Network to use (default: testnet)",
    )
    parser.add_argument("--rpc-url", default=None, help="Override the full node JSON-RPC URL")
    parser.add_argument("--gas-budget", type=int, default=None, help="Gas budget in MIST for transactions")
    parser.add_argument("--client-config", default=None, help="Path to the Sui CLI client.yaml")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry-run transactions instead of executing them",
    )
    parser.add_argument("--json", dest="as_json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("new", help="create and share a Kiosk; send OwnerCap to sender")

    inventory_parser = subparsers.add_parser("inventory", help="view the inventory of the sender")
    inventory_parser.add_argument("-a", "--address", default=None, help="Fetch another user's inventory")
    inventory_parser.add_argument("--cursor", default=None, help="Fetch inventory starting from this cursor")
    inventory_parser.add_argument("--only-display", action="store_true", help="Only show items that have Display")
    inventory_parser.add_argument("-f", "--filter", default=None, help="Filter by type or known alias")

    contents_parser = subparsers.add_parser(
        "contents", help="list all Items and Listings in the Kiosk owned by the sender"
    )
    contents_parser.add_argument("--id", dest="kiosk_id", default=None, help="The ID of the Kiosk to look up")
    contents_parser.add_argument("--address", default=None, help="The address of the Kiosk owner")

    place_parser = subparsers.add_parser("place", help="place an item from the sender's inventory into the Kiosk")
    place_parser.add_argument("item_id", help="The ID of the item to place")

    lock_parser = subparsers.add_parser("lock", help="lock an item in the user Kiosk (requires TransferPolicy)")
    lock_parser.add_argument("item_id", help="The ID of the item to lock")

    take_parser = subparsers.add_parser(
        "take", help="take an item from the Kiosk and transfer to sender or to --address"
    )
    take_parser.add_argument("item_id", help="The ID of the item to take")
    take_parser.add_argument("-a", "--address", default=None, help="Receiver address (defaults to sender)")

    list_parser = subparsers.add_parser("list", help="list an item in the Kiosk for the specified amount of MIST")
    list_parser.add_argument("item_id", help="The ID of the item to list")
    list_parser.add_argument("amount", help="The amount of MIST to list the item for")

    delist_parser = subparsers.add_parser("delist", help="delist an item from the Kiosk")
    delist_parser.add_argument("item_id", help="The ID of the item to delist")

    purchase_parser = subparsers.add_parser("purchase", help="purchase an item from the specified Kiosk")
    purchase_parser.add_argument("item_id", help="The ID of the item to purchase")
    purchase_parser.add_argument(
        "--kiosk",
        default=None,
        help="The ID of the Kiosk to purchase from (speeds up purchase by skipping search)",
    )
    purchase_parser.add_argument(
        "-t",
        "--target",
        default=None,
        help='Purchase destination: "kiosk" for user Kiosk or a custom address (defaults to sender)',
    )

    search_parser = subparsers.add_parser("search", help="search open listings in Kiosks")
    search_parser.add_argument("type", help="The type of the item to search for, or a known alias")

    policy_parser = subparsers.add_parser("policy", help="search for a TransferPolicy for the specified type")
    policy_parser.add_argument("type", help="The type of the item to search for, or a known alias")

    subparsers.add_parser("withdraw", help="withdraw all profits from the Kiosk to the Kiosk Owner")
    subparsers.add_parser("publisher", help="view the Publisher objects owned by the user")

    return parser


# Formatting helpers -----------------------------------------------------


def format_amount(mist: int | None) -> str:
    """Render MIST as SUI without trailing zeros."""

    if not mist:
        return "0"
    value = Decimal(int(mist)) / Decimal(MIST_PER_SUI)
    text = format(value, "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def format_type(full_type: str, config: KioskConfig | None = None) -> str:
    """Show a known alias, or shorten fully qualified addresses inside a Move type."""

    alias = config.alias_for(full_type) if config is not None else None
    if alias:
        return alias
    return _FULL_ADDRESS_RE.sub(lambda match: format_address(match.group(0)), full_type)


def _print_table(rows: list[dict[str, Any]]) -> None:
    if not rows:
        print("(none)")
        return
    columns = list(rows[0].keys())
    widths = {
        column: max(len(column), *(len(str(row.get(column, ""))) for row in rows))
        for column in columns
    }
    print(" | ".join(column.ljust(widths[column]) for column in columns))
    print("-+-".join("-" * widths[column] for column in columns))
    for row in rows:
        print(" | ".join(str(row.get(column, "")).ljust(widths[column]) for column in columns))


def _print_rows(args: argparse.Namespace, rows: list[dict[str, Any]]) -> None:
    if getattr(args, "as_json", False):
        print(json.dumps(rows, indent=2))
    else:
        _print_table(rows)


def _print_execution(
    args: argparse.Namespace, result: ExecutionResult, config: KioskConfig | None = None
) -> None:
    if getattr(args, "as_json", False):
        print(
            json.dumps(
                {
                    "digest": result.digest,
                    "status": result.status,
                    "objectChanges": [asdict(change) for change in result.object_changes],
                    "gasUsed": result.gas.total,
                },
                indent=2,
            )
        )
        return
    if result.digest:
        print(f"Transaction: {result.digest}")
    _print_table(
        [
            {
                "objectId": change.object_id,
                "type": change.change_type,
                "sender": format_address(change.sender) if change.sender else "",
                "objectType": format_type(change.object_type or "", config),
            }
            for change in result.object_changes
        ]
    )
    gas = result.gas
    print(f"Computation cost:          {gas.computation_cost}")
    print(f"Storage cost:              {gas.storage_cost}")
    print(f"Storage rebate:            {gas.storage_rebate}")
    print(f"NonRefundable Storage Fee: {gas.non_refundable_storage_fee}")
    print(f"Total Gas:                 {format_amount(gas.total)} SUI ({gas.total} MIST)")


# Commands ---------------------------------------------------------------


def _workflows_from_args(args: argparse.Namespace) -> KioskWorkflows:
    config = load_config(
        overrides={
            "network": args.network,
            "rpc_url": args.rpc_url,
            "gas_budget": args.gas_budget,
        },
    )
    signer = SuiCliSigner(config.sui_binary, client_config=args.client_config)
    return KioskWorkflows(SuiRPCClient(config), signer, config)


def cmd_inventory(workflows: KioskWorkflows, args: argparse.Namespace) -> None:
    page = workflows.inventory(args.address, cursor=args.cursor, type_filter=args.filter)
    if page.has_next_page:
        print("Showing first page of results. Use `--cursor` to get the next page.")
        print(f"Next cursor: {page.next_cursor}")
    objects = [obj for obj in page.objects if obj.has_display or not args.only_display]
    print(f"- Owner {page.owner}")
    _print_rows(
        args,
        [
            {
                "objectId": obj.id,
                "type": format_type(obj.type, workflows.config),
                "hasDisplay": obj.has_display,
            }
            for obj in objects
        ],
    )


def _contents_rows(contents: KioskContents, config: KioskConfig) -> list[dict[str, Any]]:
    rows = [
        {
            "objectId": item.id,
            "type": format_type(item.type, config),
            "isLocked": item.is_locked,
            "listed": item.listing is not None,
            "isPublic": bool(item.listing and not item.listing.is_exclusive),
            "price (SUI)": format_amount(item.listing.price) if item.listing else "N/A",
        }
        for item in contents.items
    ]
    return sorted(rows, key=lambda row: row["listed"])


def cmd_contents(workflows: KioskWorkflows, args: argparse.Namespace) -> None:
    contents = workflows.kiosk_contents(args.kiosk_id, args.address)
    kiosk = contents.kiosk
    if not args.as_json:
        print("Description")
        print(f"- Kiosk ID:    {kiosk.id}")
        print(f"- Profits:     {format_amount(kiosk.profits)} SUI")
        print(f"- UID Exposed: {kiosk.allow_extensions}")
        print(f"- Item Count:  {kiosk.item_count}")
    _print_rows(args, _contents_rows(contents, workflows.config))


def cmd_search(workflows: KioskWorkflows, args: argparse.Namespace) -> None:
    item_type = workflows.config.resolve_type(args.type)
    listings = workflows.search_listings(args.type)
    if not args.as_json:
        print(f"- Type: {item_type}")
    _print_rows(
        args,
        [
            {"objectId": event.item_id, "kiosk": format_address(event.kiosk_id), "price": event.price}
            for event in listings
        ],
    )


def cmd_policy(workflows: KioskWorkflows, args: argparse.Namespace) -> None:
    item_type = workflows.config.resolve_type(args.type)
    policies = workflows.find_policies(args.type)
    if not policies:
        print(f"No transfer policy found for type {item_type}")
        return
    if not args.as_json:
        print(f"- Type: {format_type(item_type, workflows.config)}")
    _print_rows(
        args,
        [
            {
                "id": policy.id,
                "owner": "Shared" if isinstance(policy.owner, SharedOwner) else "Owned",
                "rules": ", ".join(rule.short_name for rule in policy.rules),
                "balance": policy.balance,
            }
            for policy in policies
        ],
    )


def cmd_publisher(workflows: KioskWorkflows, args: argparse.Namespace) -> None:
    publishers = workflows.publishers()
    if not publishers:
        print("No Publisher objects found for sender")
        return
    _print_rows(
        args,
        [{"id": pub.id, "package": pub.package, "module_name": pub.module_name} for pub in publishers],
    )


def _prepare_plan(workflows: KioskWorkflows, args: argparse.Namespace):
    if args.command == "new":
        return workflows.prepare_new_kiosk()
    if args.command == "place":
        return workflows.prepare_place(args.item_id)
    if args.command == "lock":
        return workflows.prepare_lock(args.item_id)
    if args.command == "take":
        return workflows.prepare_take(args.item_id, args.address)
    if args.command == "list":
        return workflows.prepare_list(args.item_id, args.amount)
    if args.command == "delist":
        return workflows.prepare_delist(args.item_id)
    if args.command == "purchase":
        return workflows.prepare_purchase(args.item_id, kiosk_id=args.kiosk, target=args.target)
    if args.command == "withdraw":
        return workflows.prepare_withdraw()
    raise CLIError(f"Unknown command: {args.command}")


DISPLAY_COMMANDS = {
    "inventory": cmd_inventory,
    "contents": cmd_contents,
    "search": cmd_search,
    "policy": cmd_policy,
    "publisher": cmd_publisher,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    set_default_config_path(args.config)
    try:
        workflows = _workflows_from_args(args)
        display = DISPLAY_COMMANDS.get(args.command)
        if display is not None:
            display(workflows, args)
        else:
            plan = _prepare_plan(workflows, args)
            result = workflows.execute(plan, dry_run=args.dry_run)
            _print_execution(args, result, workflows.config)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        parser.exit(130)
    except (CLIError, ConfigurationError, KioskError) as exc:
        parser.exit(exc.exit_code, f"error: {exc}\n")
    except (RPCError, RPCTransportError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
