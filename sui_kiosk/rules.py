"""Transfer policy rule resolution for kiosk purchases.

The engine turns a purchase into a :class:`TransactionPlan`: pay for the
item, satisfy each rule of the selected policy in the order the policy stores
them, confirm the transfer request and finally hand the item to its
destination. A rule without a known resolver stops the purchase before any
operation is emitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Union

from . import kiosk
from .errors import NoKiosk, UnsupportedRule
from .identifiers import normalize_address
from .model import RuleType, TransferPolicy
from .transaction import GAS, Argument, MoveCall, ObjectArg, Pure, SplitCoins, TransactionPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToAddress:
    address: str


@dataclass(frozen=True)
class ToKiosk:
    """Place the purchased item into the buyer's own kiosk."""


Destination = Union[ToAddress, ToKiosk]


@dataclass(frozen=True)
class PurchaseContext:
    item_id: str
    item_type: str
    price: int
    seller_kiosk_id: str
    buyer: str
    destination: Destination | None = None
    owned_kiosk_id: str | None = None
    owned_cap_id: str | None = None

    @property
    def has_own_kiosk(self) -> bool:
        return bool(self.owned_kiosk_id and self.owned_cap_id)


RuleResolver = Callable[
    [TransactionPlan, RuleType, TransferPolicy, PurchaseContext, Argument, Argument], None
]


def resolve_royalty_rule(
    plan: TransactionPlan,
    rule: RuleType,
    policy: TransferPolicy,
    context: PurchaseContext,
    item: Argument,
    request: Argument,
) -> None:
    """Compute the royalty for the price, split it from gas and pay it."""

    item_type = context.item_type
    fee = plan.add(
        MoveCall(
            f"{rule.package}::royalty_rule::fee_amount",
            (item_type,),
            (ObjectArg(policy.id), Pure(context.price, "u64")),
            step="royalty",
        )
    )
    fee_coin = plan.add(SplitCoins(GAS, (fee,), step="royalty"))
    plan.add(
        MoveCall(
            f"{rule.package}::royalty_rule::pay",
            (item_type,),
            (ObjectArg(policy.id), request, fee_coin[0]),
            step="royalty",
        )
    )


def resolve_kiosk_lock_rule(
    plan: TransactionPlan,
    rule: RuleType,
    policy: TransferPolicy,
    context: PurchaseContext,
    item: Argument,
    request: Argument,
) -> None:
    """Lock the item into the buyer's kiosk and prove it to the policy."""

    if not context.has_own_kiosk:
        raise NoKiosk(
            context.buyer,
            f"type {context.item_type} has a kiosk_lock_rule and must be locked into your kiosk; "
            "use `new` to create one",
        )
    kiosk.lock(
        plan,
        context.item_type,
        context.owned_kiosk_id,
        context.owned_cap_id,
        policy.id,
        item,
    )
    plan.add(
        MoveCall(
            f"{rule.package}::kiosk_lock_rule::prove",
            (context.item_type,),
            (request, ObjectArg(context.owned_kiosk_id)),
            step="lock",
        )
    )
    plan.forbid_transfer()


DEFAULT_RESOLVERS: dict[str, RuleResolver] = {
    "royalty_rule::Rule": resolve_royalty_rule,
    "kiosk_lock_rule::Rule": resolve_kiosk_lock_rule,
}


class RuleEngine:
    """Map policy rules to resolving operations.

    ``rule_packages`` lists the packages whose rules this engine trusts to
    expose the standard resolver functions; ``resolvers`` maps a rule's
    ``module::Name`` to the function emitting its operations.
    """

    def __init__(
        self,
        rule_packages: Iterable[str],
        resolvers: Mapping[str, RuleResolver] | None = None,
    ) -> None:
        self.rule_packages = frozenset(normalize_address(pkg) for pkg in rule_packages)
        self.resolvers = dict(DEFAULT_RESOLVERS if resolvers is None else resolvers)

    def resolver_for(self, rule: RuleType) -> RuleResolver:
        resolver = self.resolvers.get(rule.short_name)
        if resolver is None:
            raise UnsupportedRule(str(rule), "no resolver is known for this rule")
        if rule.package not in self.rule_packages:
            raise UnsupportedRule(
                str(rule), f"package {rule.package} is not a configured rule package"
            )
        return resolver

    def resolve_rules(self, policy: TransferPolicy, context: PurchaseContext) -> TransactionPlan:
        # Every rule must be resolvable before any operation is emitted.
        resolvers = [(rule, self.resolver_for(rule)) for rule in policy.rules]

        plan = TransactionPlan()
        item, request = kiosk.purchase(
            plan, context.item_type, context.seller_kiosk_id, context.item_id, context.price
        )
        for rule, resolver in resolvers:
            logger.debug("Resolving %s for %s", rule.short_name, context.item_id)
            resolver(plan, rule, policy, context, item, request)
        kiosk.confirm_request(plan, context.item_type, policy.id, request)

        if not plan.can_transfer:
            if context.destination is not None:
                logger.info(
                    "Policy %s keeps %s locked in kiosk %s; ignoring purchase target",
                    policy.id,
                    context.item_id,
                    context.owned_kiosk_id,
                )
            return plan

        destination = context.destination or ToAddress(context.buyer)
        if isinstance(destination, ToKiosk):
            if not context.has_own_kiosk:
                raise NoKiosk(context.buyer, "cannot place the purchased item into a kiosk")
            kiosk.place(
                plan,
                context.item_type,
                context.owned_kiosk_id,
                context.owned_cap_id,
                item,
            )
        elif isinstance(destination, ToAddress):
            kiosk.transfer(plan, [item], destination.address, disposition=True)
        else:
            raise TypeError(f"Unhandled destination: {destination!r}")
        return plan
