import pytest

from stubs import BUYER, ITEM_TYPE, LOCK_RULE, RULES_PACKAGE, ROYALTY_RULE, addr

from sui_kiosk.errors import NoKiosk, UnsupportedRule
from sui_kiosk.model import RuleType, SharedOwner, TransferPolicy
from sui_kiosk.rules import DEFAULT_RESOLVERS, PurchaseContext, RuleEngine, ToAddress, ToKiosk
from sui_kiosk.transaction import MoveCall, TransferObjects

POLICY = addr(0xA1)
SELLER_KIOSK = addr(0x200)
OWN_KIOSK = addr(0x300)
OWN_CAP = addr(0x301)
ITEM = addr(0x100)


def make_policy(*rules: str) -> TransferPolicy:
    return TransferPolicy(
        id=POLICY,
        type=f"0x2::transfer_policy::TransferPolicy<{ITEM_TYPE}>",
        owner=SharedOwner(9),
        rules=tuple(RuleType.parse(rule) for rule in rules),
        balance=0,
    )


def make_context(destination=None, with_kiosk: bool = True) -> PurchaseContext:
    return PurchaseContext(
        item_id=ITEM,
        item_type=ITEM_TYPE,
        price=1_000,
        seller_kiosk_id=SELLER_KIOSK,
        buyer=BUYER,
        destination=destination,
        owned_kiosk_id=OWN_KIOSK if with_kiosk else None,
        owned_cap_id=OWN_CAP if with_kiosk else None,
    )


def engine() -> RuleEngine:
    return RuleEngine([RULES_PACKAGE])


def targets(plan) -> list[str]:
    return [op.target for op in plan.operations if isinstance(op, MoveCall)]


def test_royalty_plan_pays_confirms_then_transfers_to_buyer() -> None:
    plan = engine().resolve_rules(make_policy(ROYALTY_RULE), make_context())

    assert plan.steps == ["pay", "royalty", "confirm", "transfer"]
    assert plan.can_transfer is True
    assert plan.disposition_step == "transfer"
    assert targets(plan) == [
        "0x2::kiosk::purchase",
        f"{RULES_PACKAGE}::royalty_rule::fee_amount",
        f"{RULES_PACKAGE}::royalty_rule::pay",
        "0x2::transfer_policy::confirm_request",
    ]
    transfer = plan.operations[-1]
    assert isinstance(transfer, TransferObjects)
    assert transfer.recipient.value == BUYER


def test_lock_rule_locks_into_buyer_kiosk_and_never_transfers() -> None:
    plan = engine().resolve_rules(make_policy(LOCK_RULE), make_context())

    assert plan.steps == ["pay", "lock", "confirm"]
    assert plan.can_transfer is False
    assert plan.disposition_step == "lock"
    assert not any(isinstance(op, TransferObjects) for op in plan.operations)
    lock_call = plan.operations[plan.disposition]
    assert lock_call.target == "0x2::kiosk::lock"
    assert lock_call.arguments[0].object_id == OWN_KIOSK
    assert lock_call.arguments[2].object_id == POLICY


def test_lock_rule_ignores_explicit_target() -> None:
    plan = engine().resolve_rules(
        make_policy(ROYALTY_RULE, LOCK_RULE), make_context(ToAddress(addr(0x777)))
    )

    assert plan.steps == ["pay", "royalty", "lock", "confirm"]
    assert plan.can_transfer is False


def test_lock_rule_without_kiosk_raises_no_kiosk() -> None:
    with pytest.raises(NoKiosk, match="kiosk_lock_rule"):
        engine().resolve_rules(make_policy(LOCK_RULE), make_context(with_kiosk=False))


def test_target_kiosk_places_purchased_item() -> None:
    plan = engine().resolve_rules(make_policy(), make_context(ToKiosk()))

    assert plan.steps == ["pay", "confirm", "place"]
    assert plan.operations[-1].target == "0x2::kiosk::place"


def test_target_kiosk_without_own_kiosk_raises() -> None:
    with pytest.raises(NoKiosk):
        engine().resolve_rules(make_policy(), make_context(ToKiosk(), with_kiosk=False))


def test_target_address_receives_item() -> None:
    other = addr(0x777)
    plan = engine().resolve_rules(make_policy(), make_context(ToAddress(other)))

    assert plan.steps == ["pay", "confirm", "transfer"]
    assert plan.operations[-1].recipient.value == other


def test_unknown_rule_fails_before_any_operation() -> None:
    policy = make_policy(ROYALTY_RULE, f"{RULES_PACKAGE[2:]}::floor_price_rule::Rule")

    with pytest.raises(UnsupportedRule, match="floor_price_rule") as excinfo:
        engine().resolve_rules(policy, make_context())

    assert "floor_price_rule::Rule" in excinfo.value.subject


def test_rule_from_unconfigured_package_is_unsupported() -> None:
    policy = make_policy("0x" + "cd" * 32 + "::royalty_rule::Rule")

    with pytest.raises(UnsupportedRule, match="not a configured rule package"):
        engine().resolve_rules(policy, make_context())


def test_resolution_is_deterministic() -> None:
    policy = make_policy(ROYALTY_RULE, LOCK_RULE)

    first = engine().resolve_rules(policy, make_context())
    second = engine().resolve_rules(policy, make_context())

    assert first.operations == second.operations
    assert first.disposition == second.disposition


def test_custom_resolvers_replace_defaults() -> None:
    calls = []

    def resolve_floor(plan, rule, policy, context, item, request) -> None:
        calls.append(rule.short_name)

    rules = RuleEngine([RULES_PACKAGE], resolvers={"floor_price_rule::Rule": resolve_floor})
    plan = rules.resolve_rules(
        make_policy(f"{RULES_PACKAGE}::floor_price_rule::Rule"), make_context()
    )

    assert calls == ["floor_price_rule::Rule"]
    assert plan.steps == ["pay", "confirm", "transfer"]


def test_generic_rule_type_is_unsupported() -> None:
    policy = make_policy(f"{RULES_PACKAGE[2:]}::floor_rule::Rule<0x2::sui::SUI>")

    assert policy.rules[0].name == "Rule<0x2::sui::SUI>"
    with pytest.raises(UnsupportedRule, match="floor_rule::Rule<0x2::sui::SUI>"):
        engine().resolve_rules(policy, make_context())


def test_rules_after_lock_keep_item_in_kiosk() -> None:
    plan = engine().resolve_rules(make_policy(LOCK_RULE, ROYALTY_RULE), make_context())

    assert plan.steps == ["pay", "lock", "royalty", "confirm"]
    assert plan.can_transfer is False
    assert plan.disposition_step == "lock"
    assert not any(isinstance(op, TransferObjects) for op in plan.operations)
    assert "0x2::kiosk::place" not in targets(plan)


def test_later_resolver_cannot_restore_transfer() -> None:
    seen = []

    def resolve_after_lock(plan, rule, policy, context, item, request) -> None:
        seen.append(plan.can_transfer)

    resolvers = dict(DEFAULT_RESOLVERS)
    resolvers["floor_price_rule::Rule"] = resolve_after_lock
    rules = RuleEngine([RULES_PACKAGE], resolvers=resolvers)

    plan = rules.resolve_rules(
        make_policy(LOCK_RULE, f"{RULES_PACKAGE}::floor_price_rule::Rule"),
        make_context(ToAddress(addr(0x777))),
    )

    assert seen == [False]
    assert plan.can_transfer is False
    assert plan.steps == ["pay", "lock", "confirm"]
    assert not any(isinstance(op, TransferObjects) for op in plan.operations)
