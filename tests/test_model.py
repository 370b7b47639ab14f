import pytest

from stubs import ITEM_TYPE, addr

from sui_kiosk.errors import ResolutionError
from sui_kiosk.model import (
    AddressOwner,
    ImmutableOwner,
    ObjectOwner,
    RuleType,
    SharedOwner,
    TransferPolicy,
    describe_owner,
    parse_owner,
)


def test_parse_owner_variants() -> None:
    assert parse_owner({"AddressOwner": "0x2"}) == AddressOwner(addr(2))
    assert parse_owner({"ObjectOwner": addr(3)}) == ObjectOwner(addr(3))
    assert parse_owner({"Shared": {"initial_shared_version": "11"}}) == SharedOwner(11)
    assert parse_owner("Immutable") == ImmutableOwner()


@pytest.mark.parametrize("raw", [None, "Owned", {"AddressOwner": "x", "ObjectOwner": "y"}])
def test_parse_owner_rejects_unknown_shapes(raw) -> None:
    with pytest.raises(ResolutionError):
        parse_owner(raw, addr(9))


def test_describe_owner() -> None:
    assert describe_owner(SharedOwner(1)) == "Shared"
    assert describe_owner(ObjectOwner(addr(3))) == f"object {addr(3)}"


def test_rule_type_parse_normalizes_package() -> None:
    rule = RuleType.parse("2::royalty_rule::Rule")

    assert rule.package == addr(2)
    assert rule.short_name == "royalty_rule::Rule"
    assert str(rule) == f"{addr(2)}::royalty_rule::Rule"
    with pytest.raises(ResolutionError):
        RuleType.parse("royalty_rule::Rule")


def test_transfer_policy_reads_flat_rule_names() -> None:
    policy = TransferPolicy.from_rpc(
        {
            "objectId": addr(0xA1),
            "owner": {"Shared": {"initial_shared_version": 1}},
            "content": {
                "fields": {
                    "balance": "0",
                    "rules": {"fields": {"contents": [{"name": "2::royalty_rule::Rule"}]}},
                }
            },
        },
        ITEM_TYPE,
    )

    assert policy.asset_type == ITEM_TYPE
    assert [rule.short_name for rule in policy.rules] == ["royalty_rule::Rule"]
