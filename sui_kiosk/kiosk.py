"""Operations against the ``0x2::kiosk`` and ``0x2::transfer_policy`` modules.

Each helper appends one or more operations to a :class:`TransactionPlan` and
returns the result handle(s) later operations consume. Object arguments may
be given as ids or as results of earlier operations.
"""

from __future__ import annotations

from typing import Union

from .model import KIOSK_TYPE
from .transaction import (
    GAS,
    Argument,
    MoveCall,
    ObjectArg,
    Pure,
    Result,
    SplitCoins,
    TransactionPlan,
    TransferObjects,
)

KIOSK_MODULE = "0x2::kiosk"
TRANSFER_POLICY_MODULE = "0x2::transfer_policy"

ObjectInput = Union[str, Argument]


def obj(value: ObjectInput) -> Argument:
    """Wrap a bare object id; pass through existing arguments."""

    if isinstance(value, str):
        return ObjectArg(value)
    return value


def create_kiosk_and_share(plan: TransactionPlan) -> Argument:
    """Create a kiosk, share it and return the owner cap handle."""

    created = plan.add(MoveCall(f"{KIOSK_MODULE}::new", (), (), step="new"))
    plan.add(
        MoveCall(
            "0x2::transfer::public_share_object",
            (KIOSK_TYPE,),
            (created[0],),
            step="new",
        )
    )
    return created[1]


def place(
    plan: TransactionPlan,
    item_type: str,
    kiosk: ObjectInput,
    cap: ObjectInput,
    item: ObjectInput,
) -> Result:
    return plan.add_disposition(
        MoveCall(
            f"{KIOSK_MODULE}::place",
            (item_type,),
            (obj(kiosk), obj(cap), obj(item)),
            step="place",
        )
    )


def lock(
    plan: TransactionPlan,
    item_type: str,
    kiosk: ObjectInput,
    cap: ObjectInput,
    policy: ObjectInput,
    item: ObjectInput,
) -> Result:
    return plan.add_disposition(
        MoveCall(
            f"{KIOSK_MODULE}::lock",
            (item_type,),
            (obj(kiosk), obj(cap), obj(policy), obj(item)),
            step="lock",
        )
    )


def take(
    plan: TransactionPlan, item_type: str, kiosk: ObjectInput, cap: ObjectInput, item_id: str
) -> Result:
    return plan.add(
        MoveCall(
            f"{KIOSK_MODULE}::take",
            (item_type,),
            (obj(kiosk), obj(cap), Pure(item_id, "id")),
            step="take",
        )
    )


def list_item(
    plan: TransactionPlan,
    item_type: str,
    kiosk: ObjectInput,
    cap: ObjectInput,
    item_id: str,
    price: int,
) -> Result:
    return plan.add(
        MoveCall(
            f"{KIOSK_MODULE}::list",
            (item_type,),
            (obj(kiosk), obj(cap), Pure(item_id, "id"), Pure(price, "u64")),
            step="list",
        )
    )


def delist(
    plan: TransactionPlan, item_type: str, kiosk: ObjectInput, cap: ObjectInput, item_id: str
) -> Result:
    return plan.add(
        MoveCall(
            f"{KIOSK_MODULE}::delist",
            (item_type,),
            (obj(kiosk), obj(cap), Pure(item_id, "id")),
            step="delist",
        )
    )


def withdraw(
    plan: TransactionPlan, kiosk: ObjectInput, cap: ObjectInput, amount: int | None = None
) -> Result:
    return plan.add(
        MoveCall(
            f"{KIOSK_MODULE}::withdraw",
            (),
            (obj(kiosk), obj(cap), Pure(amount, "option<u64>")),
            step="withdraw",
        )
    )


def purchase(
    plan: TransactionPlan, item_type: str, kiosk: ObjectInput, item_id: str, price: int
) -> tuple[Argument, Argument]:
    """Pay ``price`` from gas and return ``(item, transfer_request)`` handles."""

    payment = plan.add(SplitCoins(GAS, (Pure(price, "u64"),), step="pay"))
    purchased = plan.add(
        MoveCall(
            f"{KIOSK_MODULE}::purchase",
            (item_type,),
            (obj(kiosk), Pure(item_id, "id"), payment[0]),
            step="pay",
        )
    )
    return purchased[0], purchased[1]


def confirm_request(
    plan: TransactionPlan, item_type: str, policy: ObjectInput, request: Argument
) -> Result:
    return plan.add(
        MoveCall(
            f"{TRANSFER_POLICY_MODULE}::confirm_request",
            (item_type,),
            (obj(policy), request),
            step="confirm",
        )
    )


def transfer(
    plan: TransactionPlan, objects: list[Argument], recipient: str, *, disposition: bool = False
) -> Result:
    operation = TransferObjects(tuple(objects), Pure(recipient, "address"), step="transfer")
    if disposition:
        return plan.add_disposition(operation)
    return plan.add(operation)
