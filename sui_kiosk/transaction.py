"""Programmable transaction plan primitives.

A :class:`TransactionPlan` is an ordered list of operations whose arguments
may refer to the results of earlier operations. Plans are plain data: they
are built without network access and rendered for submission by
:class:`sui_kiosk.tx_builder.TransactionBuilder`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class GasCoin:
    """The transaction's gas coin."""


GAS = GasCoin()


@dataclass(frozen=True)
class ObjectArg:
    object_id: str


@dataclass(frozen=True)
class Pure:
    """A pure input; ``type`` is one of ``u64``, ``address``, ``id`` or ``option<u64>``."""

    value: Any
    type: str


@dataclass(frozen=True)
class NestedResult:
    index: int
    position: int


@dataclass(frozen=True)
class Result:
    """Result of the operation at ``index``."""

    index: int

    def __getitem__(self, position: int) -> NestedResult:
        return NestedResult(self.index, position)


Argument = Union[GasCoin, ObjectArg, Pure, Result, NestedResult]


@dataclass(frozen=True)
class MoveCall:
    target: str
    type_arguments: tuple[str, ...]
    arguments: tuple[Argument, ...]
    step: str

    def inputs(self) -> tuple[Argument, ...]:
        return self.arguments


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]
    step: str

    def inputs(self) -> tuple[Argument, ...]:
        return (self.coin, *self.amounts)


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: Argument
    step: str

    def inputs(self) -> tuple[Argument, ...]:
        return (*self.objects, self.recipient)


Operation = Union[MoveCall, SplitCoins, TransferObjects]


@dataclass
class TransactionPlan:
    """Ordered operations plus the final custody decision for a purchase.

    ``can_transfer`` starts ``True`` and can only be cleared. ``disposition``
    points at the operation that decides where the item ends up (lock,
    place or transfer), when the plan has one.
    """

    operations: list[Operation] = field(default_factory=list)
    disposition: int | None = None
    _can_transfer: bool = field(default=True, init=False, repr=False)

    @property
    def can_transfer(self) -> bool:
        return self._can_transfer

    def forbid_transfer(self) -> None:
        self._can_transfer = False

    def add(self, operation: Operation) -> Result:
        self.operations.append(operation)
        return Result(len(self.operations) - 1)

    def add_disposition(self, operation: Operation) -> Result:
        result = self.add(operation)
        self.disposition = result.index
        return result

    @property
    def disposition_step(self) -> str | None:
        if self.disposition is None:
            return None
        return self.operations[self.disposition].step

    @property
    def steps(self) -> list[str]:
        """Step names in order, with consecutive repeats collapsed."""

        steps: list[str] = []
        for operation in self.operations:
            if not steps or steps[-1] != operation.step:
                steps.append(operation.step)
        return steps

    def __len__(self) -> int:
        return len(self.operations)
