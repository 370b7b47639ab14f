"""Transaction builder for kiosk programmable transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .errors import SubmissionError
from .signer import Signer
from .transaction import (
    Argument,
    GasCoin,
    MoveCall,
    NestedResult,
    ObjectArg,
    Operation,
    Pure,
    Result,
    SplitCoins,
    TransactionPlan,
    TransferObjects,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionBundle:
    """A plan rendered to ``sui client ptb`` commands, ready to sign."""

    plan: TransactionPlan
    commands: tuple[str, ...]
    gas_budget: int


@dataclass(frozen=True)
class GasSummary:
    computation_cost: int = 0
    storage_cost: int = 0
    storage_rebate: int = 0
    non_refundable_storage_fee: int = 0

    @property
    def total(self) -> int:
        return self.computation_cost + self.storage_cost - self.storage_rebate

    @classmethod
    def from_effects(cls, effects: Dict[str, Any]) -> "GasSummary":
        gas = effects.get("gasUsed") or {}
        return cls(
            computation_cost=int(gas.get("computationCost", 0)),
            storage_cost=int(gas.get("storageCost", 0)),
            storage_rebate=int(gas.get("storageRebate", 0)),
            non_refundable_storage_fee=int(gas.get("nonRefundableStorageFee", 0)),
        )


@dataclass(frozen=True)
class ObjectChange:
    object_id: str
    change_type: str
    sender: str | None
    object_type: str | None


@dataclass
class ExecutionResult:
    digest: str | None
    status: str
    gas: GasSummary
    object_changes: List[ObjectChange] = field(default_factory=list)
    errors: List[Any] = field(default_factory=list)
    effects: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == "success" and not self.errors

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "ExecutionResult":
        effects = payload.get("effects") or {}
        status_block = effects.get("status") or {}
        errors = list(payload.get("errors") or [])
        if status_block.get("error"):
            errors.append(status_block["error"])
        changes = [
            ObjectChange(
                object_id=change.get("objectId") or change.get("packageId", ""),
                change_type=change.get("type", ""),
                sender=change.get("sender"),
                object_type=change.get("objectType"),
            )
            for change in payload.get("objectChanges") or []
        ]
        return cls(
            digest=payload.get("digest") or effects.get("transactionDigest"),
            status=status_block.get("status", "unknown"),
            gas=GasSummary.from_effects(effects),
            object_changes=changes,
            errors=errors,
            effects=effects,
        )


class TransactionBuilder:
    """Render plans to signable bundles and submit them.

    ``build`` never touches the network. ``submit`` performs exactly one
    round-trip through the signer and is never retried.
    """

    def __init__(self, signer: Signer, gas_budget: int) -> None:
        self.signer = signer
        self.gas_budget = gas_budget

    def build(self, plan: TransactionPlan) -> TransactionBundle:
        if not plan.operations:
            raise ValueError("Cannot build an empty transaction plan")
        referenced = self._validate_references(plan)
        names = {index: f"r{index}" for index in referenced}

        commands: List[str] = []
        for index, operation in enumerate(plan.operations):
            commands.extend(self._render_operation(operation, names))
            if index in names:
                commands.extend(["--assign", names[index]])
        logger.debug("Built transaction with %d operations: %s", len(plan), plan.steps)
        return TransactionBundle(plan=plan, commands=tuple(commands), gas_budget=self.gas_budget)

    def submit(self, bundle: TransactionBundle, *, dry_run: bool = False) -> ExecutionResult:
        payload = self.signer.execute(bundle, dry_run=dry_run)
        result = ExecutionResult.from_json(payload)
        if not result.ok:
            logger.error("Transaction %s failed with status %s", result.digest, result.status)
            raise SubmissionError(
                f"Transaction {result.digest or '(no digest)'} was not applied (status {result.status})",
                subject=result.digest,
                effects=result.effects,
                errors=result.errors,
            )
        logger.info(
            "%s transaction %s (%d object changes)",
            "Dry-ran" if dry_run else "Executed",
            result.digest,
            len(result.object_changes),
        )
        return result

    def build_and_submit(self, plan: TransactionPlan, *, dry_run: bool = False) -> ExecutionResult:
        return self.submit(self.build(plan), dry_run=dry_run)

    @staticmethod
    def _validate_references(plan: TransactionPlan) -> set[int]:
        """Check that results are only consumed after they are produced."""

        referenced: set[int] = set()
        for index, operation in enumerate(plan.operations):
            for argument in operation.inputs():
                if isinstance(argument, (Result, NestedResult)):
                    if argument.index >= index:
                        raise ValueError(
                            f"Operation {index} ({operation.step}) uses the result of operation "
                            f"{argument.index} before it is produced"
                        )
                    referenced.add(argument.index)
        return referenced

    @staticmethod
    def _render_argument(argument: Argument, names: Dict[int, str]) -> str:
        if isinstance(argument, GasCoin):
            return "gas"
        if isinstance(argument, ObjectArg):
            return f"@{argument.object_id}"
        if isinstance(argument, Result):
            return names[argument.index]
        if isinstance(argument, NestedResult):
            return f"{names[argument.index]}.{argument.position}"
        if isinstance(argument, Pure):
            if argument.type == "u64":
                return f"{int(argument.value)}u64"
            if argument.type in {"address", "id"}:
                return f"@{argument.value}"
            if argument.type == "option<u64>":
                return "none" if argument.value is None else f"some({int(argument.value)}u64)"
            raise ValueError(f"Unsupported pure argument type: {argument.type}")
        raise TypeError(f"Unhandled argument: {argument!r}")

    def _render_operation(self, operation: Operation, names: Dict[int, str]) -> List[str]:
        render = self._render_argument
        if isinstance(operation, MoveCall):
            command = ["--move-call", operation.target]
            if operation.type_arguments:
                command.append(f"<{','.join(operation.type_arguments)}>")
            command.extend(render(arg, names) for arg in operation.arguments)
            return command
        if isinstance(operation, SplitCoins):
            amounts = ", ".join(render(arg, names) for arg in operation.amounts)
            return ["--split-coins", render(operation.coin, names), f"[{amounts}]"]
        if isinstance(operation, TransferObjects):
            objects = ", ".join(render(arg, names) for arg in operation.objects)
            return ["--transfer-objects", f"[{objects}]", render(operation.recipient, names)]
        raise TypeError(f"Unhandled operation: {operation!r}")
