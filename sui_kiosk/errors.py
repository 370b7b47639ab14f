"""Error taxonomy shared by the resolvers, the builder and the CLI.

Every error carries the offending identifier in ``subject`` so the CLI can
report it without parsing messages. None of these errors are retried: a
resolution failure means the ledger state has to be re-investigated and a
submission failure may already be visible on chain.
"""

from __future__ import annotations

from typing import Any


class KioskError(RuntimeError):
    """Base class for all kiosk resolution and submission failures."""

    exit_code = 1

    def __init__(self, message: str, subject: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.subject = subject


class InvalidInput(KioskError):
    """Malformed identifier, address or amount supplied by the caller."""

    exit_code = 2


class NotFound(KioskError):
    """Requested item, kiosk, policy or listing does not exist."""


class ResolutionError(KioskError):
    """Ownership or dynamic-field chain does not match the expected shape."""


class NotInKiosk(ResolutionError):
    """Item is held directly by an address rather than inside a kiosk."""

    def __init__(self, item_id: str, owner: str | None = None) -> None:
        detail = f" (owned by {owner})" if owner else ""
        super().__init__(f"Item {item_id} is not held in a kiosk{detail}", subject=item_id)
        self.owner = owner


class NoPolicy(KioskError):
    """No transfer policy exists for an asset type."""

    def __init__(self, asset_type: str) -> None:
        super().__init__(f"No transfer policy found for type {asset_type}", subject=asset_type)
        self.asset_type = asset_type


class UnsupportedRule(KioskError):
    """A transfer policy declares a rule this client cannot satisfy."""

    def __init__(self, rule: str, reason: str | None = None) -> None:
        message = f"Unsupported transfer policy rule {rule}"
        if reason:
            message += f": {reason}"
        super().__init__(message, subject=rule)
        self.rule = rule


class NoKiosk(KioskError):
    """Caller holds no KioskOwnerCap."""

    def __init__(self, owner: str, hint: str | None = None) -> None:
        message = f"No Kiosk found for {owner}"
        if hint:
            message += f"; {hint}"
        super().__init__(message, subject=owner)
        self.owner = owner


class KioskExists(KioskError):
    """Caller already owns a kiosk and asked to create another."""

    def __init__(self, owner: str, kiosk_id: str) -> None:
        super().__init__(f"Kiosk {kiosk_id} already exists for {owner}", subject=owner)
        self.kiosk_id = kiosk_id


class SubmissionError(KioskError):
    """The ledger rejected or failed to apply a transaction."""

    exit_code = 3

    def __init__(
        self,
        message: str,
        subject: str | None = None,
        effects: dict[str, Any] | None = None,
        errors: list[Any] | None = None,
    ) -> None:
        super().__init__(message, subject=subject)
        self.effects = effects or {}
        self.errors = list(errors or [])

    def __str__(self) -> str:
        if self.errors:
            return f"{self.message}: {'; '.join(str(err) for err in self.errors)}"
        return self.message
