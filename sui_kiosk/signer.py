"""Signers that submit built transaction bundles.

Key material never passes through this package. :class:`SuiCliSigner`
delegates signing to the ``sui`` binary, which reads its own keystore and
active address, much like a node wallet signs raw transactions on request.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import TYPE_CHECKING, Any, Callable, Protocol

from .config import ConfigurationError
from .errors import SubmissionError
from .identifiers import is_valid_address, normalize_address

if TYPE_CHECKING:  # pragma: no cover
    from .tx_builder import TransactionBundle

logger = logging.getLogger(__name__)


class Signer(Protocol):
    def get_address(self) -> str:
        ...

    def execute(self, bundle: "TransactionBundle", *, dry_run: bool = False) -> dict[str, Any]:
        ...


class SuiCliSigner:
    """Sign and execute programmable transactions with ``sui client ptb``."""

    def __init__(
        self,
        binary: str = "sui",
        client_config: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.binary = binary
        self.client_config = client_config
        self._runner = runner
        self._address: str | None = None

    def _client_args(self, *args: str) -> list[str]:
        command = [self.binary, "client"]
        if self.client_config:
            command += ["--client.config", self.client_config]
        return command + list(args)

    def _run(self, command: list[str]) -> subprocess.CompletedProcess:
        logger.debug("Running %s", " ".join(command))
        try:
            return self._runner(command, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"Sui binary {self.binary!r} not found; install the Sui CLI or set SUI_KIOSK_SUI_BINARY"
            ) from exc

    def get_address(self) -> str:
        if self._address is None:
            result = self._run(self._client_args("active-address"))
            address = (result.stdout or "").strip()
            if result.returncode != 0 or not is_valid_address(address):
                raise ConfigurationError(
                    "Could not read the active address from the Sui CLI; run `sui client` to set up a keystore. "
                    + (result.stderr or "").strip()
                )
            self._address = normalize_address(address)
        return self._address

    def execute(self, bundle: "TransactionBundle", *, dry_run: bool = False) -> dict[str, Any]:
        args = ["ptb", *bundle.commands, "--gas-budget", str(bundle.gas_budget)]
        if dry_run:
            args.append("--dry-run")
        args.append("--json")
        result = self._run(self._client_args(*args))
        try:
            payload = json.loads(result.stdout)
        except (TypeError, ValueError) as exc:
            raise SubmissionError(
                "Sui CLI did not return a transaction result",
                errors=[(result.stderr or result.stdout or "").strip() or f"exit code {result.returncode}"],
            ) from exc
        if not isinstance(payload, dict):
            raise SubmissionError("Sui CLI returned an unexpected result", errors=[payload])
        return payload
