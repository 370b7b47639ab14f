"""Lookup of the caller's KioskOwnerCap."""

from __future__ import annotations

import logging

from .errors import NoKiosk
from .identifiers import require_address
from .model import KIOSK_OWNER_CAP_TYPE, KioskOwnerCap
from .rpc_client import SuiRPCClient, ledger_read, response_data

logger = logging.getLogger(__name__)

CREATE_HINT = "use `new` to create one"


class CapabilityStore:
    """Locate the owner capability that authorizes kiosk mutations."""

    def __init__(self, rpc: SuiRPCClient) -> None:
        self.rpc = rpc

    def list_capabilities(self, owner: str) -> list[KioskOwnerCap]:
        owner = require_address(owner)
        with ledger_read(owner):
            entries = list(
                self.rpc.iter_owned_objects(
                    owner, struct_type=KIOSK_OWNER_CAP_TYPE, show_content=True
                )
            )
        caps = []
        for entry in entries:
            data = response_data(entry)
            if data is not None:
                caps.append(KioskOwnerCap.from_rpc(data))
        return caps

    def find_capability(self, owner: str, hint: str | None = CREATE_HINT) -> KioskOwnerCap:
        """Return the first KioskOwnerCap held by ``owner``.

        Raises :class:`NoKiosk` when the address holds none. When several are
        held the first one returned by the node is used.
        """

        caps = self.list_capabilities(owner)
        if not caps:
            raise NoKiosk(owner, hint)
        if len(caps) > 1:
            logger.debug(
                "%s holds %d KioskOwnerCaps; using %s for kiosk %s",
                owner,
                len(caps),
                caps[0].id,
                caps[0].kiosk_id,
            )
        return caps[0]
