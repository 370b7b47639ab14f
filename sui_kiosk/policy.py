"""Transfer policy discovery and selection."""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import NoPolicy
from .identifiers import normalize_address
from .model import TRANSFER_POLICY_CREATED_EVENT, TransferPolicy
from .rpc_client import SuiRPCClient, ledger_read, response_data

logger = logging.getLogger(__name__)


class PolicyResolver:
    """Find the TransferPolicy objects published for an asset type.

    Policies are announced by ``TransferPolicyCreated<T>`` events; the
    announced objects are then fetched to read their owner, rule set and
    balance. Results keep the event order because the first usable policy
    wins.
    """

    def __init__(self, rpc: SuiRPCClient) -> None:
        self.rpc = rpc

    def find_policies(self, asset_type: str) -> list[TransferPolicy]:
        with ledger_read(asset_type):
            events = self.rpc.query_events(f"{TRANSFER_POLICY_CREATED_EVENT}<{asset_type}>")
            policy_ids = []
            for event in events:
                policy_id = (event.get("parsedJson") or {}).get("id")
                if policy_id:
                    policy_ids.append(normalize_address(policy_id))
            if not policy_ids:
                return []
            responses = self.rpc.multi_get_objects(policy_ids)

        policies = []
        for policy_id, response in zip(policy_ids, responses):
            data = response_data(response)
            if data is None:
                logger.debug("Transfer policy %s no longer exists; skipping", policy_id)
                continue
            policies.append(TransferPolicy.from_rpc(data, asset_type))
        logger.debug("Found %d transfer policies for %s", len(policies), asset_type)
        return policies

    @staticmethod
    def select_policy(policies: Sequence[TransferPolicy], asset_type: str) -> TransferPolicy:
        if not policies:
            raise NoPolicy(asset_type)
        if len(policies) > 1:
            logger.debug(
                "%d transfer policies exist for %s; using %s",
                len(policies),
                asset_type,
                policies[0].id,
            )
        return policies[0]
