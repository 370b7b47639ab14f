"""Sui Kiosk marketplace client package."""

from .capability import CapabilityStore
from .config import ConfigurationError, KioskConfig, load_config
from .errors import (
    InvalidInput,
    KioskError,
    KioskExists,
    NoKiosk,
    NoPolicy,
    NotFound,
    NotInKiosk,
    ResolutionError,
    SubmissionError,
    UnsupportedRule,
)
from .ownership import OwnershipResolver
from .policy import PolicyResolver
from .rpc_client import SuiRPCClient
from .rules import PurchaseContext, RuleEngine, ToAddress, ToKiosk
from .transaction import TransactionPlan
from .tx_builder import ExecutionResult, TransactionBuilder, TransactionBundle
from .workflows import KioskWorkflows

__all__ = [
    "CapabilityStore",
    "ConfigurationError",
    "ExecutionResult",
    "InvalidInput",
    "KioskConfig",
    "KioskError",
    "KioskExists",
    "KioskWorkflows",
    "NoKiosk",
    "NoPolicy",
    "NotFound",
    "NotInKiosk",
    "OwnershipResolver",
    "PolicyResolver",
    "PurchaseContext",
    "ResolutionError",
    "RuleEngine",
    "SubmissionError",
    "SuiRPCClient",
    "ToAddress",
    "ToKiosk",
    "TransactionBuilder",
    "TransactionBundle",
    "TransactionPlan",
    "UnsupportedRule",
    "load_config",
]
