"""
Omen CPK SDK

Omen / Gnosis conditional-token prediction markets through a Contract
Proxy Kit (CPK) account: every user intent is executed as one atomic
batch by the user's proxy.

Architecture:
  - StateQueryGateway reads chain state (allowances, approvals, conditions)
  - CallEncoder turns each logical operation into a CallDescriptor
  - BatchOrchestrator decides which calls an intent needs, in which order
  - ProxyAccount submits the batch (deploying the proxy on first use)

Usage:
    from omen_cpk import BatchOrchestrator, BuyOutcomesParams, load_config

    orchestrator = await BatchOrchestrator.from_config(load_config())
    market = await orchestrator.gateway.resolve_market("0x...")
    result = await orchestrator.buy_outcomes(BuyOutcomesParams(10 ** 18, 1, market))
"""

from .cpk_types import (
    AddFundingParams,
    BuyOutcomesParams,
    CallDescriptor,
    CreateMarketParams,
    MarketCreationResult,
    MarketData,
    MarketReference,
    Outcome,
    ProtocolContracts,
    ProxyStatus,
    Question,
    RedeemParams,
    RemoveFundingParams,
    SellOutcomesParams,
    Token,
    TransactionBatch,
    TransactionResult,
)
from .errors import (
    CPKError,
    ConfirmationTimeoutError,
    ExecutionRevertedError,
    MarketAddressMismatchError,
    PreconditionError,
    StateQueryError,
    SubmissionError,
)
from .config import load_config
from .encoder import CallEncoder
from .gateway import StateQueryGateway
from .identifiers import (
    get_collection_id,
    get_condition_id,
    get_position_id,
    get_question_id,
    predict_market_maker_address,
)
from .orchestrator import BatchOrchestrator
from .proxy_account import ProxyAccount
from .rpc_client import ChainClient

__version__ = "0.1.0"
__all__ = [
    # Types
    "CallDescriptor", "TransactionBatch", "Token", "MarketReference", "Outcome",
    "MarketData", "Question", "ProtocolContracts", "ProxyStatus",
    "BuyOutcomesParams", "SellOutcomesParams", "CreateMarketParams",
    "AddFundingParams", "RemoveFundingParams", "RedeemParams",
    "TransactionResult", "MarketCreationResult",
    # Errors
    "CPKError", "PreconditionError", "StateQueryError", "SubmissionError",
    "ExecutionRevertedError", "ConfirmationTimeoutError", "MarketAddressMismatchError",
    # Core
    "ChainClient", "StateQueryGateway", "CallEncoder", "ProxyAccount",
    "BatchOrchestrator", "load_config",
    # Identifiers
    "get_condition_id", "get_collection_id", "get_position_id",
    "get_question_id", "predict_market_maker_address",
]
