"""
Omen CPK SDK - Data Types

Call descriptors, transaction batches, market references and the typed
parameter structs of each user intent.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional

from .errors import PreconditionError


NATIVE_ADDRESS = "0x0000000000000000000000000000000000000000"

# Safe operation codes
CALL = 0
DELEGATE_CALL = 1


class ProxyStatus(Enum):
    """Deployment state of the user's proxy account"""
    NOT_DEPLOYED = "not_deployed"
    STALE = "stale"
    CURRENT = "current"


@dataclass(frozen=True)
class CallDescriptor:
    """
    One atomic sub-operation of a batch.

    Structure:
      - to: Target contract address
      - data: ABI-encoded calldata (empty for a plain value transfer)
      - value: Native currency attached to the call, in wei
      - operation: CALL or DELEGATE_CALL (as executed by the proxy)
      - name: Logical operation name ("approve", "buy", ...)
    """
    to: str
    data: bytes = b""
    value: int = 0
    operation: int = CALL
    name: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for logging / JSON output."""
        return {
            "name": self.name,
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": self.value,
            "operation": self.operation,
        }


@dataclass
class Step:
    """A batch step: included only when `include` holds at build time."""
    name: str
    include: bool
    build: Callable[[], CallDescriptor]


@dataclass
class TransactionBatch:
    """
    Ordered calls executed by the proxy as one atomic transaction.

    The batch is push-only while it is built, must hold at least one call
    when submitted, and can be submitted once.
    """
    calls: List[CallDescriptor] = field(default_factory=list)
    value: int = 0
    submitted: bool = False

    @classmethod
    def from_steps(cls, steps: List[Step], value: int = 0) -> "TransactionBatch":
        """Evaluate each step once, in order, keeping the included ones."""
        batch = cls(value=value)
        for step in steps:
            if step.include:
                batch.push(step.build())
        return batch

    def push(self, call: CallDescriptor) -> None:
        if self.submitted:
            raise PreconditionError("Batch already submitted")
        self.calls.append(call)

    def mark_submitted(self) -> None:
        if not self.calls:
            raise PreconditionError("Cannot submit an empty batch")
        if self.submitted:
            raise PreconditionError("Batch already submitted")
        self.submitted = True

    @property
    def names(self) -> List[str]:
        return [call.name for call in self.calls]

    def __len__(self) -> int:
        return len(self.calls)

    def __iter__(self) -> Iterator[CallDescriptor]:
        return iter(self.calls)

    def __getitem__(self, index: int) -> CallDescriptor:
        return self.calls[index]


@dataclass(frozen=True)
class Token:
    """ERC-20 token (or the native asset, at NATIVE_ADDRESS)"""
    address: str
    symbol: str = ""
    decimals: int = 18

    @property
    def is_native(self) -> bool:
        return self.address.lower() == NATIVE_ADDRESS


@dataclass(frozen=True)
class MarketReference:
    """
    Deployed market maker with its collateral and condition.

    Collateral and condition are resolved once (see
    StateQueryGateway.resolve_market) and never re-read.
    """
    address: str
    collateral: str
    condition_id: str


@dataclass
class Outcome:
    name: str
    probability: float


@dataclass
class MarketData:
    """Everything needed to create and fund a new market."""
    question: str
    outcomes: List[Outcome]
    category: str
    arbitrator: str
    collateral: Token
    funding: int
    spread: float                       # Fee in percent (e.g. 2.0)
    resolution: Optional[datetime] = None
    loaded_question_id: Optional[str] = None  # Reuse an existing Realitio question


@dataclass(frozen=True)
class ProtocolContracts:
    """Addresses of the protocol contracts on one network."""
    conditional_tokens: str
    market_maker_factory: str
    realitio: str
    oracle: str                         # Realitio -> ConditionalTokens proxy
    wrapped_native: Token               # Collateral used when funding natively


@dataclass
class Question:
    """Realitio question as needed to resolve its condition."""
    id: str
    template_id: int
    raw: str


# ═══════════════════════════════════════════════════════════════════════
# INTENT PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class BuyOutcomesParams:
    amount: int
    outcome_index: int
    market: MarketReference


@dataclass
class SellOutcomesParams:
    amount: int                         # Collateral to receive
    outcome_index: int
    market: MarketReference


@dataclass
class CreateMarketParams:
    market_data: MarketData
    salt_nonce: Optional[int] = None    # Random when not given


@dataclass
class AddFundingParams:
    amount: int
    collateral: Token
    market: MarketReference


@dataclass
class RemoveFundingParams:
    shares_to_burn: int
    amount_to_merge: int
    earnings: int
    outcomes_count: int
    market: MarketReference


@dataclass
class RedeemParams:
    question: Question
    num_outcomes: int
    earned_collateral: int
    market: MarketReference
    is_condition_resolved: Optional[bool] = None  # Queried when None


# ═══════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class TransactionResult:
    tx_hash: str
    receipt: Any
    batch: TransactionBatch


@dataclass
class MarketCreationResult(TransactionResult):
    market_address: str = ""
    condition_id: str = ""
    question_id: str = ""


@dataclass
class MarketCreationPlan:
    """Built (not yet submitted) market creation batch and its derived ids."""
    batch: TransactionBatch
    market_address: str
    condition_id: str
    question_id: str
