"""Shared fixtures: in-memory doubles of the proxy account and the gateway."""

import asyncio
from typing import Any, Dict, List, Optional, Set

import pytest
from eth_abi import decode

from omen_cpk.cpk_types import MarketReference, ProtocolContracts, ProxyStatus, Token
from omen_cpk.errors import StateQueryError
from omen_cpk.orchestrator import BatchOrchestrator

OWNER = "0x" + "aa" * 20
CPK_ADDRESS = "0x" + "bb" * 20
MARKET = "0x" + "cc" * 20
DAI = "0x" + "dd" * 20
WETH = "0x" + "ee" * 20
CONDITIONAL_TOKENS = "0x" + "c1" * 20
FACTORY = "0x" + "f1" * 20
REALITIO = "0x" + "e1" * 20
ORACLE = "0x" + "01" * 20
ARBITRATOR = "0x" + "a1" * 20
PREDICTED_MARKET = "0x" + "9f" * 20
TARGET_IMPLEMENTATION = "0x34CfAC646f301356fAa8B21e94227e3583Fe3F5F"
CONDITION_ID = "0x" + "12" * 32


def run(coro):
    return asyncio.run(coro)


def decode_args(call, types: List[str]) -> tuple:
    """Decode a CallDescriptor's arguments (after the 4-byte selector)."""
    return decode(types, call.data[4:])


class FakeProxy:
    """ProxyAccount double: records submissions instead of sending them."""

    def __init__(self, status: ProxyStatus = ProxyStatus.CURRENT):
        self.owner = OWNER
        self.address = CPK_ADDRESS
        self.status = status
        self.submissions: List[tuple] = []
        self.execute_error: Optional[Exception] = None
        self.confirmation_error: Optional[Exception] = None

    async def get_address(self) -> str:
        return self.address

    async def get_status(self, target_implementation: str) -> ProxyStatus:
        return self.status

    async def execute(self, calls, value: int = 0) -> str:
        if self.execute_error:
            raise self.execute_error
        self.submissions.append((list(calls), value))
        return "0x" + "ab" * 32

    async def await_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        if self.confirmation_error:
            raise self.confirmation_error
        return {"status": 1, "blockNumber": 123, "transactionHash": tx_hash}


class FakeGateway:
    """StateQueryGateway double with settable chain state."""

    def __init__(self):
        self.allowance = 0
        self.approved_for_all = False
        self.condition_exists_result = False
        self.condition_resolved = False
        self.buy_amount = 95
        self.sell_amount = 120
        self.predicted_address = PREDICTED_MARKET
        self.deployed = True
        self.fail_on: Set[str] = set()
        self.queries: List[str] = []
        self.predict_args: Optional[tuple] = None

    def _record(self, name: str) -> None:
        self.queries.append(name)
        if name in self.fail_on:
            raise StateQueryError(name, ConnectionError("connection refused"))

    async def has_enough_allowance(self, owner, spender, token, amount) -> bool:
        self._record("has_enough_allowance")
        return self.allowance >= amount

    async def is_approved_for_all(self, owner, operator) -> bool:
        self._record("is_approved_for_all")
        return self.approved_for_all

    async def condition_exists(self, condition_id) -> bool:
        self._record("condition_exists")
        return self.condition_exists_result

    async def is_condition_resolved(self, condition_id) -> bool:
        self._record("is_condition_resolved")
        return self.condition_resolved

    async def calc_buy_amount(self, market, amount, outcome_index) -> int:
        self._record("calc_buy_amount")
        return self.buy_amount

    async def calc_sell_amount(self, market, amount, outcome_index) -> int:
        self._record("calc_sell_amount")
        return self.sell_amount

    async def predict_market_maker_address(self, salt_nonce, condition_id, collateral,
                                           creator, fee) -> str:
        self._record("predict_market_maker_address")
        self.predict_args = (salt_nonce, condition_id, collateral, creator, fee)
        return self.predicted_address

    async def is_contract(self, address) -> bool:
        self._record("is_contract")
        return self.deployed


@pytest.fixture
def contracts() -> ProtocolContracts:
    return ProtocolContracts(
        conditional_tokens=CONDITIONAL_TOKENS,
        market_maker_factory=FACTORY,
        realitio=REALITIO,
        oracle=ORACLE,
        wrapped_native=Token(address=WETH, symbol="WETH"),
    )


@pytest.fixture
def market() -> MarketReference:
    return MarketReference(address=MARKET, collateral=DAI, condition_id=CONDITION_ID)


@pytest.fixture
def proxy() -> FakeProxy:
    return FakeProxy()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(proxy, gateway, contracts) -> BatchOrchestrator:
    return BatchOrchestrator(
        proxy, gateway, contracts,
        realitio_timeout=86400,
        target_implementation=TARGET_IMPLEMENTATION,
        salt_source=lambda: 42,
    )


class FakeCall:
    """A bound contract function: what `contract.functions.x(*args)` returns."""

    def __init__(self, address: str, name: str, args: tuple):
        self.address = address
        self.name = name
        self.args = args


class FakeFunctions:

    def __init__(self, address: str):
        self._address = address

    def __getattr__(self, name: str):
        return lambda *args: FakeCall(self._address, name, args)


class FakeContract:

    def __init__(self, address: str):
        self.address = address
        self.functions = FakeFunctions(address)


class FakeChain:
    """
    ChainClient double.

    `responses` maps a contract function name to its return value, an
    exception to raise, or a callable receiving the call arguments.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.code: Dict[str, bytes] = {}
        self.sent: List[tuple] = []
        self.calls: List[FakeCall] = []
        self.receipt: Dict[str, Any] = {"status": 1, "blockNumber": 1, "logs": []}
        self.reason: Optional[str] = None
        self.address = OWNER

    def contract(self, address: str, abi: list) -> FakeContract:
        return FakeContract(address)

    async def call(self, contract_fn: FakeCall, label: str) -> Any:
        self.calls.append(contract_fn)
        value = self.responses[contract_fn.name]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(*contract_fn.args)
        return value

    async def get_chain_id(self) -> int:
        return 1

    async def get_code(self, address: str) -> bytes:
        return self.code.get(address.lower(), b"")

    async def send_transaction(self, contract_fn: FakeCall, value: int = 0) -> str:
        self.sent.append((contract_fn, value))
        return "0x" + "ab" * 32

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300) -> Dict[str, Any]:
        return self.receipt

    async def revert_reason(self, tx_hash: str, block_number: int) -> Optional[str]:
        return self.reason


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
