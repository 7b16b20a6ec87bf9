"""
Omen CPK SDK - State Query Gateway

Read-only queries against ConditionalTokens, the collateral tokens and the
market maker contracts. Each query is independent and idempotent; transport
failures surface as StateQueryError, missing conditions as "not found"
results (False / None).
"""

import logging
from typing import Optional

from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from .cpk_types import MarketReference
from .errors import StateQueryError
from .identifiers import predict_market_maker_address, to_bytes32
from .rpc_client import ChainClient

log = logging.getLogger("omen_cpk.gateway")

# Winning outcome of a condition resolved as invalid (equal payouts)
INVALID_OUTCOME = -1

ERC20_ABI = [
    {"name": "allowance", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
     "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "balanceOf", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "account", "type": "address"}],
     "outputs": [{"name": "", "type": "uint256"}]},
]

CONDITIONAL_TOKENS_ABI = [
    {"name": "isApprovedForAll", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "owner", "type": "address"}, {"name": "operator", "type": "address"}],
     "outputs": [{"name": "", "type": "bool"}]},
    {"name": "getOutcomeSlotCount", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "conditionId", "type": "bytes32"}],
     "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "payoutDenominator", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "", "type": "bytes32"}],
     "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "payoutNumerators", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "", "type": "bytes32"}, {"name": "", "type": "uint256"}],
     "outputs": [{"name": "", "type": "uint256"}]},
]

MARKET_MAKER_ABI = [
    {"name": "collateralToken", "type": "function", "stateMutability": "view",
     "inputs": [], "outputs": [{"name": "", "type": "address"}]},
    {"name": "conditionIds", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "", "type": "uint256"}], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "calcBuyAmount", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "investmentAmount", "type": "uint256"}, {"name": "outcomeIndex", "type": "uint256"}],
     "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "calcSellAmount", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "returnAmount", "type": "uint256"}, {"name": "outcomeIndex", "type": "uint256"}],
     "outputs": [{"name": "", "type": "uint256"}]},
]

MARKET_MAKER_FACTORY_ABI = [
    {"name": "implementationMaster", "type": "function", "stateMutability": "view",
     "inputs": [], "outputs": [{"name": "", "type": "address"}]},
]


class StateQueryGateway:
    """
    Point-in-time reads used to decide which steps a batch needs.

    Usage:
        gateway = StateQueryGateway(chain, conditional_tokens, market_maker_factory)

        allowance = await gateway.get_allowance(cpk_address, market, dai)
        exists = await gateway.condition_exists(condition_id)
    """

    def __init__(self, chain: ChainClient, conditional_tokens: str, market_maker_factory: str):
        """
        Args:
            chain: Connected chain client
            conditional_tokens: ConditionalTokens contract address
            market_maker_factory: FPMMDeterministicFactory contract address
        """
        self.chain = chain
        self.conditional_tokens_address = conditional_tokens
        self.market_maker_factory_address = market_maker_factory
        self.conditional_tokens = chain.contract(conditional_tokens, CONDITIONAL_TOKENS_ABI)
        self.factory = chain.contract(market_maker_factory, MARKET_MAKER_FACTORY_ABI)

    # ═══════════════════════════════════════════════════════════════════════
    # COLLATERAL (ERC-20)
    # ═══════════════════════════════════════════════════════════════════════

    async def get_allowance(self, owner: str, spender: str, token: str) -> int:
        erc20 = self.chain.contract(token, ERC20_ABI)
        return await self.chain.call(erc20.functions.allowance(owner, spender),
                                     f"allowance({owner}, {spender})")

    async def has_enough_allowance(self, owner: str, spender: str, token: str, amount: int) -> bool:
        return await self.get_allowance(owner, spender, token) >= amount

    async def get_balance(self, owner: str, token: str) -> int:
        erc20 = self.chain.contract(token, ERC20_ABI)
        return await self.chain.call(erc20.functions.balanceOf(owner), f"balanceOf({owner})")

    # ═══════════════════════════════════════════════════════════════════════
    # CONDITIONAL TOKENS
    # ═══════════════════════════════════════════════════════════════════════

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return await self.chain.call(
            self.conditional_tokens.functions.isApprovedForAll(owner, operator),
            f"isApprovedForAll({owner}, {operator})",
        )

    async def get_outcome_slot_count(self, condition_id: str) -> int:
        return await self.chain.call(
            self.conditional_tokens.functions.getOutcomeSlotCount(to_bytes32(condition_id)),
            f"getOutcomeSlotCount({condition_id})",
        )

    async def condition_exists(self, condition_id: str) -> bool:
        """A condition exists once prepared: its outcome slot count is non-zero."""
        return await self.get_outcome_slot_count(condition_id) > 0

    async def is_condition_resolved(self, condition_id: str) -> bool:
        denominator = await self.chain.call(
            self.conditional_tokens.functions.payoutDenominator(to_bytes32(condition_id)),
            f"payoutDenominator({condition_id})",
        )
        return denominator != 0

    async def get_winning_outcome(self, condition_id: str) -> Optional[int]:
        """
        Index of the winning outcome.

        Returns:
            Outcome index, INVALID_OUTCOME if all payouts are equal,
            or None if the condition is unresolved or does not exist
        """
        slot_count = await self.get_outcome_slot_count(condition_id)
        if slot_count == 0 or not await self.is_condition_resolved(condition_id):
            return None

        condition = to_bytes32(condition_id)
        payouts = []
        for index in range(slot_count):
            payouts.append(await self.chain.call(
                self.conditional_tokens.functions.payoutNumerators(condition, index),
                f"payoutNumerators({condition_id}, {index})",
            ))
        if len(set(payouts)) == 1:
            return INVALID_OUTCOME
        return payouts.index(max(payouts))

    # ═══════════════════════════════════════════════════════════════════════
    # MARKET MAKER
    # ═══════════════════════════════════════════════════════════════════════

    async def get_collateral_token(self, market: str) -> str:
        fpmm = self.chain.contract(market, MARKET_MAKER_ABI)
        return await self.chain.call(fpmm.functions.collateralToken(), f"collateralToken({market})")

    async def get_condition_id(self, market: str) -> str:
        fpmm = self.chain.contract(market, MARKET_MAKER_ABI)
        condition = await self.chain.call(fpmm.functions.conditionIds(0), f"conditionIds({market})")
        return "0x" + bytes(condition).hex()

    async def resolve_market(self, market: str) -> Optional[MarketReference]:
        """
        Read a market's collateral and condition once.

        Returns:
            MarketReference, or None if no market maker lives at `market`
        """
        try:
            collateral = await self.get_collateral_token(market)
            condition_id = await self.get_condition_id(market)
        except StateQueryError as e:
            if not isinstance(e.cause, (BadFunctionCallOutput, ContractLogicError)):
                raise
            log.warning(f"No market maker found at {market}")
            return None
        return MarketReference(address=market, collateral=collateral, condition_id=condition_id)

    async def calc_buy_amount(self, market: str, amount: int, outcome_index: int) -> int:
        """Outcome tokens `amount` of collateral buys right now."""
        fpmm = self.chain.contract(market, MARKET_MAKER_ABI)
        return await self.chain.call(fpmm.functions.calcBuyAmount(amount, outcome_index),
                                     f"calcBuyAmount({amount}, {outcome_index})")

    async def calc_sell_amount(self, market: str, amount: int, outcome_index: int) -> int:
        """Outcome tokens that must be sold right now to return `amount` of collateral."""
        fpmm = self.chain.contract(market, MARKET_MAKER_ABI)
        return await self.chain.call(fpmm.functions.calcSellAmount(amount, outcome_index),
                                     f"calcSellAmount({amount}, {outcome_index})")

    async def predict_market_maker_address(self, salt_nonce: int, condition_id: str,
                                           collateral: str, creator: str, fee: int) -> str:
        """Address the factory will deploy `creator`'s market to."""
        implementation = await self.chain.call(self.factory.functions.implementationMaster(),
                                               "implementationMaster")
        return predict_market_maker_address(
            factory=self.market_maker_factory_address,
            implementation_master=implementation,
            salt_nonce=salt_nonce,
            conditional_tokens=self.conditional_tokens_address,
            collateral=collateral,
            condition_id=condition_id,
            creator=creator,
            fee=fee,
        )

    async def is_contract(self, address: str) -> bool:
        return len(await self.chain.get_code(address)) > 0
