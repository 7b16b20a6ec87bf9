"""
Omen CPK SDK - Batch Orchestrator

Turns one user intent (buy, sell, create market, fund, unfund, redeem)
into a single atomic batch executed by the user's proxy account.

Every workflow runs the same four phases, once each:
    1. query   - read allowances, approvals, condition state, prices
    2. build   - keep the steps whose inclusion rule holds, in order
    3. submit  - hand the whole batch to the proxy in one transaction
    4. confirm - wait for inclusion (revert => nothing applied)

Any failure before phase 3 means nothing was sent.

Usage:
    orchestrator = await BatchOrchestrator.from_config(load_config())
    result = await orchestrator.buy_outcomes(BuyOutcomesParams(amount, 1, market))
"""

import logging
import secrets
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import (
    get_contract_address,
    get_realitio_timeout,
    get_token,
)
from .cpk_types import (
    AddFundingParams,
    BuyOutcomesParams,
    CreateMarketParams,
    MarketCreationPlan,
    MarketCreationResult,
    ProtocolContracts,
    ProxyStatus,
    RedeemParams,
    RemoveFundingParams,
    SellOutcomesParams,
    Step,
    TransactionBatch,
    TransactionResult,
)
from .encoder import CallEncoder
from .errors import MarketAddressMismatchError, PreconditionError
from .gateway import StateQueryGateway
from .identifiers import build_question_text, get_condition_id, get_question_id
from .market_math import calc_distribution_hint, spread_to_fee, validate_probabilities
from .proxy_account import ProxyAccount
from .rpc_client import ChainClient

DEFAULT_TARGET_IMPLEMENTATION = "0x34CfAC646f301356fAa8B21e94227e3583Fe3F5F"


def _require_positive(value: int, what: str) -> None:
    if value is None or value <= 0:
        raise PreconditionError(f"{what} must be positive, got {value}")


def _require_non_negative(value: int, what: str) -> None:
    if value is None or value < 0:
        raise PreconditionError(f"{what} must not be negative, got {value}")


class BatchOrchestrator:
    """
    Builds and submits one batch per intent.

    Collaborators:
        proxy   - ProxyAccount (address, owner, execute, await_confirmation)
        gateway - StateQueryGateway (point-in-time chain reads)
        contracts - ProtocolContracts of the connected network

    State is never cached between workflows: each one re-runs its query
    phase, so retrying a failed intent from scratch is always safe.
    """

    def __init__(self, proxy, gateway, contracts: ProtocolContracts,
                 realitio_timeout: int = 86400,
                 target_implementation: str = DEFAULT_TARGET_IMPLEMENTATION,
                 template_id: int = 2,
                 language: str = "en_US",
                 distribution_hint: Callable[[Sequence[float]], List[int]] = calc_distribution_hint,
                 salt_source: Callable[[], int] = lambda: secrets.randbits(64),
                 logger: Optional[logging.Logger] = None):
        self.proxy = proxy
        self.gateway = gateway
        self.contracts = contracts
        self.realitio_timeout = realitio_timeout
        self.target_implementation = target_implementation
        self.template_id = template_id
        self.language = language
        self.distribution_hint = distribution_hint
        self.salt_source = salt_source
        self.log = logger or logging.getLogger("omen_cpk.orchestrator")

    @classmethod
    async def from_config(cls, config: Dict[str, Any],
                          logger: Optional[logging.Logger] = None) -> "BatchOrchestrator":
        """Wire chain client, proxy account and gateway from a config dict."""
        chain = ChainClient.from_config(config)
        chain_id = await chain.get_chain_id()

        contracts = ProtocolContracts(
            conditional_tokens=get_contract_address(config, chain_id, "conditionalTokens"),
            market_maker_factory=get_contract_address(config, chain_id, "marketMakerFactory"),
            realitio=get_contract_address(config, chain_id, "realitio"),
            oracle=get_contract_address(config, chain_id, "oracle"),
            wrapped_native=get_token(config, chain_id, "weth"),
        )
        proxy = await ProxyAccount.from_config(chain, config)
        gateway = StateQueryGateway(chain, contracts.conditional_tokens,
                                    contracts.market_maker_factory)

        return cls(
            proxy, gateway, contracts,
            realitio_timeout=get_realitio_timeout(config, chain_id),
            target_implementation=config.get("target_safe_implementation",
                                             DEFAULT_TARGET_IMPLEMENTATION),
            template_id=int(config.get("single_select_template_id", 2)),
            language=config.get("question_language", "en_US"),
            logger=logger,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # SUBMISSION
    # ═══════════════════════════════════════════════════════════════════════

    async def _submit(self, batch: TransactionBatch) -> TransactionResult:
        """Send `batch` once through the proxy and wait for inclusion."""
        batch.mark_submitted()
        self.log.debug(f"Submitting batch: {batch.names}")
        tx_hash = await self.proxy.execute(batch.calls, batch.value)
        self.log.info(f"Transaction hash: {tx_hash}")
        receipt = await self.proxy.await_confirmation(tx_hash)
        return TransactionResult(tx_hash=tx_hash, receipt=receipt, batch=batch)

    # ═══════════════════════════════════════════════════════════════════════
    # BUY / SELL
    # ═══════════════════════════════════════════════════════════════════════

    async def plan_buy(self, params: BuyOutcomesParams) -> TransactionBatch:
        """approve? -> transferFrom -> buy"""
        _require_positive(params.amount, "Buy amount")
        _require_non_negative(params.outcome_index, "Outcome index")
        market = params.market

        cpk_address = await self.proxy.get_address()
        has_allowance = await self.gateway.has_enough_allowance(
            cpk_address, market.address, market.collateral, params.amount
        )

        # Read last so the guard reflects the price at build time
        min_outcome_tokens = await self.gateway.calc_buy_amount(
            market.address, params.amount, params.outcome_index
        )
        self.log.info(f"Min outcome tokens to buy: {min_outcome_tokens}")

        return TransactionBatch.from_steps([
            Step("approve", not has_allowance,
                 lambda: CallEncoder.approve_unlimited(market.collateral, market.address)),
            Step("transferFrom", True,
                 lambda: CallEncoder.transfer_from(market.collateral, self.proxy.owner,
                                                   cpk_address, params.amount)),
            Step("buy", True,
                 lambda: CallEncoder.buy(market.address, params.amount,
                                         params.outcome_index, min_outcome_tokens)),
        ])

    async def buy_outcomes(self, params: BuyOutcomesParams) -> TransactionResult:
        try:
            batch = await self.plan_buy(params)
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"There was an error buying '{params.amount}' of shares: {e}")
            raise

    async def plan_sell(self, params: SellOutcomesParams) -> TransactionBatch:
        """setApprovalForAll? -> sell -> transfer"""
        _require_positive(params.amount, "Sell amount")
        _require_non_negative(params.outcome_index, "Outcome index")
        market = params.market

        cpk_address = await self.proxy.get_address()
        is_approved = await self.gateway.is_approved_for_all(cpk_address, market.address)

        max_outcome_tokens = await self.gateway.calc_sell_amount(
            market.address, params.amount, params.outcome_index
        )
        self.log.info(f"Max outcome tokens to sell: {max_outcome_tokens}")

        return TransactionBatch.from_steps([
            Step("setApprovalForAll", not is_approved,
                 lambda: CallEncoder.set_approval_for_all(self.contracts.conditional_tokens,
                                                          market.address)),
            Step("sell", True,
                 lambda: CallEncoder.sell(market.address, params.amount,
                                          params.outcome_index, max_outcome_tokens)),
            Step("transfer", True,
                 lambda: CallEncoder.transfer(market.collateral, self.proxy.owner, params.amount)),
        ])

    async def sell_outcomes(self, params: SellOutcomesParams) -> TransactionResult:
        try:
            batch = await self.plan_sell(params)
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"There was an error selling '{params.amount}' of shares: {e}")
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # MARKET CREATION
    # ═══════════════════════════════════════════════════════════════════════

    async def plan_create_market(self, params: CreateMarketParams) -> MarketCreationPlan:
        """wrap? -> askQuestion? -> prepareCondition? -> approve -> transferFrom? -> createMarketMaker"""
        data = params.market_data
        if data.resolution is None:
            raise PreconditionError("Resolution time was not specified")
        probabilities = [outcome.probability for outcome in data.outcomes]
        validate_probabilities(probabilities)
        _require_positive(data.funding, "Funding")

        cpk_address = await self.proxy.get_address()
        owner = self.proxy.owner
        contracts = self.contracts

        # Step 1: native funding is wrapped and the wrapped token used from then on
        is_native = data.collateral.is_native
        collateral = contracts.wrapped_native.address if is_native else data.collateral.address

        # Step 2: question
        opening_ts = int(data.resolution.timestamp())
        question_text = build_question_text(
            data.question, [outcome.name for outcome in data.outcomes],
            data.category, self.language,
        )
        if data.loaded_question_id:
            question_id = data.loaded_question_id
        else:
            question_id = get_question_id(
                self.template_id, opening_ts, question_text,
                data.arbitrator, self.realitio_timeout, cpk_address,
            )
        self.log.info(f"QuestionID {question_id}")

        # Step 3-4: condition; only an existing question can have one already
        outcome_count = len(data.outcomes)
        condition_id = get_condition_id(contracts.oracle, question_id, outcome_count)
        condition_exists = False
        if data.loaded_question_id:
            condition_exists = await self.gateway.condition_exists(condition_id)
        self.log.info(f"ConditionID: {condition_id}")

        # Step 7: salt and predicted market address
        salt_nonce = params.salt_nonce if params.salt_nonce is not None else self.salt_source()
        fee = spread_to_fee(data.spread)
        market_address = await self.gateway.predict_market_maker_address(
            salt_nonce, condition_id, collateral, cpk_address, fee
        )
        self.log.info(f"Predicted market maker address: {market_address}")
        distribution_hint = self.distribution_hint(probabilities)

        batch = TransactionBatch.from_steps([
            Step("wrap", is_native,
                 lambda: CallEncoder.wrap(collateral, data.funding)),
            Step("askQuestion", not data.loaded_question_id,
                 lambda: CallEncoder.ask_question(contracts.realitio, self.template_id,
                                                  question_text, data.arbitrator,
                                                  self.realitio_timeout, opening_ts)),
            Step("prepareCondition", not condition_exists,
                 lambda: CallEncoder.prepare_condition(contracts.conditional_tokens,
                                                       contracts.oracle, question_id,
                                                       outcome_count)),
            Step("approve", True,
                 lambda: CallEncoder.approve_unlimited(collateral, contracts.market_maker_factory)),
            Step("transferFrom", not is_native,
                 lambda: CallEncoder.transfer_from(collateral, owner, cpk_address, data.funding)),
            Step("createMarketMaker", True,
                 lambda: CallEncoder.create_market_maker(
                     contracts.market_maker_factory, salt_nonce,
                     contracts.conditional_tokens, collateral, condition_id,
                     fee, data.funding, distribution_hint,
                 )),
        ], value=data.funding if is_native else 0)

        return MarketCreationPlan(
            batch=batch,
            market_address=market_address,
            condition_id=condition_id,
            question_id=question_id,
        )

    async def create_market(self, params: CreateMarketParams) -> MarketCreationResult:
        """
        Ask the question, prepare the condition and deploy a funded market.

        Returns:
            MarketCreationResult with the market address predicted before
            submission, verified to hold code after confirmation.

        Raises:
            MarketAddressMismatchError: nothing was deployed at the predicted
                address (factory salt/init scheme diverged)
        """
        try:
            plan = await self.plan_create_market(params)
            result = await self._submit(plan.batch)

            if not await self.gateway.is_contract(plan.market_address):
                raise MarketAddressMismatchError(plan.market_address, result.tx_hash)
            self.log.info(f"Market created at {plan.market_address}")

            return MarketCreationResult(
                tx_hash=result.tx_hash,
                receipt=result.receipt,
                batch=result.batch,
                market_address=plan.market_address,
                condition_id=plan.condition_id,
                question_id=plan.question_id,
            )
        except Exception as e:
            data = params.market_data
            self.log.error(f"There was an error creating the market maker with funding "
                           f"'{data.funding}' for question '{data.loaded_question_id or data.question}': {e}")
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # LIQUIDITY
    # ═══════════════════════════════════════════════════════════════════════

    async def plan_add_funding(self, params: AddFundingParams) -> TransactionBatch:
        """wrap? -> approve? -> transferFrom? -> addFunding"""
        _require_positive(params.amount, "Funding amount")
        market = params.market

        cpk_address = await self.proxy.get_address()
        is_native = params.collateral.is_native
        collateral = (self.contracts.wrapped_native.address if is_native
                      else params.collateral.address)

        has_allowance = await self.gateway.has_enough_allowance(
            cpk_address, market.address, collateral, params.amount
        )

        return TransactionBatch.from_steps([
            Step("wrap", is_native,
                 lambda: CallEncoder.wrap(collateral, params.amount)),
            Step("approve", not has_allowance,
                 lambda: CallEncoder.approve_unlimited(collateral, market.address)),
            Step("transferFrom", not is_native,
                 lambda: CallEncoder.transfer_from(collateral, self.proxy.owner,
                                                   cpk_address, params.amount)),
            Step("addFunding", True,
                 lambda: CallEncoder.add_funding(market.address, params.amount)),
        ], value=params.amount if is_native else 0)

    async def add_funding(self, params: AddFundingParams) -> TransactionResult:
        try:
            batch = await self.plan_add_funding(params)
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"There was an error adding an amount of '{params.amount}' "
                           f"for funding: {e}")
            raise

    async def plan_remove_funding(self, params: RemoveFundingParams) -> TransactionBatch:
        """removeFunding -> mergePositions -> transfer (always all three)"""
        _require_positive(params.shares_to_burn, "Shares to burn")
        _require_non_negative(params.amount_to_merge, "Amount to merge")
        _require_non_negative(params.earnings, "Earnings")
        market = params.market

        collateral_out = params.amount_to_merge + params.earnings

        return TransactionBatch.from_steps([
            Step("removeFunding", True,
                 lambda: CallEncoder.remove_funding(market.address, params.shares_to_burn)),
            Step("mergePositions", True,
                 lambda: CallEncoder.merge_positions(self.contracts.conditional_tokens,
                                                     market.collateral, market.condition_id,
                                                     params.outcomes_count,
                                                     params.amount_to_merge)),
            Step("transfer", True,
                 lambda: CallEncoder.transfer(market.collateral, self.proxy.owner,
                                              collateral_out)),
        ])

    async def remove_funding(self, params: RemoveFundingParams) -> TransactionResult:
        try:
            batch = await self.plan_remove_funding(params)
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"There was an error removing an amount of "
                           f"'{params.shares_to_burn}' for funding: {e}")
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # REDEMPTION
    # ═══════════════════════════════════════════════════════════════════════

    async def plan_redeem(self, params: RedeemParams) -> TransactionBatch:
        """resolveCondition? -> redeemPositions -> transfer?"""
        _require_non_negative(params.earned_collateral, "Earned collateral")
        market = params.market
        question = params.question

        is_resolved = params.is_condition_resolved
        if is_resolved is None:
            is_resolved = await self.gateway.is_condition_resolved(market.condition_id)

        return TransactionBatch.from_steps([
            Step("resolveCondition", not is_resolved,
                 lambda: CallEncoder.resolve_condition(self.contracts.oracle, question.id,
                                                       question.template_id, question.raw,
                                                       params.num_outcomes)),
            Step("redeemPositions", True,
                 lambda: CallEncoder.redeem_positions(self.contracts.conditional_tokens,
                                                      market.collateral, market.condition_id,
                                                      params.num_outcomes)),
            Step("transfer", params.earned_collateral > 0,
                 lambda: CallEncoder.transfer(market.collateral, self.proxy.owner,
                                              params.earned_collateral)),
        ])

    async def redeem_positions(self, params: RedeemParams) -> TransactionResult:
        try:
            batch = await self.plan_redeem(params)
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"Error trying to resolve condition or redeem for question id "
                           f"'{params.question.id}': {e}")
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # PROXY UPGRADE
    # ═══════════════════════════════════════════════════════════════════════

    async def get_proxy_status(self) -> ProxyStatus:
        return await self.proxy.get_status(self.target_implementation)

    async def is_up_to_date(self) -> bool:
        """False when the proxy is not deployed or runs another implementation."""
        return await self.get_proxy_status() == ProxyStatus.CURRENT

    async def plan_upgrade(self) -> TransactionBatch:
        cpk_address = await self.proxy.get_address()
        return TransactionBatch.from_steps([
            Step("changeMasterCopy", True,
                 lambda: CallEncoder.change_master_copy(cpk_address, self.target_implementation)),
        ])

    async def upgrade_proxy_implementation(self) -> TransactionResult:
        """Point the proxy at the target implementation (single-call batch)."""
        try:
            batch = await self.plan_upgrade()
            return await self._submit(batch)
        except Exception as e:
            self.log.error(f"Error trying to upgrade proxy to "
                           f"'{self.target_implementation}': {e}")
            raise
