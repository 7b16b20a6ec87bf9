"""
Omen CPK command line

Usage:
    # Proxy account status / upgrade
    python -m omen_cpk status
    python -m omen_cpk upgrade -y

    # Trade (amounts in collateral base units)
    python -m omen_cpk buy --market 0x... --amount 1000000000000000000 --outcome 1
    python -m omen_cpk sell --market 0x... --amount 500000000000000000 --outcome 1

    # Liquidity
    python -m omen_cpk add-funding --market 0x... --amount 1000000000000000000 [--native]
    python -m omen_cpk remove-funding --market 0x... --shares 10 --amount-to-merge 10 --earnings 1 --outcomes 2

    # Market creation from a JSON description
    python -m omen_cpk create-market --file market.json

    # Offline helpers
    python -m omen_cpk condition-id --oracle 0x... --question-id 0x... --outcomes 2

Configuration:
    --config file.json, $CPK_CONFIG, $CPK_RPC_URL, $CPK_PRIVATE_KEY
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import get_token, load_config, native_token
from .cpk_types import (
    AddFundingParams,
    BuyOutcomesParams,
    CreateMarketParams,
    MarketData,
    MarketReference,
    Outcome,
    Question,
    RedeemParams,
    RemoveFundingParams,
    SellOutcomesParams,
    Token,
    TransactionResult,
)
from .errors import CPKError, PreconditionError
from .identifiers import build_question_text, get_condition_id, get_question_id
from .orchestrator import BatchOrchestrator

log = logging.getLogger("omen_cpk.cli")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# ============ MARKET DATA FILE ============

def parse_resolution(value: Any) -> datetime:
    """Unix timestamp or ISO-8601 string; naive datetimes are taken as UTC."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    resolution = datetime.fromisoformat(text)
    if resolution.tzinfo is None:
        resolution = resolution.replace(tzinfo=timezone.utc)
    return resolution


def parse_collateral(value: str, config: Dict[str, Any], chain_id: int) -> Token:
    """'eth' / 'native', a token address, or a configured symbol ('dai')."""
    if value.lower() in ("eth", "native"):
        return native_token()
    if value.startswith("0x"):
        return Token(address=value)
    return get_token(config, chain_id, value)


def load_market_data(path: str, config: Dict[str, Any], chain_id: int) -> MarketData:
    """
    Read a market description.

    Format:
        {
          "question": "Will it rain tomorrow?",
          "outcomes": [{"name": "Yes", "probability": 0.4},
                       {"name": "No", "probability": 0.6}],
          "category": "weather",
          "arbitrator": "0x...",
          "collateral": "dai",
          "funding": "1000000000000000000",
          "spread": 2,
          "resolution": "2026-12-31T00:00:00Z",
          "question_id": "0x..."            (optional, reuse a question)
        }
    """
    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        raise PreconditionError(f"Cannot read market file {path}: {e}")

    missing = [key for key in ("question", "outcomes", "category", "arbitrator",
                               "collateral", "funding") if key not in raw]
    if missing:
        raise PreconditionError(f"Market file {path} is missing: {', '.join(missing)}")

    resolution = raw.get("resolution")
    return MarketData(
        question=raw["question"],
        outcomes=[Outcome(name=o["name"], probability=float(o["probability"]))
                  for o in raw["outcomes"]],
        category=raw["category"],
        arbitrator=raw["arbitrator"],
        collateral=parse_collateral(raw["collateral"], config, chain_id),
        funding=int(raw["funding"]),
        spread=float(raw.get("spread", 2)),
        resolution=parse_resolution(resolution) if resolution is not None else None,
        loaded_question_id=raw.get("question_id"),
    )


# ============ HELPERS ============

def print_result(result: TransactionResult) -> None:
    print(f"TX hash: {result.tx_hash}")
    print(f"Block: {result.receipt['blockNumber']}")
    print(f"Calls: {', '.join(result.batch.names)}")


async def resolve_market(orchestrator: BatchOrchestrator, address: str) -> MarketReference:
    market = await orchestrator.gateway.resolve_market(address)
    if market is None:
        raise PreconditionError(f"No market maker at {address}")
    return market


# ============ COMMANDS ============

async def cmd_status(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    proxy = orchestrator.proxy
    implementation = await proxy.master_copy()

    print(f"Owner: {proxy.owner}")
    print(f"CPK address: {await proxy.get_address()}")
    print(f"Deployed: {'yes' if implementation else 'no'}")
    print(f"Implementation: {implementation or 'N/A'}")
    print(f"Target implementation: {orchestrator.target_implementation}")
    print(f"Up to date: {'yes' if await orchestrator.is_up_to_date() else 'no'}")
    return 0


async def cmd_upgrade(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    if await orchestrator.is_up_to_date():
        print("Proxy already up to date")
        return 0

    if not args.yes:
        answer = input(f"Upgrade proxy to {orchestrator.target_implementation}? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1

    print_result(await orchestrator.upgrade_proxy_implementation())
    return 0


async def cmd_buy(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    market = await resolve_market(orchestrator, args.market)
    print_result(await orchestrator.buy_outcomes(
        BuyOutcomesParams(amount=args.amount, outcome_index=args.outcome, market=market)
    ))
    return 0


async def cmd_sell(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    market = await resolve_market(orchestrator, args.market)
    print_result(await orchestrator.sell_outcomes(
        SellOutcomesParams(amount=args.amount, outcome_index=args.outcome, market=market)
    ))
    return 0


async def cmd_add_funding(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    market = await resolve_market(orchestrator, args.market)
    collateral = native_token() if args.native else Token(address=market.collateral)
    print_result(await orchestrator.add_funding(
        AddFundingParams(amount=args.amount, collateral=collateral, market=market)
    ))
    return 0


async def cmd_remove_funding(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    market = await resolve_market(orchestrator, args.market)
    print_result(await orchestrator.remove_funding(RemoveFundingParams(
        shares_to_burn=args.shares,
        amount_to_merge=args.amount_to_merge,
        earnings=args.earnings,
        outcomes_count=args.outcomes,
        market=market,
    )))
    return 0


async def cmd_redeem(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    market = await resolve_market(orchestrator, args.market)
    question = Question(id=args.question_id, template_id=args.template_id, raw=args.question_raw)
    print_result(await orchestrator.redeem_positions(RedeemParams(
        question=question,
        num_outcomes=args.outcomes,
        earned_collateral=args.earned,
        market=market,
        is_condition_resolved=args.resolved,
    )))
    return 0


async def cmd_create_market(args, config: Dict[str, Any]) -> int:
    orchestrator = await BatchOrchestrator.from_config(config)
    chain_id = await orchestrator.proxy.chain.get_chain_id()
    market_data = load_market_data(args.file, config, chain_id)
    log.info(f"Loaded market data from {args.file}")

    result = await orchestrator.create_market(
        CreateMarketParams(market_data=market_data, salt_nonce=args.salt_nonce)
    )
    print_result(result)
    print(f"Question ID: {result.question_id}")
    print(f"Condition ID: {result.condition_id}")
    print(f"Market address: {result.market_address}")
    return 0


def cmd_condition_id(args) -> int:
    print(get_condition_id(args.oracle, args.question_id, args.outcomes))
    return 0


def cmd_question_id(args) -> int:
    question = args.question
    if args.outcome:
        question = build_question_text(args.question, args.outcome, args.category, args.language)
    print(get_question_id(args.template_id, args.opening_ts, question,
                          args.arbitrator, args.timeout, args.questioner))
    return 0


ONLINE_COMMANDS = {
    "status": cmd_status,
    "upgrade": cmd_upgrade,
    "buy": cmd_buy,
    "sell": cmd_sell,
    "add-funding": cmd_add_funding,
    "remove-funding": cmd_remove_funding,
    "redeem": cmd_redeem,
    "create-market": cmd_create_market,
}

OFFLINE_COMMANDS = {
    "condition-id": cmd_condition_id,
    "question-id": cmd_question_id,
}


# ============ MAIN ============

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="omen_cpk",
                                     description="Omen prediction markets through a Contract Proxy Kit account")
    parser.add_argument("--config", help="JSON config file (default: $CPK_CONFIG)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("status", help="Show proxy account address and implementation")

    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade proxy to the target implementation")
    upgrade_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    for name, help_text in (("buy", "Buy outcome shares"), ("sell", "Sell outcome shares")):
        trade_parser = subparsers.add_parser(name, help=help_text)
        trade_parser.add_argument("--market", required=True, help="Market maker address")
        trade_parser.add_argument("--amount", type=int, required=True,
                                  help="Collateral amount (base units)")
        trade_parser.add_argument("--outcome", type=int, required=True, help="Outcome index")

    add_parser = subparsers.add_parser("add-funding", help="Add liquidity to a market")
    add_parser.add_argument("--market", required=True, help="Market maker address")
    add_parser.add_argument("--amount", type=int, required=True, help="Funding (base units)")
    add_parser.add_argument("--native", action="store_true",
                            help="Fund with the native asset (wrapped in the batch)")

    remove_parser = subparsers.add_parser("remove-funding", help="Withdraw liquidity from a market")
    remove_parser.add_argument("--market", required=True, help="Market maker address")
    remove_parser.add_argument("--shares", type=int, required=True, help="Pool shares to burn")
    remove_parser.add_argument("--amount-to-merge", type=int, required=True,
                               help="Outcome set amount to merge back into collateral")
    remove_parser.add_argument("--earnings", type=int, default=0, help="Collected fees")
    remove_parser.add_argument("--outcomes", type=int, default=2, help="Outcome count")

    redeem_parser = subparsers.add_parser("redeem", help="Redeem winning positions")
    redeem_parser.add_argument("--market", required=True, help="Market maker address")
    redeem_parser.add_argument("--question-id", required=True, help="Realitio question id")
    redeem_parser.add_argument("--template-id", type=int, default=2, help="Question template id")
    redeem_parser.add_argument("--question-raw", required=True, help="Raw question text")
    redeem_parser.add_argument("--outcomes", type=int, default=2, help="Outcome count")
    redeem_parser.add_argument("--earned", type=int, default=0,
                               help="Collateral redeemed, forwarded to the owner when > 0")
    resolved_group = redeem_parser.add_mutually_exclusive_group()
    resolved_group.add_argument("--resolved", dest="resolved", action="store_const", const=True,
                                help="Condition already resolved")
    resolved_group.add_argument("--not-resolved", dest="resolved", action="store_const", const=False,
                                help="Resolve the condition in the same batch")

    create_parser = subparsers.add_parser("create-market", help="Create and fund a new market")
    create_parser.add_argument("--file", required=True, help="Market description (JSON)")
    create_parser.add_argument("--salt-nonce", type=int, help="Deployment salt (random if omitted)")

    condition_parser = subparsers.add_parser("condition-id", help="Derive a condition id (offline)")
    condition_parser.add_argument("--oracle", required=True, help="Oracle address")
    condition_parser.add_argument("--question-id", required=True, help="Question id (bytes32 hex)")
    condition_parser.add_argument("--outcomes", type=int, required=True, help="Outcome slot count")

    question_parser = subparsers.add_parser("question-id", help="Derive a Realitio question id (offline)")
    question_parser.add_argument("--question", required=True,
                                 help="Question title (or full text without --outcome)")
    question_parser.add_argument("--outcome", action="append", default=[],
                                 help="Outcome name, repeat per outcome")
    question_parser.add_argument("--category", default="", help="Category")
    question_parser.add_argument("--language", default="en_US", help="Language")
    question_parser.add_argument("--template-id", type=int, default=2, help="Template id")
    question_parser.add_argument("--opening-ts", type=int, required=True, help="Opening timestamp")
    question_parser.add_argument("--arbitrator", required=True, help="Arbitrator address")
    question_parser.add_argument("--timeout", type=int, default=86400, help="Answer timeout (s)")
    question_parser.add_argument("--questioner", required=True, help="Asker (the CPK address)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        if args.command in OFFLINE_COMMANDS:
            return OFFLINE_COMMANDS[args.command](args)
        if args.command in ONLINE_COMMANDS:
            config = load_config(args.config)
            return asyncio.run(ONLINE_COMMANDS[args.command](args, config))
    except (CPKError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1
