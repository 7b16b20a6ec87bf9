"""
Omen CPK SDK - Call Encoder

Encodes each logical operation of a batch into a CallDescriptor.
Pure: no connection, no side effects, so batch shapes can be tested
without a chain.
"""

from typing import Any, List, Sequence

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_canonical_address

from .cpk_types import CallDescriptor
from .identifiers import HASH_ZERO, index_sets, to_bytes32

MAX_UINT256 = 2 ** 256 - 1


def encode_function_call(signature: str, args: Sequence[Any]) -> bytes:
    """
    ABI-encode a call from its canonical signature.

    Args:
        signature: e.g. "transfer(address,uint256)" (no tuple types)
        args: Values in signature order; addresses as hex strings

    Returns:
        4-byte selector followed by the encoded arguments
    """
    arg_types = signature[signature.index("(") + 1:-1]
    types = arg_types.split(",") if arg_types else []
    values = [to_canonical_address(arg) if t == "address" else arg
              for t, arg in zip(types, args)]
    return function_signature_to_4byte_selector(signature) + encode(types, values)


class CallEncoder:
    """
    One encode function per logical operation.

    Usage:
        call = CallEncoder.approve_unlimited(dai_address, market_address)
        call.to, call.data, call.value
    """

    # ═══════════════════════════════════════════════════════════════════
    # ERC-20 / WRAPPED NATIVE
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def approve(token: str, spender: str, amount: int) -> CallDescriptor:
        return CallDescriptor(
            to=token,
            data=encode_function_call("approve(address,uint256)", [spender, amount]),
            name="approve",
        )

    @staticmethod
    def approve_unlimited(token: str, spender: str) -> CallDescriptor:
        return CallEncoder.approve(token, spender, MAX_UINT256)

    @staticmethod
    def transfer(token: str, to: str, amount: int) -> CallDescriptor:
        return CallDescriptor(
            to=token,
            data=encode_function_call("transfer(address,uint256)", [to, amount]),
            name="transfer",
        )

    @staticmethod
    def transfer_from(token: str, sender: str, recipient: str, amount: int) -> CallDescriptor:
        return CallDescriptor(
            to=token,
            data=encode_function_call("transferFrom(address,address,uint256)",
                                      [sender, recipient, amount]),
            name="transferFrom",
        )

    @staticmethod
    def wrap(wrapped_token: str, amount: int) -> CallDescriptor:
        """Deposit native currency into the wrapped token (WETH9 deposit)."""
        return CallDescriptor(
            to=wrapped_token,
            data=encode_function_call("deposit()", []),
            value=amount,
            name="wrap",
        )

    # ═══════════════════════════════════════════════════════════════════
    # REALITIO / ORACLE
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def ask_question(realitio: str, template_id: int, question: str, arbitrator: str,
                     timeout: int, opening_ts: int, nonce: int = 0) -> CallDescriptor:
        return CallDescriptor(
            to=realitio,
            data=encode_function_call(
                "askQuestion(uint256,string,address,uint32,uint32,uint256)",
                [template_id, question, arbitrator, timeout, opening_ts, nonce],
            ),
            name="askQuestion",
        )

    @staticmethod
    def resolve_condition(oracle: str, question_id: str, template_id: int,
                          question: str, num_outcomes: int) -> CallDescriptor:
        """Report the Realitio answer to ConditionalTokens through the oracle proxy."""
        return CallDescriptor(
            to=oracle,
            data=encode_function_call(
                "resolve(bytes32,uint256,string,uint256)",
                [to_bytes32(question_id), template_id, question, num_outcomes],
            ),
            name="resolveCondition",
        )

    # ═══════════════════════════════════════════════════════════════════
    # CONDITIONAL TOKENS
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def prepare_condition(conditional_tokens: str, oracle: str, question_id: str,
                          outcome_slot_count: int) -> CallDescriptor:
        return CallDescriptor(
            to=conditional_tokens,
            data=encode_function_call(
                "prepareCondition(address,bytes32,uint256)",
                [oracle, to_bytes32(question_id), outcome_slot_count],
            ),
            name="prepareCondition",
        )

    @staticmethod
    def set_approval_for_all(conditional_tokens: str, operator: str,
                             approved: bool = True) -> CallDescriptor:
        return CallDescriptor(
            to=conditional_tokens,
            data=encode_function_call("setApprovalForAll(address,bool)", [operator, approved]),
            name="setApprovalForAll",
        )

    @staticmethod
    def merge_positions(conditional_tokens: str, collateral: str, condition_id: str,
                        outcomes_count: int, amount: int) -> CallDescriptor:
        return CallDescriptor(
            to=conditional_tokens,
            data=encode_function_call(
                "mergePositions(address,bytes32,bytes32,uint256[],uint256)",
                [collateral, to_bytes32(HASH_ZERO), to_bytes32(condition_id),
                 index_sets(outcomes_count), amount],
            ),
            name="mergePositions",
        )

    @staticmethod
    def redeem_positions(conditional_tokens: str, collateral: str, condition_id: str,
                         outcomes_count: int) -> CallDescriptor:
        return CallDescriptor(
            to=conditional_tokens,
            data=encode_function_call(
                "redeemPositions(address,bytes32,bytes32,uint256[])",
                [collateral, to_bytes32(HASH_ZERO), to_bytes32(condition_id),
                 index_sets(outcomes_count)],
            ),
            name="redeemPositions",
        )

    # ═══════════════════════════════════════════════════════════════════
    # MARKET MAKER / FACTORY
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def buy(market: str, amount: int, outcome_index: int, min_outcome_tokens: int) -> CallDescriptor:
        return CallDescriptor(
            to=market,
            data=encode_function_call("buy(uint256,uint256,uint256)",
                                      [amount, outcome_index, min_outcome_tokens]),
            name="buy",
        )

    @staticmethod
    def sell(market: str, return_amount: int, outcome_index: int,
             max_outcome_tokens: int) -> CallDescriptor:
        return CallDescriptor(
            to=market,
            data=encode_function_call("sell(uint256,uint256,uint256)",
                                      [return_amount, outcome_index, max_outcome_tokens]),
            name="sell",
        )

    @staticmethod
    def add_funding(market: str, amount: int,
                    distribution_hint: Sequence[int] = ()) -> CallDescriptor:
        return CallDescriptor(
            to=market,
            data=encode_function_call("addFunding(uint256,uint256[])",
                                      [amount, list(distribution_hint)]),
            name="addFunding",
        )

    @staticmethod
    def remove_funding(market: str, shares_to_burn: int) -> CallDescriptor:
        return CallDescriptor(
            to=market,
            data=encode_function_call("removeFunding(uint256)", [shares_to_burn]),
            name="removeFunding",
        )

    @staticmethod
    def create_market_maker(factory: str, salt_nonce: int, conditional_tokens: str,
                            collateral: str, condition_id: str, fee: int,
                            funding: int, distribution_hint: List[int]) -> CallDescriptor:
        return CallDescriptor(
            to=factory,
            data=encode_function_call(
                "create2FixedProductMarketMaker(uint256,address,address,bytes32[],uint256,uint256,uint256[])",
                [salt_nonce, conditional_tokens, collateral, [to_bytes32(condition_id)],
                 fee, funding, list(distribution_hint)],
            ),
            name="createMarketMaker",
        )

    # ═══════════════════════════════════════════════════════════════════
    # PROXY
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def change_master_copy(proxy: str, master_copy: str) -> CallDescriptor:
        return CallDescriptor(
            to=proxy,
            data=encode_function_call("changeMasterCopy(address)", [master_copy]),
            name="changeMasterCopy",
        )
