"""
Omen CPK SDK - Protocol Identifiers

Deterministic ids and addresses, computed client-side exactly as the
contracts compute them:

  - Condition / collection / position ids (ConditionalTokens)
  - Question ids and question text (Realitio v2)
  - CREATE2 addresses of market makers (FPMMDeterministicFactory)
    and of the user's proxy (CPK proxy factory)

No I/O. All hex results are 0x-prefixed lowercase strings except addresses,
which are checksummed.
"""

import json
from typing import List, Sequence, Tuple, Union

from eth_abi import encode
from eth_abi.packed import encode_packed
from eth_utils import (
    function_signature_to_4byte_selector,
    keccak,
    to_canonical_address,
    to_checksum_address,
)

from .errors import PreconditionError

BytesLike = Union[str, bytes]

HASH_ZERO = "0x" + "00" * 32

# alt_bn128 field modulus and curve constant (y^2 = x^3 + 3)
ALT_BN128_P = 21888242871839275222246405745257275088696311157297823662689037894645226208583
ALT_BN128_B = 3

# Realitio question text separator (U+241F SYMBOL FOR UNIT SEPARATOR)
QUESTION_SEPARATOR = "␟"

# Salt nonce the Contract Proxy Kit uses for every owner
CPK_SALT_NONCE = int.from_bytes(keccak(text="Contract Proxy Kit"), "big")

# EIP-1167 style clone init code used by the market maker factory
_CLONE_PREFIX = bytes.fromhex("3d3d606380380380913d393d73")
_CLONE_MIDDLE = bytes.fromhex("5af4602a57600080fd5b602d8060366000396000f3363d3d373d3d3d363d73")
_CLONE_SUFFIX = bytes.fromhex("5af43d82803e903d91602b57fd5bf3")


def to_bytes32(value: BytesLike) -> bytes:
    """Normalize a 0x-hex string or bytes to exactly 32 bytes."""
    if isinstance(value, str):
        try:
            raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
        except ValueError:
            raise PreconditionError(f"Not a hex string: {value!r}")
    else:
        raw = bytes(value)
    if len(raw) != 32:
        raise PreconditionError(f"Expected 32 bytes, got {len(raw)}")
    return raw


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def index_sets(outcome_count: int) -> List[int]:
    """Singleton index sets (one bit per outcome) partitioning a condition."""
    return [1 << i for i in range(outcome_count)]


# ═══════════════════════════════════════════════════════════════════════
# CONDITIONAL TOKENS
# ═══════════════════════════════════════════════════════════════════════

def get_condition_id(oracle: str, question_id: BytesLike, outcome_slot_count: int) -> str:
    """keccak256(abi.encodePacked(oracle, questionId, outcomeSlotCount))"""
    packed = encode_packed(
        ["address", "bytes32", "uint256"],
        [to_canonical_address(oracle), to_bytes32(question_id), outcome_slot_count],
    )
    return _hex(keccak(packed))


def _sqrt(yy: int) -> int:
    # P = 3 mod 4, so a square root (if any) is yy^((P+1)/4)
    return pow(yy, (ALT_BN128_P + 1) // 4, ALT_BN128_P)


def _ec_add(p1: Tuple[int, int], p2: Tuple[int, int]) -> Tuple[int, int]:
    """Affine point addition on alt_bn128 (the ecAdd precompile)."""
    P = ALT_BN128_P
    if p1 == (0, 0):
        return p2
    if p2 == (0, 0):
        return p1
    x1, y1 = p1
    x2, y2 = p2
    if x1 == x2:
        if (y1 + y2) % P == 0:
            return (0, 0)
        slope = 3 * x1 * x1 * pow(2 * y1, P - 2, P) % P
    else:
        slope = (y2 - y1) * pow(x2 - x1, P - 2, P) % P
    x3 = (slope * slope - x1 - x2) % P
    y3 = (slope * (x1 - x3) - y1) % P
    return (x3, y3)


def get_collection_id(condition_id: BytesLike, index_set: int,
                      parent_collection_id: BytesLike = HASH_ZERO) -> str:
    """
    Collection id of `index_set` under `condition_id`.

    Hashes (conditionId, indexSet) onto alt_bn128, adds the parent
    collection's point when there is one, and stores the y parity in bit 254.
    """
    P = ALT_BN128_P
    x1 = int.from_bytes(keccak(to_bytes32(condition_id) + index_set.to_bytes(32, "big")), "big")
    odd = x1 >> 255 != 0
    while True:
        x1 = (x1 + 1) % P
        yy = (pow(x1, 3, P) + ALT_BN128_B) % P
        y1 = _sqrt(yy)
        if y1 * y1 % P == yy:
            break
    if (odd and y1 % 2 == 0) or (not odd and y1 % 2 == 1):
        y1 = P - y1

    x2 = int.from_bytes(to_bytes32(parent_collection_id), "big")
    if x2 != 0:
        odd = x2 >> 254 != 0
        x2 &= (1 << 254) - 1
        yy = (pow(x2, 3, P) + ALT_BN128_B) % P
        y2 = _sqrt(yy)
        if (odd and y2 % 2 == 0) or (not odd and y2 % 2 == 1):
            y2 = P - y2
        if y2 * y2 % P != yy:
            raise ValueError("invalid parent collection ID")
        x1, y1 = _ec_add((x1, y1), (x2, y2))

    if y1 % 2 == 1:
        x1 ^= 1 << 254
    return _hex(x1.to_bytes(32, "big"))


def get_position_id(collateral_token: str, collection_id: BytesLike) -> int:
    """uint256(keccak256(abi.encodePacked(collateralToken, collectionId)))"""
    packed = encode_packed(
        ["address", "bytes32"],
        [to_canonical_address(collateral_token), to_bytes32(collection_id)],
    )
    return int.from_bytes(keccak(packed), "big")


def get_position_ids(collateral_token: str, condition_id: BytesLike,
                     outcome_count: int) -> List[int]:
    """Position ids of every single outcome of a root-level condition."""
    return [
        get_position_id(collateral_token, get_collection_id(condition_id, index_set))
        for index_set in index_sets(outcome_count)
    ]


# ═══════════════════════════════════════════════════════════════════════
# REALITIO
# ═══════════════════════════════════════════════════════════════════════

def build_question_text(title: str, outcomes: Sequence[str], category: str,
                        language: str = "en_US") -> str:
    """Single-select question text: title, quoted outcomes, category, language."""
    title_json = json.dumps(title, ensure_ascii=False)[1:-1]
    outcomes_json = json.dumps(list(outcomes), ensure_ascii=False, separators=(",", ":"))[1:-1]
    return QUESTION_SEPARATOR.join([title_json, outcomes_json, category, language])


def get_question_id(template_id: int, opening_ts: int, question: str,
                    arbitrator: str, timeout: int, questioner: str,
                    nonce: int = 0) -> str:
    """Question id Realitio assigns in askQuestion, for a given asker."""
    content_hash = keccak(encode_packed(
        ["uint256", "uint32", "string"],
        [template_id, opening_ts, question],
    ))
    packed = encode_packed(
        ["bytes32", "address", "uint32", "address", "uint256"],
        [content_hash, to_canonical_address(arbitrator), timeout,
         to_canonical_address(questioner), nonce],
    )
    return _hex(keccak(packed))


# ═══════════════════════════════════════════════════════════════════════
# CREATE2 ADDRESSES
# ═══════════════════════════════════════════════════════════════════════

def get_create2_address(deployer: str, salt: bytes, init_code: bytes) -> str:
    """keccak256(0xff ++ deployer ++ salt ++ keccak256(initCode))[12:]"""
    digest = keccak(b"\xff" + to_canonical_address(deployer) + salt + keccak(init_code))
    return to_checksum_address(digest[12:])


def predict_market_maker_address(factory: str, implementation_master: str,
                                 salt_nonce: int, conditional_tokens: str,
                                 collateral: str, condition_id: BytesLike,
                                 creator: str, fee: int) -> str:
    """Address create2FixedProductMarketMaker will deploy to for `creator`."""
    cons_data = encode(
        ["address", "address", "bytes32[]", "uint256"],
        [to_canonical_address(conditional_tokens), to_canonical_address(collateral),
         [to_bytes32(condition_id)], fee],
    )
    clone_constructor = (
        function_signature_to_4byte_selector("cloneConstructor(bytes)")
        + encode(["bytes"], [cons_data])
    )
    master = to_canonical_address(implementation_master)
    init_code = _CLONE_PREFIX + master + _CLONE_MIDDLE + master + _CLONE_SUFFIX + clone_constructor
    salt = keccak(encode(["address", "uint256"], [to_canonical_address(creator), salt_nonce]))
    return get_create2_address(factory, salt, init_code)


def predict_proxy_address(proxy_factory: str, proxy_creation_code: bytes,
                          master_copy: str, owner: str,
                          salt_nonce: int = CPK_SALT_NONCE) -> str:
    """Address of `owner`'s proxy account, deployed or not."""
    salt = keccak(encode(["address", "uint256"], [to_canonical_address(owner), salt_nonce]))
    init_code = proxy_creation_code + encode(["address"], [to_canonical_address(master_copy)])
    return get_create2_address(proxy_factory, salt, init_code)
