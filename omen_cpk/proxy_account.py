"""
Omen CPK SDK - Proxy Account

The user's Gnosis Safe proxy, created through the Contract Proxy Kit
factory. Executes an ordered list of calls atomically: several calls are
packed into one MultiSend delegatecall, and the first submission deploys
the proxy as part of the same transaction.

States:
    NOT_DEPLOYED --first execute()--> STALE | CURRENT
    STALE --changeMasterCopy(target)--> CURRENT
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from eth_abi.packed import encode_packed
from eth_utils import keccak, to_canonical_address

from .config import get_contract_address
from .cpk_types import DELEGATE_CALL, NATIVE_ADDRESS, CallDescriptor, ProxyStatus
from .encoder import encode_function_call
from .errors import ExecutionRevertedError, PreconditionError
from .identifiers import CPK_SALT_NONCE, predict_proxy_address
from .rpc_client import ChainClient

log = logging.getLogger("omen_cpk.proxy_account")

EXECUTION_FAILURE_TOPIC = keccak(text="ExecutionFailure(bytes32,uint256)")

SAFE_ABI = [
    {"name": "masterCopy", "type": "function", "stateMutability": "view",
     "inputs": [], "outputs": [{"name": "", "type": "address"}]},
    {"name": "execTransaction", "type": "function", "stateMutability": "payable",
     "inputs": [
         {"name": "to", "type": "address"},
         {"name": "value", "type": "uint256"},
         {"name": "data", "type": "bytes"},
         {"name": "operation", "type": "uint8"},
         {"name": "safeTxGas", "type": "uint256"},
         {"name": "baseGas", "type": "uint256"},
         {"name": "gasPrice", "type": "uint256"},
         {"name": "gasToken", "type": "address"},
         {"name": "refundReceiver", "type": "address"},
         {"name": "signatures", "type": "bytes"}
     ],
     "outputs": [{"name": "success", "type": "bool"}]},
]

CPK_FACTORY_ABI = [
    {"name": "proxyCreationCode", "type": "function", "stateMutability": "pure",
     "inputs": [], "outputs": [{"name": "", "type": "bytes"}]},
    {"name": "createProxyAndExecTransaction", "type": "function", "stateMutability": "payable",
     "inputs": [
         {"name": "masterCopy", "type": "address"},
         {"name": "saltNonce", "type": "uint256"},
         {"name": "fallbackHandler", "type": "address"},
         {"name": "to", "type": "address"},
         {"name": "value", "type": "uint256"},
         {"name": "data", "type": "bytes"},
         {"name": "operation", "type": "uint8"}
     ],
     "outputs": [{"name": "execTransactionSuccess", "type": "bool"}]},
]


def encode_multi_send(calls: List[CallDescriptor]) -> bytes:
    """
    multiSend(bytes) calldata for `calls`.

    Each call is packed as: uint8 operation, address to, uint256 value,
    uint256 data length, bytes data.
    """
    packed = b"".join(
        encode_packed(
            ["uint8", "address", "uint256", "uint256", "bytes"],
            [call.operation, to_canonical_address(call.to), call.value, len(call.data), call.data],
        )
        for call in calls
    )
    return encode_function_call("multiSend(bytes)", [packed])


def owner_signature(owner: str) -> bytes:
    """Pre-validated signature: valid when the owner itself sends the transaction."""
    return b"\x00" * 12 + to_canonical_address(owner) + b"\x00" * 32 + b"\x01"


class ProxyAccount:
    """
    Contract-controlled wallet of one owner key.

    Usage:
        proxy = ProxyAccount(chain, proxy_factory, multi_send, master_copy, fallback_handler)
        address = await proxy.get_address()

        tx_hash = await proxy.execute(calls, value=0)
        receipt = await proxy.await_confirmation(tx_hash)
    """

    def __init__(self, chain: ChainClient, proxy_factory: str, multi_send: str,
                 master_copy: str, fallback_handler: str,
                 confirmation_timeout: float = 300):
        self.chain = chain
        self.proxy_factory = proxy_factory
        self.multi_send = multi_send
        self.master_copy_address = master_copy
        self.fallback_handler = fallback_handler
        self.confirmation_timeout = confirmation_timeout
        self.factory = chain.contract(proxy_factory, CPK_FACTORY_ABI)
        self._address: Optional[str] = None

    @classmethod
    async def from_config(cls, chain: ChainClient, config: Dict[str, Any]) -> "ProxyAccount":
        chain_id = await chain.get_chain_id()
        return cls(
            chain,
            proxy_factory=get_contract_address(config, chain_id, "proxyFactory"),
            multi_send=get_contract_address(config, chain_id, "multiSend"),
            master_copy=get_contract_address(config, chain_id, "masterCopy"),
            fallback_handler=get_contract_address(config, chain_id, "fallbackHandler"),
            confirmation_timeout=float(config.get("confirmation_timeout", 300)),
        )

    @property
    def owner(self) -> str:
        return self.chain.address

    async def get_address(self) -> str:
        """Proxy address; fixed by owner and factory, so computed once."""
        if self._address is None:
            creation_code = await self.chain.call(self.factory.functions.proxyCreationCode(),
                                                  "proxyCreationCode")
            self._address = predict_proxy_address(
                self.proxy_factory, bytes(creation_code), self.master_copy_address, self.owner
            )
            log.info(f"CPK address: {self._address}")
        return self._address

    async def is_deployed(self) -> bool:
        """Re-checked on every call: deployment may happen out-of-band."""
        return len(await self.chain.get_code(await self.get_address())) > 0

    async def master_copy(self) -> Optional[str]:
        """Implementation the proxy delegates to, or None if not deployed."""
        if not await self.is_deployed():
            return None
        proxy = self.chain.contract(await self.get_address(), SAFE_ABI)
        return await self.chain.call(proxy.functions.masterCopy(), "masterCopy")

    async def get_status(self, target_implementation: str) -> ProxyStatus:
        implementation = await self.master_copy()
        if implementation is None:
            return ProxyStatus.NOT_DEPLOYED
        if implementation.lower() == target_implementation.lower():
            return ProxyStatus.CURRENT
        return ProxyStatus.STALE

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════════════

    def build_payload(self, calls: List[CallDescriptor]) -> Tuple[str, int, bytes, int]:
        """
        (to, value, data, operation) the proxy executes for `calls`.

        A single call is executed directly; several go through MultiSend.
        """
        if not calls:
            raise PreconditionError("Cannot execute an empty batch")
        if len(calls) == 1:
            call = calls[0]
            return call.to, call.value, call.data, call.operation
        return self.multi_send, 0, encode_multi_send(calls), DELEGATE_CALL

    async def execute(self, calls: List[CallDescriptor], value: int = 0) -> str:
        """
        Submit `calls` as one transaction from the owner.

        Args:
            calls: Ordered calls; all apply or none do
            value: Native currency sent along (funds calls carrying value)

        Returns:
            Transaction hash
        """
        to, inner_value, data, operation = self.build_payload(calls)

        if await self.is_deployed():
            proxy = self.chain.contract(await self.get_address(), SAFE_ABI)
            fn = proxy.functions.execTransaction(
                to, inner_value, data, operation,
                0, 0, 0, NATIVE_ADDRESS, NATIVE_ADDRESS,
                owner_signature(self.owner),
            )
        else:
            log.info("Proxy not deployed yet, deploying with this transaction")
            fn = self.factory.functions.createProxyAndExecTransaction(
                self.master_copy_address, CPK_SALT_NONCE, self.fallback_handler,
                to, inner_value, data, operation,
            )

        return await self.chain.send_transaction(fn, value)

    async def await_confirmation(self, tx_hash: str) -> Any:
        """
        Wait for inclusion of `tx_hash`.

        Raises:
            ExecutionRevertedError: the transaction reverted, or the proxy
                reported the inner execution as failed (batch rolled back)
        """
        receipt = await self.chain.wait_for_receipt(tx_hash, self.confirmation_timeout)

        if receipt["status"] != 1:
            reason = await self.chain.revert_reason(tx_hash, receipt["blockNumber"])
            raise ExecutionRevertedError(tx_hash, reason)

        address = (await self.get_address()).lower()
        for entry in receipt.get("logs", []):
            topics = entry.get("topics") or []
            if (entry["address"].lower() == address and topics
                    and bytes(topics[0]) == EXECUTION_FAILURE_TOPIC):
                raise ExecutionRevertedError(tx_hash, "proxy execution failed")

        log.info(f"TX confirmed in block {receipt['blockNumber']}")
        return receipt
