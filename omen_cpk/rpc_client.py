"""
Omen CPK SDK - Chain Client

web3 connection plus the owner's signing key. Blocking web3 calls are run
in the event loop's executor so concurrent workflows do not block each other.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .errors import (
    ConfirmationTimeoutError,
    PreconditionError,
    StateQueryError,
    SubmissionError,
)

log = logging.getLogger("omen_cpk.rpc_client")

TRANSPORT_ERRORS = (requests.exceptions.RequestException, Web3Exception, OSError)


class ChainClient:
    """
    Chain connectivity for queries and submissions.

    Usage:
        chain = ChainClient("https://rpc.example", private_key="0x...")
        chain_id = await chain.get_chain_id()
        token = chain.contract(dai_address, ERC20_ABI)
        allowance = await chain.call(token.functions.allowance(owner, spender), "allowance")
    """

    def __init__(self, rpc_url: str = "http://127.0.0.1:8545", private_key: str = "",
                 timeout: int = 30, gas_buffer: float = 1.2,
                 w3: Optional[Web3] = None):
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.account = Account.from_key(private_key) if private_key else None
        self.gas_buffer = gas_buffer
        self._chain_id: Optional[int] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ChainClient":
        return cls(
            rpc_url=config["rpc_url"],
            private_key=config.get("private_key", ""),
            timeout=int(config.get("request_timeout", 30)),
            gas_buffer=float(config.get("gas_buffer", 1.2)),
        )

    @property
    def address(self) -> str:
        """Address of the signing key (the proxy owner)."""
        if self.account is None:
            raise PreconditionError("No private key configured")
        return self.account.address

    def contract(self, address: str, abi: list):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    async def run(self, fn: Callable[..., Any], *args, label: str = "") -> Any:
        """Run a blocking web3 call in the executor; transport failures become StateQueryError."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, lambda: fn(*args))
        except TRANSPORT_ERRORS as e:
            raise StateQueryError(label or getattr(fn, "__name__", "call"), e) from e

    async def call(self, contract_fn, label: str) -> Any:
        """Read-only contract call (contract.functions.x(...))."""
        return await self.run(contract_fn.call, label=label)

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self.run(lambda: self.w3.eth.chain_id, label="chain_id"))
        return self._chain_id

    async def get_code(self, address: str) -> bytes:
        code = await self.run(self.w3.eth.get_code, Web3.to_checksum_address(address),
                              label=f"get_code({address})")
        return bytes(code)

    def test_connection(self) -> bool:
        """Test if the RPC connection works."""
        try:
            return self.w3.is_connected()
        except TRANSPORT_ERRORS:
            return False

    # ═══════════════════════════════════════════════════════════════════════
    # SUBMISSION
    # ═══════════════════════════════════════════════════════════════════════

    def _send_sync(self, contract_fn, value: int) -> str:
        sender = self.address
        tx = contract_fn.build_transaction({
            "from": sender,
            "value": value,
            "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
        })
        tx["gas"] = int(tx["gas"] * self.gas_buffer)

        signed = self.w3.eth.account.sign_transaction(tx, self.account.key)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def send_transaction(self, contract_fn, value: int = 0) -> str:
        """
        Build, sign and broadcast a contract call from the owner.

        Returns:
            Transaction hash (0x-hex)

        Raises:
            SubmissionError: estimate, signing or broadcast failed;
                nothing was included
        """
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, lambda: self._send_sync(contract_fn, value))
        except (*TRANSPORT_ERRORS, ValueError, TypeError) as e:
            raise SubmissionError(f"Transaction rejected before inclusion: {e}") from e

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300) -> Any:
        """Suspend until `tx_hash` is included. Not retried."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
            )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(tx_hash, timeout) from e
        except TRANSPORT_ERRORS as e:
            raise StateQueryError(f"receipt({tx_hash})", e) from e

    def _revert_reason_sync(self, tx_hash: str, block_number: int) -> Optional[str]:
        tx = self.w3.eth.get_transaction(tx_hash)
        replay = {"from": tx["from"], "to": tx["to"], "data": tx["input"], "value": tx["value"]}
        try:
            self.w3.eth.call(replay, block_identifier=block_number)
        except ContractLogicError as e:
            return e.message or str(e)
        return None

    async def revert_reason(self, tx_hash: str, block_number: int) -> Optional[str]:
        """Replay a reverted transaction with eth_call to recover its reason."""
        try:
            return await self.run(self._revert_reason_sync, tx_hash, block_number,
                                  label=f"revert_reason({tx_hash})")
        except StateQueryError as e:
            log.warning(f"Could not recover revert reason for {tx_hash}: {e}")
            return None
