"""
Omen CPK SDK - Errors

Failure kinds surfaced by the batch orchestrator. An insufficient allowance
or missing approval is NOT an error: it only adds a step to the batch.
"""

from typing import Optional


class CPKError(Exception):
    """Base exception for CPK SDK errors."""
    pass


class PreconditionError(CPKError):
    """Required input missing or invalid. Raised before any chain query."""
    pass


class StateQueryError(CPKError):
    """A read against the chain failed (network/transport)."""

    def __init__(self, label: str, cause: Exception):
        self.label = label
        self.cause = cause
        super().__init__(f"Query '{label}' failed: {cause}")


class SubmissionError(CPKError):
    """The batch was rejected before inclusion. It never took effect."""
    pass


class ConfirmationTimeoutError(CPKError):
    """The submitted batch was not seen in a block within the timeout."""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout}s")


class ExecutionRevertedError(CPKError):
    """The batch was included but reverted; no call in it took effect."""

    def __init__(self, tx_hash: str, reason: Optional[str] = None):
        self.tx_hash = tx_hash
        self.reason = reason
        message = f"Transaction {tx_hash} reverted"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MarketAddressMismatchError(CPKError):
    """No market maker was deployed at the predicted address."""

    def __init__(self, predicted: str, tx_hash: str):
        self.predicted = predicted
        self.tx_hash = tx_hash
        super().__init__(
            f"Market maker not found at predicted address {predicted} after {tx_hash}"
        )
