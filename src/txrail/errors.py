"""
Error taxonomy for the transaction layer.

Routing and binding errors are raised synchronously, before any network
I/O. Network-phase failures reach callers as ``TransactionRejectedError``
through the awaitable returned by the dispatcher.
"""

from __future__ import annotations

from typing import Any, Optional


class TxRailError(RuntimeError):
    exit_code: int = 1


class UnsupportedTransportError(TxRailError):
    """Selected transport exposes none of request / send_async / send."""

    exit_code = 2


class NoSignerAvailableError(TxRailError):
    """Deploy or send attempted with neither a signer nor a wallet transport."""

    exit_code = 3


class ContractNotBoundError(TxRailError):
    """Operation needs a contract address but the handle has none."""

    exit_code = 4


class TransactionRejectedError(TxRailError):
    """
    The node or provider reported an error for a submission.

    ``payload`` is the underlying error exactly as it was observed (an
    exception, or a JSON-RPC error object). ``receipt`` is set when the
    transaction was mined but reverted.
    """

    exit_code = 5

    def __init__(
        self,
        message: str,
        payload: Any = None,
        receipt: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.payload = payload
        self.receipt = receipt


class RpcError(TxRailError):
    """A JSON-RPC response carried an ``error`` member."""

    exit_code = 6

    def __init__(self, error: Any) -> None:
        if isinstance(error, dict):
            message = error.get("message") or str(error)
        else:
            message = str(error)
        super().__init__(f"RPC error: {message}")
        self.error = error

    @property
    def code(self) -> Optional[int]:
        if isinstance(self.error, dict):
            return self.error.get("code")
        return None


class GasEstimationDegraded(TxRailError):
    # Always recovered inside the estimator; never reaches callers.
    pass
