"""
Transaction Dispatcher - from request to a single terminal outcome.

Two submission modes:

- pre-signed: an external signer signs the record, the raw transaction is
  broadcast with ``eth_sendRawTransaction``;
- wallet-interactive: the write transport's default account submits the
  record with ``eth_sendTransaction``.

Both resolve with the receipt on the first confirmation whose count
reaches ``min_confirmations`` (default 1, i.e. at least one confirming
block) and reject with ``TransactionRejectedError`` on the first error.
There is no internal timeout: race the coroutine with ``asyncio.wait_for``.
A broadcast transaction cannot be cancelled.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import NoSignerAvailableError, TransactionRejectedError
from .events import (
    ERROR,
    ConfirmationWatcher,
    PendingSubmission,
    ProgressCallback,
    SubmissionEvents,
)

logger = logging.getLogger(__name__)

SEND_GAS_LIMIT = 4_430_000
DEPLOY_GAS_LIMIT = 5_913_388


@dataclass(frozen=True)
class TransactionRequest:
    """One transaction record; build a new one for every submission."""

    data: str
    from_address: str
    gas: int
    gas_price: str
    to: Optional[str] = None
    value: str = "0x0"

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "data": self.data,
            "from": self.from_address,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "value": self.value or "0x0",
        }
        if self.to:
            record["to"] = self.to
        return record


def raw_transaction_hex(signed: Any) -> str:
    """
    Extract the 0x-prefixed raw transaction from a signer's result.

    Accepts objects with ``raw_transaction`` / ``rawTransaction`` and dicts
    with either key; the value may be bytes or a hex string.

    Raises:
        TransactionRejectedError: If no raw transaction is present
    """
    raw = None
    for name in ("raw_transaction", "rawTransaction"):
        if isinstance(signed, dict):
            raw = signed.get(name)
        else:
            raw = getattr(signed, name, None)
        if raw:
            break

    if not raw:
        raise TransactionRejectedError("Transaction signing failed", payload=signed)

    if isinstance(raw, (bytes, bytearray)):
        return "0x" + bytes(raw).hex()
    raw = str(raw)
    return raw if raw.startswith("0x") else "0x" + raw


class TransactionDispatcher:
    """
    Submit transactions through a transport and await confirmation.

    Args:
        transport: The ProviderRouter (or any object with ``request``)
        poll_interval: Seconds between receipt / head polls
        min_confirmations: Count needed to resolve
        max_confirmations: Confirmation events emitted before watching stops
    """

    def __init__(
        self,
        transport: Any,
        poll_interval: float = 2.0,
        min_confirmations: int = 1,
        max_confirmations: int = 12,
    ) -> None:
        self.transport = transport
        self.min_confirmations = min_confirmations
        self.watcher = ConfirmationWatcher(
            transport,
            poll_interval=poll_interval,
            max_confirmations=max(max_confirmations, min_confirmations),
        )
        self._watch_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Pre-signed
    # ------------------------------------------------------------------

    async def send_signed(
        self,
        signer: Any,
        request: TransactionRequest,
        progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """
        Sign ``request`` with ``signer``, broadcast it and await the receipt.

        Args:
            signer: Object with ``sign_transaction(record)`` (sync or async)
            request: The transaction to submit
            progress: Receives every confirmation count

        Returns:
            The transaction receipt

        Raises:
            TransactionRejectedError: On signing, broadcast or on-chain failure
        """
        pending, events = self._open(progress)
        try:
            signed = signer.sign_transaction(request.to_record())
            if inspect.isawaitable(signed):
                signed = await signed
            raw = raw_transaction_hex(signed)
            tx_hash = await self.transport.request(
                {"method": "eth_sendRawTransaction", "params": [raw]}
            )
        except Exception as exc:
            events.emit(ERROR, exc)
            return await pending

        logger.info(
            "broadcast %s from %s to %s",
            tx_hash,
            request.from_address,
            request.to or "<create>",
        )
        return await self._follow(tx_hash, pending, events)

    # ------------------------------------------------------------------
    # Wallet-interactive
    # ------------------------------------------------------------------

    async def default_account(self) -> str:
        """
        First account exposed by the write transport.

        Raises:
            NoSignerAvailableError: If the wallet exposes no accounts
        """
        accounts = await self.transport.request({"method": "eth_accounts", "params": []})
        if not accounts:
            raise NoSignerAvailableError("Wallet exposes no accounts")
        return accounts[0]

    async def send_interactive(
        self,
        record: dict[str, Any],
        progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """
        Let the wallet sign and submit ``record`` via ``eth_sendTransaction``.

        ``from`` defaults to the wallet's first account.

        Raises:
            NoSignerAvailableError: If no ``from`` is given and the wallet
                has no accounts
            TransactionRejectedError: On submission or on-chain failure
        """
        record = dict(record)
        if not record.get("from"):
            record["from"] = await self.default_account()

        pending, events = self._open(progress)
        try:
            tx_hash = await self.transport.request(
                {"method": "eth_sendTransaction", "params": [record]}
            )
        except Exception as exc:
            events.emit(ERROR, exc)
            return await pending

        logger.info("wallet submitted %s from %s", tx_hash, record["from"])
        return await self._follow(tx_hash, pending, events)

    async def deploy_interactive(
        self,
        creation_data: str,
        progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """Deploy ``creation_data`` (bytecode + constructor args) via the wallet."""
        return await self.send_interactive({"data": creation_data}, progress)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(
        self, progress: Optional[ProgressCallback]
    ) -> tuple[PendingSubmission, SubmissionEvents]:
        events = SubmissionEvents()
        pending = PendingSubmission(self.min_confirmations, progress).attach(events)
        return pending, events

    async def _follow(
        self,
        tx_hash: str,
        pending: PendingSubmission,
        events: SubmissionEvents,
    ) -> dict:
        pending.tx_hash = tx_hash
        task = asyncio.ensure_future(
            self.watcher.watch(tx_hash, events, until=lambda: pending.settled)
        )
        # Stops by itself once ``pending`` is done, cancelled included.
        self._watch_tasks.add(task)
        task.add_done_callback(self._watch_tasks.discard)
        return await pending
