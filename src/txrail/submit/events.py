"""
Submission events and the one-shot completion guard.

A ``SubmissionEvents`` emitter publishes ``confirmation(count, receipt)``
and ``error(exc)`` for one broadcast transaction. ``PendingSubmission``
subscribes to it and settles an ``asyncio.Future`` exactly once: on the
first confirmation whose count reaches the threshold, or on the first
error. Its listeners are detached as soon as it settles, and anything that
arrives afterwards is ignored.

``ConfirmationWatcher`` produces the events by polling the node for the
receipt and the chain head.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from ..errors import RpcError, TransactionRejectedError
from ..wire.rpc import from_hex_quantity

logger = logging.getLogger(__name__)

CONFIRMATION = "confirmation"
ERROR = "error"

Listener = Callable[..., None]
ProgressCallback = Callable[[int], None]


class SubmissionEvents:
    """Minimal event emitter for one submission."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {CONFIRMATION: [], ERROR: []}

    def on(self, event: str, listener: Listener) -> "SubmissionEvents":
        self._listeners.setdefault(event, []).append(listener)
        return self

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, event: str, *args: Any) -> None:
        # Copy: a listener may detach itself (or others) while we iterate.
        for listener in list(self._listeners.get(event, [])):
            listener(*args)


def _rejection(error: Any) -> TransactionRejectedError:
    if isinstance(error, TransactionRejectedError):
        return error
    receipt = getattr(error, "receipt", None)
    return TransactionRejectedError(
        f"Transaction failed: {error}", payload=error, receipt=receipt
    )


def _reverted(receipt: dict) -> bool:
    status = receipt.get("status")
    return status is not None and from_hex_quantity(status) == 0


class PendingSubmission:
    """
    Single-resolution wrapper around a submission's events.

    Args:
        min_confirmations: Confirmation count required to resolve (the
                           count is blocks mined on top of the receipt's
                           block, so 1 means "one confirming block")
        progress: Called with every confirmation count, including 0
    """

    def __init__(
        self,
        min_confirmations: int = 1,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.min_confirmations = min_confirmations
        self.progress = progress
        self.tx_hash: Optional[str] = None
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._events: Optional[SubmissionEvents] = None

    def attach(self, events: SubmissionEvents) -> "PendingSubmission":
        self._events = events
        events.on(CONFIRMATION, self._on_confirmation)
        events.on(ERROR, self._on_error)
        return self

    def detach(self) -> None:
        if self._events is not None:
            self._events.off(CONFIRMATION, self._on_confirmation)
            self._events.off(ERROR, self._on_error)
            self._events = None

    @property
    def settled(self) -> bool:
        return self.future.done()

    def _on_confirmation(self, count: int, receipt: dict) -> None:
        if self.settled:
            self.detach()
            return
        if self.progress is not None:
            try:
                self.progress(count)
            except Exception:
                # A failing progress callback never decides the outcome.
                logger.exception("progress callback failed for tx %s", self.tx_hash)
        if count >= self.min_confirmations:
            logger.info("tx %s confirmed (%d)", self.tx_hash, count)
            self.future.set_result(receipt)
            self.detach()

    def _on_error(self, error: Any) -> None:
        if self.settled:
            self.detach()
            return
        logger.info("tx %s rejected: %s", self.tx_hash, error)
        rejection = _rejection(error)
        if isinstance(error, BaseException) and rejection is not error:
            rejection.__cause__ = error
        self.future.set_exception(rejection)
        self.detach()

    def reject(self, error: Any) -> None:
        """Settle with ``error`` (used for pre-broadcast failures)."""
        self._on_error(error)

    def __await__(self):
        return self.future.__await__()


class ConfirmationWatcher:
    """
    Poll a transport and feed ``SubmissionEvents`` for one transaction.

    Emits ``confirmation`` once per new count (head - receipt block) and
    ``error`` on a node error response or a reverted receipt (status 0x0).
    Other poll failures (dropped connections, timeouts) are retried; only
    after ``max_poll_retries`` consecutive failures is the last one emitted
    as ``error``. Stops when ``until`` reports the submission settled, after
    an error, or once ``max_confirmations`` has been emitted.
    """

    def __init__(
        self,
        transport: Any,
        poll_interval: float = 2.0,
        max_confirmations: int = 12,
        max_poll_retries: int = 3,
    ) -> None:
        self.transport = transport
        self.poll_interval = poll_interval
        self.max_confirmations = max_confirmations
        self.max_poll_retries = max_poll_retries

    async def _receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.transport.request(
            {"method": "eth_getTransactionReceipt", "params": [tx_hash]}
        )

    async def _head(self) -> int:
        return from_hex_quantity(
            await self.transport.request({"method": "eth_blockNumber", "params": []})
        )

    async def watch(
        self,
        tx_hash: str,
        events: SubmissionEvents,
        until: Callable[[], bool] = lambda: False,
    ) -> None:
        last_count = -1
        failures = 0
        receipt: Optional[dict] = None
        while not until():
            count: Optional[int] = None
            try:
                if receipt is None:
                    receipt = await self._receipt(tx_hash)
                if receipt is not None and not _reverted(receipt):
                    mined_at = from_hex_quantity(receipt.get("blockNumber"))
                    count = max(await self._head() - mined_at, 0)
            except RpcError as exc:
                events.emit(ERROR, exc)
                return
            except Exception as exc:
                failures += 1
                if failures > self.max_poll_retries:
                    events.emit(ERROR, exc)
                    return
                logger.warning(
                    "poll for tx %s failed (%s); retry %d/%d",
                    tx_hash, exc, failures, self.max_poll_retries,
                )
                await asyncio.sleep(self.poll_interval)
                continue
            failures = 0

            if receipt is not None and count is None:
                events.emit(
                    ERROR,
                    TransactionRejectedError(
                        f"Transaction {tx_hash} reverted", payload=receipt, receipt=receipt
                    ),
                )
                return

            if count is not None:
                # Report every count skipped between polls.
                for n in range(last_count + 1, count + 1):
                    events.emit(CONFIRMATION, n, receipt)
                    if until() or n >= self.max_confirmations:
                        return
                last_count = max(last_count, count)

            await asyncio.sleep(self.poll_interval)
