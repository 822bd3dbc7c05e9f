"""
Provider Router - routes each JSON-RPC call to a read or a write transport.

Methods that need user signing or interaction go to the write transport
(an injected wallet, a node with unlocked accounts); everything else goes to
the read transport. The router is a drop-in replacement for a single
provider: it exposes ``send``, ``send_async`` and ``request``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional

from ..errors import RpcError, UnsupportedTransportError
from .rpc import build_envelope

logger = logging.getLogger(__name__)

Callback = Callable[[Any, Any], None]

DEFAULT_WRITE_METHODS: FrozenSet[str] = frozenset(
    {
        "eth_sendTransaction",
        "eth_sendRawTransaction",
        "eth_sign",
        "eth_signTransaction",
        "personal_sign",
        "eth_signTypedData",
        "eth_signTypedData_v3",
        "eth_signTypedData_v4",
        "wallet_switchEthereumChain",
        "wallet_addEthereumChain",
        "eth_accounts",
        "eth_requestAccounts",
    }
)


def _has(transport: Any, name: str) -> bool:
    return transport is not None and callable(getattr(transport, name, None))


class ProviderRouter:
    """
    Dispatch RPC calls between two long-lived transports.

    Args:
        read_transport: Direct network query channel
        write_transport: Signing / wallet channel (may be None when no
                         wallet is available; write methods then fail
                         with UnsupportedTransportError)
        write_methods: Method names routed to the write transport
    """

    def __init__(
        self,
        read_transport: Any,
        write_transport: Any = None,
        write_methods: Optional[Iterable[str]] = None,
    ) -> None:
        self.read_transport = read_transport
        self.write_transport = write_transport
        self.write_methods: FrozenSet[str] = (
            frozenset(write_methods)
            if write_methods is not None
            else DEFAULT_WRITE_METHODS
        )

    def is_write(self, method: str) -> bool:
        return method in self.write_methods

    def select(self, method: str) -> Any:
        """Return the transport responsible for ``method``."""
        transport = (
            self.write_transport if self.is_write(method) else self.read_transport
        )
        logger.debug(
            "route %s -> %s", method, "write" if self.is_write(method) else "read"
        )
        return transport

    @property
    def has_wallet(self) -> bool:
        """True when a write transport is configured."""
        return self.write_transport is not None

    # ------------------------------------------------------------------
    # Legacy callback conventions
    # ------------------------------------------------------------------

    def send(self, payload: dict, callback: Optional[Callback] = None) -> Any:
        transport = self.select(payload["method"])
        if not _has(transport, "send"):
            raise UnsupportedTransportError(
                f"Transport for {payload['method']} does not support send"
            )
        return transport.send(payload, callback)

    def send_async(self, payload: dict, callback: Callback) -> Any:
        transport = self.select(payload["method"])
        if not _has(transport, "send_async"):
            raise UnsupportedTransportError(
                f"Transport for {payload['method']} does not support send_async"
            )
        return transport.send_async(payload, callback)

    # ------------------------------------------------------------------
    # Unified request
    # ------------------------------------------------------------------

    def request(self, args: dict) -> Awaitable[Any]:
        """
        Route a ``{method, params}`` call and return an awaitable result.

        Uses the transport's own ``request`` when it has one; otherwise
        adapts ``send_async`` (preferred) or ``send`` by wrapping ``args``
        in a JSON-RPC 2.0 envelope and translating the callback.

        Raises:
            UnsupportedTransportError: Synchronously, when the selected
                transport supports none of the three conventions
        """
        method = args["method"]
        transport = self.select(method)

        if _has(transport, "request"):
            return transport.request(args)

        if _has(transport, "send_async"):
            legacy = transport.send_async
        elif _has(transport, "send"):
            legacy = transport.send
        else:
            raise UnsupportedTransportError(
                f"Transport for {method} does not support request, send, or send_async"
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def callback(error: Any, response: Any = None) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(
                    error if isinstance(error, BaseException) else RpcError(error)
                )
            else:
                future.set_result(response.get("result") if response else None)

        envelope = build_envelope(args)
        logger.debug(
            "adapting %s via %s id=%s",
            method,
            getattr(legacy, "__name__", "legacy"),
            envelope["id"],
        )
        legacy(envelope, callback)
        return future
