"""
JSON-RPC over HTTP.

Lightweight alternative to a web3.py provider: uses httpx for HTTP and
returns the ``result`` member of each response. Implements the unified
``request(args)`` convention the router prefers.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional, Union

import httpx

from ..errors import RpcError

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


def next_request_id() -> int:
    """Process-wide monotonic JSON-RPC id."""
    return next(_ids)


def build_envelope(args: dict) -> dict:
    """
    Wrap ``{method, params, ...}`` in a JSON-RPC 2.0 envelope.

    Keys other than ``method`` and ``params`` are carried over; ``params``
    defaults to an empty list.
    """
    envelope = {"jsonrpc": "2.0", "id": next_request_id()}
    envelope.update(args)
    envelope.setdefault("params", [])
    return envelope


def to_hex_quantity(value: Union[int, str]) -> str:
    """Encode an integer (or decimal / hex string) as a JSON-RPC quantity."""
    return hex(from_hex_quantity(value))


def from_hex_quantity(value: Union[int, str, None]) -> int:
    """
    Decode a JSON-RPC quantity.

    Accepts ints, ``0x``-prefixed hex strings and decimal strings.

    Raises:
        ValueError: If the value is missing or not numeric
    """
    if value is None:
        raise ValueError("Quantity is missing")
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


class HttpTransport:
    """
    JSON-RPC 2.0 transport backed by ``httpx.AsyncClient``.

    Args:
        url: RPC endpoint URL
        timeout: Per-request timeout in seconds
        client: Pre-built client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def request(self, args: dict) -> Any:
        """
        Execute one RPC call.

        Args:
            args: ``{"method": ..., "params": [...]}``

        Returns:
            The ``result`` member of the response

        Raises:
            RpcError: If the response carries an ``error`` member
            httpx.HTTPError: On transport or HTTP status failure
        """
        payload = build_envelope(args)
        logger.debug("POST %s %s id=%s", self.url, payload["method"], payload["id"])

        response = await self._client.post(self.url, json=payload)
        response.raise_for_status()
        data = response.json()

        if "error" in data and data["error"] is not None:
            raise RpcError(data["error"])

        return data.get("result")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"HttpTransport({self.url!r})"
