"""
Shared fakes for the transaction layer tests.

``FakeChain`` is an in-memory JSON-RPC node speaking the unified
``request(args)`` convention. The chain head advances by one block every
time ``eth_blockNumber`` is asked, so a mined transaction collects one more
confirmation per poll.
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from txrail.errors import RpcError


TX_HASH = "0x" + "ab" * 32
CONTRACT_ADDRESS = "0x" + "c0" * 20
WALLET_ACCOUNT = "0x" + "11" * 20


class FakeChain:
    def __init__(
        self,
        gas_price: Optional[int] = 1_000_000_000,
        gas_used: Optional[int] = 0,
        gas_limit: Optional[int] = 30_000_000,
        accounts: Optional[list] = None,
        mined_at: int = 100,
        status: str = "0x1",
        mine: bool = True,
    ) -> None:
        self.gas_price = gas_price
        self.gas_used = gas_used
        self.gas_limit = gas_limit
        self.accounts = [WALLET_ACCOUNT] if accounts is None else accounts
        self.head = mined_at
        self.mined_at = mined_at
        self.status = status
        self.mine = mine
        self.broadcast: list = []
        self.calls: list[tuple[str, list]] = []
        self.fail: dict[str, Any] = {}
        self.call_result = "0x"
        self.balance = 0

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    async def request(self, args: dict) -> Any:
        method = args["method"]
        params = args.get("params", [])
        self.calls.append((method, params))

        if method in self.fail:
            failure = self.fail[method]
            if isinstance(failure, BaseException):
                raise failure
            raise RpcError(failure)

        if method == "eth_gasPrice":
            return hex(self.gas_price)
        if method == "eth_getBlockByNumber":
            block: dict = {"number": hex(self.head)}
            if self.gas_used is not None:
                block["gasUsed"] = hex(self.gas_used)
            if self.gas_limit is not None:
                block["gasLimit"] = hex(self.gas_limit)
            return block
        if method == "eth_accounts":
            return list(self.accounts)
        if method in ("eth_sendRawTransaction", "eth_sendTransaction"):
            self.broadcast.append(params[0])
            return TX_HASH
        if method == "eth_getTransactionReceipt":
            if not self.mine:
                return None
            return {
                "transactionHash": params[0],
                "blockNumber": hex(self.mined_at),
                "status": self.status,
                "contractAddress": CONTRACT_ADDRESS,
            }
        if method == "eth_blockNumber":
            current = self.head
            self.head += 1
            return hex(current)
        if method == "eth_getTransactionCount":
            return "0x7"
        if method == "eth_chainId":
            return "0x539"
        if method == "eth_call":
            return self.call_result
        if method == "eth_getBalance":
            return hex(self.balance)
        raise RpcError({"code": -32601, "message": f"Method {method} not found"})


class RecordingSigner:
    """Signer stand-in: records what it was asked to sign."""

    def __init__(self, address: str = "0x" + "22" * 20, raw: Any = b"\x01\x02") -> None:
        self.address = address
        self.raw = raw
        self.signed: list[dict] = []

    def get_address(self) -> str:
        return self.address

    async def sign_transaction(self, record: dict) -> dict:
        self.signed.append(record)
        return {"raw_transaction": self.raw}


@pytest.fixture()
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture()
def counter_json() -> dict:
    """Artifact for a tiny counter contract (Truffle layout)."""
    return {
        "contractName": "Counter",
        "abi": [
            {
                "type": "constructor",
                "inputs": [{"name": "start", "type": "uint256"}],
            },
            {
                "type": "function",
                "name": "count",
                "inputs": [],
                "outputs": [{"name": "", "type": "uint256"}],
                "stateMutability": "view",
            },
            {
                "type": "function",
                "name": "add",
                "inputs": [{"name": "amount", "type": "uint256"}],
                "outputs": [],
                "stateMutability": "nonpayable",
            },
        ],
        "bytecode": "0x6080604052",
    }
