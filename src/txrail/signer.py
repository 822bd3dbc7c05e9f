"""
Local ECDSA / secp256k1 signer.

Wraps an eth-account ``LocalAccount`` behind the signer surface the
dispatcher expects (``get_address()`` and ``sign_transaction(record)``).
Nonce and chain id are filled in here, from the node, when the record does
not carry them: nonce management belongs to the signer, not to the
dispatcher.

Keys live in ~/.txrail/.env as PRIVATE_KEY (hex).
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv, set_key
from eth_account import Account
from eth_account.datastructures import SignedTransaction
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from .config import TXRAIL_ENV
from .wire.rpc import from_hex_quantity

_QUANTITY_FIELDS = ("gas", "gasPrice", "value", "nonce", "chainId")


def generate_eoa() -> tuple[str, str]:
    """Create a fresh keypair: (0x-prefixed private key, checksummed address)."""
    private_key = "0x" + secrets.token_hex(32)
    return private_key, Account.from_key(private_key).address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Store PRIVATE_KEY in the dotenv file; other entries and comments stay.

    The file is created owner-readable only.
    """
    env_path = env_path or TXRAIL_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(mode=0o600, exist_ok=True)
    set_key(env_path, "PRIVATE_KEY", private_key, quote_mode="never")
    if os.name != "nt":
        env_path.chmod(0o600)
    return env_path


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load the private key from the dotenv file or the environment.

    Raises:
        ValueError: If PRIVATE_KEY is not set anywhere
    """
    env_path = env_path or TXRAIL_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError(f"PRIVATE_KEY not found. Set PRIVATE_KEY in {env_path}")

    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


class LocalSigner:
    """
    Sign transaction records with a local key.

    Args:
        account: eth-account LocalAccount
        transport: Used to look up nonce / chain id when missing
        chain_id: Fixed chain id (skips ``eth_chainId``)
    """

    def __init__(
        self,
        account: LocalAccount,
        transport: Any = None,
        chain_id: Optional[int] = None,
    ) -> None:
        self.account = account
        self.transport = transport
        self.chain_id = chain_id

    @classmethod
    def from_key(
        cls,
        private_key: str,
        transport: Any = None,
        chain_id: Optional[int] = None,
    ) -> "LocalSigner":
        return cls(Account.from_key(private_key), transport, chain_id)

    @property
    def address(self) -> str:
        return self.account.address

    def get_address(self) -> str:
        return self.account.address

    async def _lookup(self, method: str, params: list) -> int:
        if self.transport is None:
            raise ValueError(f"{method} needed but the signer has no transport")
        return from_hex_quantity(
            await self.transport.request({"method": method, "params": params})
        )

    async def prepare(self, record: dict[str, Any]) -> dict[str, Any]:
        """Normalise a record into what eth-account signs."""
        tx = {k: v for k, v in record.items() if k != "from" and v is not None}

        for field in _QUANTITY_FIELDS:
            if field in tx:
                tx[field] = from_hex_quantity(tx[field])
        tx.setdefault("value", 0)

        if tx.get("to"):
            tx["to"] = to_checksum_address(tx["to"])
        else:
            tx.pop("to", None)

        if "nonce" not in tx:
            tx["nonce"] = await self._lookup(
                "eth_getTransactionCount", [self.address, "pending"]
            )
        if "chainId" not in tx:
            if self.chain_id is None:
                self.chain_id = await self._lookup("eth_chainId", [])
            tx["chainId"] = self.chain_id

        return tx

    async def sign_transaction(self, record: dict[str, Any]) -> SignedTransaction:
        tx = await self.prepare(record)
        return self.account.sign_transaction(tx)
