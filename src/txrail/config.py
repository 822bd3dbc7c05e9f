"""
Runtime configuration.

Values come from an optional dotenv file (``~/.txrail/.env``) and then the
process environment, which wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


TXRAIL_DIR = Path.home() / ".txrail"
TXRAIL_ENV = TXRAIL_DIR / ".env"

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_RPC_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    read_rpc_url: str = DEFAULT_RPC_URL
    write_rpc_url: str = DEFAULT_RPC_URL
    chain_id: Optional[int] = None
    fixed_gas_price: Optional[str] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    private_key: Optional[str] = None


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    value = value.strip()
    return int(value, 16) if value.lower().startswith("0x") else int(value)


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Build ``Settings`` from the dotenv file and the environment.

    Args:
        env_path: Path to a dotenv file (default: ~/.txrail/.env).
                  Missing files are ignored.

    Returns:
        Populated Settings

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    env_path = env_path or TXRAIL_ENV
    if env_path.exists():
        load_dotenv(env_path, override=False)

    read_url = os.environ.get("TXRAIL_READ_RPC", DEFAULT_RPC_URL)
    write_url = os.environ.get("TXRAIL_WRITE_RPC", read_url)

    fixed_gas_price = os.environ.get("TXRAIL_GAS_PRICE") or None
    if fixed_gas_price is not None:
        fixed_gas_price = str(_optional_int(fixed_gas_price))

    return Settings(
        read_rpc_url=read_url,
        write_rpc_url=write_url,
        chain_id=_optional_int(os.environ.get("CHAIN_ID")),
        fixed_gas_price=fixed_gas_price,
        poll_interval=float(
            os.environ.get("TXRAIL_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))
        ),
        rpc_timeout=float(
            os.environ.get("TXRAIL_RPC_TIMEOUT", str(DEFAULT_RPC_TIMEOUT))
        ),
        private_key=os.environ.get("PRIVATE_KEY") or None,
    )
