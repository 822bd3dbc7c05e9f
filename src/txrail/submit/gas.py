"""
Gas Price Estimator - scales the node's gas price with block utilization.

    utilization = clamp(gasUsed / gasLimit, 0, 1)
    multiplier  = 1.2 + 0.8 * utilization ** 2        in [1.2, 2.0]
    gas price   = base * round(multiplier * 100) // 100

Only the multiplier is a float; the monetary value is scaled with integer
arithmetic so large prices lose no precision.

Fallbacks: no usable block -> 2x base; no base price -> 10 gwei.
``estimate()`` never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import GasEstimationDegraded
from ..wire.rpc import from_hex_quantity

logger = logging.getLogger(__name__)

FALLBACK_GAS_PRICE = "10000000000"  # 10 gwei
CONGESTED_RATIO_PERCENT = 200
MIN_MULTIPLIER = 1.2
MULTIPLIER_SPAN = 0.8


@dataclass(frozen=True)
class GasPriceSample:
    base_gas_price: int
    block_gas_used: int
    block_gas_limit: int

    @property
    def utilization(self) -> float:
        if self.block_gas_limit <= 0:
            raise GasEstimationDegraded("Block gas limit is zero")
        return min(max(self.block_gas_used / self.block_gas_limit, 0.0), 1.0)

    @property
    def multiplier(self) -> float:
        return MIN_MULTIPLIER + MULTIPLIER_SPAN * self.utilization ** 2

    @property
    def ratio_percent(self) -> int:
        return round(self.multiplier * 100)


def scale_price(base_gas_price: int, ratio_percent: int) -> int:
    return base_gas_price * ratio_percent // 100


def price_for(sample: GasPriceSample) -> str:
    """Gas price (decimal string) for a sample."""
    return str(scale_price(sample.base_gas_price, sample.ratio_percent))


class GasPriceEstimator:
    """
    Network-aware gas pricing over a transport.

    Args:
        transport: Anything with ``request({"method", "params"})``
                   (usually the ProviderRouter)
        fixed_gas_price: When set, returned as-is without querying the node
    """

    def __init__(self, transport: Any, fixed_gas_price: Optional[str] = None) -> None:
        self.transport = transport
        self.fixed_gas_price = fixed_gas_price

    async def base_gas_price(self) -> int:
        result = await self.transport.request({"method": "eth_gasPrice", "params": []})
        return from_hex_quantity(result)

    async def latest_block(self) -> dict:
        block = await self.transport.request(
            {"method": "eth_getBlockByNumber", "params": ["latest", False]}
        )
        if not block:
            raise GasEstimationDegraded("Latest block unavailable")
        return block

    async def sample(self, base: Optional[int] = None) -> GasPriceSample:
        """
        Take one pricing sample.

        Args:
            base: Base gas price already fetched (queried when omitted)

        Raises:
            GasEstimationDegraded: If the block has no usable gas figures
            Exception: Whatever the transport raises
        """
        if base is None:
            base = await self.base_gas_price()
        block = await self.latest_block()
        try:
            used = from_hex_quantity(block.get("gasUsed"))
            limit = from_hex_quantity(block.get("gasLimit"))
        except ValueError as exc:
            raise GasEstimationDegraded(f"Block gas figures unusable: {exc}") from exc
        return GasPriceSample(base, used, limit)

    async def estimate(self) -> str:
        """Return a decimal-string gas price; never raises."""
        if self.fixed_gas_price is not None:
            return str(self.fixed_gas_price)

        try:
            base = await self.base_gas_price()
        except Exception as exc:
            logger.warning(
                "Gas price unavailable (%s); using floor %s wei", exc, FALLBACK_GAS_PRICE
            )
            return FALLBACK_GAS_PRICE

        try:
            sample = await self.sample(base)
            price = price_for(sample)
        except Exception as exc:
            logger.warning(
                "Block utilization unavailable (%s); assuming full congestion", exc
            )
            return str(scale_price(base, CONGESTED_RATIO_PERCENT))

        logger.debug(
            "gas price %s wei (base=%s utilization=%.3f ratio=%s%%)",
            price,
            base,
            sample.utilization,
            sample.ratio_percent,
        )
        return price
