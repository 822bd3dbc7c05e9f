"""Tests for congestion-aware gas pricing and its fallbacks."""

from __future__ import annotations

import asyncio

import pytest

from txrail.errors import GasEstimationDegraded, RpcError
from txrail.submit.gas import (
    FALLBACK_GAS_PRICE,
    GasPriceEstimator,
    GasPriceSample,
    price_for,
)

from conftest import FakeChain

GWEI = 1_000_000_000


def _estimate(chain: FakeChain, **kwargs) -> str:
    return asyncio.run(GasPriceEstimator(chain, **kwargs).estimate())


class TestMultiplier:
    @pytest.mark.parametrize(
        "used, expected",
        [
            (0, 1_200_000_000),
            (15_000_000, 1_400_000_000),
            (30_000_000, 2_000_000_000),
        ],
    )
    def test_reference_points(self, used: int, expected: int) -> None:
        chain = FakeChain(gas_price=GWEI, gas_used=used, gas_limit=30_000_000)
        assert _estimate(chain) == str(expected)

    def test_monotonic_and_bounded(self) -> None:
        base = 3 * GWEI + 17
        previous = 0
        for used in range(0, 1001, 25):
            price = int(price_for(GasPriceSample(base, used, 1000)))
            assert base <= price <= 2 * base
            assert price >= previous
            previous = price

    def test_overfull_block_is_clamped(self) -> None:
        sample = GasPriceSample(GWEI, 45_000_000, 30_000_000)
        assert sample.utilization == 1.0
        assert price_for(sample) == str(2 * GWEI)

    def test_integer_exact_on_large_values(self) -> None:
        base = 10**30 + 7
        sample = GasPriceSample(base, 0, 1)
        assert price_for(sample) == str(base * 120 // 100)

    def test_ratio_is_rounded_to_hundredths(self) -> None:
        # utilization 0.3 -> 1.272 -> 1.27
        sample = GasPriceSample(100 * GWEI, 3, 10)
        assert sample.ratio_percent == 127
        assert price_for(sample) == str(127 * GWEI)


class TestFallbacks:
    def test_block_failure_doubles_base(self) -> None:
        chain = FakeChain(gas_price=7 * GWEI + 3)
        chain.fail["eth_getBlockByNumber"] = RpcError({"code": -32000, "message": "down"})
        assert _estimate(chain) == str(2 * (7 * GWEI + 3))

    def test_zero_gas_limit_doubles_base(self) -> None:
        chain = FakeChain(gas_price=GWEI, gas_used=0, gas_limit=0)
        assert _estimate(chain) == str(2 * GWEI)

    def test_missing_block_fields_double_base(self) -> None:
        chain = FakeChain(gas_price=GWEI, gas_used=None, gas_limit=None)
        assert _estimate(chain) == str(2 * GWEI)

    def test_base_failure_returns_floor(self) -> None:
        chain = FakeChain()
        chain.fail["eth_gasPrice"] = ConnectionError("no route to host")
        chain.fail["eth_getBlockByNumber"] = ConnectionError("no route to host")
        assert _estimate(chain) == FALLBACK_GAS_PRICE == "10000000000"

    def test_fixed_price_skips_network(self) -> None:
        chain = FakeChain()
        assert _estimate(chain, fixed_gas_price="5000000000") == "5000000000"
        assert chain.calls == []


class TestSample:
    def test_sample_reads_block(self) -> None:
        chain = FakeChain(gas_price=GWEI, gas_used=15, gas_limit=30)
        sample = asyncio.run(GasPriceEstimator(chain).sample())
        assert sample == GasPriceSample(GWEI, 15, 30)
        assert sample.utilization == 0.5
        assert sample.ratio_percent == 140

    def test_zero_limit_sample_is_degraded(self) -> None:
        sample = GasPriceSample(GWEI, 0, 0)
        with pytest.raises(GasEstimationDegraded):
            sample.utilization

    def test_estimate_prices_from_one_sample(self) -> None:
        chain = FakeChain(gas_price=GWEI, gas_used=15, gas_limit=30)
        assert _estimate(chain) == str(140 * GWEI // 100)
        assert chain.methods() == ["eth_gasPrice", "eth_getBlockByNumber"]

    def test_sample_with_known_base_skips_gas_price(self) -> None:
        chain = FakeChain(gas_used=0, gas_limit=30)
        sample = asyncio.run(GasPriceEstimator(chain).sample(base=3 * GWEI))
        assert sample.base_gas_price == 3 * GWEI
        assert chain.methods() == ["eth_getBlockByNumber"]
