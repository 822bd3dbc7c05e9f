"""Tests for pre-signed and wallet-interactive submission."""

from __future__ import annotations

import asyncio

import pytest

from txrail.errors import NoSignerAvailableError, RpcError, TransactionRejectedError
from txrail.signer import LocalSigner, generate_eoa
from txrail.submit.dispatch import (
    DEPLOY_GAS_LIMIT,
    SEND_GAS_LIMIT,
    TransactionDispatcher,
    TransactionRequest,
    raw_transaction_hex,
)
from txrail.wire.router import ProviderRouter

from conftest import CONTRACT_ADDRESS, TX_HASH, WALLET_ACCOUNT, FakeChain, RecordingSigner


def _request(**overrides) -> TransactionRequest:
    fields = dict(
        data="0xdeadbeef",
        from_address="0x" + "22" * 20,
        gas=SEND_GAS_LIMIT,
        gas_price="1200000000",
        to=CONTRACT_ADDRESS,
    )
    fields.update(overrides)
    return TransactionRequest(**fields)


class TestTransactionRequest:
    def test_record_fields(self) -> None:
        record = _request().to_record()
        assert record == {
            "data": "0xdeadbeef",
            "from": "0x" + "22" * 20,
            "to": CONTRACT_ADDRESS,
            "gas": SEND_GAS_LIMIT,
            "gasPrice": "1200000000",
            "value": "0x0",
        }

    def test_creation_record_has_no_to(self) -> None:
        record = _request(to=None, gas=DEPLOY_GAS_LIMIT).to_record()
        assert "to" not in record
        assert record["gas"] == 5_913_388


class TestRawTransactionHex:
    def test_bytes(self) -> None:
        assert raw_transaction_hex({"raw_transaction": b"\xab\xcd"}) == "0xabcd"

    def test_camel_case_string(self) -> None:
        assert raw_transaction_hex({"rawTransaction": "abcd"}) == "0xabcd"

    def test_attribute(self) -> None:
        class Signed:
            raw_transaction = b"\x01"

        assert raw_transaction_hex(Signed()) == "0x01"

    def test_missing_raw_fails(self) -> None:
        with pytest.raises(TransactionRejectedError, match="signing failed"):
            raw_transaction_hex({})


class TestSendSigned:
    def test_resolves_after_one_confirmation(
        self, chain: FakeChain, signer: RecordingSigner
    ) -> None:
        progress: list[int] = []
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        receipt = asyncio.run(dispatcher.send_signed(signer, _request(), progress.append))

        assert receipt["transactionHash"] == TX_HASH
        assert chain.broadcast == ["0x0102"]
        assert signer.signed == [_request().to_record()]
        assert progress == [0, 1]

    def test_raising_progress_does_not_reject(
        self, chain: FakeChain, signer: RecordingSigner
    ) -> None:
        def progress(count: int) -> None:
            raise KeyError("ui")

        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        receipt = asyncio.run(dispatcher.send_signed(signer, _request(), progress))

        assert receipt["status"] == "0x1"
        assert chain.broadcast == ["0x0102"]

    def test_signing_failure_rejects_without_broadcast(self, chain: FakeChain) -> None:
        class BrokenSigner:
            def get_address(self) -> str:
                return "0x" + "22" * 20

            async def sign_transaction(self, record: dict) -> dict:
                raise ValueError("hardware wallet unplugged")

        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        with pytest.raises(TransactionRejectedError) as excinfo:
            asyncio.run(dispatcher.send_signed(BrokenSigner(), _request()))

        assert isinstance(excinfo.value.payload, ValueError)
        assert "eth_sendRawTransaction" not in chain.methods()

    def test_broadcast_error_payload_is_unmodified(
        self, chain: FakeChain, signer: RecordingSigner
    ) -> None:
        node_error = {"code": -32000, "message": "insufficient funds for gas * price + value"}
        chain.fail["eth_sendRawTransaction"] = node_error
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        with pytest.raises(TransactionRejectedError) as excinfo:
            asyncio.run(dispatcher.send_signed(signer, _request()))

        assert isinstance(excinfo.value.payload, RpcError)
        assert excinfo.value.payload.error is node_error

    def test_revert_rejects_with_receipt(self, signer: RecordingSigner) -> None:
        chain = FakeChain(status="0x0")
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        with pytest.raises(TransactionRejectedError) as excinfo:
            asyncio.run(dispatcher.send_signed(signer, _request()))

        assert excinfo.value.receipt["status"] == "0x0"

    def test_caller_timeout_is_tolerated(self, signer: RecordingSigner) -> None:
        chain = FakeChain(mine=False)
        dispatcher = TransactionDispatcher(chain, poll_interval=0.01)

        async def go() -> None:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(dispatcher.send_signed(signer, _request()), 0.05)
            # The watcher notices the abandoned submission and winds down.
            await asyncio.sleep(0.05)
            assert not dispatcher._watch_tasks

        asyncio.run(go())
        assert chain.broadcast == ["0x0102"]

    def test_local_signer_fills_nonce_and_chain(self, chain: FakeChain) -> None:
        private_key, address = generate_eoa()
        local = LocalSigner.from_key(private_key, chain)
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        receipt = asyncio.run(
            dispatcher.send_signed(local, _request(from_address=address))
        )

        assert receipt["status"] == "0x1"
        assert ("eth_getTransactionCount", [address, "pending"]) in chain.calls
        assert "eth_chainId" in chain.methods()
        assert chain.broadcast[0].startswith("0x")
        assert len(chain.broadcast[0]) > 100


class TestInteractive:
    def test_deploy_goes_through_write_transport(self) -> None:
        read, wallet = FakeChain(), FakeChain(accounts=["0x" + "aa" * 20])
        router = ProviderRouter(read, wallet)
        progress: list[int] = []
        dispatcher = TransactionDispatcher(router, poll_interval=0)

        receipt = asyncio.run(dispatcher.deploy_interactive("0x6080", progress.append))

        assert receipt["contractAddress"] == CONTRACT_ADDRESS
        assert wallet.methods() == ["eth_accounts", "eth_sendTransaction"]
        assert wallet.broadcast == [{"from": "0x" + "aa" * 20, "data": "0x6080"}]
        assert "eth_getTransactionReceipt" in read.methods()
        assert "eth_sendTransaction" not in read.methods()
        assert progress[0] == 0
        assert progress[-1] == 1

    def test_no_accounts_means_no_signer(self) -> None:
        chain = FakeChain(accounts=[])
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        with pytest.raises(NoSignerAvailableError):
            asyncio.run(dispatcher.deploy_interactive("0x6080"))

        assert "eth_sendTransaction" not in chain.methods()

    def test_wallet_rejection_rejects(self) -> None:
        chain = FakeChain()
        chain.fail["eth_sendTransaction"] = {"code": 4001, "message": "User rejected"}
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        with pytest.raises(TransactionRejectedError) as excinfo:
            asyncio.run(dispatcher.send_interactive({"to": CONTRACT_ADDRESS, "data": "0x"}))

        assert excinfo.value.payload.code == 4001

    def test_explicit_from_skips_account_lookup(self) -> None:
        chain = FakeChain()
        dispatcher = TransactionDispatcher(chain, poll_interval=0)

        asyncio.run(dispatcher.send_interactive({"from": WALLET_ACCOUNT, "data": "0x"}))

        assert "eth_accounts" not in chain.methods()
