"""
Transfer pipeline tests against a scripted chain client.

No network: FakeChainClient records each call so the tests can check the
exact request sequence per transfer.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import httpx
import pytest
import rlp
from eth_account import Account

from conftest import RECIPIENT, TEST_ADDRESS, FakeChainClient, revert_error
from nauta.chain.client import ChainClient, ConfirmationTimeout
from nauta.config import TransferConfig
from nauta.errors import MalformedResponse, NetworkUnavailable, RpcError
from nauta.keys.signer import Signer
from nauta.models import Receipt
from nauta.transfer import (
    BroadcastRejected,
    EstimationFailed,
    FeeDataUnavailable,
    SigningFailed,
    TransferEvent,
    TransferPipeline,
    TransferState,
    execute_transfer,
)

HAPPY_PATH = [
    "estimate_gas",
    "get_latest_block",
    "get_nonce",
    "send_raw_transaction",
    "await_receipt",
]


class TestHappyPath:
    def test_returns_receipt_unchanged(self, config: TransferConfig, signer: Signer) -> None:
        receipt = Receipt(
            transaction_hash="0x" + "11" * 32,
            block_number=99,
            block_hash="0x" + "22" * 32,
            status=1,
            gas_used=21_000,
            effective_gas_price=1_000_000_100,
            raw={"status": "0x1"},
        )
        client = FakeChainClient(receipt=receipt)

        result = execute_transfer(config, client=client, signer=signer)

        assert result is receipt
        assert result.succeeded

    def test_request_sequence(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        execute_transfer(config, client=client, signer=signer)
        assert client.methods == HAPPY_PATH

    def test_probe_has_no_fee_fields(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        execute_transfer(config, client=client, signer=signer)

        probe = client.calls[0][1]
        assert probe.to_rpc() == {
            "from": TEST_ADDRESS,
            "to": RECIPIENT,
            "value": hex(10**12),
        }

    def test_nonce_from_pending_pool(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        execute_transfer(config, client=client, signer=signer)
        _, (address, block) = client.calls[2]
        assert address == signer.address_bytes
        assert block == "pending"

    def test_broadcast_payload(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(gas=30_000, base_fee=100, nonce=12)
        execute_transfer(config, client=client, signer=signer)

        raw = client.sent[0]
        assert Account.recover_transaction(raw) == TEST_ADDRESS
        fields = rlp.decode(raw[1:])
        as_int = lambda b: int.from_bytes(b, "big")  # noqa: E731
        assert as_int(fields[0]) == 421614
        assert as_int(fields[1]) == 12
        assert as_int(fields[2]) == 10**9
        assert as_int(fields[3]) == 2 * 100 + 10**9
        assert as_int(fields[4]) == 30_000
        assert as_int(fields[6]) == 10**12

    def test_custom_priority_fee(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(base_fee=100)
        events: list[TransferEvent] = []
        execute_transfer(
            dataclasses.replace(config, priority_fee=10),
            client=client,
            signer=signer,
            on_event=events.append,
        )
        fees = next(e for e in events if e.state is TransferState.FEES_COMPUTED)
        assert fees.data["max_fee_per_gas"] == 210
        assert fees.data["estimated_total_cost"] == 210 * 21_000

    def test_wait_options_forwarded(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        execute_transfer(config, client=client, signer=signer, poll_interval=0.5, timeout=60)
        _, (tx_hash, kwargs) = client.calls[-1]
        assert kwargs["poll_interval"] == 0.5
        assert kwargs["timeout"] == 60
        assert kwargs["cancel"] is None

    def test_reverted_receipt_is_returned(self, config: TransferConfig, signer: Signer) -> None:
        receipt = Receipt(
            transaction_hash="0x" + "33" * 32,
            block_number=5,
            block_hash=None,
            status=0,
            gas_used=21_000,
        )
        result = execute_transfer(config, client=FakeChainClient(receipt=receipt), signer=signer)
        assert result is receipt
        assert not result.succeeded

    def test_signer_built_from_config(self, config: TransferConfig) -> None:
        client = FakeChainClient()
        execute_transfer(config, client=client)
        assert Account.recover_transaction(client.sent[0]) == TEST_ADDRESS


class TestEvents:
    def test_states_in_order(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        execute_transfer(config, client=FakeChainClient(), signer=signer, on_event=events.append)
        assert [e.state for e in events] == [
            TransferState.BUILT,
            TransferState.ESTIMATED,
            TransferState.FEES_COMPUTED,
            TransferState.SIGNED,
            TransferState.BROADCAST,
            TransferState.CONFIRMED,
        ]

    def test_event_payloads(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        client = FakeChainClient(base_fee=100)
        execute_transfer(config, client=client, signer=signer, on_event=events.append)
        by_state = {e.state: e.data for e in events}

        assert by_state[TransferState.BUILT]["sender"] == TEST_ADDRESS
        assert by_state[TransferState.BUILT]["recipient"] == RECIPIENT
        assert by_state[TransferState.ESTIMATED]["gas_limit"] == 21_000
        assert by_state[TransferState.FEES_COMPUTED]["base_fee_per_gas"] == 100
        assert by_state[TransferState.SIGNED]["nonce"] == 7
        assert by_state[TransferState.BROADCAST]["tx_hash"] == by_state[TransferState.SIGNED]["tx_hash"]
        assert by_state[TransferState.CONFIRMED]["status"] == 1

    def test_no_key_material_in_events(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        execute_transfer(config, client=FakeChainClient(), signer=signer, on_event=events.append)
        assert config.signing_key.hex() not in repr(events)


class TestFailures:
    def test_estimation_revert(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(estimate_error=revert_error())
        events: list[TransferEvent] = []

        with pytest.raises(EstimationFailed) as info:
            execute_transfer(config, client=client, signer=signer, on_event=events.append)

        assert "execution reverted" in str(info.value)
        assert info.value.state is TransferState.BUILT
        assert info.value.exit_code == 3
        assert client.methods == ["estimate_gas"]
        assert client.sent == []
        assert events[-1].state is TransferState.FAILED
        assert events[-1].data["error"] == "EstimationFailed"
        assert TransferState.SIGNED not in [e.state for e in events]

    def test_broadcast_rejected(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(
            broadcast_error=RpcError("eth_sendRawTransaction", -32000, "insufficient funds for gas * price + value")
        )
        with pytest.raises(BroadcastRejected) as info:
            execute_transfer(config, client=client, signer=signer)

        assert info.value.detail == "insufficient funds for gas * price + value"
        assert info.value.state is TransferState.SIGNED
        assert client.methods == HAPPY_PATH[:4]
        assert client.methods.count("send_raw_transaction") == 1

    def test_network_failure_surfaces(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(estimate_error=NetworkUnavailable("connection refused"))
        events: list[TransferEvent] = []
        with pytest.raises(NetworkUnavailable):
            execute_transfer(config, client=client, signer=signer, on_event=events.append)
        assert events[-1].data == {
            "error": "NetworkUnavailable",
            "failed_in": "built",
        }

    def test_missing_base_fee_falls_back(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        execute_transfer(
            config, client=FakeChainClient(base_fee=None), signer=signer, on_event=events.append
        )
        fees = next(e for e in events if e.state is TransferState.FEES_COMPUTED)
        assert fees.data["base_fee_per_gas"] == 0
        assert fees.data["max_fee_per_gas"] == fees.data["max_priority_fee_per_gas"]

    def test_missing_base_fee_strict(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(base_fee=None)
        with pytest.raises(FeeDataUnavailable) as info:
            execute_transfer(
                dataclasses.replace(config, require_base_fee=True), client=client, signer=signer
            )
        assert info.value.state is TransferState.ESTIMATED
        assert client.methods == ["estimate_gas", "get_latest_block"]

    def test_absurd_gas_estimate(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient(gas=2**250, base_fee=2**10)
        with pytest.raises(FeeDataUnavailable):
            execute_transfer(config, client=client, signer=signer)
        assert client.sent == []

    def test_bad_key_is_signing_failure(self, config: TransferConfig) -> None:
        client = FakeChainClient()
        events: list[TransferEvent] = []
        with pytest.raises(SigningFailed):
            execute_transfer(
                dataclasses.replace(config, signing_key=b"\x00" * 32),
                client=client,
                on_event=events.append,
            )
        assert client.calls == []
        assert events[-1].state is TransferState.FAILED

    def test_wrong_chain_id_is_signing_failure(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        with pytest.raises(SigningFailed):
            execute_transfer(dataclasses.replace(config, chain_id=0), client=client, signer=signer)
        assert "send_raw_transaction" not in client.methods

    def test_confirmation_timeout(self, config: TransferConfig, signer: Signer) -> None:
        class SlowClient(FakeChainClient):
            def await_receipt(self, tx_hash, **kwargs):
                self.calls.append(("await_receipt", (tx_hash, kwargs)))
                raise ConfirmationTimeout(tx_hash, kwargs["timeout"])

        client = SlowClient()
        events: list[TransferEvent] = []
        with pytest.raises(ConfirmationTimeout):
            execute_transfer(config, client=client, signer=signer, timeout=1, on_event=events.append)
        assert client.methods.count("send_raw_transaction") == 1
        assert events[-1].data["failed_in"] == "broadcast"

    def test_network_failure_reports_step(self, config: TransferConfig, signer: Signer) -> None:
        class NoNonceClient(FakeChainClient):
            def get_nonce(self, address, block="pending"):
                self.calls.append(("get_nonce", (address, block)))
                raise NetworkUnavailable("read timed out", method="eth_getTransactionCount")

        client = NoNonceClient()
        events: list[TransferEvent] = []
        with pytest.raises(NetworkUnavailable) as info:
            execute_transfer(config, client=client, signer=signer, on_event=events.append)

        assert info.value.method == "eth_getTransactionCount"
        assert info.value.exit_code == 6
        assert events[-1].state is TransferState.FAILED
        assert events[-1].data == {"error": "NetworkUnavailable", "failed_in": "fees_computed"}
        assert client.sent == []


def _node(results: dict[str, Any]) -> ChainClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": results[body["method"]]}
        )

    return ChainClient("https://rpc.test", transport=httpx.MockTransport(handler))


NODE_RESULTS = {
    "eth_estimateGas": "0x5208",
    "eth_getBlockByNumber": {"number": "0x10", "hash": "0x01", "baseFeePerGas": "0x64"},
    "eth_getTransactionCount": "0x0",
    "eth_sendRawTransaction": None,
}


class TestMalformedNodeResults:
    def test_null_estimate_fails_cleanly(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        with pytest.raises(MalformedResponse) as info:
            execute_transfer(
                config,
                client=_node({**NODE_RESULTS, "eth_estimateGas": None}),
                signer=signer,
                on_event=events.append,
            )
        assert info.value.method == "eth_estimateGas"
        assert events[-1].data == {"error": "MalformedResponse", "failed_in": "built"}

    def test_hashless_receipt_after_broadcast(self, config: TransferConfig, signer: Signer) -> None:
        events: list[TransferEvent] = []
        client = _node({
            **NODE_RESULTS,
            "eth_getTransactionReceipt": {"blockNumber": "0x2", "status": "0x1"},
        })
        with pytest.raises(MalformedResponse):
            execute_transfer(
                config, client=client, signer=signer, on_event=events.append, poll_interval=0
            )
        assert TransferState.BROADCAST in [e.state for e in events]
        assert events[-1].data["failed_in"] == "broadcast"


class TestLogging:
    def test_library_use_prints_nothing(
        self, config: TransferConfig, signer: Signer, capsys: pytest.CaptureFixture[str]
    ) -> None:
        execute_transfer(config, client=FakeChainClient(base_fee=None), signer=signer)
        assert capsys.readouterr().out == ""


class TestStepwise:
    def test_quote_stops_before_signing(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        pipeline = TransferPipeline(config, client, signer)

        probe, fees = pipeline.quote()

        assert pipeline.state is TransferState.FEES_COMPUTED
        assert probe.value == config.amount
        assert fees.gas_limit == 21_000
        assert client.methods == ["estimate_gas", "get_latest_block"]

    def test_final_transaction_is_new_object(self, config: TransferConfig, signer: Signer) -> None:
        client = FakeChainClient()
        pipeline = TransferPipeline(config, client, signer)
        probe, fees = pipeline.quote()

        final, signed = pipeline.sign(probe, fees)

        assert final is not probe
        assert (final.sender, final.to, final.value) == (probe.sender, probe.to, probe.value)
        assert final.fees is fees
        assert final.nonce == 7
        assert signed.chain_id == config.chain_id
