"""Tests for ChainClient error mapping (web3 replaced by a stub)."""

from types import SimpleNamespace

import pytest
import requests
from web3.exceptions import ContractLogicError, TimeExhausted

from omen_cpk.errors import (
    ConfirmationTimeoutError,
    PreconditionError,
    StateQueryError,
    SubmissionError,
)
from omen_cpk.rpc_client import ChainClient

from conftest import run

PRIVATE_KEY = "0x" + "11" * 32


def make_w3(**eth) -> SimpleNamespace:
    return SimpleNamespace(eth=SimpleNamespace(**eth))


class StubFunction:

    def __init__(self, tx=None, error=None):
        self.tx = tx
        self.error = error
        self.params = None

    def build_transaction(self, params):
        self.params = params
        if self.error:
            raise self.error
        return dict(self.tx)


class TestQueries:

    def test_transport_error_becomes_state_query_error(self):
        chain = ChainClient(w3=make_w3())

        def fail():
            raise requests.exceptions.ConnectionError("refused")

        with pytest.raises(StateQueryError) as excinfo:
            run(chain.run(fail, label="allowance"))
        assert excinfo.value.label == "allowance"
        assert isinstance(excinfo.value.cause, requests.exceptions.ConnectionError)

    def test_chain_id_is_cached(self):
        counter = {"n": 0}

        class Eth:
            @property
            def chain_id(self):
                counter["n"] += 1
                return 100

        chain = ChainClient(w3=SimpleNamespace(eth=Eth()))
        assert run(chain.get_chain_id()) == 100
        assert run(chain.get_chain_id()) == 100
        assert counter["n"] == 1

    def test_address_requires_key(self):
        with pytest.raises(PreconditionError):
            ChainClient(w3=make_w3()).address


class TestSubmission:

    def test_rejected_estimate_is_submission_error(self):
        w3 = make_w3(get_transaction_count=lambda address, block: 0)
        chain = ChainClient(private_key=PRIVATE_KEY, w3=w3)
        fn = StubFunction(error=ContractLogicError("execution reverted"))

        with pytest.raises(SubmissionError):
            run(chain.send_transaction(fn))

    def test_gas_buffer_and_signing(self):
        signed = {}

        def sign_transaction(tx, key):
            signed["tx"] = tx
            return SimpleNamespace(raw_transaction=b"\x01\x02")

        w3 = make_w3(
            get_transaction_count=lambda address, block: 7,
            account=SimpleNamespace(sign_transaction=sign_transaction),
            send_raw_transaction=lambda raw: b"\xab" * 32,
        )
        chain = ChainClient(private_key=PRIVATE_KEY, gas_buffer=1.5, w3=w3)
        fn = StubFunction(tx={"gas": 100000, "to": "0x" + "cc" * 20, "data": "0x"})

        tx_hash = run(chain.send_transaction(fn, value=3))

        assert tx_hash == "0x" + "ab" * 32
        assert signed["tx"]["gas"] == 150000
        assert fn.params == {"from": chain.address, "value": 3, "nonce": 7}

    def test_timeout_is_confirmation_timeout(self):
        def wait(tx_hash, timeout):
            raise TimeExhausted("not mined")

        chain = ChainClient(w3=make_w3(wait_for_transaction_receipt=wait))
        with pytest.raises(ConfirmationTimeoutError) as excinfo:
            run(chain.wait_for_receipt("0x01", timeout=1))
        assert excinfo.value.tx_hash == "0x01"


class TestRevertReason:

    def test_replay_recovers_reason(self):
        def call(tx, block_identifier):
            raise ContractLogicError("execution reverted: not enough collateral")

        w3 = make_w3(
            get_transaction=lambda tx_hash: {"from": "0x" + "aa" * 20, "to": "0x" + "bb" * 20,
                                             "input": "0x", "value": 0},
            call=call,
        )
        reason = run(ChainClient(w3=w3).revert_reason("0x01", 10))
        assert reason == "execution reverted: not enough collateral"

    def test_unavailable_reason_is_none(self):
        def get_transaction(tx_hash):
            raise requests.exceptions.Timeout("slow node")

        reason = run(ChainClient(w3=make_w3(get_transaction=get_transaction)).revert_reason("0x01", 10))
        assert reason is None
