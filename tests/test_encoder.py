"""Tests for CallEncoder: targets, selectors and argument layout."""

from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector

from omen_cpk.cpk_types import CALL
from omen_cpk.encoder import MAX_UINT256, CallEncoder, encode_function_call

TOKEN = "0x" + "dd" * 20
SPENDER = "0x" + "cc" * 20
OWNER = "0x" + "aa" * 20
CT = "0x" + "c1" * 20
CONDITION_ID = "0x" + "12" * 32


class TestEncodeFunctionCall:

    def test_known_selectors(self):
        assert encode_function_call("approve(address,uint256)", [SPENDER, 1])[:4].hex() == "095ea7b3"
        assert encode_function_call("transfer(address,uint256)", [SPENDER, 1])[:4].hex() == "a9059cbb"
        assert encode_function_call("deposit()", []).hex() == "d0e30db0"

    def test_no_arguments(self):
        assert len(encode_function_call("deposit()", [])) == 4

    def test_address_case_is_irrelevant(self):
        lower = encode_function_call("transfer(address,uint256)", [SPENDER, 5])
        upper = encode_function_call("transfer(address,uint256)", ["0x" + "CC" * 20, 5])
        assert lower == upper


class TestErc20Calls:

    def test_approve_unlimited(self):
        call = CallEncoder.approve_unlimited(TOKEN, SPENDER)
        assert (call.to, call.name, call.value, call.operation) == (TOKEN, "approve", 0, CALL)
        spender, amount = decode(["address", "uint256"], call.data[4:])
        assert spender.lower() == SPENDER and amount == MAX_UINT256

    def test_transfer_from(self):
        call = CallEncoder.transfer_from(TOKEN, OWNER, SPENDER, 100)
        assert call.data[:4].hex() == "23b872dd"
        sender, recipient, amount = decode(["address", "address", "uint256"], call.data[4:])
        assert (sender.lower(), recipient.lower(), amount) == (OWNER, SPENDER, 100)

    def test_wrap_carries_value(self):
        call = CallEncoder.wrap(TOKEN, 10 ** 18)
        assert call.value == 10 ** 18
        assert call.data.hex() == "d0e30db0"
        assert call.name == "wrap"


class TestConditionalTokensCalls:

    def test_set_approval_for_all(self):
        call = CallEncoder.set_approval_for_all(CT, SPENDER)
        assert call.data[:4].hex() == "a22cb465"
        assert call.to == CT

    def test_redeem_positions_binary_partition(self):
        call = CallEncoder.redeem_positions(CT, TOKEN, CONDITION_ID, 2)
        collateral, parent, condition, partition = decode(
            ["address", "bytes32", "bytes32", "uint256[]"], call.data[4:]
        )
        assert collateral.lower() == TOKEN
        assert parent == b"\x00" * 32
        assert condition == bytes.fromhex("12" * 32)
        assert list(partition) == [1, 2]

    def test_prepare_condition(self):
        oracle = "0x" + "01" * 20
        call = CallEncoder.prepare_condition(CT, oracle, "0x" + "34" * 32, 3)
        assert call.data[:4] == function_signature_to_4byte_selector(
            "prepareCondition(address,bytes32,uint256)"
        )
        decoded_oracle, question_id, count = decode(["address", "bytes32", "uint256"], call.data[4:])
        assert decoded_oracle.lower() == oracle
        assert question_id == bytes.fromhex("34" * 32)
        assert count == 3


class TestMarketMakerCalls:

    def test_buy_and_sell(self):
        buy = CallEncoder.buy(SPENDER, 100, 1, 95)
        sell = CallEncoder.sell(SPENDER, 50, 0, 120)
        assert decode(["uint256", "uint256", "uint256"], buy.data[4:]) == (100, 1, 95)
        assert decode(["uint256", "uint256", "uint256"], sell.data[4:]) == (50, 0, 120)
        assert buy.data[:4] != sell.data[:4]

    def test_remove_funding(self):
        call = CallEncoder.remove_funding(SPENDER, 42)
        assert decode(["uint256"], call.data[4:]) == (42,)

    def test_create_market_maker(self):
        factory = "0x" + "f1" * 20
        call = CallEncoder.create_market_maker(factory, 7, CT, TOKEN, CONDITION_ID,
                                               2 * 10 ** 16, 10 ** 18, [750000, 250000])
        assert call.to == factory
        assert call.name == "createMarketMaker"
        salt, ct, collateral, conditions, fee, funding, hint = decode(
            ["uint256", "address", "address", "bytes32[]", "uint256", "uint256", "uint256[]"],
            call.data[4:],
        )
        assert salt == 7
        assert ct.lower() == CT and collateral.lower() == TOKEN
        assert list(conditions) == [bytes.fromhex("12" * 32)]
        assert (fee, funding, list(hint)) == (2 * 10 ** 16, 10 ** 18, [750000, 250000])


class TestProxyCalls:

    def test_change_master_copy(self):
        proxy = "0x" + "bb" * 20
        target = "0x" + "34" * 20
        call = CallEncoder.change_master_copy(proxy, target)
        assert call.to == proxy
        (decoded,) = decode(["address"], call.data[4:])
        assert decoded.lower() == target

    def test_descriptor_to_dict(self):
        call = CallEncoder.wrap(TOKEN, 3)
        info = call.to_dict()
        assert info["name"] == "wrap"
        assert info["data"] == "0xd0e30db0"
        assert info["value"] == 3
