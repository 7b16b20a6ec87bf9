"""Tests for configuration loading and network lookups."""

import json

import pytest

from omen_cpk.config import (
    DEFAULT_CONFIG,
    get_contract_address,
    get_network,
    get_realitio_timeout,
    get_token,
    load_config,
    native_token,
)
from omen_cpk.errors import PreconditionError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CPK_CONFIG", "CPK_RPC_URL", "CPK_PRIVATE_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:

    def test_defaults(self):
        config = load_config()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "cpk.json"
        path.write_text(json.dumps({"rpc_url": "http://node:8545", "gas_buffer": 1.5}))

        config = load_config(str(path))

        assert config["rpc_url"] == "http://node:8545"
        assert config["gas_buffer"] == 1.5
        assert config["confirmation_timeout"] == DEFAULT_CONFIG["confirmation_timeout"]

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "cpk.json"
        path.write_text(json.dumps({"question_language": "es_ES"}))
        monkeypatch.setenv("CPK_CONFIG", str(path))
        assert load_config()["question_language"] == "es_ES"

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "cpk.json"
        path.write_text(json.dumps({"rpc_url": "http://file:8545"}))
        monkeypatch.setenv("CPK_RPC_URL", "http://env:8545")
        monkeypatch.setenv("CPK_PRIVATE_KEY", "0x" + "11" * 32)

        config = load_config(str(path))

        assert config["rpc_url"] == "http://env:8545"
        assert config["private_key"] == "0x" + "11" * 32

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "nope.json")) == DEFAULT_CONFIG


class TestNetworks:

    def test_mainnet_contract_is_checksummed(self):
        address = get_contract_address(load_config(), 1, "conditionalTokens")
        assert address == "0xC59b0e4De5F1248C1140964E0fF287B192407E0C"

    def test_unknown_contract(self):
        with pytest.raises(PreconditionError):
            get_contract_address(load_config(), 1, "nope")

    def test_unsupported_chain(self):
        with pytest.raises(PreconditionError):
            get_network(load_config(), 12345)

    def test_network_from_config(self):
        config = load_config()
        config["networks"] = {
            "100": {
                "realitio_timeout": 3600,
                "contracts": {"oracle": "0x" + "01" * 20},
                "tokens": {"wxdai": {"address": "0x" + "02" * 20, "symbol": "WXDAI"}},
            }
        }
        assert get_contract_address(config, 100, "oracle").lower() == "0x" + "01" * 20
        assert get_token(config, 100, "WXDAI").symbol == "WXDAI"
        assert get_realitio_timeout(config, 100) == 3600

    def test_override_merges_into_builtin(self):
        config = load_config()
        config["networks"] = {"1": {"contracts": {"oracle": "0x" + "01" * 20}}}
        assert get_contract_address(config, 1, "oracle").lower() == "0x" + "01" * 20
        assert get_contract_address(config, 1, "realitio") == "0x325a2e0F3CCA2ddbaeBB4DfC38Df8D19ca165b47"

    def test_tokens(self):
        usdc = get_token(load_config(), 1, "usdc")
        assert usdc.decimals == 6
        assert not usdc.is_native
        assert native_token().is_native

    def test_realitio_timeout_from_config_wins(self):
        config = load_config()
        config["realitio_timeout"] = 600
        assert get_realitio_timeout(config, 1) == 600
        assert get_realitio_timeout(load_config(), 1) == 86400
