"""
Configuration and chain registry tests.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from mintflow.config import DEFAULT_CHAIN_ID, DEFAULT_MINT_PRICE, MintConfig, load_config_from_env
from mintflow.engine.policies import RetryPolicy
from mintflow.ports.evm.chains import format_token_amount, get_explorer_tx_url, get_rpc_url


def test_defaults_from_empty_environment():
    with patch.dict(os.environ, {}, clear=True):
        config = load_config_from_env()

    assert config.chain_id == DEFAULT_CHAIN_ID
    assert config.mint_price == DEFAULT_MINT_PRICE
    assert not config.contract_configured
    assert config.sync.grace_period == 4.0
    assert config.retry.max_race_retries == 1
    assert config.resolved_token_address() == "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def test_environment_overrides():
    env = {
        "MINT_CHAIN_ID": "84532",
        "MINT_CONTRACT_ADDRESS": "  0x1234567890123456789012345678901234567890 ",
        "MINT_PRICE": "2500000",
        "MINT_SYNC_GRACE_PERIOD": "1.5",
        "MINT_SYNC_FALLBACK_DELAY": "0.5",
        "MINT_RACE_BACKOFF": "1",
        "MINT_WATCH_TIMEOUT": "30",
        "MINT_WATCH_POLL_INTERVAL": "1",
        "MINT_METADATA_ENDPOINT": "https://app.example/api/metadata",
    }
    with patch.dict(os.environ, env, clear=True):
        config = load_config_from_env()

    assert config.chain_id == 84532
    assert config.contract_address == "0x1234567890123456789012345678901234567890"
    assert config.contract_configured
    assert config.mint_price == 2_500_000
    assert config.sync.grace_period == 1.5
    assert config.sync.fallback_delay == 0.5
    assert config.retry.race_backoff == 1.0
    assert config.watch.timeout == 30.0
    assert config.watch.poll_interval == 1.0
    assert config.metadata_endpoint == "https://app.example/api/metadata"
    assert config.resolved_token_address() == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"


def test_private_key_not_in_repr():
    config = MintConfig(private_key="0xsecret")
    assert "0xsecret" not in repr(config)


def test_race_retries_capped_at_one():
    with pytest.raises(ValidationError):
        RetryPolicy(max_race_retries=2)


def test_mint_price_must_be_positive():
    with pytest.raises(ValidationError):
        MintConfig(mint_price=0)


def test_rpc_url_resolution():
    assert get_rpc_url(8453) == "https://mainnet.base.org"
    assert get_rpc_url(8453, "abc") == "https://base-mainnet.g.alchemy.com/v2/abc"
    assert get_rpc_url(1) is None


def test_explorer_and_amount_formatting():
    assert get_explorer_tx_url(84532, "0xabc") == "https://sepolia.basescan.org/tx/0xabc"
    assert get_explorer_tx_url(1, "0xabc") is None
    assert format_token_amount(1_000_000) == "1.00 USDC"
