"""
EVM Chain Configuration Management

Provides access to the chains the mint contract is deployed on and their
payment-token assets. Includes RPC URL resolution (premium RPC with an
infrastructure key, falling back to the public endpoint), explorer links and
token amount conversions for user-facing messages.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from pydantic import BaseModel, Field


class EvmAssetConfig(BaseModel):
    """Token asset configuration."""
    symbol: str
    address: str = Field(..., description="Token contract address")
    name: str = Field(..., description="Token name")
    decimals: int = Field(..., description="Token decimals")


class EvmChainConfig(BaseModel):
    """EVM blockchain network configuration."""
    caip2: str
    chain_id: int
    name: str
    rpc_url: Optional[str] = Field(..., description="JSON-RPC endpoint URL template")
    public_rpc_url: str = Field(..., description="Public RPC endpoint (fallback when no infra key)")
    explorer_url: str = Field(..., description="Block explorer URL")
    assets: Dict[str, EvmAssetConfig] = Field(default_factory=dict, description="Supported assets")


# Premium RPC templates carry a {RPC_KEYS} placeholder; the public RPC is used
# when no infrastructure key is configured.
_EVM_CHAINS_DATA: Dict = {
    "eip155:8453": {
        "name": "Base Mainnet",
        "rpc_url": "https://base-mainnet.g.alchemy.com/v2/{RPC_KEYS}",
        "public_rpc_url": "https://mainnet.base.org",
        "explorer_url": "https://basescan.org",
        "assets": {
            "USDC": {
                "address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                "name": "USD Coin",
                "decimals": 6,
            },
        },
    },
    "eip155:84532": {
        "name": "Base Sepolia",
        "rpc_url": "https://base-sepolia.g.alchemy.com/v2/{RPC_KEYS}",
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
        "assets": {
            "USDC": {
                "address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                "name": "USDC",
                "decimals": 6,
            },
        },
    },
}


def _build_chain_configs() -> Dict[str, EvmChainConfig]:
    configs = {}
    for caip2, data in _EVM_CHAINS_DATA.items():
        assets = {
            symbol: EvmAssetConfig(symbol=symbol, **asset)
            for symbol, asset in data["assets"].items()
        }
        configs[caip2] = EvmChainConfig(
            caip2=caip2,
            chain_id=int(caip2.split(":")[1]),
            name=data["name"],
            rpc_url=data["rpc_url"],
            public_rpc_url=data["public_rpc_url"],
            explorer_url=data["explorer_url"],
            assets=assets,
        )
    return configs


EVM_CHAINS: Dict[str, EvmChainConfig] = _build_chain_configs()


def get_chain_config(chain_id: int) -> Optional[EvmChainConfig]:
    """Return the configuration for ``chain_id``, or None if unsupported."""
    return EVM_CHAINS.get(f"eip155:{chain_id}")


def get_rpc_key_from_env() -> Optional[str]:
    """Load the optional infrastructure API key (e.g. Alchemy) from ``EVM_RPC_KEY``."""
    return os.getenv("EVM_RPC_KEY")


def get_rpc_url(chain_id: int, infra_key: Optional[str] = None) -> Optional[str]:
    """
    Resolve the RPC endpoint for a chain.

    Args:
        chain_id: EVM chain id (8453 = Base, 84532 = Base Sepolia).
        infra_key: Optional infrastructure key substituted into the premium
            RPC template. Without one the public RPC is returned.

    Returns:
        The RPC URL, or None if the chain is unsupported.
    """
    config = get_chain_config(chain_id)
    if config is None:
        return None
    if infra_key and config.rpc_url:
        return config.rpc_url.replace("{RPC_KEYS}", infra_key)
    return config.public_rpc_url


def get_explorer_tx_url(chain_id: int, tx_hash: str) -> Optional[str]:
    config = get_chain_config(chain_id)
    if config is None:
        return None
    return f"{config.explorer_url}/tx/{tx_hash}"


def value_to_amount(*, value: int, decimals: int) -> Decimal:
    """Convert a smallest-unit integer ``value`` into a human-readable amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0 or dec_value != dec_value.to_integral_value():
        raise ValueError("value must be a non-negative integer in smallest units")

    return dec_value / (Decimal(10) ** decimals)


def format_token_amount(value: int, decimals: int = 6, symbol: str = "USDC") -> str:
    """Render ``value`` smallest units as e.g. ``"1.00 USDC"``."""
    return f"{value_to_amount(value=value, decimals=decimals):.2f} {symbol}"
