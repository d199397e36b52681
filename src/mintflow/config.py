"""
Mint workflow configuration.

Settings are read from the environment (a local ``.env`` file is loaded with
python-dotenv) and validated into pydantic models. Timing behaviour is
grouped into policy objects that are injected into the watcher, the
allowance synchronizer and the orchestrator, so tests can swap them out.
"""

import os
from typing import Optional

import dotenv
from pydantic import BaseModel, Field, field_validator

from .engine.policies import RetryPolicy, SyncPolicy, WatchPolicy
from .ports.evm.chains import get_chain_config

dotenv.load_dotenv()

#: Base mainnet
DEFAULT_CHAIN_ID: int = 8453

#: 1 USDC in the token's smallest unit
DEFAULT_MINT_PRICE: int = 1_000_000


class MintConfig(BaseModel):
    """
    Deployment configuration of the mint workflow.

    Attributes:
        chain_id: Target chain every read and write must happen on
        rpc_url: Explicit RPC endpoint; resolved from the chain registry when None
        contract_address: NFT contract; empty means minting is unavailable
        token_address: Payment token; defaults to the chain's USDC
        mint_price: Mint price in the token's smallest unit
        token_decimals: Decimals of the payment token, for display only
        private_key: Signer key for the EVM adapter
        metadata_endpoint: URL of the metadata publishing service
    """
    chain_id: int = Field(default=DEFAULT_CHAIN_ID, ge=1)
    rpc_url: Optional[str] = None
    contract_address: str = ""
    token_address: Optional[str] = None
    mint_price: int = Field(default=DEFAULT_MINT_PRICE, gt=0)
    token_decimals: int = Field(default=6, ge=0)
    private_key: Optional[str] = Field(default=None, repr=False)
    metadata_endpoint: Optional[str] = None
    sync: SyncPolicy = Field(default_factory=SyncPolicy)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    watch: WatchPolicy = Field(default_factory=WatchPolicy)

    @field_validator("contract_address")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @property
    def contract_configured(self) -> bool:
        return bool(self.contract_address)

    def resolved_token_address(self) -> Optional[str]:
        if self.token_address:
            return self.token_address
        chain = get_chain_config(self.chain_id)
        if chain is None or "USDC" not in chain.assets:
            return None
        return chain.assets["USDC"].address


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def load_config_from_env() -> MintConfig:
    """
    Build a MintConfig from environment variables.

    Variables:
        MINT_CHAIN_ID, MINT_RPC_URL, MINT_CONTRACT_ADDRESS, MINT_TOKEN_ADDRESS,
        MINT_PRICE, EVM_PRIVATE_KEY, MINT_METADATA_ENDPOINT,
        MINT_SYNC_GRACE_PERIOD, MINT_SYNC_FALLBACK_DELAY, MINT_RACE_BACKOFF,
        MINT_WATCH_POLL_INTERVAL, MINT_WATCH_TIMEOUT

    Raises:
        pydantic.ValidationError: If a value is malformed.
    """
    sync_defaults = SyncPolicy()
    retry_defaults = RetryPolicy()
    watch_defaults = WatchPolicy()
    return MintConfig(
        chain_id=int(os.getenv("MINT_CHAIN_ID") or DEFAULT_CHAIN_ID),
        rpc_url=os.getenv("MINT_RPC_URL") or None,
        contract_address=os.getenv("MINT_CONTRACT_ADDRESS", ""),
        token_address=os.getenv("MINT_TOKEN_ADDRESS") or None,
        mint_price=int(os.getenv("MINT_PRICE") or DEFAULT_MINT_PRICE),
        private_key=os.getenv("EVM_PRIVATE_KEY") or None,
        metadata_endpoint=os.getenv("MINT_METADATA_ENDPOINT") or None,
        sync=SyncPolicy(
            grace_period=_env_float("MINT_SYNC_GRACE_PERIOD", sync_defaults.grace_period),
            fallback_delay=_env_float("MINT_SYNC_FALLBACK_DELAY", sync_defaults.fallback_delay),
        ),
        retry=RetryPolicy(
            race_backoff=_env_float("MINT_RACE_BACKOFF", retry_defaults.race_backoff),
        ),
        watch=WatchPolicy(
            poll_interval=_env_float("MINT_WATCH_POLL_INTERVAL", watch_defaults.poll_interval),
            timeout=_env_float("MINT_WATCH_TIMEOUT", watch_defaults.timeout),
        ),
    )
