from .adapter import EVMChainPort, LocalWalletContext
from .abi import get_erc20_abi, get_employee_id_abi
from .chains import (
    EvmAssetConfig,
    EvmChainConfig,
    get_chain_config,
    get_rpc_url,
    get_explorer_tx_url,
    format_token_amount,
)
from .reverts import decode_revert_data, decode_contract_error

__all__ = [
    "EVMChainPort",
    "LocalWalletContext",
    "get_erc20_abi",
    "get_employee_id_abi",
    "EvmAssetConfig",
    "EvmChainConfig",
    "get_chain_config",
    "get_rpc_url",
    "get_explorer_tx_url",
    "format_token_amount",
    "decode_revert_data",
    "decode_contract_error",
]
