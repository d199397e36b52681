"""
Contract ABI Module

Minimal ABI definitions for the two contracts the mint workflow touches: the
ERC-20 payment token (USDC) and the employee ID NFT contract.

Usage:
    from mintflow.ports.evm.abi import get_erc20_abi, get_employee_id_abi

    token = web3.eth.contract(address=token_address, abi=get_erc20_abi())
    nft = web3.eth.contract(address=contract_address, abi=get_employee_id_abi())
"""

from typing import Dict, Any, List


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ERC20 functions used by the workflow.

    Covers ``balanceOf(account)``, ``allowance(owner, spender)`` and
    ``approve(spender, amount)``.

    Returns:
        List[Dict[str, Any]]: ABI entries.

    Example:
        contract = web3.eth.contract(address=token_address, abi=get_erc20_abi())
        allowance = await contract.functions.allowance(owner, spender).call()
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
    ]


def get_employee_id_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the employee ID NFT contract.

    Functions:
        hasMinted(address) -> bool
        getMintPriceUSDC() -> uint256
        mintEmployeeID(character, displayName, analysisText, fid, metadataURI)
        employees(tokenId) -> (character, displayName, analysisText, mintedAt, fid)
        tokenURI(tokenId) -> string
        ownerOf(tokenId) -> address

    Returns:
        List[Dict[str, Any]]: ABI entries.
    """
    return [
        {
            "name": "hasMinted",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "bool"}],
        },
        {
            "name": "getMintPriceUSDC",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "mintEmployeeID",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "character", "type": "string"},
                {"name": "displayName", "type": "string"},
                {"name": "analysisText", "type": "string"},
                {"name": "fid", "type": "uint256"},
                {"name": "metadataURI", "type": "string"},
            ],
            "outputs": [],
        },
        {
            "name": "employees",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "tokenId", "type": "uint256"}],
            "outputs": [
                {"name": "character", "type": "string"},
                {"name": "displayName", "type": "string"},
                {"name": "analysisText", "type": "string"},
                {"name": "mintedAt", "type": "uint256"},
                {"name": "fid", "type": "uint256"},
            ],
        },
        {
            "name": "tokenURI",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "tokenId", "type": "uint256"}],
            "outputs": [{"name": "", "type": "string"}],
        },
        {
            "name": "ownerOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "tokenId", "type": "uint256"}],
            "outputs": [{"name": "", "type": "address"}],
        },
    ]
