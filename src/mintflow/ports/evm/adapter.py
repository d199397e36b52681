"""
EVM Chain Port

Implements the chain read and write ports on top of web3.py for the employee
ID NFT contract and its ERC-20 payment token.

Key Features:
    - Allowance, balance and "already minted" reads
    - approve / mintEmployeeID submission with gas estimation and EIP-1559 fees
    - Receipt lookup for the confirmation watcher, with revert reason replay
    - Token record reads used for metadata recovery

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from ...engine.exceptions import (
    BlockchainInteractionError,
    ChainSwitchError,
    ConfigurationError,
    ContractRevertError,
    RevertCode,
    UserRejectedError,
)
from ...schemas.bases import TransactionHandle, TransactionKind, TransactionReceipt, TransactionStatus
from ...schemas.metadata import EmployeeRecord
from ...schemas.mint import MintRequest
from ..bases import ChainReadPort, ChainWritePort, WalletContext
from .abi import get_employee_id_abi, get_erc20_abi
from .chains import get_chain_config, get_rpc_key_from_env, get_rpc_url
from .reverts import decode_contract_error

logger = logging.getLogger(__name__)

#: Used when gas estimation fails for reasons other than a revert.
_FALLBACK_GAS_LIMIT: int = 300000

SigningConfirmation = Callable[[TransactionKind, Dict[str, Any]], Awaitable[bool]]


def _hex(value) -> str:
    return value if isinstance(value, str) else AsyncWeb3.to_hex(value)


def _log_to_dict(log) -> Dict[str, Any]:
    return {
        "address": log["address"],
        "topics": [_hex(topic) for topic in log["topics"]],
        "data": _hex(log["data"]),
    }


class EVMChainPort(ChainReadPort, ChainWritePort):
    """
    web3.py implementation of the chain ports for a single target chain.

    Attributes:
        account: Signer account (from ``private_key``)
        wallet_address: Checksum address of the signer
        chain_id: Target chain id
        contract_address: Checksum address of the NFT contract
        token_address: Checksum address of the payment token

    Example:
        port = EVMChainPort(
            private_key="0x...",
            chain_id=8453,
            contract_address="0x...",
            token_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        )
        allowance = await port.read_allowance(port.wallet_address, port.spender)
    """

    def __init__(
        self,
        private_key: Optional[str],
        chain_id: int,
        contract_address: str,
        token_address: str,
        rpc_url: Optional[str] = None,
        request_timeout: int = 60,
        confirm_signing: Optional[SigningConfirmation] = None,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Args:
            private_key: Signer private key (0x-prefixed hex).
            chain_id: Target chain id.
            contract_address: NFT contract address.
            token_address: ERC-20 payment token address.
            rpc_url: Explicit RPC endpoint; resolved from the chain registry
                (with ``EVM_RPC_KEY`` when set) if omitted.
            request_timeout: HTTP timeout for RPC requests, in seconds.
            confirm_signing: Optional async callback shown each transaction
                before signing; returning False declines it.
            web3: Pre-built AsyncWeb3 instance (tests).

        Raises:
            ConfigurationError: If the key is missing or the chain has no RPC.
        """
        if not private_key:
            raise ConfigurationError(
                "Private key not provided. Either pass 'private_key' or set "
                "the 'EVM_PRIVATE_KEY' environment variable."
            )
        self.account = Account.from_key(private_key)
        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)
        self.chain_id = chain_id
        self.contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self.token_address = AsyncWeb3.to_checksum_address(token_address)
        self._confirm_signing = confirm_signing
        self._request_timeout = request_timeout
        self._rpc_url = rpc_url or get_rpc_url(chain_id, get_rpc_key_from_env())
        if web3 is None and not self._rpc_url:
            raise ConfigurationError(f"Unsupported chain_id: {chain_id}")
        self._web3 = web3

    def _get_web3_instance(self) -> AsyncWeb3:
        """Return the AsyncWeb3 instance for the target chain, creating it on first use."""
        if self._web3 is None:
            self._web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                self._rpc_url,
                request_kwargs={"timeout": self._request_timeout}
            ))
        return self._web3

    def _token(self):
        return self._get_web3_instance().eth.contract(address=self.token_address, abi=get_erc20_abi())

    def _nft(self):
        return self._get_web3_instance().eth.contract(address=self.contract_address, abi=get_employee_id_abi())

    @property
    def spender(self) -> str:
        return self.contract_address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_allowance(self, owner: str, spender: str) -> int:
        try:
            allowance = await self._token().functions.allowance(
                AsyncWeb3.to_checksum_address(owner),
                AsyncWeb3.to_checksum_address(spender),
            ).call(block_identifier="latest")
            return int(allowance)
        except Web3Exception as e:
            raise BlockchainInteractionError(
                f"Failed to query allowance for token {self.token_address}. "
                f"Owner: {owner}, Spender: {spender}. Error: {e}"
            ) from e

    async def read_balance(self, owner: str) -> int:
        try:
            balance = await self._token().functions.balanceOf(AsyncWeb3.to_checksum_address(owner)).call()
            return int(balance)
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to query balance of {owner}: {e}") from e

    async def read_has_minted(self, owner: str) -> bool:
        try:
            return bool(await self._nft().functions.hasMinted(AsyncWeb3.to_checksum_address(owner)).call())
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to query hasMinted for {owner}: {e}") from e

    async def read_mint_price(self) -> int:
        """Contract-reported mint price (informational)."""
        try:
            return int(await self._nft().functions.getMintPriceUSDC().call())
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to query mint price: {e}") from e

    async def read_block_number(self) -> int:
        try:
            return int(await self._get_web3_instance().eth.block_number)
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to query block number: {e}") from e

    async def read_employee(self, token_id: int) -> EmployeeRecord:
        """Read the on-chain ``employees(tokenId)`` record."""
        try:
            character, display_name, analysis_text, minted_at, fid = await self._nft().functions.employees(token_id).call()
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to read employee record {token_id}: {e}") from e
        return EmployeeRecord(
            token_id=token_id,
            character=character,
            display_name=display_name,
            analysis_text=analysis_text,
            minted_at=int(minted_at),
            fid=int(fid),
        )

    async def read_token_uri(self, token_id: int) -> str:
        try:
            return await self._nft().functions.tokenURI(token_id).call()
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to read tokenURI({token_id}): {e}") from e

    async def get_receipt(self, handle: TransactionHandle) -> Optional[TransactionReceipt]:
        """
        Look up a transaction receipt.

        Returns None while pending. For reverted transactions the call is
        replayed at the receipt's block to recover the revert reason.
        """
        web3 = self._get_web3_instance()
        try:
            receipt = await web3.eth.get_transaction_receipt(handle.tx_hash)
        except TransactionNotFound:
            return None
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to fetch receipt for {handle.tx_hash}: {e}") from e
        if not receipt:
            return None

        current_block = await web3.eth.block_number
        confirmations = max(current_block - receipt["blockNumber"] + 1, 1)
        logs = [_log_to_dict(log) for log in receipt.get("logs") or []]

        if receipt.get("status") == 1:
            return TransactionReceipt(
                tx_hash=handle.tx_hash,
                status=TransactionStatus.CONFIRMED,
                block_number=receipt["blockNumber"],
                gas_used=receipt["gasUsed"],
                confirmations=confirmations,
                logs=logs,
            )

        reason, code = await self._replay_revert(handle.tx_hash, receipt["blockNumber"])
        return TransactionReceipt(
            tx_hash=handle.tx_hash,
            status=TransactionStatus.REVERTED,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            confirmations=confirmations,
            revert_reason=reason,
            revert_code=code.value,
            logs=logs,
        )

    async def _replay_revert(self, tx_hash: str, block_number: int) -> Tuple[str, RevertCode]:
        """Re-execute a reverted transaction with ``eth_call`` to recover its reason."""
        web3 = self._get_web3_instance()
        try:
            tx = await web3.eth.get_transaction(tx_hash)
            await web3.eth.call(
                {
                    "from": tx["from"],
                    "to": tx["to"],
                    "data": tx["input"],
                    "value": tx.get("value", 0),
                },
                block_identifier=block_number,
            )
        except ContractLogicError as e:
            return decode_contract_error(e)
        except Web3Exception as e:
            logger.warning("Could not replay reverted transaction %s: %s", tx_hash, e)
        return "Transaction reverted on-chain", RevertCode.UNKNOWN

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit_approve(self, spender: str, amount: int) -> TransactionHandle:
        tx_fn = self._token().functions.approve(AsyncWeb3.to_checksum_address(spender), amount)
        return await self._sign_and_send(TransactionKind.APPROVE, tx_fn)

    async def submit_mint(self, request: MintRequest) -> TransactionHandle:
        tx_fn = self._nft().functions.mintEmployeeID(
            request.character,
            request.display_name,
            request.analysis_text,
            request.fid,
            request.metadata_url,
        )
        return await self._sign_and_send(TransactionKind.MINT, tx_fn)

    async def _sign_and_send(self, kind: TransactionKind, tx_fn) -> TransactionHandle:
        """
        Build, confirm, sign and broadcast a contract call.

        Gas is estimated with a 10% buffer; a revert during estimation is
        raised as ContractRevertError before anything is broadcast.

        Raises:
            UserRejectedError: If ``confirm_signing`` declines the transaction.
            ContractRevertError: If the call reverts during estimation.
            BlockchainInteractionError: If the node rejects the transaction.
        """
        web3 = self._get_web3_instance()
        tx_params: Dict[str, Any] = {
            "chainId": self.chain_id,
            "from": self.wallet_address,
        }

        try:
            gas_estimate = await tx_fn.estimate_gas({"from": self.wallet_address})
            tx_params["gas"] = int(gas_estimate * 1.1)
        except ContractLogicError as e:
            reason, code = decode_contract_error(e)
            raise ContractRevertError(reason, code) from e
        except Web3Exception as e:
            logger.warning("Gas estimation failed for %s, using fallback limit: %s", kind.value, e)
            tx_params["gas"] = _FALLBACK_GAS_LIMIT

        try:
            tx_params["nonce"] = await web3.eth.get_transaction_count(self.wallet_address, "pending")
            try:
                fee_history = await web3.eth.fee_history(1, "latest", [25.0])
                base_fee = fee_history["baseFeePerGas"][-1]
                priority_fee = fee_history["reward"][0][0]
                tx_params["maxPriorityFeePerGas"] = priority_fee
                tx_params["maxFeePerGas"] = (base_fee * 2) + priority_fee
            except (Web3Exception, KeyError, IndexError):
                tx_params["gasPrice"] = await web3.eth.gas_price

            transaction = await tx_fn.build_transaction(tx_params)
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to build {kind.value} transaction: {e}") from e

        if self._confirm_signing is not None and not await self._confirm_signing(kind, dict(transaction)):
            raise UserRejectedError(f"Signer declined the {kind.value} transaction")

        signed_tx = self.account.sign_transaction(transaction)
        try:
            tx_hash = await web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except ContractLogicError as e:
            reason, code = decode_contract_error(e)
            raise ContractRevertError(reason, code) from e
        except Web3Exception as e:
            raise BlockchainInteractionError(f"Failed to broadcast {kind.value} transaction: {e}") from e

        handle = TransactionHandle(tx_hash=AsyncWeb3.to_hex(tx_hash), kind=kind, chain_id=self.chain_id)
        logger.info("Submitted %s transaction %s", kind.value, handle.tx_hash)
        return handle


class LocalWalletContext(WalletContext):
    """
    Wallet context for a locally held key.

    The wallet is "connected" to ``chain_id``; switching succeeds for any
    chain in the registry and fails with ChainSwitchError otherwise.
    """

    def __init__(self, address: Optional[str], chain_id: Optional[int]):
        self._address = AsyncWeb3.to_checksum_address(address) if address else None
        self._chain_id = chain_id

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        if get_chain_config(chain_id) is None:
            raise ChainSwitchError(f"Chain {chain_id} is not available")
        logger.info("Wallet switched from chain %s to %s", self._chain_id, chain_id)
        self._chain_id = chain_id
