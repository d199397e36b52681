"""
Abstract Base Classes for Mint Workflow Collaborators

Defines the capabilities the mint orchestrator consumes but does not
implement: reading chain state, submitting transactions, the connected
wallet context and the metadata publishing service. Concrete adapters (EVM
via web3.py, HTTP via httpx, in-memory fakes in tests) inherit from these.

Core Classes:
    - ChainReadPort: Allowance, balance, "already minted" and receipt reads
    - ChainWritePort: Approve and mint submissions
    - WalletContext: Connected address and chain, plus the chain-switch action
    - MetadataPublisher: Publishes the token metadata and returns its URL
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.bases import TransactionHandle, TransactionReceipt
from ..schemas.metadata import EmployeeMetadata
from ..schemas.mint import MintRequest


class ChainReadPort(ABC):
    """
    Read-only view of on-chain state.

    Reads must not be served from a cache: the allowance synchronizer relies
    on every call reaching the node.
    """

    @abstractmethod
    async def read_allowance(self, owner: str, spender: str) -> int:
        """
        Read the payment-token allowance ``owner`` granted to ``spender``.

        Returns:
            int: Allowance in the token's smallest unit.

        Raises:
            BlockchainInteractionError: If the RPC call fails.
        """

    @abstractmethod
    async def read_balance(self, owner: str) -> int:
        """Read the payment-token balance of ``owner`` in smallest units."""

    @abstractmethod
    async def read_has_minted(self, owner: str) -> bool:
        """Return True if ``owner`` already holds a minted collectible."""

    @abstractmethod
    async def get_receipt(self, handle: TransactionHandle) -> Optional[TransactionReceipt]:
        """
        Look up the receipt of a submitted transaction.

        Returns:
            The terminal receipt, or None while the transaction is pending.

        Raises:
            BlockchainInteractionError: If the RPC call fails.
        """


class ChainWritePort(ABC):
    """Submission of signed transactions."""

    @property
    @abstractmethod
    def spender(self) -> str:
        """Address that must hold the allowance (the NFT contract)."""

    @abstractmethod
    async def submit_approve(self, spender: str, amount: int) -> TransactionHandle:
        """
        Sign and broadcast ``approve(spender, amount)`` on the payment token.

        Raises:
            UserRejectedError: If the signer declines.
            ContractRevertError: If the call would revert.
        """

    @abstractmethod
    async def submit_mint(self, request: MintRequest) -> TransactionHandle:
        """
        Sign and broadcast ``mintEmployeeID`` with the fields of ``request``.

        Raises:
            UserRejectedError: If the signer declines.
            ContractRevertError: If the call would revert, with a structured code.
        """


class WalletContext(ABC):
    """
    Wallet connection owned by the host application.

    The orchestrator only reads it, except for requesting a chain switch.
    """

    @property
    @abstractmethod
    def address(self) -> Optional[str]:
        """Connected account address, or None when disconnected."""

    @property
    @abstractmethod
    def chain_id(self) -> Optional[int]:
        """Chain the wallet is currently connected to."""

    @property
    def is_connected(self) -> bool:
        return self.address is not None

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """
        Ask the wallet to switch to ``chain_id``.

        Raises:
            ChainSwitchError: If the user declines or the chain is unavailable.
        """


class MetadataPublisher(ABC):
    """Publishes token metadata somewhere a token URI can point to."""

    @abstractmethod
    async def publish(self, metadata: EmployeeMetadata, *, fid: int) -> str:
        """
        Publish ``metadata`` and return its stable public URL.

        Raises:
            MetadataPublishError: If publishing fails or no URL is returned.
        """
