"""
Exception and Error Definitions Module

Defines the exception hierarchy for the mint workflow: prerequisite checks,
metadata publishing, signing, on-chain reverts and confirmation watching.
All workflow exceptions inherit from MintFlowError and carry an ``ErrorKind``
so the orchestrator can record the failure class on the session.

Exception Hierarchy:
    MintFlowError (root)
    ├── PrerequisiteError
    ├── MetadataPublishError
    ├── UserRejectedError
    ├── ChainSwitchError
    ├── MintInProgressError
    ├── ConfigurationError
    ├── WatchTimeoutError
    └── BlockchainInteractionError
        └── ContractRevertError
            ├── AllowanceRaceError
            ├── ApprovalRejectedError
            └── MintRejectedError

    InvalidTransition (programming error, not a workflow failure)
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure classes recorded as ``lastError`` on a mint session."""
    PREREQUISITE = "prerequisite"
    METADATA_PUBLISH = "metadata_publish"
    USER_REJECTED = "user_rejected"
    CHAIN_SWITCH = "chain_switch"
    ALLOWANCE_RACE = "allowance_race"
    APPROVAL_REJECTED = "approval_rejected"
    MINT_REJECTED = "mint_rejected"
    CONTRACT_REVERT = "contract_revert"
    WATCH_TIMEOUT = "watch_timeout"
    MINT_IN_PROGRESS = "mint_in_progress"
    CONFIGURATION = "configuration"
    BLOCKCHAIN = "blockchain"


class PrerequisiteReason(str, Enum):
    """Reason codes for a failed prerequisite check."""
    NOT_SHARED = "not_shared"
    WALLET_DISCONNECTED = "wallet_disconnected"
    CONTRACT_NOT_CONFIGURED = "contract_not_configured"
    ALREADY_MINTED = "already_minted"
    INSUFFICIENT_BALANCE = "insufficient_balance"


class RevertCode(str, Enum):
    """Structured revert codes decoded from contract errors."""
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ALREADY_MINTED = "already_minted"
    UNKNOWN = "unknown"


_PREREQUISITE_HINTS = {
    PrerequisiteReason.NOT_SHARED: "Share your result first, then mint.",
    PrerequisiteReason.WALLET_DISCONNECTED: "Connect a wallet to mint.",
    PrerequisiteReason.CONTRACT_NOT_CONFIGURED: "Minting is not available right now.",
    PrerequisiteReason.ALREADY_MINTED: "You have already minted your ID.",
    PrerequisiteReason.INSUFFICIENT_BALANCE: "Top up your token balance to cover the mint price.",
}


class MintFlowError(Exception):
    """
    Root exception class for all mint workflow failures.

    Subclasses set ``kind`` and may override ``hint`` with a user-facing
    remediation message.
    """

    kind: ErrorKind = ErrorKind.BLOCKCHAIN

    @property
    def hint(self) -> str:
        return "Please try again."


class PrerequisiteError(MintFlowError):
    """
    Raised when a mint cannot start.

    Covers: result not shared yet, wallet disconnected, contract address not
    configured, wrong chain, already minted, insufficient token balance.

    Attributes:
        reason: PrerequisiteReason code
    """

    kind = ErrorKind.PREREQUISITE

    def __init__(self, reason: PrerequisiteReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value.replace("_", " "))

    @property
    def hint(self) -> str:
        return _PREREQUISITE_HINTS[self.reason]


class MetadataPublishError(MintFlowError):
    """Raised when the metadata collaborator fails to return a stable URL."""

    kind = ErrorKind.METADATA_PUBLISH

    @property
    def hint(self) -> str:
        return "Could not prepare your collectible. Tap mint to try again."


class UserRejectedError(MintFlowError):
    """Raised when the signer declines an approval or mint transaction."""

    kind = ErrorKind.USER_REJECTED

    @property
    def hint(self) -> str:
        return "Transaction was cancelled in your wallet."


class ChainSwitchError(MintFlowError):
    """Raised when switching to the target chain is declined or unavailable."""

    kind = ErrorKind.CHAIN_SWITCH

    @property
    def hint(self) -> str:
        return "Switch your wallet to the supported network and try again."


class MintInProgressError(MintFlowError):
    """Raised when a mint is requested while another one is in flight."""

    kind = ErrorKind.MINT_IN_PROGRESS

    @property
    def hint(self) -> str:
        return "A mint is already in progress."


class ConfigurationError(MintFlowError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing private key for the signer
    - Unsupported chain id
    - Invalid contract or token address
    """

    kind = ErrorKind.CONFIGURATION


class WatchTimeoutError(MintFlowError):
    """
    Raised when a transaction does not reach a terminal state in time.

    The transaction may still land later, so callers should point the user
    at the block explorer rather than resubmitting.

    Attributes:
        tx_hash: Hash of the transaction being watched
    """

    kind = ErrorKind.WATCH_TIMEOUT

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout:g}s")

    @property
    def hint(self) -> str:
        return "Still waiting on the network. Check the explorer before trying again."


class BlockchainInteractionError(MintFlowError):
    """
    Raised when blockchain interaction (RPC call) fails.

    This includes scenarios such as:
    - RPC call timeout
    - Network connectivity issues
    - Invalid contract address
    """

    kind = ErrorKind.BLOCKCHAIN


class ContractRevertError(BlockchainInteractionError):
    """
    Raised when a contract call or transaction reverts.

    Attributes:
        reason: Contract-reported revert reason (human readable)
        code: Structured RevertCode decoded from the revert payload
        tx_hash: Transaction hash if the revert happened on-chain
    """

    kind = ErrorKind.CONTRACT_REVERT

    def __init__(
        self,
        reason: str,
        code: RevertCode = RevertCode.UNKNOWN,
        tx_hash: Optional[str] = None,
    ):
        self.reason = reason
        self.code = code
        self.tx_hash = tx_hash
        super().__init__(f"Contract reverted: {reason}")

    @property
    def hint(self) -> str:
        return f"The contract rejected the transaction: {self.reason}"


class AllowanceRaceError(ContractRevertError):
    """Mint reverted for insufficient allowance right after a confirmed approval."""

    kind = ErrorKind.ALLOWANCE_RACE

    @property
    def hint(self) -> str:
        return "The network had not caught up with your approval. Tap mint to try again."


class ApprovalRejectedError(ContractRevertError):
    """The approval transaction reverted on-chain."""

    kind = ErrorKind.APPROVAL_REJECTED

    @property
    def hint(self) -> str:
        return "Token approval failed on-chain."


class MintRejectedError(ContractRevertError):
    """The mint transaction reverted for a non-retryable reason."""

    kind = ErrorKind.MINT_REJECTED


class InvalidTransition(Exception):
    """
    Raised when the mint session is asked to make an illegal state move.

    Attributes:
        current_state: State the session was in
        target_state: State that was requested
    """

    def __init__(self, current_state, target_state, message: str = ""):
        self.current_state = current_state
        self.target_state = target_state
        detail = f": {message}" if message else ""
        super().__init__(f"Invalid transition {current_state} -> {target_state}{detail}")
