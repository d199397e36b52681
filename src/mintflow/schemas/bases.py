"""
Base Schema Models for the mintflow System

This module defines the base model every other schema inherits from, plus the
transaction-level models shared by the chain ports, the confirmation watcher
and the orchestrator.

Core Classes:
    - CanonicalModel: Pydantic base model accepting fields by name or alias
    - TransactionStatus: Observable status of a submitted transaction
    - TransactionHandle: Opaque identifier returned by a submission
    - TransactionReceipt: Terminal receipt data for a transaction
    - TxObservation: One status observation emitted by the watcher

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

#: keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC: str = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

_ZERO_TOPIC: str = "0x" + "0" * 64


class CanonicalModel(BaseModel):
    """
    Pydantic base model shared by every mintflow schema.

    Accepts fields by name or alias so that documents using camelCase keys
    and Python callers using snake_case build the same model.
    """

    model_config = ConfigDict(populate_by_name=True)


class TransactionStatus(str, Enum):
    """
    Enumeration of observable transaction statuses.

    Attributes:
        PENDING: Transaction is known but not yet included in a block
        CONFIRMED: Transaction was included and executed successfully
        REVERTED: Transaction was included but reverted on-chain
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class TransactionKind(str, Enum):
    """Which workflow step a transaction belongs to."""
    APPROVE = "approve"
    MINT = "mint"


class TransactionHandle(CanonicalModel):
    """
    Opaque identifier of a submitted transaction.

    A handle is created by exactly one submission and is never reused; the
    confirmation watcher owns it until a terminal receipt is observed.

    Attributes:
        tx_hash: Transaction hash (0x-prefixed hex string)
        kind: Workflow step that produced the transaction
        chain_id: Chain the transaction was submitted to
        submitted_at: Local submission timestamp
    """

    model_config = ConfigDict(frozen=True)

    tx_hash: str = Field(..., description="Transaction hash (0x-prefixed hex string)")
    kind: TransactionKind = Field(..., description="Workflow step that produced the transaction")
    chain_id: int = Field(..., ge=1, description="Chain the transaction was submitted to")
    submitted_at: datetime = Field(default_factory=datetime.now, description="Local submission timestamp")


class TransactionReceipt(CanonicalModel):
    """
    Terminal receipt data for a transaction.

    Attributes:
        tx_hash: Transaction hash
        status: CONFIRMED or REVERTED
        block_number: Block number containing the transaction
        gas_used: Actual gas consumed by the transaction
        confirmations: Number of block confirmations at observation time
        revert_reason: Decoded revert reason when the transaction reverted
        revert_code: Structured revert code (see ``RevertCode``) when known
        logs: Optional transaction logs/events
    """

    tx_hash: str = Field(..., description="Transaction hash (0x-prefixed hex string)")
    status: TransactionStatus = Field(..., description="Terminal transaction status")
    block_number: Optional[int] = Field(None, ge=0, description="Block number containing transaction")
    gas_used: Optional[int] = Field(None, ge=0, description="Actual gas consumed by transaction")
    confirmations: int = Field(default=0, ge=0, description="Number of block confirmations")
    revert_reason: Optional[str] = Field(None, description="Decoded revert reason if the transaction reverted")
    revert_code: Optional[str] = Field(None, description="Structured revert code if the transaction reverted")
    logs: Optional[List[Dict[str, Any]]] = Field(None, description="Transaction logs/events")

    def is_success(self) -> bool:
        """
        Check if the transaction executed successfully on-chain.

        Returns:
            bool: True if confirmed, False if reverted.
        """
        return self.status == TransactionStatus.CONFIRMED

    def minted_token_id(self) -> Optional[int]:
        """
        Token id of the first ERC-721 mint (Transfer from the zero address) in ``logs``.

        Returns:
            The token id, or None if the receipt carries no mint log.
        """
        for log in self.logs or []:
            topics = [str(t).lower() for t in log.get("topics", [])]
            if len(topics) == 4 and topics[0] == TRANSFER_TOPIC and topics[1] == _ZERO_TOPIC:
                return int(topics[3], 16)
        return None


class TxObservation(CanonicalModel):
    """
    A single status observation produced by the confirmation watcher.

    Attributes:
        tx_hash: Observed transaction hash
        status: Observed status
        attempt: 1-based poll attempt that produced this observation
        receipt: Terminal receipt (set only when ``status`` is terminal)
    """

    tx_hash: str
    status: TransactionStatus
    attempt: int = Field(..., ge=1)
    receipt: Optional[TransactionReceipt] = None
