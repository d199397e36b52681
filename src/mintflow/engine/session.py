"""
Mint session finite-state machine.

``MintSession`` is the working state of one user's mint attempt. It is
mutated only through ``transition()``, which checks the move against the
transition table and keeps ``pending_request`` set exactly while the session
is in flight.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import ConfigDict, Field

from ..schemas.bases import CanonicalModel, TransactionKind
from ..schemas.mint import MintRequest
from .exceptions import ErrorKind, InvalidTransition, MintFlowError

logger = logging.getLogger(__name__)


class MintState(str, Enum):
    IDLE = "idle"
    CHECKING_PREREQUISITES = "checking_prerequisites"
    APPROVING = "approving"
    AWAITING_APPROVAL_CONFIRMATION = "awaiting_approval_confirmation"
    SYNCING_ALLOWANCE = "syncing_allowance"
    MINTING = "minting"
    AWAITING_MINT_CONFIRMATION = "awaiting_mint_confirmation"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def in_flight(self) -> bool:
        return self in IN_FLIGHT_STATES

    @property
    def is_terminal(self) -> bool:
        return self in (MintState.COMPLETE, MintState.FAILED)


IN_FLIGHT_STATES: FrozenSet[MintState] = frozenset({
    MintState.APPROVING,
    MintState.AWAITING_APPROVAL_CONFIRMATION,
    MintState.SYNCING_ALLOWANCE,
    MintState.MINTING,
    MintState.AWAITING_MINT_CONFIRMATION,
})

_TRANSITIONS: Dict[MintState, FrozenSet[MintState]] = {
    MintState.IDLE: frozenset({MintState.CHECKING_PREREQUISITES}),
    MintState.CHECKING_PREREQUISITES: frozenset({MintState.APPROVING, MintState.MINTING, MintState.FAILED}),
    MintState.APPROVING: frozenset({MintState.AWAITING_APPROVAL_CONFIRMATION, MintState.FAILED}),
    MintState.AWAITING_APPROVAL_CONFIRMATION: frozenset({MintState.SYNCING_ALLOWANCE, MintState.FAILED}),
    MintState.SYNCING_ALLOWANCE: frozenset({MintState.MINTING, MintState.FAILED}),
    # MINTING again is the single automatic allowance-race retry, whether the
    # race surfaced at submission or in the receipt
    MintState.MINTING: frozenset({MintState.AWAITING_MINT_CONFIRMATION, MintState.MINTING, MintState.FAILED}),
    MintState.AWAITING_MINT_CONFIRMATION: frozenset({MintState.COMPLETE, MintState.MINTING, MintState.FAILED}),
    MintState.COMPLETE: frozenset({MintState.IDLE}),
    MintState.FAILED: frozenset({MintState.IDLE}),
}


class MintSessionState(CanonicalModel):
    """Immutable snapshot of a ``MintSession`` handed to listeners and tests."""

    model_config = ConfigDict(frozen=True)

    state: MintState
    pending_request: Optional[MintRequest] = None
    last_error: Optional[ErrorKind] = None
    retry_count: int = Field(default=0, ge=0)
    approval_tx: Optional[str] = None
    mint_tx: Optional[str] = None


class MintSession:
    """
    Single-writer state holder for one user's mint workflow.

    Attributes:
        state: Current MintState
        pending_request: Snapshot being minted; non-null iff in flight
        last_error: ErrorKind of the failure that ended the last attempt
        retry_count: Automatic retries performed in this attempt
        approval_tx: Hash of the approval transaction, if one was sent
        mint_tx: Hash of the latest mint transaction
    """

    def __init__(self, max_retries: int = 1) -> None:
        self.max_retries = max_retries
        self.state = MintState.IDLE
        self.pending_request: Optional[MintRequest] = None
        self.last_error: Optional[ErrorKind] = None
        self.error: Optional[MintFlowError] = None
        self.retry_count = 0
        self.approval_tx: Optional[str] = None
        self.mint_tx: Optional[str] = None
        self.updated_at = datetime.now()

    @property
    def in_flight(self) -> bool:
        return self.pending_request is not None

    def transition(
        self,
        target: MintState,
        *,
        request: Optional[MintRequest] = None,
        error: Optional[MintFlowError] = None,
    ) -> MintSessionState:
        """
        Move the session to ``target``.

        Args:
            target: Requested next state.
            request: The MintRequest snapshot. Required when entering the
                in-flight states from CHECKING_PREREQUISITES; when already in
                flight it must be the captured request, if given.
            error: Failure being recorded, required when entering FAILED.

        Returns:
            Snapshot of the session after the move.

        Raises:
            InvalidTransition: If the move is not in the transition table or
                would break the pending-request invariant.
        """
        current = self.state
        if target not in _TRANSITIONS[current]:
            raise InvalidTransition(current, target)

        if target.in_flight:
            if current.in_flight:
                if request is not None and request != self.pending_request:
                    raise InvalidTransition(current, target, "mint request substituted mid-flight")
                request = self.pending_request
            elif request is None:
                raise InvalidTransition(current, target, "entering flight without a mint request")
            if target is MintState.MINTING and current in (MintState.MINTING, MintState.AWAITING_MINT_CONFIRMATION):
                if self.retry_count >= self.max_retries:
                    raise InvalidTransition(current, target, "retry budget exhausted")
                self.retry_count += 1
            self.pending_request = request
        else:
            self.pending_request = None

        if target is MintState.FAILED:
            if error is None:
                raise InvalidTransition(current, target, "failure without an error")
            self.error = error
            self.last_error = error.kind
        elif target is MintState.IDLE:
            self.error = None
            self.last_error = None
            self.retry_count = 0
            self.approval_tx = None
            self.mint_tx = None
        elif target is MintState.CHECKING_PREREQUISITES:
            self.retry_count = 0

        self.state = target
        self.updated_at = datetime.now()
        logger.info("Mint session %s -> %s", current.value, target.value)
        return self.snapshot()

    def record_transaction(self, kind: TransactionKind, tx_hash: str) -> None:
        """Remember the hash of a transaction submitted for the pending request."""
        if not self.in_flight:
            raise InvalidTransition(self.state, self.state, "transaction recorded outside flight")
        if kind is TransactionKind.APPROVE:
            self.approval_tx = tx_hash
        else:
            self.mint_tx = tx_hash

    def reset(self) -> MintSessionState:
        """Return a terminal session to IDLE. No-op when already idle."""
        if self.state is MintState.IDLE:
            return self.snapshot()
        return self.transition(MintState.IDLE)

    def snapshot(self) -> MintSessionState:
        return MintSessionState(
            state=self.state,
            pending_request=self.pending_request,
            last_error=self.last_error,
            retry_count=self.retry_count,
            approval_tx=self.approval_tx,
            mint_tx=self.mint_tx,
        )


class MintOutcome(CanonicalModel):
    """
    Result of one ``request_mint`` call, as exposed to the UI.

    Attributes:
        state: Session state when the call returned
        status: Last human-readable status message
        error: Error that ended the attempt, if any
        tx_hash: Mint transaction hash on success
        token_id: Minted token id, when the receipt reports it
        explorer_url: Block explorer link for the relevant transaction
        retries: Number of automatic retries performed
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: MintState
    status: str = ""
    error: Optional[MintFlowError] = None
    tx_hash: Optional[str] = None
    token_id: Optional[int] = None
    explorer_url: Optional[str] = None
    retries: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state is MintState.COMPLETE and self.tx_hash is not None
