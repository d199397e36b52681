"""
Mint Orchestrator - event-driven driver of the mint session.

Runs the mint workflow on an EventChain and is the only writer of the
MintSession: hooks registered on the event bus apply each state transition
before the corresponding handler runs, and every failure raised by a handler
is mapped here to a terminal outcome.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from ..config import MintConfig
from ..engine.events import (
    BaseEvent,
    Dependencies,
    EventBus,
    MintRequestedEvent,
    PrerequisitesPassedEvent,
    ApprovalRequiredEvent,
    AllowanceSufficientEvent,
    ApprovalSubmittedEvent,
    ApprovalConfirmedEvent,
    AllowanceSyncedEvent,
    MintRetryEvent,
    MintSubmittedEvent,
    MintConfirmedEvent,
)
from ..engine.exceptions import (
    BlockchainInteractionError,
    InvalidTransition,
    MintFlowError,
    MintInProgressError,
)
from ..engine.executors import EventChain
from ..engine.session import MintOutcome, MintSession, MintSessionState, MintState
from ..engine.synchronizer import AllowanceSynchronizer
from ..engine.watcher import TransactionWatcher
from ..ports.bases import ChainReadPort, ChainWritePort, MetadataPublisher, WalletContext
from ..ports.evm.chains import format_token_amount, get_explorer_tx_url
from ..schemas.bases import TransactionKind
from ..schemas.mint import AnalysisResult, UserContext
from .flows import setup_event_bus

logger = logging.getLogger(__name__)

StatusListener = Callable[[MintState, str], None]


class MintOrchestrator:
    """
    Owns one user's MintSession and drives it through the mint workflow.

    Concurrent ``request_mint`` calls are rejected, never queued: while an
    attempt is running every further call returns a MintInProgressError
    outcome and leaves the active session untouched.

    Example:
        orchestrator = MintOrchestrator(config, reader=port, writer=port,
                                        wallet=wallet, publisher=publisher)
        outcome = await orchestrator.request_mint(user, analysis, share_proof="cast:0x...")
        if outcome.succeeded:
            print(outcome.explorer_url)
        orchestrator.reset()
    """

    def __init__(
        self,
        config: MintConfig,
        reader: ChainReadPort,
        writer: ChainWritePort,
        wallet: WalletContext,
        publisher: MetadataPublisher,
        on_status: Optional[StatusListener] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            config: Deployment configuration and timing policies.
            reader: Chain read port.
            writer: Chain write port.
            wallet: Connected wallet context.
            publisher: Metadata publishing collaborator.
            on_status: Optional listener called with (state, message) on every
                transition and failure.
            sleep: Awaitable sleep used for every delay (fake in tests).
            clock: Monotonic clock used for deadlines (fake in tests).
        """
        self.config = config
        self._session = MintSession(max_retries=config.retry.max_race_retries)
        self._on_status = on_status
        self._status = self._message_for(MintState.IDLE)
        self._active = False

        self.deps = Dependencies(
            config=config,
            reader=reader,
            writer=writer,
            wallet=wallet,
            publisher=publisher,
            watcher=TransactionWatcher(reader, config.watch, sleep=sleep, clock=clock),
            synchronizer=AllowanceSynchronizer(reader, config.sync, sleep=sleep, clock=clock),
            sleep=sleep,
        )
        self.event_bus: EventBus = setup_event_bus()
        self._register_hooks()

    # ==================== Public API ====================

    @property
    def state(self) -> MintState:
        return self._session.state

    @property
    def status(self) -> str:
        """Latest human-readable progress message."""
        return self._status

    @property
    def session(self) -> MintSessionState:
        return self._session.snapshot()

    @property
    def busy(self) -> bool:
        return self._active or self._session.in_flight

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register an extra side-effect hook, run after the state hooks.

        Example:
            ```python
            async def log_event(event, deps):
                logger.info("Mint event: %r", event)

            orchestrator.add_hook(MintConfirmedEvent, log_event)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def reset(self) -> MintSessionState:
        """
        Return a terminal session to Idle once the result has been shown.

        Raises:
            InvalidTransition: If called while an attempt is in flight.
        """
        if self.busy:
            raise InvalidTransition(self._session.state, MintState.IDLE, "cannot reset while a mint is in flight")
        snapshot = self._session.reset()
        self._report(MintState.IDLE, self._message_for(MintState.IDLE))
        return snapshot

    async def request_mint(
        self,
        user: UserContext,
        analysis: AnalysisResult,
        share_proof: Optional[str] = None,
    ) -> MintOutcome:
        """
        Run one mint attempt to a terminal outcome.

        Args:
            user: Identity of the minting user.
            analysis: Analysis result recorded on the collectible.
            share_proof: Evidence that the result was shared; required.

        Returns:
            MintOutcome: COMPLETE with the transaction hash, FAILED with the
            error, or IDLE with the error when the attempt never started.

        Raises:
            InvalidTransition: On an illegal state move (a bug, never a
                workflow failure).
        """
        if self.busy:
            error = MintInProgressError("A mint is already in progress")
            logger.warning("Rejected mint request for fid %s: session is %s", user.fid, self._session.state.value)
            return MintOutcome(
                state=self._session.state,
                status=self._status,
                error=error,
                retries=self._session.retry_count,
            )

        if self._session.state.is_terminal:
            self.reset()

        self._active = True
        try:
            return await self._run(MintRequestedEvent(user=user, analysis=analysis, share_proof=share_proof))
        finally:
            self._active = False

    # ==================== Workflow ====================

    async def _run(self, initial_event: MintRequestedEvent) -> MintOutcome:
        confirmed: Optional[MintConfirmedEvent] = None
        chain = EventChain(self.event_bus, self.deps)
        try:
            async for event in chain.execute(initial_event):
                logger.debug("Mint workflow event: %r", event)
                if isinstance(event, MintConfirmedEvent):
                    confirmed = event
        except asyncio.CancelledError:
            if self._session.in_flight:
                self._fail(BlockchainInteractionError("Mint attempt cancelled"))
            raise
        except InvalidTransition:
            raise
        except MintFlowError as e:
            return self._fail(e)
        except Exception as e:
            logger.exception("Unexpected error in mint workflow")
            return self._fail(BlockchainInteractionError(f"Unexpected error: {e}"))

        if confirmed is None or self._session.state is not MintState.COMPLETE:
            return self._fail(BlockchainInteractionError("Mint workflow stopped before the mint was confirmed"))

        receipt = confirmed.receipt
        return MintOutcome(
            state=MintState.COMPLETE,
            status=self._status,
            tx_hash=receipt.tx_hash,
            token_id=receipt.minted_token_id(),
            explorer_url=get_explorer_tx_url(self.config.chain_id, receipt.tx_hash),
            retries=self._session.retry_count,
        )

    def _fail(self, error: MintFlowError) -> MintOutcome:
        """Map a workflow error to the outcome; the single failure mapping point."""
        session = self._session
        tx_hash = getattr(error, "tx_hash", None) or session.mint_tx or session.approval_tx
        explorer_url = get_explorer_tx_url(self.config.chain_id, tx_hash) if tx_hash else None
        retries = session.retry_count

        if session.state is MintState.IDLE:
            # Nothing was started: prerequisite, chain switch or metadata failure
            logger.info("Mint not started: %s", error)
            self._report(MintState.IDLE, error.hint)
            return MintOutcome(state=MintState.IDLE, status=self._status, error=error)

        logger.error("Mint failed in %s: %s", session.state.value, error)
        session.transition(MintState.FAILED, error=error)
        self._report(MintState.FAILED, error.hint)
        return MintOutcome(
            state=MintState.FAILED,
            status=self._status,
            error=error,
            tx_hash=session.mint_tx,
            explorer_url=explorer_url,
            retries=retries,
        )

    # ==================== State hooks ====================

    def _register_hooks(self) -> None:
        bus = self.event_bus
        bus.hook(PrerequisitesPassedEvent, self._on_prerequisites_passed)
        bus.hook(ApprovalRequiredEvent, self._on_approval_required)
        bus.hook(AllowanceSufficientEvent, self._on_allowance_sufficient)
        bus.hook(ApprovalSubmittedEvent, self._on_approval_submitted)
        bus.hook(ApprovalConfirmedEvent, self._on_approval_confirmed)
        bus.hook(AllowanceSyncedEvent, self._on_allowance_synced)
        bus.hook(MintRetryEvent, self._on_mint_retry)
        bus.hook(MintSubmittedEvent, self._on_mint_submitted)
        bus.hook(MintConfirmedEvent, self._on_mint_confirmed)

    def _transition(self, target: MintState, **kwargs) -> None:
        self._session.transition(target, **kwargs)
        self._report(target, self._message_for(target))

    async def _on_prerequisites_passed(self, event: PrerequisitesPassedEvent, deps: Dependencies) -> None:
        self._transition(MintState.CHECKING_PREREQUISITES)

    async def _on_approval_required(self, event: ApprovalRequiredEvent, deps: Dependencies) -> None:
        self._transition(MintState.APPROVING, request=event.request)

    async def _on_allowance_sufficient(self, event: AllowanceSufficientEvent, deps: Dependencies) -> None:
        self._transition(MintState.MINTING, request=event.request)

    async def _on_approval_submitted(self, event: ApprovalSubmittedEvent, deps: Dependencies) -> None:
        self._session.record_transaction(TransactionKind.APPROVE, event.handle.tx_hash)
        self._transition(MintState.AWAITING_APPROVAL_CONFIRMATION, request=event.request)

    async def _on_approval_confirmed(self, event: ApprovalConfirmedEvent, deps: Dependencies) -> None:
        self._transition(MintState.SYNCING_ALLOWANCE, request=event.request)

    async def _on_allowance_synced(self, event: AllowanceSyncedEvent, deps: Dependencies) -> None:
        self._transition(MintState.MINTING, request=event.request)

    async def _on_mint_retry(self, event: MintRetryEvent, deps: Dependencies) -> None:
        logger.warning("Retrying mint (attempt %d): %s", event.attempt, event.reason)
        self._session.transition(MintState.MINTING, request=event.request)
        self._report(MintState.MINTING, "Network was catching up with your approval. Retrying mint...")

    async def _on_mint_submitted(self, event: MintSubmittedEvent, deps: Dependencies) -> None:
        self._session.record_transaction(TransactionKind.MINT, event.handle.tx_hash)
        self._transition(MintState.AWAITING_MINT_CONFIRMATION, request=event.request)

    async def _on_mint_confirmed(self, event: MintConfirmedEvent, deps: Dependencies) -> None:
        self._transition(MintState.COMPLETE)

    # ==================== Status ====================

    def _message_for(self, state: MintState) -> str:
        if state is MintState.IDLE:
            return "Ready to mint"
        if state is MintState.CHECKING_PREREQUISITES:
            return "Checking token allowance..."
        if state is MintState.APPROVING:
            price = format_token_amount(self.config.mint_price, self.config.token_decimals)
            return f"Approve {price} in your wallet..."
        if state is MintState.AWAITING_APPROVAL_CONFIRMATION:
            return "Waiting for approval confirmation..."
        if state is MintState.SYNCING_ALLOWANCE:
            return "Approval confirmed. Syncing allowance..."
        if state is MintState.MINTING:
            return "Minting your Employee ID..."
        if state is MintState.AWAITING_MINT_CONFIRMATION:
            return "Waiting for mint confirmation..."
        if state is MintState.COMPLETE:
            return "Employee ID minted!"
        return "Mint failed"

    def _report(self, state: MintState, message: str) -> None:
        self._status = message
        if self._on_status is None:
            return
        try:
            self._on_status(state, message)
        except Exception:
            logger.exception("Status listener failed for state %s", state.value)
