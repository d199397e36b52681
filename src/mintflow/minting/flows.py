"""
Built-in event handlers for the mint workflow.

Implements the core flow: prerequisites → allowance check → [approve →
confirm → synchronize] → mint → confirm. Every handler performs one step and
returns the next event; failures are raised and reach the orchestrator.
"""

import logging
from typing import Union

from pydantic import ValidationError

from ..engine.events import (
    EventBus,
    Dependencies,
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
    AllowanceRaceError,
    ApprovalRejectedError,
    ChainSwitchError,
    ContractRevertError,
    MetadataPublishError,
    MintFlowError,
    MintRejectedError,
    PrerequisiteError,
    PrerequisiteReason,
    RevertCode,
)
from ..metadata import build_employee_metadata
from ..schemas.bases import TransactionReceipt
from ..schemas.mint import MintRequest

logger = logging.getLogger(__name__)


# ==================== Prerequisites ====================

async def handle_mint_requested(
    event: MintRequestedEvent,
    deps: Dependencies
) -> PrerequisitesPassedEvent:
    """Check every prerequisite, publish metadata and capture the MintRequest."""
    config = deps.config
    wallet = deps.wallet

    if not event.share_proof:
        raise PrerequisiteError(PrerequisiteReason.NOT_SHARED)
    if not wallet.is_connected:
        raise PrerequisiteError(PrerequisiteReason.WALLET_DISCONNECTED)
    if not config.contract_configured:
        raise PrerequisiteError(PrerequisiteReason.CONTRACT_NOT_CONFIGURED)

    if wallet.chain_id != config.chain_id:
        logger.info("Wallet on chain %s, requesting switch to %s", wallet.chain_id, config.chain_id)
        await wallet.switch_chain(config.chain_id)
        if wallet.chain_id != config.chain_id:
            raise ChainSwitchError(f"Wallet is still on chain {wallet.chain_id} after switch request")

    owner = wallet.address
    if await deps.reader.read_has_minted(owner):
        raise PrerequisiteError(PrerequisiteReason.ALREADY_MINTED)

    balance = await deps.reader.read_balance(owner)
    if balance < config.mint_price:
        raise PrerequisiteError(
            PrerequisiteReason.INSUFFICIENT_BALANCE,
            f"Balance {balance} is below the mint price {config.mint_price}",
        )

    display_name = event.user.resolved_name
    metadata = build_employee_metadata(
        character=event.analysis.character,
        display_name=display_name,
        analysis_text=event.analysis.analysis_text,
        fid=event.user.fid,
        image_url=event.analysis.image_url,
    )
    try:
        metadata_url = await deps.publisher.publish(metadata, fid=event.user.fid)
    except MintFlowError:
        raise
    except Exception as e:
        raise MetadataPublishError(f"Metadata publishing failed: {e}") from e

    try:
        request = MintRequest(
            character=event.analysis.character,
            display_name=display_name,
            analysis_text=event.analysis.analysis_text,
            fid=event.user.fid,
            metadata_url=metadata_url,
            owner=owner,
        )
    except ValidationError as e:
        raise MetadataPublishError(f"Metadata service returned an unusable URL: {metadata_url!r}") from e

    return PrerequisitesPassedEvent(request=request)


async def handle_prerequisites_passed(
    event: PrerequisitesPassedEvent,
    deps: Dependencies
) -> Union[AllowanceSufficientEvent, ApprovalRequiredEvent]:
    """Read the allowance and decide whether an approval is needed."""
    price = deps.config.mint_price
    allowance = await deps.synchronizer.read(event.request.owner, deps.writer.spender)
    if allowance.covers(price):
        return AllowanceSufficientEvent(request=event.request, allowance=allowance)
    return ApprovalRequiredEvent(request=event.request, allowance=allowance, amount=price)


# ==================== Approval ====================

async def handle_approval_required(
    event: ApprovalRequiredEvent,
    deps: Dependencies
) -> ApprovalSubmittedEvent:
    """Submit an approval for exactly the mint price."""
    try:
        handle = await deps.writer.submit_approve(deps.writer.spender, event.amount)
    except ContractRevertError as e:
        raise ApprovalRejectedError(e.reason, e.code, e.tx_hash) from e
    return ApprovalSubmittedEvent(request=event.request, handle=handle)


async def handle_approval_submitted(
    event: ApprovalSubmittedEvent,
    deps: Dependencies
) -> ApprovalConfirmedEvent:
    receipt = await deps.watcher.wait(event.handle)
    if not receipt.is_success():
        raise ApprovalRejectedError(
            receipt.revert_reason or "Approval reverted",
            _revert_code(receipt),
            receipt.tx_hash,
        )
    return ApprovalConfirmedEvent(request=event.request, receipt=receipt)


async def handle_approval_confirmed(
    event: ApprovalConfirmedEvent,
    deps: Dependencies
) -> AllowanceSyncedEvent:
    """Wait until the allowance read path reflects the approval (bounded)."""
    allowance = await deps.synchronizer.synchronize(
        event.request.owner,
        deps.writer.spender,
        deps.config.mint_price,
    )
    return AllowanceSyncedEvent(request=event.request, allowance=allowance)


# ==================== Mint ====================

def _revert_code(receipt: TransactionReceipt) -> RevertCode:
    try:
        return RevertCode(receipt.revert_code) if receipt.revert_code else RevertCode.UNKNOWN
    except ValueError:
        return RevertCode.UNKNOWN


def _is_allowance_race(code: RevertCode, approved: bool, retries: int, deps: Dependencies) -> bool:
    return (
        approved
        and code is RevertCode.INSUFFICIENT_ALLOWANCE
        and retries < deps.config.retry.max_race_retries
    )


async def _submit_mint(
    request: MintRequest,
    deps: Dependencies,
    approved: bool,
    retries: int,
) -> Union[MintSubmittedEvent, MintRetryEvent]:
    try:
        handle = await deps.writer.submit_mint(request)
    except ContractRevertError as e:
        if _is_allowance_race(e.code, approved, retries, deps):
            logger.warning("Mint rejected for allowance right after approval, retrying: %s", e.reason)
            return MintRetryEvent(request=request, attempt=retries + 1, reason=e.reason)
        if approved and e.code is RevertCode.INSUFFICIENT_ALLOWANCE:
            raise AllowanceRaceError(e.reason, e.code, e.tx_hash) from e
        raise MintRejectedError(e.reason, e.code, e.tx_hash) from e
    return MintSubmittedEvent(request=request, handle=handle, approved=approved, retries=retries)


async def handle_allowance_sufficient(
    event: AllowanceSufficientEvent,
    deps: Dependencies
) -> Union[MintSubmittedEvent, MintRetryEvent]:
    return await _submit_mint(event.request, deps, approved=False, retries=0)


async def handle_allowance_synced(
    event: AllowanceSyncedEvent,
    deps: Dependencies
) -> Union[MintSubmittedEvent, MintRetryEvent]:
    return await _submit_mint(event.request, deps, approved=True, retries=0)


async def handle_mint_retry(
    event: MintRetryEvent,
    deps: Dependencies
) -> Union[MintSubmittedEvent, MintRetryEvent]:
    """Back off, then resubmit the captured request unchanged."""
    await deps.sleep(deps.config.retry.race_backoff)
    return await _submit_mint(event.request, deps, approved=True, retries=event.attempt)


async def handle_mint_submitted(
    event: MintSubmittedEvent,
    deps: Dependencies
) -> Union[MintConfirmedEvent, MintRetryEvent]:
    receipt = await deps.watcher.wait(event.handle)
    if receipt.is_success():
        return MintConfirmedEvent(request=event.request, receipt=receipt)

    code = _revert_code(receipt)
    reason = receipt.revert_reason or "Mint reverted"
    if _is_allowance_race(code, event.approved, event.retries, deps):
        logger.warning("Mint %s reverted on allowance after approval, retrying", receipt.tx_hash)
        return MintRetryEvent(request=event.request, attempt=event.retries + 1, reason=reason)
    if event.approved and code is RevertCode.INSUFFICIENT_ALLOWANCE:
        raise AllowanceRaceError(reason, code, receipt.tx_hash)
    raise MintRejectedError(reason, code, receipt.tx_hash)


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with the built-in mint handlers."""
    event_bus = EventBus()

    event_bus.subscribe(MintRequestedEvent, handle_mint_requested)
    event_bus.subscribe(PrerequisitesPassedEvent, handle_prerequisites_passed)
    event_bus.subscribe(ApprovalRequiredEvent, handle_approval_required)
    event_bus.subscribe(ApprovalSubmittedEvent, handle_approval_submitted)
    event_bus.subscribe(ApprovalConfirmedEvent, handle_approval_confirmed)
    event_bus.subscribe(AllowanceSufficientEvent, handle_allowance_sufficient)
    event_bus.subscribe(AllowanceSyncedEvent, handle_allowance_synced)
    event_bus.subscribe(MintRetryEvent, handle_mint_retry)
    event_bus.subscribe(MintSubmittedEvent, handle_mint_submitted)

    return event_bus
