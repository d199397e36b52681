"""
Allowance synchronizer.

Closes the gap between "approval confirmed" and "this node's allowance read
reflects it". After a fixed grace period the allowance is read; if it is
still short, exactly ``max_fallback_attempts`` more reads are made after a
shorter delay. If the allowance is still insufficient the caller proceeds
anyway and the contract's own revert is the final backstop.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from ..ports.bases import ChainReadPort
from ..schemas.mint import AllowanceSnapshot
from .policies import SyncPolicy

logger = logging.getLogger(__name__)


class AllowanceSynchronizer:

    def __init__(
        self,
        reader: ChainReadPort,
        policy: SyncPolicy = SyncPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reader = reader
        self.policy = policy
        self._sleep = sleep
        self._clock = clock

    async def read(self, owner: str, spender: str) -> AllowanceSnapshot:
        """Issue a fresh allowance read and wrap it in a snapshot."""
        amount = await self._reader.read_allowance(owner, spender)
        return AllowanceSnapshot(amount=amount, observed_at=self._clock())

    async def synchronize(self, owner: str, spender: str, required: int) -> AllowanceSnapshot:
        """
        Wait for the allowance read path to reflect a confirmed approval.

        Args:
            owner: Token holder that sent the approval.
            spender: Approved spender (the NFT contract).
            required: Amount the allowance must cover.

        Returns:
            The last snapshot read. It may still be below ``required``; the
            caller proceeds regardless.
        """
        await self._sleep(self.policy.grace_period)
        snapshot = await self.read(owner, spender)

        attempts = 0
        while not snapshot.covers(required) and attempts < self.policy.max_fallback_attempts:
            attempts += 1
            logger.warning(
                "Allowance read %d below required %d after approval, re-reading in %.1fs",
                snapshot.amount, required, self.policy.fallback_delay,
            )
            await self._sleep(self.policy.fallback_delay)
            snapshot = await self.read(owner, spender)

        if not snapshot.covers(required):
            logger.warning("Allowance still %d after %d fallback reads; submitting mint anyway", snapshot.amount, attempts)
        return snapshot
