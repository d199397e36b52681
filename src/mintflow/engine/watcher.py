"""
Transaction confirmation watcher.

Turns a TransactionHandle into a lazy, finite sequence of status
observations that ends with exactly one terminal observation (confirmed or
reverted), or raises WatchTimeoutError when the observation window closes.
"""

import asyncio
import logging
import time
from typing import AsyncGenerator, Awaitable, Callable, Dict

from ..ports.bases import ChainReadPort
from ..schemas.bases import TransactionHandle, TransactionReceipt, TransactionStatus, TxObservation
from .exceptions import WatchTimeoutError
from .policies import WatchPolicy

logger = logging.getLogger(__name__)


class TransactionWatcher:
    """
    Polls the chain read port for receipts of submitted transactions.

    The first terminal receipt seen for a hash is kept and returned to every
    later observer of the same hash, so watching a handle from several call
    sites never counts its confirmation twice.
    """

    def __init__(
        self,
        reader: ChainReadPort,
        policy: WatchPolicy = WatchPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reader = reader
        self.policy = policy
        self._sleep = sleep
        self._clock = clock
        self._settled: Dict[str, TransactionReceipt] = {}

    def settled(self, tx_hash: str) -> bool:
        return tx_hash in self._settled

    async def observe(self, handle: TransactionHandle) -> AsyncGenerator[TxObservation, None]:
        """
        Yield status observations for ``handle`` until it settles.

        Yields:
            PENDING observations, then exactly one terminal observation
            carrying the receipt.

        Raises:
            WatchTimeoutError: If no terminal receipt is seen within
                ``policy.timeout`` seconds.
            BlockchainInteractionError: If a receipt lookup fails.
        """
        cached = self._settled.get(handle.tx_hash)
        if cached is not None:
            yield TxObservation(tx_hash=handle.tx_hash, status=cached.status, attempt=1, receipt=cached)
            return

        deadline = self._clock() + self.policy.timeout
        attempt = 0
        while True:
            attempt += 1
            receipt = await self._reader.get_receipt(handle)
            if receipt is not None and receipt.status.is_terminal:
                receipt = self._settled.setdefault(handle.tx_hash, receipt)
                logger.info("Transaction %s %s after %d polls", handle.tx_hash, receipt.status.value, attempt)
                yield TxObservation(tx_hash=handle.tx_hash, status=receipt.status, attempt=attempt, receipt=receipt)
                return

            yield TxObservation(tx_hash=handle.tx_hash, status=TransactionStatus.PENDING, attempt=attempt)

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning("Gave up watching %s after %d polls", handle.tx_hash, attempt)
                raise WatchTimeoutError(handle.tx_hash, self.policy.timeout)
            await self._sleep(min(self.policy.poll_interval, remaining))

    async def wait(self, handle: TransactionHandle) -> TransactionReceipt:
        """Consume ``observe()`` and return the terminal receipt."""
        async for observation in self.observe(handle):
            if observation.receipt is not None:
                return observation.receipt
        raise WatchTimeoutError(handle.tx_hash, self.policy.timeout)
