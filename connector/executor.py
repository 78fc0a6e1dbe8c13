"""
Upload Executor.

Runs a send operation for every batch under a ThroughputGovernor and
captures one outcome per batch. A failing batch never cancels its siblings.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence

from connector.errors import BatchSendError, describe_google_ads_exception
from connector.governor import ThroughputGovernor
from connector.models import BatchOutcome, BatchResult, RecordBatch

logger = logging.getLogger(__name__)


SendOperation = Callable[[RecordBatch], Awaitable[BatchResult]]


class UploadExecutor:
    """
    Applies a send operation to each batch.

    Batches are admitted in ascending index order; each admitted batch runs
    as its own task, so completion order is free when the governor allows
    more than one batch in flight.
    """

    def __init__(self, governor: ThroughputGovernor, label: str = "upload"):
        """
        Initialize Upload Executor.

        Args:
            governor: Admission control for this invocation
            label: Identifier used in log lines (e.g. message id)
        """
        self.governor = governor
        self.label = label

    async def execute(
        self,
        batches: Sequence[RecordBatch],
        send: SendOperation,
    ) -> List[BatchOutcome]:
        """
        Send every batch and wait for all of them.

        Args:
            batches: Batches to send
            send: Operation sending one batch

        Returns:
            One outcome per batch, in completion order
        """
        outcomes: List[BatchOutcome] = []
        tasks: List[asyncio.Task[None]] = []

        async def run(batch: RecordBatch) -> None:
            try:
                outcomes.append(await self._send_one(batch, send))
            finally:
                self.governor.release()

        try:
            for batch in batches:
                await self.governor.acquire()
                tasks.append(asyncio.create_task(run(batch)))
        finally:
            # Admitted batches always run to completion
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(
            f"[{self.label}] Sent {len(batches)} batches "
            f"({sum(1 for o in outcomes if not o.success)} failed), "
            f"governor={self.governor.get_stats()}"
        )
        return outcomes

    async def _send_one(self, batch: RecordBatch, send: SendOperation) -> BatchOutcome:
        """Run the send operation for one batch, turning failures into an outcome."""
        logger.debug(f"[{self.label}] Sending batch {batch.index} ({len(batch)} records)")
        try:
            result = await send(batch)
        except Exception as e:
            error = BatchSendError(describe_google_ads_exception(e), batch_index=batch.index)
            logger.error(f"[{self.label}] Batch {batch.index} failed: {error.error_detail.to_dict()}")
            return BatchOutcome(
                batch_index=batch.index, success=False, error_messages=(error.message,)
            )

        if not result.result:
            logger.warning(
                f"[{self.label}] Batch {batch.index} reported {len(result.errors)} errors"
            )
        return BatchOutcome(
            batch_index=batch.index,
            success=result.result,
            error_messages=tuple(result.errors),
        )
