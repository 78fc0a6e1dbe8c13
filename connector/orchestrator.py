"""
Upload Orchestrator.

Composes source resolution, partitioning, governed execution and
aggregation for one upload variant, with the variant's prerequisite and
post-send steps around them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING

from connector.aggregator import aggregate_outcomes
from connector.errors import (
    PostProcessingError,
    PrerequisiteError,
    UploadError,
    describe_google_ads_exception,
)
from connector.executor import UploadExecutor
from connector.governor import ThroughputGovernor
from connector.models import BatchResult, UploadConfig
from connector.partitioner import partition_records
from connector.source import ObjectFetcher

if TYPE_CHECKING:
    from connector.variants import UploadVariant

logger = logging.getLogger(__name__)


@dataclass
class UploadContext:
    """State shared by the steps of one upload invocation."""

    gateway: Any
    config: UploadConfig
    message_id: str
    state: Dict[str, Any] = field(default_factory=dict)


class UploadOrchestrator:
    """
    Runs uploads for one variant.

    ``upload`` never raises for remote failures: every error outside a
    batch send is returned as a failed BatchResult with one message.
    """

    def __init__(
        self,
        variant: "UploadVariant",
        gateway: Any,
        fetcher: Optional[ObjectFetcher] = None,
    ):
        """
        Initialize Upload Orchestrator.

        Args:
            variant: Upload variant (capabilities and speed defaults)
            gateway: Destination API gateway passed to the variant's steps
            fetcher: Object fetcher for storage references
        """
        self.variant = variant
        self.gateway = gateway
        self.fetcher = fetcher

    async def upload(self, message: str, message_id: str, config: UploadConfig) -> BatchResult:
        """
        Upload the records carried or referenced by a message.

        Args:
            message: Inline records or a storage reference
            message_id: Correlation id for logs
            config: Resolved upload configuration

        Returns:
            Aggregate result of the upload
        """
        label = f"{self.variant.code}:{message_id}"
        context = UploadContext(gateway=self.gateway, config=config, message_id=message_id)

        try:
            records = await self.variant.resolve_source(message, self.fetcher)
            for step in self.variant.prerequisite_steps:
                await self._run_step(step, context, PrerequisiteError)
            batches = partition_records(records, config.records_per_request)
        except UploadError as e:
            logger.error(f"[{label}] Upload aborted before sending: {e.message}")
            return BatchResult.failure(e.message)
        except Exception as e:
            logger.error(f"[{label}] Upload aborted before sending: {e}", exc_info=True)
            return BatchResult.failure(describe_google_ads_exception(e))

        logger.info(
            f"[{label}] Sending {len(batches)} batches "
            f"(records_per_request={config.records_per_request}, "
            f"threads={config.number_of_threads}, qps={config.qps})"
        )
        governor = ThroughputGovernor(max_concurrency=config.number_of_threads, qps=config.qps)
        send = self.variant.build_send_operation(context)
        outcomes = await UploadExecutor(governor, label=label).execute(batches, send)
        result = aggregate_outcomes(outcomes)
        logger.info(f"[{label}] Batch result: result={result.result}, errors={len(result.errors)}")

        try:
            for step in self.variant.post_steps:
                await self._run_step(step, context, PostProcessingError)
        except UploadError as e:
            logger.error(f"[{label}] Post-processing failed: {e.message}")
            return BatchResult.failure(e.message)

        return result

    @staticmethod
    async def _run_step(step: Any, context: UploadContext, error_type: type[UploadError]) -> None:
        """Run one step, wrapping any failure in ``error_type``."""
        name = getattr(step, "__name__", repr(step))
        try:
            await step(context)
        except Exception as e:
            raise error_type(
                f"{name} failed: {describe_google_ads_exception(e)}", step=name
            ) from e
