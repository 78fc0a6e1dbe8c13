"""Managed batch uploads of marketing records to Google Ads."""

from connector.errors import (
    UploadError,
    SourceResolutionError,
    PrerequisiteError,
    BatchSendError,
    PostProcessingError,
    ConfigurationError,
    ExternalAPIError,
)
from connector.models import UploadConfig, RecordBatch, BatchOutcome, BatchResult
from connector.partitioner import partition_records
from connector.governor import ThroughputGovernor
from connector.executor import UploadExecutor
from connector.aggregator import aggregate_outcomes
from connector.source import StorageObjectFetcher, resolve_record_source
from connector.orchestrator import UploadOrchestrator, UploadContext
from connector.variants import UploadVariant, UPLOAD_VARIANTS, get_variant
from connector.cache import ResourceCache, TTL_BY_RESOURCE
from connector.google_ads import (
    GoogleAdsGateway,
    MockGoogleAdsGateway,
    create_google_ads_gateway,
)

__all__ = [
    # Errors
    "UploadError",
    "SourceResolutionError",
    "PrerequisiteError",
    "BatchSendError",
    "PostProcessingError",
    "ConfigurationError",
    "ExternalAPIError",
    # Models
    "UploadConfig",
    "RecordBatch",
    "BatchOutcome",
    "BatchResult",
    # Pipeline
    "partition_records",
    "ThroughputGovernor",
    "UploadExecutor",
    "aggregate_outcomes",
    "StorageObjectFetcher",
    "resolve_record_source",
    "UploadOrchestrator",
    "UploadContext",
    # Variants
    "UploadVariant",
    "UPLOAD_VARIANTS",
    "get_variant",
    # Google Ads
    "ResourceCache",
    "TTL_BY_RESOURCE",
    "GoogleAdsGateway",
    "MockGoogleAdsGateway",
    "create_google_ads_gateway",
]
