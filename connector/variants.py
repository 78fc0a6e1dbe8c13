"""
Upload variants keyed by API code.

Each variant is a configuration value: speed defaults plus the capabilities
the orchestrator composes (source resolver, send operation builder,
prerequisite and post-send steps).
"""

import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from connector.errors import ConfigurationError
from connector.executor import SendOperation
from connector.models import BatchResult, RecordBatch, UploadConfig
from connector.orchestrator import UploadContext
from connector.source import ObjectFetcher, inline_records, resolve_record_source


SourceResolver = Callable[[str, Optional[ObjectFetcher]], Awaitable[str]]
Step = Callable[[UploadContext], Awaitable[None]]

SPEED_OPTION_KEYS = (
    "recordsPerRequest",
    "records_per_request",
    "numberOfThreads",
    "number_of_threads",
    "qps",
)


def proper_value(value: Any, default: float, capped: bool = True, integer: bool = False) -> float:
    """
    Pick a usable speed option.

    Non-numeric, non-finite and non-positive values fall back to ``default``;
    so do values above ``default`` when ``capped``. With ``integer`` the
    value is truncated before the positive check.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    if integer:
        number = int(number)
    if number <= 0 or (capped and number > default):
        return default
    return number


@dataclass(frozen=True)
class UploadVariant:
    """An upload target and how to drive it."""

    code: str
    name: str
    default_on_storage: bool
    records_per_request: int
    number_of_threads: int
    qps: Optional[float]
    threads_overridable: bool
    required_target_keys: Tuple[str, ...]
    resolve_source: SourceResolver
    build_send_operation: Callable[[UploadContext], SendOperation]
    prerequisite_steps: Tuple[Step, ...] = ()
    post_steps: Tuple[Step, ...] = ()

    def resolve_config(self, raw: Mapping[str, Any]) -> UploadConfig:
        """
        Build the UploadConfig for a raw connector configuration.

        Speed options fall back to this variant's defaults; every other key
        becomes a destination parameter.

        Raises:
            ConfigurationError: If a required destination key is missing
        """
        missing = [key for key in self.required_target_keys if not raw.get(key)]
        if missing:
            raise ConfigurationError(
                f"{self.code} configuration is missing {', '.join(missing)}",
                details={"missing": missing},
            )

        records_per_request = proper_value(
            raw.get("recordsPerRequest", raw.get("records_per_request")),
            self.records_per_request,
            integer=True,
        )
        number_of_threads = self.number_of_threads
        if self.threads_overridable:
            number_of_threads = proper_value(
                raw.get("numberOfThreads", raw.get("number_of_threads")),
                self.number_of_threads,
                capped=False,
                integer=True,
            )
        qps = self.qps
        if raw.get("qps") is not None:
            qps = proper_value(raw.get("qps"), self.qps or 0, capped=False) or None

        return UploadConfig(
            records_per_request=int(records_per_request),
            number_of_threads=int(number_of_threads),
            qps=qps,
            target={k: v for k, v in raw.items() if k not in SPEED_OPTION_KEYS},
        )

    def describe(self) -> Dict[str, Any]:
        """Summary for listings."""
        return {
            "code": self.code,
            "name": self.name,
            "default_on_storage": self.default_on_storage,
            "records_per_request": self.records_per_request,
            "number_of_threads": self.number_of_threads,
            "qps": self.qps,
        }


# Conversion adjustments

def build_conversion_adjustment_send(context: UploadContext) -> SendOperation:
    target = context.config.target

    async def send(batch: RecordBatch) -> BatchResult:
        return await context.gateway.upload_conversion_adjustments(target, batch.records)

    return send


# Offline user data jobs

def _job_config(context: UploadContext) -> Dict[str, Any]:
    """Working copy of the job config; steps write list_id into it."""
    if "job_config" not in context.state:
        context.state["job_config"] = dict(context.config.target["offlineUserDataJobConfig"])
    return context.state["job_config"]


async def prepare_user_list(context: UploadContext) -> None:
    """Customer Match jobs need the target user list to exist first."""
    job_config = _job_config(context)
    if str(job_config.get("type", "")).startswith("CUSTOMER_MATCH"):
        job_config["list_id"] = await context.gateway.get_or_create_user_list(job_config)


async def create_job(context: UploadContext) -> None:
    context.state["job_resource_name"] = await context.gateway.create_offline_user_data_job(
        _job_config(context)
    )


async def run_job(context: UploadContext) -> None:
    await context.gateway.run_offline_user_data_job(
        _job_config(context), context.state["job_resource_name"]
    )


def build_user_data_job_send(context: UploadContext) -> SendOperation:
    job_config = _job_config(context)
    job_resource_name = context.state["job_resource_name"]

    async def send(batch: RecordBatch) -> BatchResult:
        return await context.gateway.add_offline_user_data_job_operations(
            job_config, job_resource_name, batch.records
        )

    return send


CONVERSION_ADJUSTMENTS = UploadVariant(
    code="ACA",
    name="Google Ads conversion adjustments",
    default_on_storage=False,
    records_per_request=2000,
    number_of_threads=10,
    qps=1,
    threads_overridable=True,
    required_target_keys=("customerId",),
    resolve_source=inline_records,
    build_send_operation=build_conversion_adjustment_send,
)

# At most 100,000 operations per AddOfflineUserDataJobOperationsRequest, and
# user data can't be added to the same job concurrently.
OFFLINE_USER_DATA_JOB = UploadVariant(
    code="AOUD",
    name="Google Ads offline user data job",
    default_on_storage=True,
    records_per_request=100000,
    number_of_threads=1,
    qps=1,
    threads_overridable=False,
    required_target_keys=("offlineUserDataJobConfig",),
    resolve_source=resolve_record_source,
    build_send_operation=build_user_data_job_send,
    prerequisite_steps=(prepare_user_list, create_job),
    post_steps=(run_job,),
)

UPLOAD_VARIANTS: Dict[str, UploadVariant] = {
    variant.code: variant for variant in (CONVERSION_ADJUSTMENTS, OFFLINE_USER_DATA_JOB)
}


def get_variant(code: str) -> UploadVariant:
    """
    Look up an upload variant by API code.

    Raises:
        ConfigurationError: For unknown codes
    """
    variant = UPLOAD_VARIANTS.get(code.upper())
    if variant is None:
        raise ConfigurationError(
            f"Unknown API code '{code}'",
            details={"known": sorted(UPLOAD_VARIANTS)},
        )
    return variant
