"""
Data model shared by the upload pipeline.

UploadConfig is validated with pydantic; batches, outcomes and results are
small frozen dataclasses passed between the pipeline stages.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UploadConfig(BaseModel):
    """
    Per-invocation upload settings.

    Field names accept both snake_case and the camelCase keys used in
    connector configurations (``recordsPerRequest``, ``numberOfThreads``).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    records_per_request: int = Field(..., gt=0, description="Maximum records per batch")
    number_of_threads: int = Field(1, ge=1, description="Maximum concurrent batches")
    qps: Optional[float] = Field(None, gt=0, description="Batch starts per second (None = unlimited)")
    target: Dict[str, Any] = Field(default_factory=dict, description="Destination parameters")


@dataclass(frozen=True)
class RecordBatch:
    """An ordered group of raw records sent in one request."""

    index: int
    records: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class BatchOutcome:
    """Terminal outcome of sending one batch."""

    batch_index: int
    success: bool
    error_messages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchResult:
    """
    Overall result of an upload.

    ``result`` is True only if every batch succeeded; ``errors`` holds every
    batch error message in batch order.
    """

    result: bool
    errors: Tuple[str, ...] = ()

    @classmethod
    def success(cls) -> "BatchResult":
        return cls(result=True)

    @classmethod
    def failure(cls, *messages: str) -> "BatchResult":
        return cls(result=False, errors=tuple(messages))

    @classmethod
    def from_errors(cls, errors: Iterable[str]) -> "BatchResult":
        """Build a result that fails if any error message is present."""
        errors = tuple(errors)
        return cls(result=not errors, errors=errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {"result": self.result, "errors": list(self.errors)}
