"""Merge per-batch outcomes into one upload result."""

from typing import Iterable, List

from connector.models import BatchOutcome, BatchResult


def aggregate_outcomes(outcomes: Iterable[BatchOutcome]) -> BatchResult:
    """
    Reduce batch outcomes to a BatchResult.

    Outcomes are ordered by batch index first, so the merged errors do not
    depend on completion timing. Zero outcomes is a success.
    """
    ordered = sorted(outcomes, key=lambda outcome: outcome.batch_index)
    errors: List[str] = []
    for outcome in ordered:
        errors.extend(outcome.error_messages)
    return BatchResult(
        result=all(outcome.success for outcome in ordered),
        errors=tuple(errors),
    )
