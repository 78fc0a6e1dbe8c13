"""Split a newline-delimited record stream into upload batches."""

import logging
from typing import List

from connector.errors import ConfigurationError
from connector.models import RecordBatch

logger = logging.getLogger(__name__)


def split_records(records: str) -> List[str]:
    """
    Split a record stream into individual records.

    Only ``\\n`` and ``\\r\\n`` end a record. Blank lines are not records
    and are dropped.
    """
    lines = (line.rstrip("\r") for line in records.split("\n"))
    return [line for line in lines if line.strip()]


def partition_records(records: str, records_per_request: int) -> List[RecordBatch]:
    """
    Partition a record stream into batches.

    Args:
        records: Newline-delimited records
        records_per_request: Maximum records in one batch

    Returns:
        Batches in stream order, indexed from 0; the last may be shorter

    Raises:
        ConfigurationError: If records_per_request is not positive
    """
    if records_per_request <= 0:
        raise ConfigurationError(
            f"records_per_request must be positive, got {records_per_request}",
            details={"records_per_request": records_per_request},
        )

    lines = split_records(records)
    batches = [
        RecordBatch(index=i, records=tuple(lines[start:start + records_per_request]))
        for i, start in enumerate(range(0, len(lines), records_per_request))
    ]

    logger.debug(
        f"Partitioned {len(lines)} records into {len(batches)} batches "
        f"(records_per_request={records_per_request})"
    )
    return batches
