"""
Record Source Resolver.

An inbound message either carries the records inline or references a
Cloud Storage object (``{"bucket": ..., "file": ...}``) holding them.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import storage

from connector.errors import SourceResolutionError

logger = logging.getLogger(__name__)


class ObjectFetcher(Protocol):
    """Anything that can return the text of a stored object."""

    async def fetch(self, bucket: str, name: str) -> str:
        ...


class StorageObjectFetcher:
    """Fetches object content from Google Cloud Storage."""

    def __init__(self, client: Optional[storage.Client] = None, project: Optional[str] = None):
        """
        Initialize the fetcher.

        Args:
            client: Storage client (created lazily with default credentials if omitted)
            project: Project for the lazily created client
        """
        self._client = client
        self._project = project

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client(project=self._project)
        return self._client

    async def fetch(self, bucket: str, name: str) -> str:
        """
        Download the full content of ``gs://bucket/name`` as text.

        Raises:
            SourceResolutionError: If the object is missing or not readable
        """
        blob = self.client.bucket(bucket).blob(name)
        try:
            content = await asyncio.to_thread(blob.download_as_text)
        except (gcloud_exceptions.NotFound, gcloud_exceptions.Forbidden) as e:
            raise SourceResolutionError(
                f"Could not load gs://{bucket}/{name}: {e.message}",
                bucket=bucket,
                name=name,
            ) from e

        logger.info(f"Loaded {len(content)} characters from gs://{bucket}/{name}")
        return content


def _parse_reference(message: str) -> Optional[dict[str, Any]]:
    """Return the message as a storage reference, or None for inline data."""
    try:
        parsed = json.loads(message)
    except (json.JSONDecodeError, TypeError):
        return None
    if isinstance(parsed, dict) and "bucket" in parsed:
        return parsed
    return None


async def resolve_record_source(message: str, fetcher: Optional[ObjectFetcher]) -> str:
    """
    Produce the raw record stream for a message.

    A message that is a JSON object with a ``bucket`` key is a storage
    reference and the referenced object is loaded. A reference without a
    ``file`` is an error; it is never treated as inline data. Anything else
    is the record stream itself.

    Args:
        message: Inbound message data
        fetcher: Object fetcher for storage references

    Returns:
        Newline-delimited records

    Raises:
        SourceResolutionError: Broken reference, or the object cannot be loaded
    """
    reference = _parse_reference(message)
    if reference is None:
        logger.debug("Message is not a storage reference, using it as inline records")
        return message

    bucket = reference.get("bucket")
    name = reference.get("file")
    if not name:
        logger.error(f"Could not find the object information in message: {message}")
        raise SourceResolutionError(
            f"Could not find the object information in message: {message}",
            bucket=bucket,
        )
    if fetcher is None:
        raise SourceResolutionError(
            f"No object fetcher configured to load gs://{bucket}/{name}",
            bucket=bucket,
            name=name,
        )

    return await fetcher.fetch(bucket, name)


async def inline_records(message: str, fetcher: Optional[ObjectFetcher] = None) -> str:
    """Resolver for APIs whose records always arrive in the message."""
    return message
