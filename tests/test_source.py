"""Tests for record source resolution."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from google.api_core import exceptions as gcloud_exceptions

from connector.errors import SourceResolutionError
from connector.source import StorageObjectFetcher, inline_records, resolve_record_source


class TestResolveRecordSource:
    """Tests for resolve_record_source."""

    @pytest.fixture
    def fetcher(self):
        """Create mock object fetcher."""
        fetcher = AsyncMock()
        fetcher.fetch.return_value = '{"hashedEmail": "a"}\n{"hashedEmail": "b"}'
        return fetcher

    @pytest.mark.asyncio
    async def test_storage_reference_is_fetched(self, fetcher):
        """Test a bucket/file message loads the object."""
        message = json.dumps({"bucket": "uploads", "file": "aoud/users.json"})

        records = await resolve_record_source(message, fetcher)

        fetcher.fetch.assert_awaited_once_with("uploads", "aoud/users.json")
        assert records == '{"hashedEmail": "a"}\n{"hashedEmail": "b"}'

    @pytest.mark.asyncio
    async def test_reference_without_file_fails(self, fetcher):
        """Test a bucket without a file is an error, not inline data."""
        message = json.dumps({"bucket": "uploads"})

        with pytest.raises(SourceResolutionError) as exc_info:
            await resolve_record_source(message, fetcher)

        assert "Could not find" in exc_info.value.message
        fetcher.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_json_is_inline(self, fetcher):
        """Test multi-line records are used as-is."""
        message = '{"hashedEmail": "a"}\n{"hashedEmail": "b"}'

        assert await resolve_record_source(message, fetcher) == message
        fetcher.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_record_is_inline(self, fetcher):
        """Test a single JSON record without a bucket is inline data."""
        message = json.dumps({"hashedEmail": "a"})

        assert await resolve_record_source(message, fetcher) == message
        fetcher.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self, fetcher):
        """Test fetch failures surface to the caller."""
        fetcher.fetch.side_effect = SourceResolutionError("missing object")

        with pytest.raises(SourceResolutionError):
            await resolve_record_source(json.dumps({"bucket": "b", "file": "f"}), fetcher)

    @pytest.mark.asyncio
    async def test_reference_without_fetcher(self):
        """Test a reference cannot be loaded without a fetcher."""
        with pytest.raises(SourceResolutionError):
            await resolve_record_source(json.dumps({"bucket": "b", "file": "f"}), None)

    @pytest.mark.asyncio
    async def test_inline_records_ignores_references(self, fetcher):
        """Test inline resolver never fetches."""
        message = json.dumps({"bucket": "b"})

        assert await inline_records(message, fetcher) == message
        fetcher.fetch.assert_not_called()


class TestStorageObjectFetcher:
    """Tests for StorageObjectFetcher."""

    @pytest.fixture
    def storage_client(self):
        """Create mock storage client."""
        return MagicMock()

    @pytest.mark.asyncio
    async def test_fetch_downloads_text(self, storage_client):
        """Test object content is downloaded as text."""
        blob = storage_client.bucket.return_value.blob.return_value
        blob.download_as_text.return_value = "a\nb"

        content = await StorageObjectFetcher(client=storage_client).fetch("bkt", "obj")

        storage_client.bucket.assert_called_once_with("bkt")
        storage_client.bucket.return_value.blob.assert_called_once_with("obj")
        assert content == "a\nb"

    @pytest.mark.asyncio
    async def test_missing_object(self, storage_client):
        """Test NotFound becomes a SourceResolutionError."""
        blob = storage_client.bucket.return_value.blob.return_value
        blob.download_as_text.side_effect = gcloud_exceptions.NotFound("no such object")

        with pytest.raises(SourceResolutionError) as exc_info:
            await StorageObjectFetcher(client=storage_client).fetch("bkt", "obj")

        assert exc_info.value.error_detail.details == {"bucket": "bkt", "file": "obj"}
