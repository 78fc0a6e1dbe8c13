"""Tests for batch partitioner module."""

import math

import pytest
from connector.errors import ConfigurationError
from connector.partitioner import partition_records, split_records


class TestPartitionRecords:
    """Tests for partition_records."""

    @pytest.mark.parametrize("count,size", [(1, 1), (10, 3), (9, 3), (5, 10), (100, 7)])
    def test_batch_count_and_order(self, count, size):
        """Test ceil(N/R) batches, each within size, concatenating to the input."""
        lines = [f'{{"id": {i}}}' for i in range(count)]

        batches = partition_records("\n".join(lines), size)

        assert len(batches) == math.ceil(count / size)
        assert all(len(batch) <= size for batch in batches)
        assert [record for batch in batches for record in batch.records] == lines
        assert [batch.index for batch in batches] == list(range(len(batches)))

    def test_last_batch_shorter(self):
        """Test that only the last batch may be shorter."""
        batches = partition_records("a\nb\nc\nd\ne", 2)

        assert [batch.records for batch in batches] == [("a", "b"), ("c", "d"), ("e",)]

    def test_empty_stream(self):
        """Test that an empty stream yields no batches."""
        assert partition_records("", 5) == []
        assert partition_records("\n\n", 5) == []

    def test_deterministic(self):
        """Test identical input gives identical batches."""
        records = "\n".join(str(i) for i in range(50))

        assert partition_records(records, 7) == partition_records(records, 7)

    def test_invalid_size(self):
        """Test non-positive records_per_request is rejected."""
        with pytest.raises(ConfigurationError):
            partition_records("a", 0)


class TestSplitRecords:
    """Tests for record splitting."""

    def test_crlf_and_blank_lines(self):
        """Test CRLF endings are stripped and blank lines dropped."""
        assert split_records("a\r\nb\n\n  \nc\n") == ["a", "b", "c"]

    def test_only_newlines_split(self):
        """Test that other unicode line separators stay inside a record."""
        record = '{"name": "a\u2028b\x0cc"}'

        assert split_records(record) == [record]
