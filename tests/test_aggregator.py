"""Tests for result aggregation and result model."""

from connector.aggregator import aggregate_outcomes
from connector.models import BatchOutcome, BatchResult


class TestAggregateOutcomes:
    """Tests for aggregate_outcomes."""

    def test_empty_is_success(self):
        """Test zero outcomes is a vacuous success."""
        result = aggregate_outcomes([])

        assert result.result is True
        assert result.errors == ()

    def test_orders_by_batch_index(self):
        """Test errors follow batch index regardless of input order."""
        outcomes = [
            BatchOutcome(batch_index=2, success=False, error_messages=("c",)),
            BatchOutcome(batch_index=0, success=False, error_messages=("a1", "a2")),
            BatchOutcome(batch_index=1, success=True),
        ]

        result = aggregate_outcomes(outcomes)

        assert result.result is False
        assert result.errors == ("a1", "a2", "c")

    def test_all_success(self):
        """Test all successful outcomes give success."""
        outcomes = [BatchOutcome(batch_index=i, success=True) for i in range(3)]

        assert aggregate_outcomes(outcomes).result is True


class TestBatchResult:
    """Tests for BatchResult helpers."""

    def test_from_errors(self):
        """Test from_errors fails only when errors exist."""
        assert BatchResult.from_errors([]).result is True
        assert BatchResult.from_errors(["x"]) == BatchResult(result=False, errors=("x",))

    def test_to_dict(self):
        """Test dictionary form for API responses."""
        assert BatchResult.failure("boom").to_dict() == {"result": False, "errors": ["boom"]}
