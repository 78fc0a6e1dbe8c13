"""Tests for upload variant configuration."""

import pytest
from pydantic import ValidationError

from connector.errors import ConfigurationError
from connector.models import UploadConfig
from connector.variants import (
    CONVERSION_ADJUSTMENTS,
    OFFLINE_USER_DATA_JOB,
    get_variant,
    proper_value,
)


class TestProperValue:
    """Tests for proper_value."""

    def test_falls_back_on_invalid(self):
        """Test invalid values use the default."""
        assert proper_value(None, 10) == 10
        assert proper_value("abc", 10) == 10
        assert proper_value(-1, 10) == 10
        assert proper_value(0, 10) == 10

    def test_cap(self):
        """Test capped values above the default use the default."""
        assert proper_value(50, 10) == 10
        assert proper_value(50, 10, capped=False) == 50
        assert proper_value("5", 10) == 5

    @pytest.mark.parametrize("value", ["nan", float("nan"), "inf", "-inf", float("inf"), "1e400"])
    def test_non_finite(self, value):
        """Test NaN and infinite values use the default."""
        assert proper_value(value, 10) == 10
        assert proper_value(value, 10, capped=False, integer=True) == 10

    def test_integer_truncation(self):
        """Test integer options are truncated before the positive check."""
        assert proper_value(0.5, 10, integer=True) == 10
        assert proper_value("2.7", 10, integer=True) == 2
        assert proper_value(0.5, 10) == 0.5


class TestResolveConfig:
    """Tests for UploadVariant.resolve_config."""

    def test_defaults(self):
        """Test variant defaults apply when nothing is configured."""
        config = OFFLINE_USER_DATA_JOB.resolve_config({"offlineUserDataJobConfig": {"type": "X"}})

        assert config.records_per_request == 100000
        assert config.number_of_threads == 1
        assert config.qps == 1
        assert config.target == {"offlineUserDataJobConfig": {"type": "X"}}

    def test_records_per_request_capped(self):
        """Test records per request cannot exceed the API limit."""
        config = OFFLINE_USER_DATA_JOB.resolve_config(
            {"offlineUserDataJobConfig": {"type": "X"}, "recordsPerRequest": 500000}
        )

        assert config.records_per_request == 100000

    def test_threads_fixed_for_jobs(self):
        """Test job uploads stay single-threaded."""
        config = OFFLINE_USER_DATA_JOB.resolve_config(
            {"offlineUserDataJobConfig": {"type": "X"}, "numberOfThreads": 8}
        )

        assert config.number_of_threads == 1

    def test_overrides(self):
        """Test speed overrides and target separation for conversion adjustments."""
        config = CONVERSION_ADJUSTMENTS.resolve_config({
            "customerId": "123",
            "recordsPerRequest": 100,
            "numberOfThreads": 3,
            "qps": 5,
        })

        assert (config.records_per_request, config.number_of_threads, config.qps) == (100, 3, 5)
        assert config.target == {"customerId": "123"}

    @pytest.mark.parametrize("speed", [
        {"recordsPerRequest": "nan", "numberOfThreads": "inf", "qps": "nan"},
        {"recordsPerRequest": 0.5, "numberOfThreads": 0.9, "qps": "inf"},
    ])
    def test_unusable_speed_options_fall_back(self, speed):
        """Test non-finite or fractional speed options use the defaults."""
        config = CONVERSION_ADJUSTMENTS.resolve_config({"customerId": "1", **speed})

        assert (config.records_per_request, config.number_of_threads, config.qps) == (2000, 10, 1)

    def test_missing_target_key(self):
        """Test missing destination parameters are rejected."""
        with pytest.raises(ConfigurationError):
            CONVERSION_ADJUSTMENTS.resolve_config({"recordsPerRequest": 10})


class TestVariantLookup:
    """Tests for get_variant."""

    def test_known_codes(self):
        """Test lookups are case-insensitive."""
        assert get_variant("aca") is CONVERSION_ADJUSTMENTS
        assert get_variant("AOUD") is OFFLINE_USER_DATA_JOB
        assert OFFLINE_USER_DATA_JOB.default_on_storage is True

    def test_unknown_code(self):
        """Test unknown codes raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            get_variant("GA4")


class TestUploadConfig:
    """Tests for UploadConfig validation."""

    def test_camel_case_aliases(self):
        """Test camelCase keys are accepted."""
        config = UploadConfig.model_validate({"recordsPerRequest": 10, "numberOfThreads": 2})

        assert config.records_per_request == 10
        assert config.number_of_threads == 2
        assert config.qps is None

    @pytest.mark.parametrize("fields", [
        {"records_per_request": 0},
        {"records_per_request": 10, "number_of_threads": 0},
        {"records_per_request": 10, "qps": 0},
    ])
    def test_invalid(self, fields):
        """Test invalid configs fail immediately."""
        with pytest.raises(ValidationError):
            UploadConfig(**fields)
