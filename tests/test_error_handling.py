"""
Tests for error handling utilities.
"""

from unittest.mock import patch

import pytest

from booth_notifier.utils.error_handling import (
    ConfigError,
    ErrorCategory,
    ErrorInfo,
    ErrorSeverity,
    ErrorTracker,
    FetchError,
    NotifierError,
    ParseError,
    RetryConfig,
    StorageError,
    TransportError,
    categorize,
    get_error_tracker,
    with_error_handling,
)


class TestErrorTaxonomy:
    """Test the exception hierarchy and its categories."""

    @pytest.mark.parametrize(
        "error, category",
        [
            (FetchError("timeout"), ErrorCategory.NETWORK),
            (ParseError("bad json"), ErrorCategory.PARSING),
            (StorageError("locked"), ErrorCategory.STORAGE),
            (TransportError("403"), ErrorCategory.MESSAGE_DELIVERY),
            (ConfigError("missing token"), ErrorCategory.CONFIGURATION),
            (RuntimeError("boom"), ErrorCategory.SYSTEM),
        ],
    )
    def test_categorize(self, error, category):
        assert categorize(error) is category

    def test_all_errors_share_base(self):
        for error_type in (FetchError, ParseError, StorageError, TransportError):
            assert issubclass(error_type, NotifierError)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            raise ConfigError("invalid")


class TestErrorTracker:
    """Test cases for ErrorTracker."""

    def test_record_error(self):
        """Test error recording."""
        tracker = ErrorTracker()

        error_info = tracker.record_error(
            component="test_component",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.HIGH,
            message="Test error message",
            context={"key": "value"},
        )

        assert isinstance(error_info, ErrorInfo)
        assert error_info.component == "test_component"
        assert error_info.category == ErrorCategory.NETWORK
        assert error_info.severity == ErrorSeverity.HIGH
        assert error_info.context == {"key": "value"}
        assert error_info.exception_type == "Unknown"
        assert list(tracker.errors) == [error_info]

    def test_record_error_with_exception(self):
        """Test error recording with exception."""
        tracker = ErrorTracker()

        error_info = tracker.record_error(
            component="change_detector",
            category=ErrorCategory.PARSING,
            severity=ErrorSeverity.MEDIUM,
            message="Detail fetch failed",
            exception=ParseError("item 7: missing required field 'name'"),
        )

        assert error_info.exception_type == "ParseError"
        assert error_info.context == {}

    def test_error_counts(self):
        """Test error count tracking."""
        tracker = ErrorTracker()

        for i in range(3):
            tracker.record_error(
                component="test_component",
                category=ErrorCategory.NETWORK,
                severity=ErrorSeverity.LOW,
                message=f"Error {i}",
            )

        tracker.record_error(
            component="test_component",
            category=ErrorCategory.PARSING,
            severity=ErrorSeverity.HIGH,
            message="Parse error",
        )

        assert tracker.error_counts["test_component.network.low"] == 3
        assert tracker.error_counts["test_component.parsing.high"] == 1

    def test_get_error_stats(self):
        """Test error statistics."""
        tracker = ErrorTracker()

        tracker.record_error(
            component="comp1",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.HIGH,
            message="Error 1",
        )
        tracker.record_error(
            component="comp2",
            category=ErrorCategory.FILTER_EVALUATION,
            severity=ErrorSeverity.LOW,
            message="Error 2",
        )

        stats = tracker.get_error_stats()

        assert stats["total_errors"] == 2
        assert stats["errors_last_hour"] == 2
        assert stats["category_breakdown"]["network"] == 1
        assert stats["category_breakdown"]["filter_evaluation"] == 1
        assert stats["category_breakdown"]["storage"] == 0
        assert stats["component_error_counts"] == {"comp1": 1, "comp2": 1}

    def test_max_errors(self):
        tracker = ErrorTracker(max_errors=5)

        for i in range(8):
            tracker.record_error(
                component="comp",
                category=ErrorCategory.STORAGE,
                severity=ErrorSeverity.LOW,
                message=f"Error {i}",
            )

        assert len(tracker.errors) == 5
        assert tracker.errors[0].message == "Error 3"
        # Counts keep the full history
        assert tracker.get_error_stats()["component_error_counts"] == {"comp": 8}


class TestRetryConfig:
    """Test cases for RetryConfig."""

    def test_default_config(self):
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 60.0

    def test_exponential_delays_are_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0)

        assert [config.delay_for(attempt) for attempt in range(5)] == [
            1.0,
            2.0,
            4.0,
            5.0,
            5.0,
        ]


class TestWithErrorHandling:
    """Test cases for with_error_handling decorator."""

    @pytest.fixture
    def tracker(self):
        tracker = ErrorTracker()
        with patch(
            "booth_notifier.utils.error_handling.get_error_tracker",
            return_value=tracker,
        ):
            yield tracker

    @pytest.mark.asyncio
    async def test_successful_function(self, tracker):
        """Test error handling decorator with successful async function."""

        @with_error_handling(
            component="test", category=ErrorCategory.NETWORK, severity=ErrorSeverity.LOW
        )
        async def test_function():
            return "success"

        assert await test_function() == "success"
        assert len(tracker.errors) == 0

    @pytest.mark.asyncio
    async def test_failure_with_suppression(self, tracker):
        """Test error handling decorator with failing async function and suppression."""

        @with_error_handling(
            component="test",
            severity=ErrorSeverity.LOW,
            fallback_value="fallback",
            suppress_exceptions=True,
        )
        async def failing_function():
            raise FetchError("Test failure")

        assert await failing_function() == "fallback"

        [error] = tracker.errors
        assert error.category is ErrorCategory.NETWORK
        assert error.exception_type == "FetchError"
        assert error.context == {"function": "failing_function"}

    @pytest.mark.asyncio
    async def test_failure_without_suppression(self, tracker):
        """Test error handling decorator with failing async function without suppression."""

        @with_error_handling(
            component="test", category=ErrorCategory.NETWORK, severity=ErrorSeverity.LOW
        )
        async def failing_function():
            raise ValueError("Test failure")

        with pytest.raises(ValueError):
            await failing_function()

        assert tracker.errors[0].category is ErrorCategory.NETWORK

    def test_preserves_function_metadata(self):
        @with_error_handling(component="test")
        async def check_config_reload():
            """Reload the configuration."""

        assert check_config_reload.__name__ == "check_config_reload"
        assert check_config_reload.__doc__ == "Reload the configuration."


def test_get_error_tracker():
    """Test the global tracker is a singleton."""
    assert get_error_tracker() is get_error_tracker()
