"""
Tests for error handling utilities.
"""

import pytest

from kufar_notifier.utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorTracker,
    GracefulDegradation,
    RetryConfig,
    get_degradation_manager,
    get_error_tracker,
    with_error_handling,
)


class TestErrorTracker:
    """Test cases for ErrorTracker."""

    def test_record_error(self):
        """Test recording an error."""
        tracker = ErrorTracker()

        error_info = tracker.record_error(
            component="listing.fetcher",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.HIGH,
            message="Connection timeout",
            context={"url": "https://api.kufar.by"},
        )

        assert error_info.component == "listing.fetcher"
        assert error_info.category == ErrorCategory.NETWORK
        assert error_info.severity == ErrorSeverity.HIGH
        assert error_info.exception_type == "Unknown"
        assert error_info.context == {"url": "https://api.kufar.by"}
        assert len(tracker.errors) == 1

    def test_record_error_with_exception(self):
        """Test recording an error together with the raised exception."""
        tracker = ErrorTracker()

        try:
            raise ValueError("bad filter url")
        except ValueError as e:
            error_info = tracker.record_error(
                component="query.builder",
                category=ErrorCategory.PARSING,
                severity=ErrorSeverity.MEDIUM,
                message="Parse failed",
                exception=e,
            )

        assert error_info.exception_type == "ValueError"
        assert "bad filter url" in error_info.traceback

    def test_error_counts(self):
        """Test error counting by component, category and severity."""
        tracker = ErrorTracker()

        for _ in range(2):
            tracker.record_error(
                "dispatcher", ErrorCategory.MESSAGE_DELIVERY, ErrorSeverity.MEDIUM, "failed"
            )
        tracker.record_error("store", ErrorCategory.STORAGE, ErrorSeverity.HIGH, "locked")

        assert tracker.error_counts["dispatcher.message_delivery.medium"] == 2
        assert tracker.error_counts["store.storage.high"] == 1

    def test_get_error_stats(self):
        """Test getting error statistics."""
        tracker = ErrorTracker()
        tracker.record_error("dispatcher", ErrorCategory.PERMISSION, ErrorSeverity.MEDIUM, "403")
        tracker.record_error("resolver", ErrorCategory.RESOLUTION, ErrorSeverity.LOW, "fallback")

        stats = tracker.get_error_stats()

        assert stats["total_errors"] == 2
        assert stats["errors_last_hour"] == 2
        assert stats["component_error_counts"] == {"dispatcher": 1, "resolver": 1}
        assert stats["category_breakdown"]["permission"] == 1
        assert stats["category_breakdown"]["network"] == 0

    def test_max_errors_is_bounded(self):
        """Test that only the most recent errors are kept."""
        tracker = ErrorTracker(max_errors=3)

        for index in range(5):
            tracker.record_error("c", ErrorCategory.SYSTEM, ErrorSeverity.LOW, f"error {index}")

        assert [e.message for e in tracker.errors] == ["error 2", "error 3", "error 4"]

    def test_get_component_errors(self):
        """Test retrieving recent errors of one component."""
        tracker = ErrorTracker()
        for index in range(4):
            tracker.record_error("sync.loop", ErrorCategory.SYSTEM, ErrorSeverity.LOW, str(index))

        recent = tracker.get_component_errors("sync.loop", limit=2)

        assert [e.message for e in recent] == ["2", "3"]
        assert tracker.get_component_errors("unknown") == []


class TestRetryConfig:
    """Test cases for RetryConfig."""

    def test_default_config(self):
        """Test default retry configuration."""
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 60.0
        assert config.exponential_backoff is True
        assert config.jitter is True

    def test_exponential_delay_is_capped(self):
        config = RetryConfig(base_delay=2.0, max_delay=5.0, jitter=False)

        assert config.delay_for(0) == 2.0
        assert config.delay_for(1) == 4.0
        assert config.delay_for(2) == 5.0

    def test_fixed_delay(self):
        config = RetryConfig(base_delay=1.5, exponential_backoff=False, jitter=False)

        assert config.delay_for(3) == 1.5

    def test_jitter_stays_within_half_range(self):
        config = RetryConfig(base_delay=2.0, exponential_backoff=False)

        for _ in range(20):
            assert 1.0 <= config.delay_for(0) <= 2.0


class TestWithErrorHandling:
    """Test cases for with_error_handling decorator."""

    @pytest.mark.asyncio
    async def test_successful_async_function(self):
        """Test error handling decorator with successful async function."""

        @with_error_handling(component="test", category=ErrorCategory.NETWORK)
        async def test_function():
            return "success"

        assert await test_function() == "success"

    @pytest.mark.asyncio
    async def test_failing_async_function_with_suppression(self):
        """Test error handling decorator with failing async function and suppression."""

        @with_error_handling(
            component="test",
            category=ErrorCategory.NETWORK,
            fallback_value="fallback",
            suppress_exceptions=True,
        )
        async def failing_function():
            raise Exception("Test failure")

        assert await failing_function() == "fallback"

    @pytest.mark.asyncio
    async def test_failing_async_function_without_suppression(self):
        """Test error handling decorator with failing async function without suppression."""

        @with_error_handling(component="test", category=ErrorCategory.NETWORK)
        async def failing_function():
            raise ValueError("Test failure")

        with pytest.raises(ValueError):
            await failing_function()

    @pytest.mark.asyncio
    async def test_retry_mechanism(self):
        """Test retry mechanism in error handling decorator."""
        call_count = 0

        @with_error_handling(
            component="test",
            category=ErrorCategory.NETWORK,
            retry_config=RetryConfig(max_attempts=3, base_delay=0.01),
            fallback_value="fallback",
            suppress_exceptions=True,
        )
        async def sometimes_failing_function():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise Exception(f"Failure {call_count}")
            return "success"

        assert await sometimes_failing_function() == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self):
        tracker = get_error_tracker()
        before = len(tracker.get_component_errors("recorded.component", limit=1000))

        @with_error_handling(
            component="recorded.component",
            category=ErrorCategory.STORAGE,
            suppress_exceptions=True,
        )
        async def failing_function():
            raise RuntimeError("database is locked")

        await failing_function()

        errors = tracker.get_component_errors("recorded.component", limit=1000)
        assert len(errors) == before + 1
        assert errors[-1].category == ErrorCategory.STORAGE

    def test_sync_function_error_handling(self):
        """Test error handling decorator with synchronous function."""

        @with_error_handling(
            component="test",
            category=ErrorCategory.PARSING,
            fallback_value="fallback",
            suppress_exceptions=True,
        )
        def failing_sync_function():
            raise Exception("Sync failure")

        assert failing_sync_function() == "fallback"

    def test_sync_function_reraises(self):
        @with_error_handling(component="test", category=ErrorCategory.PARSING)
        def failing_sync_function():
            raise KeyError("ad_id")

        with pytest.raises(KeyError):
            failing_sync_function()


class TestGracefulDegradation:
    """Test cases for GracefulDegradation."""

    def test_degrade_component(self):
        """Test component degradation."""
        degradation = GracefulDegradation()

        degradation.degrade_component(
            component="resolver:re.kufar.by",
            reason="filter map unavailable",
            fallback_behavior="default map",
            severity=ErrorSeverity.LOW,
        )

        assert degradation.is_degraded("resolver:re.kufar.by")
        info = degradation.get_all_degraded()["resolver:re.kufar.by"]
        assert info["reason"] == "filter map unavailable"
        assert info["fallback_behavior"] == "default map"
        assert info["severity"] == "low"

    def test_restore_component(self):
        """Test component restoration."""
        degradation = GracefulDegradation()
        degradation.degrade_component("bot", "Test", "Test fallback")

        degradation.restore_component("bot")

        assert not degradation.is_degraded("bot")
        assert degradation.get_all_degraded() == {}

    def test_restore_unknown_component(self):
        degradation = GracefulDegradation()

        degradation.restore_component("never-degraded")

        assert degradation.get_all_degraded() == {}

    def test_get_all_degraded_is_a_copy(self):
        degradation = GracefulDegradation()
        degradation.degrade_component("comp1", "reason1", "fallback1")

        snapshot = degradation.get_all_degraded()
        snapshot.clear()

        assert degradation.is_degraded("comp1")


class TestGlobalInstances:
    """Test cases for global instance management."""

    def test_get_error_tracker(self):
        """Test global error tracker instance."""
        assert get_error_tracker() is get_error_tracker()

    def test_get_degradation_manager(self):
        """Test global degradation manager instance."""
        assert get_degradation_manager() is get_degradation_manager()
