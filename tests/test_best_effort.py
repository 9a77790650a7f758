"""
Tests for the best-effort helper.
"""
import pytest

from app.core.best_effort import attempt


class TestAttempt:
    """Test attempt-and-log behaviour."""

    @pytest.mark.asyncio
    async def test_success_carries_result(self):
        """A successful call reports its result."""
        # Arrange
        async def work():
            return 42

        # Act
        outcome = await attempt("answer", work)

        # Assert
        assert outcome.succeeded
        assert not outcome.failed
        assert outcome.result == 42
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        """A failing call runs the cleanup and reports the error."""
        # Arrange
        cleaned = []

        async def work():
            raise RuntimeError("boom")

        async def cleanup():
            cleaned.append(True)

        # Act
        outcome = await attempt("explode", work, on_failure=cleanup, key_id="abc")

        # Assert
        assert outcome.failed
        assert outcome.operation == "explode"
        assert outcome.error == "boom"
        assert cleaned == [True]
