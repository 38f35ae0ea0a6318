"""
Action Lock Test Suite

Tests for single-flight admission and staleness tokens.
"""

import pytest

from x402_paywall.engine.exceptions import StaleActionDiscard
from x402_paywall.engine.locks import ActionLock


@pytest.fixture
def lock():
    return ActionLock()


class TestActionLock:
    """Test begin/end/is_stale/reset."""

    def test_second_begin_is_refused(self, lock):
        token = lock.begin()
        assert token is not None
        assert lock.is_busy
        assert lock.begin() is None

    def test_begin_after_end(self, lock):
        first = lock.begin()
        lock.end(first)
        second = lock.begin()
        assert second is not None
        assert second != first

    def test_superseded_token_is_stale(self, lock):
        first = lock.begin()
        lock.end(first)
        second = lock.begin()
        assert lock.is_stale(first)
        assert not lock.is_stale(second)

    def test_reset_invalidates_and_unlocks(self, lock):
        token = lock.begin()
        lock.reset()
        assert lock.is_stale(token)
        assert not lock.is_busy
        assert lock.begin() is not None

    def test_stale_end_does_not_release_newer_action(self, lock):
        stale = lock.begin()
        lock.reset()
        current = lock.begin()
        lock.end(stale)
        assert lock.is_busy
        lock.end(current)
        assert not lock.is_busy

    def test_unconditional_end(self, lock):
        lock.begin()
        lock.end()
        assert not lock.is_busy

    def test_ensure_current(self, lock):
        token = lock.begin()
        lock.ensure_current(token)
        lock.reset()
        with pytest.raises(StaleActionDiscard):
            lock.ensure_current(token)

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self, lock):
        with pytest.raises(RuntimeError):
            async with lock.hold() as token:
                assert token == lock.current_token
                raise RuntimeError("boom")
        assert not lock.is_busy

    @pytest.mark.asyncio
    async def test_hold_while_busy_yields_none(self, lock):
        outer = lock.begin()
        async with lock.hold() as token:
            assert token is None
        assert lock.is_busy
        assert not lock.is_stale(outer)
