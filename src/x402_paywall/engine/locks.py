"""
Single-Flight Action Lock

Admits at most one user-initiated action (connect or pay) at a time and
issues a token per action. Continuations of an action compare their token
with the current one after every suspension point; once a newer token
exists, the continuation is stale and must drop its remaining effects.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ..utils import logger
from .exceptions import StaleActionDiscard


class ActionLock:
    """
    Re-entrancy guard with staleness tokens.

    One instance belongs to one session; it is never shared process-wide.

    Example:
        token = lock.begin()
        if token is None:
            return                      # another action is in flight
        try:
            await wallet.sign(...)
            lock.ensure_current(token)  # raises StaleActionDiscard if superseded
        finally:
            lock.end(token)
    """

    def __init__(self) -> None:
        self._locked = False
        self._nonce = 0

    @property
    def is_busy(self) -> bool:
        return self._locked

    @property
    def current_token(self) -> int:
        return self._nonce

    def begin(self) -> Optional[int]:
        """
        Start an action.

        Returns:
            Optional[int]: New action token, or None when an action is already
            in flight (the caller must do nothing).
        """
        if self._locked:
            return None
        self._locked = True
        self._nonce += 1
        return self._nonce

    def end(self, token: Optional[int] = None) -> None:
        """
        Release the lock.

        Passing the action's token makes the release conditional: a stale
        token leaves the lock alone, since it may now be held by a newer action.
        """
        if token is not None and self.is_stale(token):
            logger.debug("Ignoring release from stale action %s", token)
            return
        self._locked = False

    def is_stale(self, token: int) -> bool:
        return token != self._nonce

    def ensure_current(self, token: int) -> None:
        """
        Raises:
            StaleActionDiscard: If ``token`` has been superseded.
        """
        if self.is_stale(token):
            raise StaleActionDiscard(f"Action {token} superseded by {self._nonce}")

    def reset(self) -> None:
        """Forcibly clear the lock and invalidate every outstanding token."""
        self._nonce += 1
        self._locked = False

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[Optional[int]]:
        """
        Hold the lock for the duration of the block.

        Yields the action token, or None when the lock was busy (nothing is
        held then). The lock is released on every exit path.
        """
        token = self.begin()
        try:
            yield token
        finally:
            if token is not None:
                self.end(token)
