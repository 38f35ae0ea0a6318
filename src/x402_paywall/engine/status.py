"""
Paywall Status Machine

Holds the externally observable paywall state and is its only writer.
Status changes follow a fixed transition table; error display and reset are
allowed from any status.

Status flow:
    connect ──► connected ──► processing ──► success
       ▲            ▲              │
       └────────────┴──── error ◄──┘
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from ..utils import logger
from .exceptions import InvalidTransition, PaywallError

DEFAULT_PROCESSING_TEXT = "Processing payment..."
DEFAULT_ERROR_MESSAGE = "Payment failed. Please try again."


class PaywallStatus(str, Enum):
    CONNECT = "connect"
    CONNECTED = "connected"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


TRANSITIONS: Dict[PaywallStatus, FrozenSet[PaywallStatus]] = {
    PaywallStatus.CONNECT: frozenset({PaywallStatus.CONNECTED, PaywallStatus.PROCESSING}),
    PaywallStatus.CONNECTED: frozenset({PaywallStatus.CONNECT, PaywallStatus.PROCESSING, PaywallStatus.SUCCESS}),
    PaywallStatus.PROCESSING: frozenset({PaywallStatus.CONNECT, PaywallStatus.CONNECTED, PaywallStatus.SUCCESS}),
    PaywallStatus.ERROR: frozenset({PaywallStatus.CONNECT, PaywallStatus.CONNECTED, PaywallStatus.PROCESSING}),
    PaywallStatus.SUCCESS: frozenset({PaywallStatus.CONNECT, PaywallStatus.CONNECTED}),
}


@dataclass(frozen=True)
class PaywallState:
    """Snapshot of the observable paywall state."""
    status: PaywallStatus = PaywallStatus.CONNECT
    error_message: str = ""
    processing_text: str = DEFAULT_PROCESSING_TEXT


StateListener = Callable[[PaywallState], None]
ErrorCallback = Callable[[BaseException], None]


class PaywallStatusMachine:
    """
    Owner of ``PaywallState``.

    Every mutation produces a new frozen snapshot and notifies subscribers
    synchronously, in subscription order.

    Args:
        on_error: Optional callback receiving the exception behind each error shown.
        default_processing_text: Processing text restored by ``reset``.
    """

    def __init__(
        self,
        on_error: Optional[ErrorCallback] = None,
        default_processing_text: str = DEFAULT_PROCESSING_TEXT,
    ) -> None:
        self._on_error = on_error
        self._default_processing_text = default_processing_text
        self._state = PaywallState(processing_text=default_processing_text)
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> PaywallState:
        return self._state

    @property
    def status(self) -> PaywallStatus:
        return self._state.status

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener for state changes.

        Returns:
            Callable[[], None]: Unsubscribe handle; calling it twice is harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: PaywallState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def can_transition(self, status: PaywallStatus) -> bool:
        status = PaywallStatus(status)
        return status == self._state.status or status in TRANSITIONS[self._state.status]

    def set_status(self, status: PaywallStatus) -> None:
        """
        Move to ``status``. The error message only survives in ``error``.

        Raises:
            InvalidTransition: If the transition table does not allow the move.
        """
        status = PaywallStatus(status)
        if not self.can_transition(status):
            raise InvalidTransition(self._state.status.value, status.value)
        logger.debug("Paywall status %s -> %s", self._state.status.value, status.value)
        self._commit(replace(self._state, status=status, error_message=""))

    def set_processing_text(self, text: str) -> None:
        self._commit(replace(self._state, processing_text=text))

    def show_error(self, message: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        """
        Enter ``error`` with a user-facing message.

        The optional ``on_error`` callback receives ``error`` when given,
        otherwise a ``PaywallError`` carrying the message.
        """
        text = message or DEFAULT_ERROR_MESSAGE
        logger.debug("Paywall error shown: %s", text)
        self._commit(replace(self._state, status=PaywallStatus.ERROR, error_message=text))
        if self._on_error is None:
            return
        if isinstance(error, BaseException):
            self._on_error(error)
        elif message:
            self._on_error(PaywallError(message))

    def reset(self, status: PaywallStatus = PaywallStatus.CONNECT) -> None:
        """Return to ``status`` with cleared error and default processing text."""
        self._commit(PaywallState(
            status=PaywallStatus(status),
            error_message="",
            processing_text=self._default_processing_text,
        ))
