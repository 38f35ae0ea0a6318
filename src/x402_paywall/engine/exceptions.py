"""
Exception and Error Definitions Module

Defines the exception hierarchy for the payment-authorization workflow.
Every failure inside a payment attempt is converted into one of these types
before it reaches the PaymentSubmitter boundary, where it becomes a single
``(status=error, message)`` state.

Exception Hierarchy:
    PaywallError (root)
    ├── ConfigurationError
    │   └── TypedDataValidationError
    ├── UserRejectionError
    ├── NetworkSwitchError
    ├── SignatureError
    ├── SubmissionError
    ├── BalanceQueryError
    ├── StaleActionDiscard
    └── InvalidTransition
"""

from typing import Optional


class PaywallError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling at the submitter boundary.
    """
    pass


class ConfigurationError(PaywallError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - No chain configuration for the requirement's network
    - Payment requirement missing ``payTo``, ``asset`` or amount
    - Missing EIP-712 domain details (``extra.name`` / ``extra.version``)
    - Invalid environment settings

    Fatal to the attempt and never retried automatically.
    """
    pass


class TypedDataValidationError(ConfigurationError):
    """
    Raised when an assembled EIP-712 payload does not match the
    ``TransferWithAuthorization`` scheme.

    This is a programming-contract violation: the payload is rejected
    before it ever reaches a signer.
    """
    pass


class UserRejectionError(PaywallError):
    """
    Raised when the wallet user declines a prompt.

    ``EIP1193Wallet`` converts provider errors with code 4001 into this type;
    caller-supplied wallets may raise it directly. Expected and benign;
    reported with a fixed friendly message and the flow returns to a
    retryable state.
    """
    pass


class NetworkSwitchError(PaywallError):
    """
    Raised when the wallet could not be moved to the target chain.

    Attributes:
        chain_id: Chain the wallet was asked to switch to
    """

    def __init__(self, message: str, chain_id: Optional[int] = None):
        super().__init__(message)
        self.chain_id = chain_id


class SignatureError(PaywallError):
    """
    Raised when typed-data signing fails for a reason other than a
    user rejection. The wallet message is reported verbatim when present.
    """
    pass


class SubmissionError(PaywallError):
    """
    Raised when the paid request could not be completed.

    Covers non-2xx responses from the resource server as well as transport
    failures while replaying the request.

    Attributes:
        status_code: HTTP status of the response, ``None`` on transport failure
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BalanceQueryError(PaywallError):
    """
    Raised when a single chain's balance read returns unusable data.

    Always confined to one BalanceInfo entry; never propagated past the
    aggregator.
    """
    pass


class StaleActionDiscard(PaywallError):
    """
    Raised inside a locked action when its token has been superseded.

    Not user-visible and not a failure: the submitter swallows it and
    drops the remaining side effects.
    """
    pass


class InvalidTransition(PaywallError):
    """
    Raised when the paywall state machine is asked for a status change
    its transition table does not allow.

    Attributes:
        current: Status the machine was in
        requested: Status that was requested
    """

    def __init__(self, current: str, requested: str):
        super().__init__(f"Invalid paywall transition: {current} -> {requested}")
        self.current = current
        self.requested = requested
