"""
x402 paywall client.

Pays for HTTP resources guarded by the x402 payment-required protocol with an
EIP-3009 ``TransferWithAuthorization`` signature.
"""

from .adapters.evm import (
    AmountNormalizer,
    BalanceAggregator,
    BalanceInfo,
    ChainConfig,
    ChainResolver,
    DEFAULT_CHAIN_CONFIGS,
    EIP1193Wallet,
    LocalAccountWallet,
    ResolvedPaymentContext,
    WalletClient,
    build_transfer_authorization_typed_data,
    format_amount,
    parse_network_chain_id,
    pick_requirement,
    resolve_chain,
    resolve_payment_context,
    to_atomic,
    to_display,
    validate_typed_data,
)
from .clients import Http402Client
from .engine.classifier import is_already_connected, is_user_rejection
from .engine.connector import WalletConnector
from .engine.events import AccountsChangedEvent, ChainChangedEvent, WalletEventBus
from .engine.exceptions import (
    BalanceQueryError,
    ConfigurationError,
    InvalidTransition,
    NetworkSwitchError,
    PaywallError,
    SignatureError,
    StaleActionDiscard,
    SubmissionError,
    TypedDataValidationError,
    UserRejectionError,
)
from .engine.locks import ActionLock
from .engine.session import PaywallSession
from .engine.status import PaywallState, PaywallStatus, PaywallStatusMachine
from .engine.submitter import PaymentResult, PaymentSubmitter, SuccessContext
from .schemas.https import (
    PaymentPayload,
    PaymentRequiredResponse,
    PaymentRequirement,
    decode_payment_required,
)
from .utils import decode_base64_json, encode_base64_json, setup_logger, shorten_address

__version__ = "0.1.0"

__all__ = [
    "AmountNormalizer",
    "BalanceAggregator",
    "BalanceInfo",
    "ChainConfig",
    "ChainResolver",
    "DEFAULT_CHAIN_CONFIGS",
    "EIP1193Wallet",
    "LocalAccountWallet",
    "ResolvedPaymentContext",
    "WalletClient",
    "build_transfer_authorization_typed_data",
    "format_amount",
    "parse_network_chain_id",
    "pick_requirement",
    "resolve_chain",
    "resolve_payment_context",
    "to_atomic",
    "to_display",
    "validate_typed_data",
    "Http402Client",
    "is_already_connected",
    "is_user_rejection",
    "WalletConnector",
    "AccountsChangedEvent",
    "ChainChangedEvent",
    "WalletEventBus",
    "BalanceQueryError",
    "ConfigurationError",
    "InvalidTransition",
    "NetworkSwitchError",
    "PaywallError",
    "SignatureError",
    "StaleActionDiscard",
    "SubmissionError",
    "TypedDataValidationError",
    "UserRejectionError",
    "ActionLock",
    "PaywallSession",
    "PaywallState",
    "PaywallStatus",
    "PaywallStatusMachine",
    "PaymentResult",
    "PaymentSubmitter",
    "SuccessContext",
    "PaymentPayload",
    "PaymentRequiredResponse",
    "PaymentRequirement",
    "decode_payment_required",
    "decode_base64_json",
    "encode_base64_json",
    "setup_logger",
    "shorten_address",
]
