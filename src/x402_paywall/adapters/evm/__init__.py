from .constants import (
    ChainConfig,
    DEFAULT_CHAIN_CONFIGS,
    USDC_DECIMALS,
    CLOCK_SKEW_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)
from .resolver import (
    ChainResolver,
    ResolvedPaymentContext,
    resolve_chain,
    resolve_payment_context,
    parse_network_chain_id,
    pick_requirement,
    to_chain_id_hex,
)
from .amounts import AmountNormalizer, to_atomic, to_display, format_amount
from .standards import (
    EIP712Domain,
    TransferWithAuthorizationMessage,
    ERC3009TypedData,
    build_transfer_authorization_typed_data,
    build_validity_window,
    generate_authorization_nonce,
    validate_typed_data,
)
from .balances import BalanceAggregator, BalanceInfo
from .wallets import WalletClient, EIP1193Wallet, LocalAccountWallet

__all__ = [
    "ChainConfig",
    "DEFAULT_CHAIN_CONFIGS",
    "USDC_DECIMALS",
    "CLOCK_SKEW_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "ChainResolver",
    "ResolvedPaymentContext",
    "resolve_chain",
    "resolve_payment_context",
    "parse_network_chain_id",
    "pick_requirement",
    "to_chain_id_hex",
    "AmountNormalizer",
    "to_atomic",
    "to_display",
    "format_amount",
    "EIP712Domain",
    "TransferWithAuthorizationMessage",
    "ERC3009TypedData",
    "build_transfer_authorization_typed_data",
    "build_validity_window",
    "generate_authorization_nonce",
    "validate_typed_data",
    "BalanceAggregator",
    "BalanceInfo",
    "WalletClient",
    "EIP1193Wallet",
    "LocalAccountWallet",
]
