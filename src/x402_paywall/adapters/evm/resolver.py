"""
Chain Resolution

Picks the chain configuration a payment requirement is paid on, and derives
the per-attempt payment context from a 402 response.

Precedence: a caller-supplied primary chain wins by default, unless the
requirement names a network with a different chain id. In that case only an
explicit override for that network (caller map first, built-in defaults
second) is accepted; the mismatched primary chain is never used.

Core Classes:
    - ChainResolver: Callable bundle of the caller's chain configuration inputs
    - ResolvedPaymentContext: Requirement, chain and atomic amount of one attempt
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Union

from ...schemas.https import PaymentRequiredResponse, PaymentRequirement
from .amounts import to_atomic
from .constants import ChainConfig, DEFAULT_CHAIN_CONFIGS

_NETWORK_PATTERN = re.compile(r"eip155:(\d+)", re.IGNORECASE)


def parse_network_chain_id(network: Optional[str]) -> Optional[int]:
    """
    Extract the numeric chain id from an ``eip155:<id>`` network identifier.

    Returns:
        Optional[int]: Chain id, or None for missing or unrecognized formats.
    """
    if not network:
        return None
    match = _NETWORK_PATTERN.search(network)
    if not match:
        return None
    return int(match.group(1))


def to_chain_id_hex(chain_id: int) -> str:
    """Render a chain id the way EIP-1193 wallets expect it (``0x``-prefixed hex)."""
    return hex(int(chain_id))


def _lookup(
    network: str,
    chain_configs: Optional[Mapping[str, ChainConfig]],
    defaults: Optional[Mapping[str, ChainConfig]],
) -> Optional[ChainConfig]:
    if chain_configs and chain_configs.get(network):
        return chain_configs[network]
    if defaults:
        return defaults.get(network)
    return None


def resolve_chain(
    requirement: Optional[PaymentRequirement] = None,
    chain_config: Optional[ChainConfig] = None,
    chain_configs: Optional[Mapping[str, ChainConfig]] = None,
    defaults: Optional[Mapping[str, ChainConfig]] = DEFAULT_CHAIN_CONFIGS,
) -> Optional[ChainConfig]:
    """
    Resolve the chain configuration for a payment requirement.

    Args:
        requirement: Selected payment requirement, if any.
        chain_config: Caller's primary chain configuration.
        chain_configs: Caller's per-network overrides keyed by CAIP-2 identifier.
        defaults: Built-in configurations consulted after ``chain_configs``.

    Returns:
        Optional[ChainConfig]: The chain to pay on, or None when no
        configuration applies.
    """
    network = requirement.network if requirement is not None else None

    if chain_config is not None:
        if network:
            requirement_chain_id = parse_network_chain_id(network)
            if requirement_chain_id and requirement_chain_id != chain_config.chain_id:
                return _lookup(network, chain_configs, defaults)
        return chain_config

    if network:
        return _lookup(network, chain_configs, defaults)
    return None


@dataclass
class ChainResolver:
    """
    Caller-owned chain configuration inputs, callable with a requirement.

    Attributes:
        chain_config: Primary chain configuration
        chain_configs: Per-network overrides
        defaults: Built-in fallback table
    """
    chain_config: Optional[ChainConfig] = None
    chain_configs: Mapping[str, ChainConfig] = field(default_factory=dict)
    defaults: Mapping[str, ChainConfig] = field(default_factory=lambda: DEFAULT_CHAIN_CONFIGS)

    def resolve(self, requirement: Optional[PaymentRequirement]) -> Optional[ChainConfig]:
        return resolve_chain(requirement, self.chain_config, self.chain_configs, self.defaults)

    __call__ = resolve


def pick_requirement(
    accepts: Sequence[PaymentRequirement],
    accept_index: Union[int, float, None] = 0,
) -> Optional[PaymentRequirement]:
    """
    Select one accepted payment option.

    The index is truncated toward zero; a non-finite or out-of-range index
    falls back to the first option.

    Returns:
        Optional[PaymentRequirement]: Selected option, or None when ``accepts`` is empty.
    """
    if not accepts:
        return None
    try:
        index = int(accept_index)
    except (TypeError, ValueError, OverflowError):
        index = 0
    if 0 <= index < len(accepts):
        return accepts[index]
    return accepts[0]


@dataclass(frozen=True)
class ResolvedPaymentContext:
    """
    Ephemeral inputs of one payment attempt. Recomputed, never persisted.

    Attributes:
        requirement: Selected payment requirement
        chain_config: Chain the payment is made on
        amount_atomic: Requirement amount in atomic units
    """
    requirement: Optional[PaymentRequirement]
    chain_config: Optional[ChainConfig]
    amount_atomic: Optional[str]

    @property
    def is_complete(self) -> bool:
        return self.requirement is not None and self.chain_config is not None


def resolve_payment_context(
    payment_required: Optional[PaymentRequiredResponse],
    accept_index: Union[int, float, None] = 0,
    resolver: Optional[ChainResolver] = None,
) -> ResolvedPaymentContext:
    """
    Derive the payment context of an attempt from a decoded 402 response.

    Args:
        payment_required: Decoded 402 body, or None when none was available.
        accept_index: Index into ``accepts``.
        resolver: Chain configuration inputs; built-in defaults when omitted.

    Returns:
        ResolvedPaymentContext: Context whose fields are None where they
        could not be determined.
    """
    resolver = resolver or ChainResolver()
    accepts = payment_required.accepts if payment_required is not None else []
    requirement = pick_requirement(accepts, accept_index)
    chain_config = resolver(requirement)
    amount_atomic = to_atomic(requirement.required_amount) if requirement is not None else None
    return ResolvedPaymentContext(
        requirement=requirement,
        chain_config=chain_config,
        amount_atomic=amount_atomic,
    )
