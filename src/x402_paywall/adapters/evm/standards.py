"""
EIP-712 / EIP-3009 Typed Data

Dataclasses describing the ``TransferWithAuthorization`` signing payload and
the helpers that assemble and validate it before it is handed to a signer.

A structurally invalid payload is a programming-contract violation: it is
rejected with ``TypedDataValidationError`` and never signed.
"""

import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from eth_account.messages import encode_typed_data
from eth_utils import is_address, is_hexstr

from ...engine.exceptions import TypedDataValidationError
from .constants import CLOCK_SKEW_SECONDS, DEFAULT_TIMEOUT_SECONDS

UINT256_MAX = 2**256 - 1

TRANSFER_WITH_AUTHORIZATION_TYPES: Dict[str, List[Dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across domains.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# EIP-3009: Transfer With Authorization
# -----------------------------

@dataclass
class TransferWithAuthorizationMessage:
    """
    Message payload of an EIP-3009 ``TransferWithAuthorization``.

    The EIP names the payer field ``from``, a Python reserved word; this
    class stores it as ``authorizer`` and maps it back in ``to_dict()``.

    Attributes:
        authorizer: Address authorizing the transfer (maps to ``from``).
        recipient: Address receiving the tokens (maps to ``to``).
        value: Amount in atomic units (uint256).
        validAfter: Unix timestamp after which the authorization is valid.
        validBefore: Unix timestamp before which the authorization expires.
        nonce: Random bytes32 hex string preventing replay.
    """
    authorizer: str
    recipient: str
    value: int
    validAfter: int
    validBefore: int
    nonce: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.authorizer,
            "to": self.recipient,
            "value": self.value,
            "validAfter": self.validAfter,
            "validBefore": self.validBefore,
            "nonce": self.nonce,
        }

    def to_authorization(self) -> Dict[str, str]:
        """Wire form of the message: every numeric field as a decimal string."""
        return {
            "from": self.authorizer,
            "to": self.recipient,
            "value": str(self.value),
            "validAfter": str(self.validAfter),
            "validBefore": str(self.validBefore),
            "nonce": self.nonce,
        }


@dataclass
class ERC3009TypedData:
    """
    Container for ERC-3009 typed data usable with EIP-712 signing routines.

    ``to_dict()`` yields ``{types, primaryType, domain, message}``, the layout
    accepted by ``eth_account`` and by ``eth_signTypedData_v4``.
    """
    domain: EIP712Domain
    message: TransferWithAuthorizationMessage

    primary_type: str = "TransferWithAuthorization"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            name: [dict(entry) for entry in entries]
            for name, entries in TRANSFER_WITH_AUTHORIZATION_TYPES.items()
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def generate_authorization_nonce() -> str:
    """Return 32 cryptographically random bytes as a ``0x``-prefixed hex string."""
    return "0x" + os.urandom(32).hex()


def build_validity_window(
    max_timeout_seconds: Optional[int] = None,
    now: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Compute ``(validAfter, validBefore)`` for a new authorization.

    ``validAfter`` is backdated by ``CLOCK_SKEW_SECONDS`` to tolerate clock
    drift between the payer and the verifier.

    Args:
        max_timeout_seconds: Requirement timeout; ``DEFAULT_TIMEOUT_SECONDS`` when unset.
        now: Current unix time; the system clock when omitted.

    Returns:
        Tuple[int, int]: ``(valid_after, valid_before)`` unix timestamps.
    """
    current = int(time.time()) if now is None else int(now)
    timeout = DEFAULT_TIMEOUT_SECONDS if max_timeout_seconds is None else int(max_timeout_seconds)
    return current - CLOCK_SKEW_SECONDS, current + timeout


def build_transfer_authorization_typed_data(
    domain: Union[EIP712Domain, Mapping[str, Any]],
    message: Union[TransferWithAuthorizationMessage, Mapping[str, Any]],
) -> ERC3009TypedData:
    """
    Assemble the ``TransferWithAuthorization`` typed data.

    Args:
        domain: Domain dataclass or mapping with ``name``, ``version``,
            ``chainId`` and ``verifyingContract``.
        message: Message dataclass or mapping keyed by the EIP-3009 field
            names (``from``, ``to``, ``value``, ``validAfter``, ``validBefore``,
            ``nonce``).

    Returns:
        ERC3009TypedData: Unvalidated typed data; pass it to
        ``validate_typed_data`` before signing.

    Raises:
        TypedDataValidationError: If a mapping lacks one of the fields.
    """
    try:
        if not isinstance(domain, EIP712Domain):
            domain = EIP712Domain(
                name=domain["name"],
                version=domain["version"],
                chainId=domain["chainId"],
                verifyingContract=domain["verifyingContract"],
            )
        if not isinstance(message, TransferWithAuthorizationMessage):
            message = TransferWithAuthorizationMessage(
                authorizer=message["from"],
                recipient=message["to"],
                value=message["value"],
                validAfter=message["validAfter"],
                validBefore=message["validBefore"],
                nonce=message["nonce"],
            )
    except KeyError as exc:
        raise TypedDataValidationError(f"Typed data is missing field {exc.args[0]!r}") from exc

    return ERC3009TypedData(domain=domain, message=message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _require_uint256(label: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypedDataValidationError(f"{label} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= UINT256_MAX:
        raise TypedDataValidationError(f"{label} is outside the uint256 range")


def _require_address(label: str, value: Any) -> None:
    if not isinstance(value, str) or not is_address(value):
        raise TypedDataValidationError(f"{label} is not a valid address: {value!r}")


def _require_string(label: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise TypedDataValidationError(f"{label} must be a non-empty string")


def validate_typed_data(typed_data: Union[ERC3009TypedData, Mapping[str, Any]]) -> None:
    """
    Check a ``TransferWithAuthorization`` payload before it is signed.

    Verifies the fixed type schema, domain and message field types, address
    formats, uint256 ranges, the bytes32 nonce and the ordering of the
    validity window, then confirms ``eth_account`` can encode the payload.

    Raises:
        TypedDataValidationError: On the first violation found.
    """
    payload = typed_data.to_dict() if isinstance(typed_data, ERC3009TypedData) else dict(typed_data)

    if payload.get("primaryType") != "TransferWithAuthorization":
        raise TypedDataValidationError(f"Unexpected primaryType {payload.get('primaryType')!r}")
    if payload.get("types") != TRANSFER_WITH_AUTHORIZATION_TYPES:
        raise TypedDataValidationError("Type schema does not match TransferWithAuthorization")

    domain = payload.get("domain") or {}
    _require_string("domain.name", domain.get("name"))
    _require_string("domain.version", domain.get("version"))
    _require_uint256("domain.chainId", domain.get("chainId"))
    _require_address("domain.verifyingContract", domain.get("verifyingContract"))

    message = payload.get("message") or {}
    _require_address("message.from", message.get("from"))
    _require_address("message.to", message.get("to"))
    for key in ("value", "validAfter", "validBefore"):
        _require_uint256(f"message.{key}", message.get(key))

    nonce = message.get("nonce")
    if not isinstance(nonce, str) or not nonce.startswith("0x") or len(nonce) != 66 or not is_hexstr(nonce):
        raise TypedDataValidationError("message.nonce must be a 0x-prefixed bytes32 hex string")

    if message["validAfter"] >= message["validBefore"]:
        raise TypedDataValidationError(
            f"validAfter ({message['validAfter']}) must be strictly less than "
            f"validBefore ({message['validBefore']})"
        )

    try:
        encode_typed_data(full_message=payload)
    except Exception as exc:
        raise TypedDataValidationError(f"Typed data cannot be encoded: {exc}") from exc
