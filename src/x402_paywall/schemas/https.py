"""
HTTP Wire Models for the x402 Payment Protocol

This module defines the Pydantic models exchanged with an x402 resource server
and the helpers that move them in and out of HTTP headers.

The payment flow consists of:
1. Server answers a request with 402 and a payment-required document, either in
   a ``PAYMENT`` (or ``X-PAYMENT``) header as base64(JSON) or in the JSON body
   under ``paymentRequired``
2. Client signs a transfer authorization for one of the ``accepts`` options
3. Client replays the request with the payment payload, base64(JSON) encoded,
   under both ``PAYMENT-SIGNATURE`` and ``X-PAYMENT-SIGNATURE``

All models inherit from CanonicalModel, accept snake_case or camelCase keys,
and serialize with the camelCase aliases.
"""

from typing import Any, List, Optional, Union

import httpx
from pydantic import ConfigDict, Field, ValidationError, field_validator

from ..utils import decode_base64_json, encode_base64_json, logger
from .bases import CanonicalModel


# ============================================================================
# Header Names
# ============================================================================

PAYMENT_REQUIRED_HEADER = "PAYMENT"
LEGACY_PAYMENT_REQUIRED_HEADER = "X-PAYMENT"
PAYMENT_SIGNATURE_HEADER = "PAYMENT-SIGNATURE"
LEGACY_PAYMENT_SIGNATURE_HEADER = "X-PAYMENT-SIGNATURE"


# ============================================================================
# Step 1: Server's 402 Payment Required Document
# ============================================================================

class ResourceInfo(CanonicalModel):
    """Description of the protected resource."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    url: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class AssetExtra(CanonicalModel):
    """EIP-712 domain fields of the payment asset."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[Any] = None
    version: Optional[Any] = None


class PaymentRequirement(CanonicalModel):
    """One accepted payment option of a 402 response.

    Attributes:
        scheme: Payment scheme identifier (e.g. ``exact``).
        network: CAIP-2 network identifier (e.g. ``eip155:84532``).
        max_amount_required: Atomic or decimal amount; numbers are stored as strings.
        amount: Alternative amount field used by some servers.
        pay_to: Recipient address.
        asset: Token contract address (EIP-712 verifying contract).
        max_timeout_seconds: Validity window of the authorization.
        extra: EIP-712 domain ``name`` and ``version`` of the asset.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    scheme: Optional[str] = None
    network: Optional[str] = None
    max_amount_required: Optional[str] = Field(default=None, alias="maxAmountRequired")
    amount: Optional[str] = None
    pay_to: Optional[str] = Field(default=None, alias="payTo")
    asset: Optional[str] = None
    max_timeout_seconds: Optional[int] = Field(default=None, alias="maxTimeoutSeconds")
    extra: Optional[AssetExtra] = None
    description: Optional[str] = None
    resource: Optional[Union[str, ResourceInfo]] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    @field_validator("max_amount_required", "amount", mode="before")
    @classmethod
    def _stringify_amount(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @property
    def required_amount(self) -> Optional[str]:
        """Amount the payment must cover, ``maxAmountRequired`` first."""
        return self.max_amount_required or self.amount

    @property
    def domain_name(self) -> Optional[str]:
        name = self.extra.name if self.extra else None
        return name if isinstance(name, str) and name else None

    @property
    def domain_version(self) -> Optional[str]:
        version = self.extra.version if self.extra else None
        return version if isinstance(version, str) and version else None


class PaymentRequiredResponse(CanonicalModel):
    """Payment-required document carried by a 402 response."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    x402_version: Optional[int] = Field(default=None, alias="x402Version")
    accepts: List[PaymentRequirement] = Field(default_factory=list)
    resource: Optional[Union[str, ResourceInfo]] = None
    extensions: Optional[Any] = None


# ============================================================================
# Step 2: Client's Payment Payload
# ============================================================================

class TransferAuthorization(CanonicalModel):
    """Signed EIP-3009 authorization; every numeric field is a decimal string."""
    from_: str = Field(..., alias="from")
    to: str
    value: str
    valid_after: str = Field(..., alias="validAfter")
    valid_before: str = Field(..., alias="validBefore")
    nonce: str


class ExactPaymentPayload(CanonicalModel):
    """Signature plus the authorization it covers."""
    signature: str
    authorization: TransferAuthorization


class PaymentPayload(CanonicalModel):
    """Payment proof replayed to the resource server."""
    x402_version: Optional[int] = Field(default=None, alias="x402Version")
    scheme: Optional[str] = None
    network: Optional[str] = None
    payload: ExactPaymentPayload

    def to_header(self) -> str:
        """Encode the payload as the base64(JSON) header value."""
        return encode_base64_json(self.to_dict())


# ============================================================================
# Decoding Helpers
# ============================================================================

def parse_payment_required(data: Any) -> Optional[PaymentRequiredResponse]:
    """Validate a decoded payment-required document; None when it is not one."""
    if not isinstance(data, dict):
        return None
    try:
        return PaymentRequiredResponse.model_validate(data)
    except ValidationError as exc:
        logger.debug("Discarding malformed payment-required document: %s", exc)
        return None


def decode_payment_required(response: httpx.Response) -> Optional[PaymentRequiredResponse]:
    """
    Extract the payment-required document from a 402 response.

    The ``PAYMENT`` header is preferred, then ``X-PAYMENT``, then a JSON body
    carrying ``paymentRequired`` (or being the document itself).

    Args:
        response: Response returned by the resource server.

    Returns:
        Optional[PaymentRequiredResponse]: Decoded document, or None when no
        readable payment requirement is available.
    """
    for header in (PAYMENT_REQUIRED_HEADER, LEGACY_PAYMENT_REQUIRED_HEADER):
        value = response.headers.get(header)
        if value:
            decoded = parse_payment_required(decode_base64_json(value))
            if decoded is not None:
                return decoded
            logger.debug("Unreadable %s header on %s response", header, response.status_code)

    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        if isinstance(body.get("paymentRequired"), dict):
            return parse_payment_required(body["paymentRequired"])
        if "accepts" in body:
            return parse_payment_required(body)
    return None


__all__ = [
    "PAYMENT_REQUIRED_HEADER",
    "LEGACY_PAYMENT_REQUIRED_HEADER",
    "PAYMENT_SIGNATURE_HEADER",
    "LEGACY_PAYMENT_SIGNATURE_HEADER",
    "ResourceInfo",
    "AssetExtra",
    "PaymentRequirement",
    "PaymentRequiredResponse",
    "TransferAuthorization",
    "ExactPaymentPayload",
    "PaymentPayload",
    "parse_payment_required",
    "decode_payment_required",
    "decode_base64_json",
    "encode_base64_json",
]
