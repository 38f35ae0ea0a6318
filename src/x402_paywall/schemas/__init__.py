from .bases import CanonicalModel
from .https import (
    PAYMENT_REQUIRED_HEADER,
    LEGACY_PAYMENT_REQUIRED_HEADER,
    PAYMENT_SIGNATURE_HEADER,
    LEGACY_PAYMENT_SIGNATURE_HEADER,
    ResourceInfo,
    AssetExtra,
    PaymentRequirement,
    PaymentRequiredResponse,
    TransferAuthorization,
    ExactPaymentPayload,
    PaymentPayload,
    parse_payment_required,
    decode_payment_required,
)

__all__ = [
    "CanonicalModel",
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
]
