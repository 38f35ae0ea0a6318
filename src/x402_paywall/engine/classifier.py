"""
Wallet Error Classification

Wallet providers report the same conditions in many shapes: typed exceptions,
JSON-RPC error objects with a numeric ``code``, plain mappings, or nothing
but a message. These predicates inspect those shapes structurally and always
return a boolean; they never raise on unexpected input.
"""

from typing import Any, Iterator, Mapping, Optional

from .exceptions import UserRejectionError

USER_REJECTED_CODE = 4001

REJECTION_ERROR_NAMES = frozenset({"UserRejectedRequestError", "TransactionRejectedRpcError"})
ALREADY_CONNECTED_ERROR_NAMES = frozenset({"ConnectorAlreadyConnectedError"})

_MAX_DEPTH = 8


def _field(error: Any, name: str) -> Any:
    if isinstance(error, Mapping):
        return error.get(name)
    try:
        return getattr(error, name, None)
    except Exception:
        return None


def _name(error: Any) -> Optional[str]:
    name = _field(error, "name")
    if isinstance(name, str):
        return name
    if isinstance(error, BaseException):
        return type(error).__name__
    return None


def _message(error: Any) -> str:
    message = _field(error, "message")
    if isinstance(message, str):
        return message
    if isinstance(error, BaseException):
        try:
            return str(error)
        except Exception:
            return ""
    if isinstance(error, str):
        return error
    return ""


def _error_chain(error: Any) -> Iterator[Any]:
    """Yield ``error`` and the errors nested under it, each once."""
    seen = set()
    pending = [error]
    while pending and len(seen) < _MAX_DEPTH:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        if isinstance(current, BaseException):
            pending.append(current.__cause__)
        for attribute in ("error", "cause"):
            nested = _field(current, attribute)
            if nested is not None and not isinstance(nested, (str, int, float, bool)):
                pending.append(nested)


def _is_rejection_shape(error: Any) -> bool:
    if isinstance(error, UserRejectionError):
        return True
    if _name(error) in REJECTION_ERROR_NAMES:
        return True
    code = _field(error, "code")
    if code == USER_REJECTED_CODE and not isinstance(code, bool):
        return True
    return "user rejected" in _message(error).lower()


def is_user_rejection(error: Any) -> bool:
    """
    Tell whether ``error`` means the wallet user declined the prompt.

    Matches a ``UserRejectionError``, a ``code`` of 4001, the rejection error
    names used by wallet libraries, or a message containing "user rejected",
    on the error itself or on any error nested under it.
    """
    if not error:
        return False
    try:
        return any(_is_rejection_shape(current) for current in _error_chain(error))
    except Exception:
        return False


def is_already_connected(error: Any) -> bool:
    """Tell whether a connect attempt failed only because the wallet is already connected."""
    if not error:
        return False
    try:
        for current in _error_chain(error):
            if _name(current) in ALREADY_CONNECTED_ERROR_NAMES:
                return True
            if "already connected" in _message(current).lower():
                return True
    except Exception:
        return False
    return False


def error_message(error: Any, default: str) -> str:
    """Message carried by ``error``, or ``default`` when it has none."""
    try:
        message = _message(error)
    except Exception:
        message = ""
    return message or default
