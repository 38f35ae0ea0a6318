"""
Amount Normalization

Converts the amount strings found in payment requirements into atomic integer
units and back into display strings.

Wallet signatures operate on atomic units while resource servers may announce
amounts either as atomic integers (``"2500"``) or as human decimals
(``"0.0025"``). Normalization is total: it never raises, and a value it cannot
interpret becomes ``None``. Fractional digits beyond the asset precision are
truncated, never rounded.

Core Classes:
    - AmountNormalizer: Fixed-point converter for one asset precision

Module Functions:
    - to_atomic / to_display: Converters bound to the 6-decimal payment asset
    - format_amount: Display formatting for an already-scaled amount
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

from .constants import USDC_DECIMALS

AmountLike = Union[str, int, float, Decimal, None]

_TRAILING_ZEROS = re.compile(r"\.?0+$")


def format_amount(value: AmountLike) -> str:
    """
    Format a human-scale amount for display.

    Values of at least 0.01 are rounded half-up to two decimals. Smaller
    values keep up to six decimals with trailing zeros stripped, so dust
    amounts stay visible.

    Args:
        value: Amount in whole asset units.

    Returns:
        str: Display string, ``"0.00"`` for anything that is not a finite number.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "0.00"
    if not amount.is_finite():
        return "0.00"

    with localcontext() as ctx:
        ctx.prec = max(28, amount.adjusted() + 10)
        if amount >= Decimal("0.01"):
            return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
        formatted = str(amount.quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP))
    return _TRAILING_ZEROS.sub("", formatted, count=1)


class AmountNormalizer:
    """
    Fixed-point amount converter.

    Attributes:
        decimals: Fractional digits of one atomic unit (6 for USDC)
    """

    def __init__(self, decimals: int = USDC_DECIMALS):
        if not isinstance(decimals, int) or decimals < 0:
            raise ValueError("decimals must be a non-negative int")
        self.decimals = decimals

    def to_atomic(self, amount: AmountLike) -> Optional[str]:
        """
        Normalize an amount into an atomic integer string.

        Atomic input (no decimal point) is returned unchanged. Decimal input
        is truncated to ``decimals`` fractional digits and shifted into atomic
        units; when ``Decimal`` rejects it, the whole and padded fractional
        parts are concatenated instead.

        Args:
            amount: Atomic or decimal amount. ``float`` and ``Decimal`` inputs
                are rendered in plain notation first.

        Returns:
            Optional[str]: Non-negative base-10 integer string, or None for
            empty, negative or unparseable input.
        """
        text = self._as_text(amount)
        if not text:
            return None
        if "." not in text:
            return text if self._is_atomic(text) else None

        whole, _, fraction = text.partition(".")
        trimmed = fraction[: self.decimals]
        try:
            with localcontext() as ctx:
                ctx.prec = max(len(whole) + self.decimals + 2, 28)
                shifted = Decimal(f"{whole}.{trimmed}").scaleb(self.decimals)
            if not shifted.is_finite():
                raise InvalidOperation(text)
            atomic = str(int(shifted))
        except (InvalidOperation, ValueError):
            padded = (trimmed + "0" * self.decimals)[: self.decimals]
            atomic = f"{whole}{padded}".lstrip("0") or "0"

        return atomic if self._is_atomic(atomic) else None

    def to_display(self, atomic: AmountLike) -> str:
        """
        Render an atomic amount for display. Never raises.

        Returns:
            str: Formatted amount, ``"0.00"`` for missing or malformed input.
        """
        normalized = self.to_atomic(atomic)
        if normalized is None:
            return "0.00"
        return format_amount(Decimal(normalized).scaleb(-self.decimals))

    @staticmethod
    def _as_text(amount: AmountLike) -> str:
        if amount is None or isinstance(amount, bool):
            return ""
        if isinstance(amount, float):
            try:
                amount = Decimal(repr(amount))
            except InvalidOperation:
                return ""
        if isinstance(amount, Decimal):
            return format(amount, "f") if amount.is_finite() else ""
        return str(amount).strip()

    @staticmethod
    def _is_atomic(text: str) -> bool:
        return text.isascii() and text.isdigit()


_DEFAULT = AmountNormalizer()


def to_atomic(amount: AmountLike) -> Optional[str]:
    """Normalize ``amount`` into 6-decimal atomic units. See ``AmountNormalizer.to_atomic``."""
    return _DEFAULT.to_atomic(amount)


def to_display(atomic: AmountLike) -> str:
    """Render a 6-decimal atomic amount for display. See ``AmountNormalizer.to_display``."""
    return _DEFAULT.to_display(atomic)
