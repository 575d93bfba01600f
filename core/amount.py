"""Deterministic fixed-precision decimal amounts for vault accounting."""

from dataclasses import dataclass
from decimal import (
    ROUND_DOWN,
    ROUND_UP,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    InvalidOperation,
    Overflow,
)
from functools import total_ordering
from typing import Tuple, Union

MANTISSA_DIGITS = 16
MIN_MANTISSA = 10 ** (MANTISSA_DIGITS - 1)
MAX_MANTISSA = 10**MANTISSA_DIGITS - 1
MIN_EXPONENT = -96
MAX_EXPONENT = 80
DROPS_PER_UNIT = 1_000_000

_EXPONENT_BIAS = 97
_ISSUED_FLAG = 1 << 63
_POSITIVE_FLAG = 1 << 62
_MANTISSA_MASK = (1 << 54) - 1
_ENCODED_SIZE = 8

_TRAPS = [InvalidOperation, DivisionByZero, Overflow]
_TRUNCATING = Context(prec=MANTISSA_DIGITS, rounding=ROUND_DOWN, traps=_TRAPS)
_ROUNDING_UP = Context(prec=MANTISSA_DIGITS, rounding=ROUND_UP, traps=_TRAPS)


class AmountError(ArithmeticError):
    """Raised when an amount cannot be parsed, computed or represented."""


def _normalize(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise AmountError(f"Amount must be finite, got {value}.")
    if value.is_zero():
        return Decimal(0)

    sign, digits, exponent = value.as_tuple()
    mantissa = int("".join(str(digit) for digit in digits))
    shift = MANTISSA_DIGITS - len(str(mantissa))
    if shift > 0:
        mantissa *= 10**shift
    elif shift < 0:
        mantissa //= 10 ** (-shift)
    exponent -= shift

    if exponent < MIN_EXPONENT:
        return Decimal(0)
    if exponent > MAX_EXPONENT:
        raise AmountError("Amount exceeds the representable range.")
    return Decimal((sign, tuple(int(char) for char in str(mantissa)), exponent))


@total_ordering
@dataclass(frozen=True)
class Amount:
    """Signed decimal with a 16-digit mantissa and a bounded exponent.

    Every result is truncated toward zero to 16 significant digits, so the same
    inputs always produce the same value and the same 8-byte encoding.
    """

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            raise TypeError("Amount wraps a Decimal; use Amount.of() for other inputs.")
        object.__setattr__(self, "value", _normalize(self.value))

    @classmethod
    def of(cls, value: "AmountLike") -> "Amount":
        if isinstance(value, Amount):
            return value
        if isinstance(value, (bool, float)):
            raise TypeError("Amounts are built from int, str or Decimal values only.")
        if isinstance(value, int):
            return cls(Decimal(value))
        if isinstance(value, str):
            try:
                return cls(Decimal(value.strip()))
            except InvalidOperation as exc:
                raise AmountError(f"Invalid amount: {value!r}") from exc
        if isinstance(value, Decimal):
            return cls(value)
        raise TypeError(f"Unsupported amount type: {type(value).__name__}")

    def is_zero(self) -> bool:
        return self.value.is_zero()

    def is_negative(self) -> bool:
        return self.value < 0

    def is_positive(self) -> bool:
        return self.value > 0

    def __add__(self, other: "AmountLike") -> "Amount":
        return _compute(_TRUNCATING.add, self.value, Amount.of(other).value)

    def __sub__(self, other: "AmountLike") -> "Amount":
        return _compute(_TRUNCATING.subtract, self.value, Amount.of(other).value)

    def __mul__(self, other: "AmountLike") -> "Amount":
        return _compute(_TRUNCATING.multiply, self.value, Amount.of(other).value)

    def __truediv__(self, other: "AmountLike") -> "Amount":
        divisor = Amount.of(other)
        if divisor.is_zero():
            raise AmountError("Division by zero.")
        return _compute(_TRUNCATING.divide, self.value, divisor.value)

    def __neg__(self) -> "Amount":
        return _compute(_TRUNCATING.minus, self.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Amount):
            return NotImplemented
        return self.value < other.value

    def ratio_scale(self, numerator: int, denominator: int, round_up: bool = False) -> "Amount":
        """Return ``self * numerator / denominator`` with a single rounding step."""

        if denominator == 0:
            raise AmountError("Division by zero.")
        if numerator < 0 or denominator < 0:
            raise AmountError("Ratio terms must be non-negative.")
        exact = Context(
            prec=MANTISSA_DIGITS + len(str(numerator)) + 1,
            rounding=ROUND_DOWN,
            traps=_TRAPS,
        )
        context = _ROUNDING_UP if round_up else _TRUNCATING
        try:
            product = exact.multiply(self.value, Decimal(numerator))
            return Amount(context.divide(product, Decimal(denominator)))
        except DecimalException as exc:
            raise AmountError(str(exc)) from exc

    def to_bytes(self) -> bytes:
        """Serialize into the ledger's 8-byte issued-amount layout."""

        if self.is_zero():
            return _ISSUED_FLAG.to_bytes(_ENCODED_SIZE, "big")
        sign, mantissa, exponent = self._parts()
        word = _ISSUED_FLAG | ((exponent + _EXPONENT_BIAS) << 54) | mantissa
        if not sign:
            word |= _POSITIVE_FLAG
        return word.to_bytes(_ENCODED_SIZE, "big")

    @staticmethod
    def from_bytes(data: bytes) -> "Amount":
        if len(data) != _ENCODED_SIZE:
            raise AmountError(f"Encoded amount must be {_ENCODED_SIZE} bytes.")
        word = int.from_bytes(data, "big")
        if not word & _ISSUED_FLAG:
            raise AmountError("Encoded amount is missing the issued-amount marker.")
        if word == _ISSUED_FLAG:
            return ZERO

        exponent = ((word >> 54) & 0xFF) - _EXPONENT_BIAS
        mantissa = word & _MANTISSA_MASK
        if not MIN_MANTISSA <= mantissa <= MAX_MANTISSA:
            raise AmountError("Encoded mantissa is out of range.")
        if not MIN_EXPONENT <= exponent <= MAX_EXPONENT:
            raise AmountError("Encoded exponent is out of range.")
        sign = 0 if word & _POSITIVE_FLAG else 1
        return Amount(Decimal((sign, tuple(int(char) for char in str(mantissa)), exponent)))

    def to_drops(self) -> int:
        """Whole native units (six decimal places) for a reserve-asset payment."""

        if self.is_negative():
            raise AmountError("Native payments cannot be negative.")
        return int(self.value.scaleb(6, _TRUNCATING))

    def _parts(self) -> Tuple[int, int, int]:
        sign, digits, exponent = self.value.as_tuple()
        return sign, int("".join(str(digit) for digit in digits)), exponent

    def __str__(self) -> str:
        return format(_TRUNCATING.normalize(self.value), "f")


AmountLike = Union[Amount, int, str, Decimal]


def _compute(operation, *operands: Decimal) -> Amount:
    try:
        return Amount(operation(*operands))
    except DecimalException as exc:
        raise AmountError(str(exc)) from exc


ZERO = Amount(Decimal(0))
ONE = Amount(Decimal(1))
