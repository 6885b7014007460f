"""
Exact money representation.

A Money value is an integer count of micro-units (1 unit = 1,000,000
micro-units). Arithmetic stays on the integer, or on decimal.Decimal when a
computation needs fractions; conversion back to micro-units rounds
half-to-even. Floats appear only at the display edge (from_number /
to_number).

Key functions:
  Money.from_micro_string: Lossless wire decoding
  Money.from_decimal: Exact conversion from a Decimal result
  Money.from_number: Display-only conversion from a float
"""

from dataclasses import dataclass
from decimal import Decimal
from decimal import localcontext
from decimal import ROUND_HALF_EVEN
from math import isfinite
import re
from typing import Any, Dict

from dcfbuilder.domain.errors import ValidationError

MICROS_PER_UNIT = 1_000_000
DECIMAL_PRECISION = 40

_MICRO_PATTERN = re.compile(r'[+-]?[0-9]+')


@dataclass(frozen=True, order=True)
class Money:
  """
  Currency amount as integer micro-units.

  Attributes:
    micro: Micro-unit count
  """
  micro: int

  def __post_init__(self):
    if isinstance(self.micro, bool) or not isinstance(self.micro, int):
      raise ValidationError(
          f'Money micro must be an integer, got {self.micro!r}')

  @classmethod
  def zero(cls) -> 'Money':
    return cls(0)

  @classmethod
  def from_micro_string(cls, value: str) -> 'Money':
    """
    Parse a decimal string of integer micro-units.

    Raises:
      ValidationError: If the string is not an optionally signed integer
    """
    if not isinstance(value, str) or not _MICRO_PATTERN.fullmatch(value):
      raise ValidationError(f'invalid money amount: {value!r}')
    return cls(int(value))

  def to_micro_string(self) -> str:
    return str(self.micro)

  @classmethod
  def from_wire(cls, data: Dict[str, Any]) -> 'Money':
    """Decode the {'micro': '<int>'} wire object."""
    try:
      raw = data['micro']
    except (KeyError, TypeError) as e:
      raise ValidationError(f'invalid money amount: {data!r}') from e
    return cls.from_micro_string(raw)

  def to_wire(self) -> Dict[str, str]:
    return {'micro': self.to_micro_string()}

  @classmethod
  def from_decimal(cls, value: Decimal) -> 'Money':
    """Convert a unit amount to micro-units, rounding half-to-even."""
    with localcontext() as ctx:
      ctx.prec = DECIMAL_PRECISION
      ctx.rounding = ROUND_HALF_EVEN
      micros = (value * MICROS_PER_UNIT).quantize(Decimal(1),
                                                   rounding=ROUND_HALF_EVEN)
    return cls(int(micros))

  def to_decimal(self) -> Decimal:
    """Exact unit amount."""
    return Decimal(self.micro).scaleb(-6)

  @classmethod
  def from_number(cls, value: float) -> 'Money':
    """
    Display-only conversion from a float.

    The float's shortest repr is taken as the intended decimal value, so
    123.456789 becomes exactly 123456789 micro-units.

    Raises:
      ValidationError: If value is not finite
    """
    if isinstance(value, bool) or not isfinite(value):
      raise ValidationError(f'money value must be finite, got {value!r}')
    return cls.from_decimal(Decimal(repr(float(value))))

  def to_number(self) -> float:
    """Lossy float conversion for display."""
    return self.micro / MICROS_PER_UNIT

  def __add__(self, other: 'Money') -> 'Money':
    if not isinstance(other, Money):
      return NotImplemented
    return Money(self.micro + other.micro)

  def __sub__(self, other: 'Money') -> 'Money':
    if not isinstance(other, Money):
      return NotImplemented
    return Money(self.micro - other.micro)

  def __neg__(self) -> 'Money':
    return Money(-self.micro)

  def __str__(self) -> str:
    sign = '-' if self.micro < 0 else ''
    units, micros = divmod(abs(self.micro), MICROS_PER_UNIT)
    return f'{sign}{units}.{micros:06d}'
