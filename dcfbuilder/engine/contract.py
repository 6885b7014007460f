"""
Valuation engine contract.

Every NPV/IRR backend implements ValuationEngine over the same normalized
DcfInput, validates it before any arithmetic and must agree with the other
backends within NPV_PARITY_TOLERANCE and IRR_PARITY_TOLERANCE_BPS.

Wire shape (DcfInput.to_dict):
  {'cashflows': [{'dateEpochDays': int, 'amount': {'micro': str}}],
   'discountRateBps': int, 'compounding': 'annual' | 'monthly',
   'asOfEpochDays': int}
"""

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from dataclasses import replace
from decimal import Decimal
from math import isfinite
from numbers import Integral
from numbers import Real
from typing import Any, Dict, Optional, Tuple

from dcfbuilder.domain.errors import ValidationError
from dcfbuilder.domain.types import COMPOUNDING_MODES
from dcfbuilder.engine.money import Money

BPS_DENOMINATOR = 10_000
DAYS_PER_YEAR = 365

MIN_RATE = Decimal('-0.9999')
MAX_RATE = Decimal('10')
IRR_TOLERANCE = Decimal('1e-7')
IRR_MAX_ITERATIONS = 128

NPV_PARITY_TOLERANCE = 1e-2
IRR_PARITY_TOLERANCE_BPS = 5


@dataclass(frozen=True)
class Cashflow:
  date_epoch_days: int
  amount: Money

  def to_dict(self) -> Dict[str, Any]:
    return {'dateEpochDays': self.date_epoch_days,
            'amount': self.amount.to_wire()}

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'Cashflow':
    return cls(date_epoch_days=data['dateEpochDays'],
               amount=Money.from_wire(data['amount']))


@dataclass(frozen=True)
class DcfInput:
  '''
  Normalized kernel input.

  Attributes:
    cashflows: Dated amounts
    discount_rate_bps: Annual discount rate in basis points
    compounding: 'annual' or 'monthly'
    as_of_epoch_days: Valuation date as days since 1970-01-01
  '''
  cashflows: Tuple[Cashflow, ...]
  discount_rate_bps: int
  compounding: str
  as_of_epoch_days: int

  def to_dict(self) -> Dict[str, Any]:
    return {
        'cashflows': [cf.to_dict() for cf in self.cashflows],
        'discountRateBps': self.discount_rate_bps,
        'compounding': self.compounding,
        'asOfEpochDays': self.as_of_epoch_days,
    }

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'DcfInput':
    """
    Decode the wire shape.

    Raises:
      ValidationError: If a money amount is malformed or a key is missing
    """
    try:
      return cls(
          cashflows=tuple(Cashflow.from_dict(cf) for cf in data['cashflows']),
          discount_rate_bps=data['discountRateBps'],
          compounding=data.get('compounding', 'annual'),
          as_of_epoch_days=data['asOfEpochDays'],
      )
    except (KeyError, TypeError) as e:
      raise ValidationError(f'malformed kernel input: {e}') from e


@dataclass(frozen=True)
class DcfOutput:
  npv: Money
  irr_bps: Optional[int] = None

  def to_dict(self) -> Dict[str, Any]:
    result: Dict[str, Any] = {'npv': self.npv.to_wire()}
    if self.irr_bps is not None:
      result['irrBps'] = self.irr_bps
    return result


class ValuationEngine(ABC):
  """
  Base class for NPV/IRR backends.

  Both methods validate their input before computing and are coroutines
  so that backends needing initialization share one calling convention.
  """

  name = 'abstract'

  @abstractmethod
  async def npv(self, dcf_input: DcfInput) -> DcfOutput:
    """
    Net present value at the input's discount rate.

    Returns:
      DcfOutput with the NPV and, when a root is bracketed, the IRR

    Raises:
      ValidationError: If the input is malformed
    """

  @abstractmethod
  async def irr(self, dcf_input: DcfInput) -> int:
    """
    Internal rate of return in basis points.

    Raises:
      ValidationError: If the input is malformed
      RootNotBracketedError: If NPV does not change sign over the bracket
    """


def _is_integer(value: Any) -> bool:
  if isinstance(value, bool):
    return False
  if isinstance(value, Integral):
    return True
  return isinstance(value, float) and value.is_integer()


def validate_input(dcf_input: DcfInput) -> None:
  """
  Reject malformed input before any arithmetic.

  Raises:
    ValidationError: On an empty cashflow list, a non-finite rate, a
      non-integer date, an unknown compounding mode or a malformed amount
  """
  if not dcf_input.cashflows:
    raise ValidationError('cashflows must contain at least one entry')

  rate = dcf_input.discount_rate_bps
  if isinstance(rate, bool) or not isinstance(rate, Real) or not isfinite(
      rate):
    raise ValidationError('discountRateBps must be finite')

  if dcf_input.compounding not in COMPOUNDING_MODES:
    raise ValidationError(
        f'compounding must be one of {COMPOUNDING_MODES}, '
        f'got {dcf_input.compounding!r}')

  if not _is_integer(dcf_input.as_of_epoch_days):
    raise ValidationError('asOfEpochDays must be an integer epoch-day')

  for cashflow in dcf_input.cashflows:
    if not _is_integer(cashflow.date_epoch_days):
      raise ValidationError(
          'cashflow dateEpochDays must be an integer epoch-day')
    if not isinstance(cashflow.amount, Money):
      raise ValidationError(
          f'invalid cashflow amount: {cashflow.amount!r}')


def normalize_input(dcf_input: DcfInput) -> DcfInput:
  """Copy with cashflows sorted by date (stable) and integral day counts."""
  cashflows = tuple(
      Cashflow(int(cf.date_epoch_days), cf.amount)
      for cf in sorted(dcf_input.cashflows, key=lambda c: c.date_epoch_days))
  return replace(dcf_input,
                 cashflows=cashflows,
                 as_of_epoch_days=int(dcf_input.as_of_epoch_days))


def compounding_frequency(compounding: str) -> int:
  return 12 if compounding == 'monthly' else 1
