"""
Portable NPV/IRR backend on decimal.Decimal.

Reference implementation of the ValuationEngine contract: every step runs
on 40-digit decimals with half-to-even rounding, and the result is
converted to Money only at the end.

Key functions:
  npv_at_rate: Exact NPV of a normalized input at an annual rate
  solve_irr: Bisection for the rate where NPV crosses zero
"""

from decimal import Decimal
from decimal import DecimalException
from decimal import localcontext
from decimal import ROUND_HALF_EVEN
import logging
from typing import Optional

from dcfbuilder.domain.errors import NumericOverflowError
from dcfbuilder.domain.errors import RootNotBracketedError
from dcfbuilder.engine.contract import BPS_DENOMINATOR
from dcfbuilder.engine.contract import compounding_frequency
from dcfbuilder.engine.contract import DAYS_PER_YEAR
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.contract import DcfOutput
from dcfbuilder.engine.contract import IRR_MAX_ITERATIONS
from dcfbuilder.engine.contract import IRR_TOLERANCE
from dcfbuilder.engine.contract import MAX_RATE
from dcfbuilder.engine.contract import MIN_RATE
from dcfbuilder.engine.contract import normalize_input
from dcfbuilder.engine.contract import validate_input
from dcfbuilder.engine.contract import ValuationEngine
from dcfbuilder.engine.money import DECIMAL_PRECISION
from dcfbuilder.engine.money import Money

logger = logging.getLogger(__name__)


def npv_at_rate(dcf_input: DcfInput, annual_rate: Decimal) -> Decimal:
  """
  Compute NPV in currency units.

  Each cashflow is discounted by (1 + rate/f)^((date - as_of) / (365/f))
  where f is the compounding frequency.

  Args:
    dcf_input: Validated, normalized input
    annual_rate: Annual rate as a fraction (0.075 for 7.5%)

  Returns:
    Unrounded NPV

  Raises:
    NumericOverflowError: If the discount base is not positive or a factor
      leaves the decimal range
  """
  with localcontext() as ctx:
    ctx.prec = DECIMAL_PRECISION
    ctx.rounding = ROUND_HALF_EVEN

    frequency = Decimal(compounding_frequency(dcf_input.compounding))
    base = 1 + annual_rate / frequency
    if base <= 0:
      raise NumericOverflowError(f'discount base {base} is not positive')
    days_per_period = Decimal(DAYS_PER_YEAR) / frequency

    total = Decimal(0)
    try:
      for cashflow in dcf_input.cashflows:
        periods = (Decimal(cashflow.date_epoch_days -
                           dcf_input.as_of_epoch_days) / days_per_period)
        total += cashflow.amount.to_decimal() / (base**periods)
    except DecimalException as e:
      raise NumericOverflowError(
          f'discount factor out of range at rate {annual_rate}') from e
    return total


def solve_irr(dcf_input: DcfInput) -> Optional[Decimal]:
  """
  Bisect for the internal rate of return.

  Searches [MIN_RATE, MAX_RATE]. Stops when |NPV| < IRR_TOLERANCE or after
  IRR_MAX_ITERATIONS halvings and returns the bracket midpoint.

  Returns:
    Annual rate as a fraction, or None if no sign change is bracketed
  """
  low = MIN_RATE
  high = MAX_RATE
  npv_low = npv_at_rate(dcf_input, low)
  npv_high = npv_at_rate(dcf_input, high)

  if npv_low == 0:
    return low
  if npv_high == 0:
    return high
  if (npv_low > 0) == (npv_high > 0):
    return None

  with localcontext() as ctx:
    ctx.prec = DECIMAL_PRECISION
    ctx.rounding = ROUND_HALF_EVEN

    for iteration in range(IRR_MAX_ITERATIONS):
      mid = (low + high) / 2
      npv_mid = npv_at_rate(dcf_input, mid)

      if abs(npv_mid) < IRR_TOLERANCE:
        logger.debug('IRR converged after %d iterations', iteration + 1)
        return mid

      if (npv_mid > 0) == (npv_low > 0):
        low = mid
        npv_low = npv_mid
      else:
        high = mid

    return (low + high) / 2


def rate_to_bps(rate: Decimal) -> int:
  """Fractional rate to whole basis points, half-to-even."""
  with localcontext() as ctx:
    ctx.prec = DECIMAL_PRECISION
    bps = (rate * BPS_DENOMINATOR).quantize(Decimal(1),
                                            rounding=ROUND_HALF_EVEN)
  return int(bps)


class DecimalEngine(ValuationEngine):
  """Portable reference backend."""

  name = 'decimal'

  async def npv(self, dcf_input: DcfInput) -> DcfOutput:
    validate_input(dcf_input)
    normalized = normalize_input(dcf_input)
    rate = Decimal(normalized.discount_rate_bps) / BPS_DENOMINATOR
    npv = Money.from_decimal(npv_at_rate(normalized, rate))

    try:
      irr = solve_irr(normalized)
    except NumericOverflowError as e:
      logger.debug('IRR search failed, reporting NPV only: %s', e)
      irr = None
    return DcfOutput(npv=npv,
                     irr_bps=rate_to_bps(irr) if irr is not None else None)

  async def irr(self, dcf_input: DcfInput) -> int:
    validate_input(dcf_input)
    normalized = normalize_input(dcf_input)
    irr = solve_irr(normalized)
    if irr is None:
      raise RootNotBracketedError()
    return rate_to_bps(irr)


async def create_decimal_engine() -> DecimalEngine:
  return DecimalEngine()
