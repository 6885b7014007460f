"""
Accelerated NPV/IRR backend.

Discount factors for all cashflows are computed in one vectorized float64
power; the division and accumulation still run on decimal.Decimal so the
result agrees with the portable backend within the parity tolerance.
Bisection runs on floats.
"""

from decimal import Decimal
from decimal import DecimalException
from decimal import localcontext
from decimal import ROUND_HALF_EVEN
import logging
from typing import List, Optional

import numpy as np

from dcfbuilder.domain.errors import EngineLoadError
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


class PreparedCashflows:
  """
  Per-input arrays reused across every rate evaluated by the solver.

  Attributes:
    periods: Compounding periods from the as-of date, one per cashflow
    amounts: Exact unit amounts, one per cashflow
    frequency: Compounding periods per year
  """

  def __init__(self, dcf_input: DcfInput):
    self.frequency = compounding_frequency(dcf_input.compounding)
    days = np.array([cf.date_epoch_days for cf in dcf_input.cashflows],
                    dtype=np.float64)
    self.periods = (days - dcf_input.as_of_epoch_days) / (DAYS_PER_YEAR /
                                                          self.frequency)
    self.amounts: List[Decimal] = [
        cf.amount.to_decimal() for cf in dcf_input.cashflows
    ]

  def npv(self, annual_rate: float) -> Decimal:
    """
    NPV in currency units at an annual rate given as a fraction.

    Factors that underflow to zero or overflow float64 (long horizons near
    the ends of the IRR bracket) are recomputed as decimal powers.

    Raises:
      NumericOverflowError: If the base is not positive or a factor leaves
        the decimal range
    """
    base = 1.0 + annual_rate / self.frequency
    if base <= 0.0:
      raise NumericOverflowError(f'discount base {base} is not positive')

    with np.errstate(over='ignore', under='ignore'):
      factors = np.power(base, self.periods)
    out_of_range = ~np.isfinite(factors) | (factors == 0.0)

    with localcontext() as ctx:
      ctx.prec = DECIMAL_PRECISION
      ctx.rounding = ROUND_HALF_EVEN
      decimal_base = Decimal(base)
      total = Decimal(0)
      try:
        for amount, factor, period, exact in zip(self.amounts,
                                                 factors.tolist(),
                                                 self.periods.tolist(),
                                                 out_of_range.tolist()):
          if exact:
            total += amount / (decimal_base**Decimal(period))
          else:
            total += amount / Decimal(factor)
      except DecimalException as e:
        raise NumericOverflowError(
            f'discount factor out of range at rate {annual_rate}') from e
    return total


def solve_irr(prepared: PreparedCashflows) -> Optional[float]:
  '''Float bisection; same bracket, tolerance and iteration cap as the
  portable backend. Returns None when no sign change is bracketed.'''
  low = float(MIN_RATE)
  high = float(MAX_RATE)
  npv_low = prepared.npv(low)
  npv_high = prepared.npv(high)

  if npv_low == 0:
    return low
  if npv_high == 0:
    return high
  if (npv_low > 0) == (npv_high > 0):
    return None

  for _ in range(IRR_MAX_ITERATIONS):
    mid = (low + high) / 2.0
    npv_mid = prepared.npv(mid)

    if abs(npv_mid) < IRR_TOLERANCE:
      return mid

    if (npv_mid > 0) == (npv_low > 0):
      low = mid
      npv_low = npv_mid
    else:
      high = mid

  return (low + high) / 2.0


def rate_to_bps(rate: float) -> int:
  # np.rint rounds half to even
  return int(np.rint(rate * BPS_DENOMINATOR))


class NumpyEngine(ValuationEngine):
  """Vectorized backend."""

  name = 'numpy'

  async def npv(self, dcf_input: DcfInput) -> DcfOutput:
    validate_input(dcf_input)
    prepared = PreparedCashflows(normalize_input(dcf_input))
    rate = float(dcf_input.discount_rate_bps) / BPS_DENOMINATOR
    npv = Money.from_decimal(prepared.npv(rate))

    try:
      irr = solve_irr(prepared)
    except NumericOverflowError as e:
      logger.debug('IRR search failed, reporting NPV only: %s', e)
      irr = None
    return DcfOutput(npv=npv,
                     irr_bps=rate_to_bps(irr) if irr is not None else None)

  async def irr(self, dcf_input: DcfInput) -> int:
    validate_input(dcf_input)
    prepared = PreparedCashflows(normalize_input(dcf_input))
    irr = solve_irr(prepared)
    if irr is None:
      raise RootNotBracketedError()
    return rate_to_bps(irr)


async def create_numpy_engine() -> NumpyEngine:
  """
  Initialize the accelerated backend.

  Runs a probe computation so a broken numeric stack surfaces here,
  at load time, instead of on the first valuation call.

  Raises:
    EngineLoadError: If the probe does not reproduce 1.075^2
  """
  probe = float(np.power(np.float64(1.075), np.array([2.0]))[0])
  if not np.isclose(probe, 1.155625, rtol=0.0, atol=1e-12):
    raise EngineLoadError(f'numpy probe returned {probe}, expected 1.155625')
  logger.debug('numpy engine ready (numpy %s)', np.__version__)
  return NumpyEngine()
