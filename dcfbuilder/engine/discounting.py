'''
Present value of derived cash flows and terminal values.

Pure float math; the exact kernel (engine/contract.py) is only used when a
valuation is exported as a dated cashflow schedule.
'''

from dataclasses import dataclass
from typing import Sequence

from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.outputs import TerminalValueOutput
from dcfbuilder.domain.types import ValuationContext


@dataclass(frozen=True)
class DiscountedValues:
  present_value: float
  terminal_present_value: float


def compounding_periods_per_year(context: ValuationContext) -> int:
  return 12 if context.compounding == 'monthly' else 1


def effective_year_offset(year_offset: float, mid_year: bool) -> float:
  '''Offset less half a year under the mid-year convention, floored at 0.'''
  return max(year_offset - (0.5 if mid_year else 0.0), 0.0)


def discount_factor(rate_pct: float, years: float, frequency: int) -> float:
  base = 1 + rate_pct / 100 / frequency
  if base <= 0:
    # Fractional powers of a non-positive base are complex
    return float('nan')
  return base**(years * frequency)


def discount_cashflows(
    cashflows: Sequence[DerivedCashflow],
    terminal_values: Sequence[TerminalValueOutput],
    context: ValuationContext,
    discount_rate: float,
) -> DiscountedValues:
  """
  Discount the explicit forecast and the terminal values.

  Each cash flow is discounted at its effective year offset. Terminal
  values are discounted at the final period's effective offset plus half a
  year under the mid-year convention, so they land at the period end.

  Args:
    cashflows: Derived cash flows in forecast order
    terminal_values: Undiscounted terminal values; all of them are summed
    context: Supplies compounding and the mid-year flag
    discount_rate: Annual rate in percent

  Returns:
    DiscountedValues with PV of the forecast and of the terminal values
  """
  frequency = compounding_periods_per_year(context)
  mid_year = context.mid_year_convention

  offsets = [
      effective_year_offset(cf.period.year_offset, mid_year)
      for cf in cashflows
  ]
  present_value = sum(
      cf.free_cash_flow / discount_factor(discount_rate, offset, frequency)
      for cf, offset in zip(cashflows, offsets))

  last_offset = offsets[-1] if offsets else 0.0
  terminal_years = last_offset + (0.5 if mid_year else 0.0)
  terminal_factor = discount_factor(discount_rate, terminal_years, frequency)
  terminal_present_value = sum(tv.value / terminal_factor
                               for tv in terminal_values)

  return DiscountedValues(present_value=float(present_value),
                          terminal_present_value=float(terminal_present_value))
