"""
Bridge from a valuation to the NPV/IRR kernel.

Converts the derived free cash flows (millions, year offsets) into dated
Money amounts (micro-units, days since 1970-01-01) so the exact kernel can
re-price the same valuation.

Usage:
  from dcfbuilder.payload import build_engine_payload

  payload = build_engine_payload(forecast, context)
  output = asyncio.run(engine.npv(payload.input))
"""

from dataclasses import dataclass
from datetime import date
from datetime import timedelta
from decimal import Decimal
from decimal import ROUND_HALF_EVEN
from math import isfinite
from typing import List, Optional, Sequence

from dcfbuilder.domain.errors import ValidationError
from dcfbuilder.domain.outputs import ValuationOutputs
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.engine.contract import Cashflow
from dcfbuilder.engine.contract import DAYS_PER_YEAR
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.discounting import effective_year_offset
from dcfbuilder.engine.money import MICROS_PER_UNIT
from dcfbuilder.engine.money import Money
from dcfbuilder.run import compute_valuation
from dcfbuilder.scenarios.config import ScenarioDefinition

UNITS_PER_MILLION = 1_000_000
EPOCH = date(1970, 1, 1)


def _round_half_even(value: Decimal) -> int:
  return int(value.quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def date_to_epoch_days(iso_date: str) -> int:
  """Days since 1970-01-01 for a YYYY-MM-DD date."""
  return (date.fromisoformat(iso_date) - EPOCH).days


def epoch_days_to_date(epoch_days: int) -> str:
  return (EPOCH + timedelta(days=epoch_days)).isoformat()


def shift_epoch_days(as_of_epoch_days: int, year_offset: float,
                     mid_year: bool) -> int:
  """Cash flow date: as-of plus the effective offset in 365-day years."""
  years = effective_year_offset(year_offset, mid_year)
  return as_of_epoch_days + _round_half_even(
      Decimal(repr(years)) * DAYS_PER_YEAR)


def millions_to_money(value: float) -> Money:
  """
  Convert an amount in millions to Money, rounded to whole units.

  Raises:
    ValidationError: If value is NaN or infinite
  """
  if not isfinite(value):
    raise ValidationError(f'cannot convert non-finite amount: {value}')
  units = _round_half_even(Decimal(repr(value)) * UNITS_PER_MILLION)
  return Money(units * MICROS_PER_UNIT)


def money_to_millions(money: Money) -> float:
  return float(money.to_decimal() / UNITS_PER_MILLION)


def discount_rate_to_bps(rate_pct: float) -> int:
  return _round_half_even(Decimal(repr(rate_pct)) * 100)


@dataclass(frozen=True)
class EnginePayload:
  '''
  Kernel input together with the valuation it was built from.

  Attributes:
    input: Kernel input
    valuation: Full valuation outputs
    scenario: Scenario applied, if any
  '''
  input: DcfInput
  valuation: ValuationOutputs
  scenario: Optional[ScenarioDefinition] = None


def build_engine_input(valuation: ValuationOutputs,
                       context: ValuationContext) -> DcfInput:
  """
  Convert valuation cash flows into a kernel input.

  One kernel cash flow per derived cash flow; the first terminal value is
  added to the last one. The discount rate is rounded to basis points.
  """
  as_of = date_to_epoch_days(context.as_of)
  cashflows: List[Cashflow] = [
      Cashflow(
          date_epoch_days=shift_epoch_days(as_of, cf.period.year_offset,
                                           context.mid_year_convention),
          amount=millions_to_money(cf.free_cash_flow),
      ) for cf in valuation.cashflows
  ]

  if cashflows and valuation.terminal_values:
    last = cashflows[-1]
    cashflows[-1] = Cashflow(
        date_epoch_days=last.date_epoch_days,
        amount=last.amount +
        millions_to_money(valuation.terminal_values[0].value),
    )

  return DcfInput(
      cashflows=tuple(cashflows),
      discount_rate_bps=discount_rate_to_bps(valuation.discount_rate),
      compounding=context.compounding,
      as_of_epoch_days=as_of,
  )


def build_engine_payload(
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
    scenario: Optional[ScenarioDefinition] = None,
) -> EnginePayload:
  """Value the forecast and package the kernel input next to the result."""
  valuation = compute_valuation(forecast, context, scenario=scenario)
  return EnginePayload(
      input=build_engine_input(valuation, context),
      valuation=valuation,
      scenario=scenario,
  )
