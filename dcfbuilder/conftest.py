from dataclasses import replace
from typing import List

import pytest

from dcfbuilder.domain.types import default_forecast as make_default_forecast
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import TerminalValueSettings
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.engine.contract import Cashflow
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.money import Money


def _make_periods(revenues: List[float], margins: List[float]) -> List[ForecastPeriod]:
  """Helper to create consecutive annual periods from value lists."""
  return [
      ForecastPeriod(label=f'FY{2025 + i}',
                     year_offset=i + 1,
                     revenue=revenue,
                     ebit_margin=margin)
      for i, (revenue, margin) in enumerate(zip(revenues, margins))
  ]


@pytest.fixture
def default_context() -> ValuationContext:
  """Reference example company as of 2025-01-01."""
  return ValuationContext.default(as_of='2025-01-01')


@pytest.fixture
def default_forecast() -> List[ForecastPeriod]:
  """Six-period forecast matching default_context."""
  return make_default_forecast(start_year=2025)


@pytest.fixture
def simple_context() -> ValuationContext:
  """
  Context with no working capital, capex, leases or taxes.

  Free cash flow equals EBIT; discount at 10% with a single Gordon
  terminal value at 2%.
  """
  context = ValuationContext(as_of='2025-01-01', discount_rate=10.0)
  return replace(context,
                 terminal_value=replace(TerminalValueSettings(),
                                        apply_both=False)).with_gordon(
                                            growth_rate=2.0)


@pytest.fixture
def simple_forecast() -> List[ForecastPeriod]:
  """Three flat periods with 100 revenue at a 20% margin."""
  return _make_periods([100.0, 100.0, 100.0], [20.0, 20.0, 20.0])


@pytest.fixture
def sample_dcf_input() -> DcfInput:
  """-120 then +80 twice, a year apart, at 7.5% annual."""
  return DcfInput(
      cashflows=(
          Cashflow(18250, Money.from_number(-120)),
          Cashflow(18615, Money.from_number(80)),
          Cashflow(18980, Money.from_number(80)),
      ),
      discount_rate_bps=750,
      compounding='annual',
      as_of_epoch_days=18250,
  )
