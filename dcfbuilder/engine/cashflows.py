"""
Period-by-period free cash flow derivation.

The running balances (net working capital, net PP&E, lease liability, NOL)
live in an immutable CashflowState that is folded through the forecast in
order. Nothing outside a single derive_cashflows call sees the state, so
concurrent runs never share it.

Key functions:
  derive_cashflows: Main entry point, one DerivedCashflow per period
  derive_period: One step of the fold
  apply_tax_rules: Book/cash tax with NOL carryforward
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.types import CapexSettings
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import TaxSettings
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.domain.types import WorkingCapitalSettings

DAYS_PER_YEAR = 365


@dataclass(frozen=True)
class CashflowState:
  '''Balances carried from one period to the next, in millions.'''
  net_working_capital: float
  net_ppe: float
  lease_liability: float
  nol_balance: float

  @classmethod
  def opening(cls, context: ValuationContext) -> 'CashflowState':
    return cls(
        net_working_capital=context.working_capital.opening_net_working_capital,
        net_ppe=context.capex.opening_net_ppe,
        lease_liability=context.leases.operating_lease_liability,
        nol_balance=context.tax.nol_opening,
    )


@dataclass(frozen=True)
class TaxOutcome:
  book_taxes: float
  cash_taxes: float
  updated_nol: float
  nol_used: float


def compute_ebit(period: ForecastPeriod) -> float:
  return (period.revenue * period.ebit_margin / 100 +
          (period.other_operating_income or 0.0))


def resolve_depreciation(period: ForecastPeriod, capex: CapexSettings) -> float:
  if period.depreciation_override is not None:
    return period.depreciation_override
  return period.revenue * capex.depreciation_pct_revenue / 100


def resolve_capex(period: ForecastPeriod, capex: CapexSettings) -> float:
  if period.capex_override is not None:
    return period.capex_override
  maintenance = period.revenue * capex.maintenance_capex_pct_revenue / 100
  growth = period.revenue * capex.growth_capex_pct_revenue / 100
  return maintenance + growth


def resolve_working_capital(period: ForecastPeriod,
                            working_capital: WorkingCapitalSettings) -> float:
  """
  Net working capital at the end of a period.

  With an override the override is the core balance; otherwise
  AR = revenue/365 * AR days, inventory and AP use COGS/365, and
  COGS = revenue * (1 - EBIT margin). Other current assets are added and
  other current liabilities subtracted in both cases.
  """
  others = (working_capital.other_current_assets -
            working_capital.other_current_liabilities)
  if period.working_capital_override is not None:
    return period.working_capital_override + others

  revenue = max(period.revenue, 0.0)
  cogs = revenue * (1 - period.ebit_margin / 100)
  daily_revenue = revenue / DAYS_PER_YEAR
  daily_cogs = cogs / DAYS_PER_YEAR

  ar = daily_revenue * working_capital.ar_days
  inventory = daily_cogs * working_capital.inventory_days
  ap = daily_cogs * working_capital.ap_days
  return ar + inventory - ap + others


def apply_tax_rules(taxable_income: float, tax: TaxSettings,
                    nol_balance: float) -> TaxOutcome:
  """
  Apply NOL usage and compute book and cash taxes.

  Positive income is offset by up to min(usage cap, NOL balance, income);
  a loss is added to the NOL balance and leaves zero taxable income.

  Args:
    taxable_income: EBIT less lease interest
    tax: Tax settings (rates in percent)
    nol_balance: NOL available at the start of the period

  Returns:
    TaxOutcome with book taxes, cash taxes and the updated NOL balance
  """
  remaining = taxable_income
  updated_nol = nol_balance
  nol_used = 0.0

  if remaining > 0 and updated_nol > 0:
    cap: Optional[float] = tax.nol_annual_usage_cap
    usable = updated_nol if cap is None else min(cap, updated_nol)
    offset = min(usable, remaining)
    remaining -= offset
    updated_nol -= offset
    nol_used = offset

  if remaining < 0:
    updated_nol += abs(remaining)
    remaining = 0.0

  deferred = (tax.deferred_tax_rate or 0.0) / 100
  book_taxes = max(remaining * tax.statutory_rate / 100, 0.0)
  cash_taxes = max(
      (remaining + nol_used * deferred) * tax.cash_tax_rate / 100, 0.0)
  return TaxOutcome(book_taxes=book_taxes,
                    cash_taxes=cash_taxes,
                    updated_nol=updated_nol,
                    nol_used=nol_used)


def derive_period(
    period: ForecastPeriod,
    context: ValuationContext,
    state: CashflowState,
) -> Tuple[DerivedCashflow, CashflowState]:
  """
  Derive one period's free cash flow.

  FCF = NOPAT + depreciation - capex - change in NWC - lease amortization,
  with NOPAT = EBIT - book taxes.

  Args:
    period: Forecast period
    context: Valuation context
    state: Balances at the start of the period

  Returns:
    Tuple of (derived cashflow, balances at the end of the period)
  """
  ebit = compute_ebit(period)
  depreciation = resolve_depreciation(period, context.capex)
  capex = resolve_capex(period, context.capex)

  working_capital = resolve_working_capital(period, context.working_capital)
  change_in_nwc = working_capital - state.net_working_capital

  lease_interest = state.lease_liability * context.leases.discount_rate / 100
  lease_amortization = min(
      max(context.leases.annual_lease_expense - lease_interest, 0.0),
      state.lease_liability)

  tax = apply_tax_rules(ebit - lease_interest, context.tax, state.nol_balance)

  nopat = ebit - tax.book_taxes
  free_cash_flow = (nopat + depreciation - capex - change_in_nwc -
                    lease_amortization)

  next_state = CashflowState(
      net_working_capital=working_capital,
      net_ppe=max(state.net_ppe + capex - depreciation, 0.0),
      lease_liability=max(state.lease_liability - lease_amortization, 0.0),
      nol_balance=tax.updated_nol,
  )

  derived = DerivedCashflow(
      period=period,
      free_cash_flow=free_cash_flow,
      ebit=ebit,
      nopat=nopat,
      change_in_net_working_capital=change_in_nwc,
      depreciation=depreciation,
      capex=capex,
      lease_interest=lease_interest,
      lease_amortization=lease_amortization,
      tax_paid=tax.cash_taxes,
      ending_net_working_capital=next_state.net_working_capital,
      ending_net_ppe=next_state.net_ppe,
      nol_balance=next_state.nol_balance,
  )
  return derived, next_state


def derive_cashflows(forecast: Sequence[ForecastPeriod],
                     context: ValuationContext) -> List[DerivedCashflow]:
  """
  Derive free cash flows for the whole forecast, in forecast order.

  Non-finite inputs propagate into the outputs; they are reported by the
  validation pass, not raised here.
  """
  state = CashflowState.opening(context)
  results: List[DerivedCashflow] = []
  for period in forecast:
    derived, state = derive_period(period, context, state)
    results.append(derived)
  return results
