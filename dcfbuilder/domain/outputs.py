'''
Output records produced by a valuation run.

Everything here is computed fresh per run and never mutated afterwards.
'''

from dataclasses import dataclass
from dataclasses import field
from typing import Any, Dict, List, Optional, Tuple

from dcfbuilder.domain.errors import ComputationWarning
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import SegmentInput


@dataclass(frozen=True)
class DerivedCashflow:
  '''
  Free cash flow of one forecast period with its derivation breakdown.

  All amounts in millions. The ending_* fields and nol_balance are the
  running balances after this period.
  '''
  period: ForecastPeriod
  free_cash_flow: float
  ebit: float
  nopat: float
  change_in_net_working_capital: float
  depreciation: float
  capex: float
  lease_interest: float
  lease_amortization: float
  tax_paid: float
  ending_net_working_capital: float
  ending_net_ppe: float
  nol_balance: float


@dataclass(frozen=True)
class TerminalValueOutput:
  '''
  Terminal value from one method.

  Attributes:
    method: 'gordon' or 'exit'
    value: Undiscounted terminal value in millions
    implied_multiple: Multiple used by the exit method
    warning: Guard-rail message, if any
  '''
  method: str
  value: float
  implied_multiple: Optional[float] = None
  warning: Optional[str] = None


@dataclass(frozen=True)
class WaccBreakdown:
  '''All rates in percent; weights are fractions summing to one.'''
  cost_of_equity: float
  cost_of_debt_after_tax: float
  weight_of_equity: float
  weight_of_debt: float
  wacc: float


@dataclass(frozen=True)
class EvBridgeItem:
  label: str
  value: float
  impact: float


@dataclass(frozen=True)
class CompsCheck:
  '''
  Comparable-company cross check.

  Attributes:
    median_ev_ebitda: Median peer EV/EBITDA
    median_ev_sales: Median peer EV/Revenue
    implied_ev_ebitda: Valuation EV over first-period EBITDA
    implied_premium_vs_median: implied_ev_ebitda / median_ev_ebitda - 1
  '''
  median_ev_ebitda: Optional[float] = None
  median_ev_sales: Optional[float] = None
  implied_ev_ebitda: Optional[float] = None
  implied_premium_vs_median: Optional[float] = None


@dataclass(frozen=True)
class SotpSegmentValue:
  segment: SegmentInput
  value: float
  weight: float


@dataclass(frozen=True)
class SotpOutput:
  total_value: float
  segments: Tuple[SotpSegmentValue, ...]


@dataclass(frozen=True)
class RunMetadata:
  timestamp_iso: str
  scenario_id: Optional[str] = None
  git_commit: Optional[str] = None
  config_path: Optional[str] = None


@dataclass
class ValuationOutputs:
  '''
  Complete valuation result with diagnostics.

  Attributes:
    cashflows: One DerivedCashflow per forecast period
    present_value: PV of the explicit forecast
    terminal_present_value: PV of all terminal values
    terminal_values: Undiscounted terminal values
    enterprise_value: present_value + terminal_present_value
    equity_value: EV - net debt + equity adjustments
    per_share: equity_value / max(shares, 1)
    discount_rate: Resolved discount rate in percent
    wacc_breakdown: WACC components
    validations: Non-fatal warnings
    ev_bridge: EV reconciliation lines
    comps_check: Peer multiples check, when peers are configured
    sotp: Sum-of-the-parts, when segments are configured
    run_metadata: Timestamp and provenance
  '''
  cashflows: List[DerivedCashflow]
  present_value: float
  terminal_present_value: float
  terminal_values: List[TerminalValueOutput]
  enterprise_value: float
  equity_value: float
  per_share: float
  discount_rate: float
  wacc_breakdown: WaccBreakdown
  validations: List[ComputationWarning] = field(default_factory=list)
  ev_bridge: List[EvBridgeItem] = field(default_factory=list)
  comps_check: Optional[CompsCheck] = None
  sotp: Optional[SotpOutput] = None
  run_metadata: Optional[RunMetadata] = None

  @property
  def warning_codes(self) -> List[str]:
    return [w.code for w in self.validations]

  def to_dict(self) -> Dict[str, Any]:
    '''Flatten headline figures for logging and DataFrame creation.'''
    result: Dict[str, Any] = {
        'present_value': self.present_value,
        'terminal_present_value': self.terminal_present_value,
        'enterprise_value': self.enterprise_value,
        'equity_value': self.equity_value,
        'per_share': self.per_share,
        'discount_rate': self.discount_rate,
        'cost_of_equity': self.wacc_breakdown.cost_of_equity,
        'cost_of_debt_after_tax': self.wacc_breakdown.cost_of_debt_after_tax,
        'wacc': self.wacc_breakdown.wacc,
        'warnings': ';'.join(self.warning_codes),
    }
    for tv in self.terminal_values:
      result[f'terminal_{tv.method}'] = tv.value
    if self.sotp:
      result['sotp_total'] = self.sotp.total_value
    if self.run_metadata:
      result['scenario_id'] = self.run_metadata.scenario_id
      result['timestamp'] = self.run_metadata.timestamp_iso
    return result


@dataclass(frozen=True)
class SensitivityResult:
  '''One sweep point; rates in percent. method is 'gordon' or 'exit'.'''
  wacc: float
  terminal_growth: float
  exit_multiple: float
  enterprise_value: float
  method: str = 'gordon'


@dataclass(frozen=True)
class MonteCarloResult:
  '''
  Distribution of enterprise values over the simulated iterations.

  Attributes:
    iterations: Number of completed iterations
    median: 50th percentile
    p10: 10th percentile
    p90: 90th percentile
    mean: Arithmetic mean
    std_dev: Sample standard deviation (n - 1)
    samples: Enterprise values, sorted ascending
  '''
  iterations: int
  median: float
  p10: float
  p90: float
  mean: float
  std_dev: float
  samples: Tuple[float, ...]
