'''
Domain types for the valuation framework.

These dataclasses describe the forecast and the valuation context the
engine consumes. All of them are frozen: every overlay (scenario, Monte
Carlo draw, sensitivity override) builds a new record with
dataclasses.replace instead of mutating a shared one.

Units: rates, margins and premiums are percent points (9.0 means 9%);
currency amounts are millions.
'''

from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from datetime import date
from datetime import datetime
from datetime import timezone
import json
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from dcfbuilder.scenarios.config import ScenarioDefinition

T = TypeVar('T')

COMPOUNDING_MODES = ('annual', 'monthly')
EXIT_METRICS = ('ebitda', 'ebit', 'revenue')
DRIVER_KEYS = ('revenue', 'margin', 'workingCapital', 'capex', 'discountRate')
DISTRIBUTIONS = ('normal', 'lognormal', 'triangular')


@dataclass
class PolicyOutput(Generic[T]):
  '''
  Standard output from any policy.

  Every policy returns both a computed value and diagnostic information
  explaining how the value was computed.

  Attributes:
    value: The computed value (type depends on policy)
    diag: Dictionary of diagnostic information
  '''
  value: T
  diag: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ForecastPeriod:
  '''
  One explicit forecast period.

  Attributes:
    label: Display label (e.g., 'FY2026')
    year_offset: Years from the valuation date; strictly increasing
    revenue: Revenue in millions
    ebit_margin: EBIT margin in percent
    other_operating_income: Added to EBIT, in millions
    working_capital_override: Core net working capital, replaces days formula
    capex_override: Capex in millions, replaces percent-of-revenue
    depreciation_override: D&A in millions, replaces percent-of-revenue
  '''
  label: str
  year_offset: float
  revenue: float
  ebit_margin: float
  other_operating_income: Optional[float] = None
  working_capital_override: Optional[float] = None
  capex_override: Optional[float] = None
  depreciation_override: Optional[float] = None

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'ForecastPeriod':
    return cls(**data)


@dataclass(frozen=True)
class GordonSettings:
  enabled: bool = True
  growth_rate: float = 2.5
  sanity_cap: Optional[float] = None


@dataclass(frozen=True)
class ExitMultipleSettings:
  '''
  Exit-multiple terminal value settings.

  Attributes:
    enabled: Whether the exit method is computed
    metric: 'ebitda', 'ebit' or 'revenue'
    multiple: Multiple applied to the metric
    reference_year: Index into the forecast; the final period when None
  '''
  enabled: bool = True
  metric: str = 'ebitda'
  multiple: float = 11.0
  reference_year: Optional[int] = None


@dataclass(frozen=True)
class TerminalValueSettings:
  gordon: GordonSettings = field(default_factory=GordonSettings)
  exit_multiple: ExitMultipleSettings = field(
      default_factory=ExitMultipleSettings)
  apply_both: bool = False

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'TerminalValueSettings':
    return cls(
        gordon=GordonSettings(**data.get('gordon', {})),
        exit_multiple=ExitMultipleSettings(**data.get('exit_multiple', {})),
        apply_both=bool(data.get('apply_both', False)),
    )


@dataclass(frozen=True)
class WorkingCapitalSettings:
  opening_net_working_capital: float = 0.0
  ar_days: float = 0.0
  ap_days: float = 0.0
  inventory_days: float = 0.0
  other_current_assets: float = 0.0
  other_current_liabilities: float = 0.0


@dataclass(frozen=True)
class CapexSettings:
  opening_net_ppe: float = 0.0
  maintenance_capex_pct_revenue: float = 0.0
  growth_capex_pct_revenue: float = 0.0
  depreciation_pct_revenue: float = 0.0
  maintenance_share: Optional[float] = None


@dataclass(frozen=True)
class LeaseSettings:
  operating_lease_liability: float = 0.0
  discount_rate: float = 0.0
  average_lease_term_years: float = 0.0
  annual_lease_expense: float = 0.0


@dataclass(frozen=True)
class TaxSettings:
  '''
  Tax settings.

  Attributes:
    statutory_rate: Book tax rate in percent
    cash_tax_rate: Cash tax rate in percent
    nol_opening: Opening NOL balance in millions
    nol_annual_usage_cap: Maximum NOL usable per period; unlimited when None
    deferred_tax_rate: Percent of NOL usage added back to the cash tax base
  '''
  statutory_rate: float = 0.0
  cash_tax_rate: float = 0.0
  nol_opening: float = 0.0
  nol_annual_usage_cap: Optional[float] = None
  deferred_tax_rate: Optional[float] = None


@dataclass(frozen=True)
class WaccInputs:
  '''
  Capital structure inputs for the WACC calculator.

  When beta_unlevered is given it is re-levered at the target D/E and
  beta_levered is ignored.
  '''
  risk_free_rate: float = 0.0
  market_risk_premium: float = 0.0
  size_premium: float = 0.0
  country_risk_premium: float = 0.0
  beta_levered: float = 1.0
  target_debt_to_equity: float = 0.0
  cost_of_debt_pre_tax: float = 0.0
  tax_rate: float = 0.0
  beta_unlevered: Optional[float] = None


@dataclass(frozen=True)
class SensitivityConfig:
  wacc_values: Tuple[float, ...] = ()
  terminal_growth_rates: Tuple[float, ...] = ()
  exit_multiples: Tuple[float, ...] = ()

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'SensitivityConfig':
    return cls(
        wacc_values=tuple(data.get('wacc_values', ())),
        terminal_growth_rates=tuple(data.get('terminal_growth_rates', ())),
        exit_multiples=tuple(data.get('exit_multiples', ())),
    )


@dataclass(frozen=True)
class MonteCarloDriver:
  '''
  One stochastic driver.

  Attributes:
    key: 'revenue', 'margin', 'workingCapital', 'capex' or 'discountRate'
    distribution: 'normal', 'lognormal' or 'triangular'
    mean: Mean (normal), linear-space mean (lognormal) or fallback mode
    std_dev: Standard deviation; defaults depend on the distribution
    min_value: Triangular lower bound
    mode: Triangular mode
    max_value: Triangular upper bound
  '''
  key: str
  distribution: str
  mean: float
  std_dev: Optional[float] = None
  min_value: Optional[float] = None
  mode: Optional[float] = None
  max_value: Optional[float] = None


@dataclass(frozen=True)
class MonteCarloConfig:
  iterations: int = 0
  drivers: Tuple[MonteCarloDriver, ...] = ()
  seed: Optional[int] = None

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'MonteCarloConfig':
    return cls(
        iterations=int(data.get('iterations', 0)),
        drivers=tuple(
            MonteCarloDriver(**d) for d in data.get('drivers', ())),
        seed=data.get('seed'),
    )


@dataclass(frozen=True)
class SegmentInput:
  id: str
  label: str
  revenue: float
  ebitda_margin: float
  invested_capital: float = 0.0
  exit_multiple: Optional[float] = None


@dataclass(frozen=True)
class CompsPeer:
  ticker: str
  enterprise_value: float
  ebitda: float
  revenue: float


@dataclass(frozen=True)
class EquityAdjustment:
  '''Bridge item between EV and equity; positive amounts add to equity.'''
  label: str
  amount: float


@dataclass(frozen=True)
class ContextMetadata:
  company_name: Optional[str] = None
  ticker: Optional[str] = None
  analyst: Optional[str] = None
  currency: Optional[str] = None
  git_commit: Optional[str] = None
  config_path: Optional[str] = None


@dataclass(frozen=True)
class ValuationContext:
  '''
  Every assumption a valuation run needs besides the forecast.

  Treated as a value: overlays return new contexts and never alias a
  context across runs.

  Attributes:
    as_of: Valuation date (YYYY-MM-DD)
    compounding: 'annual' or 'monthly'
    mid_year_convention: Discount cash flows at mid-period
    discount_rate: Discount rate in percent; the WACC is used when None
    net_debt: Net debt in millions
    shares_outstanding: Shares in millions
  '''
  as_of: str
  compounding: str = 'annual'
  mid_year_convention: bool = False
  discount_rate: Optional[float] = None
  terminal_value: TerminalValueSettings = field(
      default_factory=TerminalValueSettings)
  working_capital: WorkingCapitalSettings = field(
      default_factory=WorkingCapitalSettings)
  capex: CapexSettings = field(default_factory=CapexSettings)
  leases: LeaseSettings = field(default_factory=LeaseSettings)
  tax: TaxSettings = field(default_factory=TaxSettings)
  wacc: WaccInputs = field(default_factory=WaccInputs)
  sensitivity: SensitivityConfig = field(default_factory=SensitivityConfig)
  monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
  scenarios: Tuple[ScenarioDefinition, ...] = ()
  segments: Tuple[SegmentInput, ...] = ()
  peers: Tuple[CompsPeer, ...] = ()
  net_debt: float = 0.0
  shares_outstanding: float = 1.0
  equity_adjustments: Tuple[EquityAdjustment, ...] = ()
  metadata: ContextMetadata = field(default_factory=ContextMetadata)

  def with_gordon(self, **changes: Any) -> 'ValuationContext':
    '''Copy with Gordon settings replaced, e.g. growth_rate=3.0.'''
    tv = self.terminal_value
    return replace(self,
                   terminal_value=replace(tv,
                                          gordon=replace(tv.gordon,
                                                         **changes)))

  def with_exit_multiple(self, **changes: Any) -> 'ValuationContext':
    '''Copy with exit-multiple settings replaced, e.g. multiple=12.0.'''
    tv = self.terminal_value
    return replace(self,
                   terminal_value=replace(tv,
                                          exit_multiple=replace(
                                              tv.exit_multiple, **changes)))

  @classmethod
  def default(cls, as_of: Optional[str] = None,
              n_periods: int = 6) -> 'ValuationContext':
    '''
    Reference example company used by the CLIs and tests.

    Args:
      as_of: Valuation date; January 1st of the current UTC year when None
      n_periods: Forecast length, used for the exit reference year

    Returns:
      ValuationContext with every settings block populated
    '''
    if as_of is None:
      as_of = date(datetime.now(timezone.utc).year, 1, 1).isoformat()

    return cls(
        as_of=as_of,
        compounding='annual',
        mid_year_convention=True,
        discount_rate=9.0,
        terminal_value=TerminalValueSettings(
            gordon=GordonSettings(enabled=True, growth_rate=2.5,
                                  sanity_cap=4.0),
            exit_multiple=ExitMultipleSettings(enabled=True,
                                               metric='ebitda',
                                               multiple=11.0,
                                               reference_year=n_periods - 1),
            apply_both=True,
        ),
        working_capital=WorkingCapitalSettings(
            opening_net_working_capital=120.0,
            ar_days=45.0,
            ap_days=30.0,
            inventory_days=50.0,
            other_current_assets=35.0,
            other_current_liabilities=25.0,
        ),
        capex=CapexSettings(
            opening_net_ppe=420.0,
            maintenance_capex_pct_revenue=4.5,
            growth_capex_pct_revenue=3.0,
            depreciation_pct_revenue=4.2,
        ),
        leases=LeaseSettings(
            operating_lease_liability=90.0,
            discount_rate=5.0,
            average_lease_term_years=8.0,
            annual_lease_expense=18.0,
        ),
        tax=TaxSettings(
            statutory_rate=24.0,
            cash_tax_rate=20.0,
            nol_opening=55.0,
            nol_annual_usage_cap=30.0,
            deferred_tax_rate=10.0,
        ),
        wacc=WaccInputs(
            risk_free_rate=3.5,
            market_risk_premium=5.0,
            size_premium=1.0,
            country_risk_premium=0.5,
            beta_levered=1.1,
            target_debt_to_equity=0.6,
            cost_of_debt_pre_tax=5.2,
            tax_rate=24.0,
        ),
        sensitivity=SensitivityConfig(
            wacc_values=(7.0, 8.0, 9.0, 10.0, 11.0),
            terminal_growth_rates=(1.5, 2.0, 2.5, 3.0),
            exit_multiples=(9.0, 10.0, 11.0, 12.0),
        ),
        monte_carlo=MonteCarloConfig(
            iterations=250,
            drivers=(
                MonteCarloDriver(key='revenue', distribution='normal',
                                 mean=3.0, std_dev=2.0),
                MonteCarloDriver(key='margin', distribution='normal',
                                 mean=0.0, std_dev=1.0),
                MonteCarloDriver(key='workingCapital',
                                 distribution='triangular', mean=0.0,
                                 min_value=-5.0, mode=0.0, max_value=5.0),
            ),
            seed=42,
        ),
        scenarios=ScenarioDefinition.presets(),
        segments=(
            SegmentInput(id='core-saas', label='Core SaaS', revenue=420.0,
                         ebitda_margin=32.0, invested_capital=310.0,
                         exit_multiple=14.0),
            SegmentInput(id='payments', label='Payments', revenue=180.0,
                         ebitda_margin=25.0, invested_capital=140.0,
                         exit_multiple=11.0),
        ),
        net_debt=260.0,
        shares_outstanding=145.0,
        equity_adjustments=(
            EquityAdjustment(label='Non-operating Assets', amount=45.0),
            EquityAdjustment(label='Minority Interest', amount=-25.0),
        ),
        metadata=ContextMetadata(company_name='Example Co.', ticker='EXCO',
                                 currency='USD'),
    )

  def to_dict(self) -> Dict[str, Any]:
    """Convert to dictionary."""
    return asdict(self)

  def to_json(self) -> str:
    """Serialize to JSON string."""
    return json.dumps(self.to_dict(), indent=2)

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> 'ValuationContext':
    """Create from dictionary."""
    return cls(
        as_of=data['as_of'],
        compounding=data.get('compounding', 'annual'),
        mid_year_convention=bool(data.get('mid_year_convention', False)),
        discount_rate=data.get('discount_rate'),
        terminal_value=TerminalValueSettings.from_dict(
            data.get('terminal_value', {})),
        working_capital=WorkingCapitalSettings(
            **data.get('working_capital', {})),
        capex=CapexSettings(**data.get('capex', {})),
        leases=LeaseSettings(**data.get('leases', {})),
        tax=TaxSettings(**data.get('tax', {})),
        wacc=WaccInputs(**data.get('wacc', {})),
        sensitivity=SensitivityConfig.from_dict(data.get('sensitivity', {})),
        monte_carlo=MonteCarloConfig.from_dict(data.get('monte_carlo', {})),
        scenarios=tuple(
            ScenarioDefinition.from_dict(s)
            for s in data.get('scenarios', ())),
        segments=tuple(SegmentInput(**s) for s in data.get('segments', ())),
        peers=tuple(CompsPeer(**p) for p in data.get('peers', ())),
        net_debt=float(data.get('net_debt', 0.0)),
        shares_outstanding=float(data.get('shares_outstanding', 1.0)),
        equity_adjustments=tuple(
            EquityAdjustment(**e) for e in data.get('equity_adjustments', ())),
        metadata=ContextMetadata(**data.get('metadata', {})),
    )

  @classmethod
  def from_json(cls, json_str: str) -> 'ValuationContext':
    """Create from JSON string."""
    return cls.from_dict(json.loads(json_str))


def default_forecast(start_year: Optional[int] = None,
                     n_periods: int = 6) -> List[ForecastPeriod]:
  '''
  Forecast matching ValuationContext.default().

  Revenue grows by 60 per period from 500; EBIT margin rises by half a
  point per period from 18%.
  '''
  if start_year is None:
    start_year = datetime.now(timezone.utc).year
  return [
      ForecastPeriod(
          label=f'FY{start_year + i}',
          year_offset=i + 1,
          revenue=500.0 + i * 60.0,
          ebit_margin=18.0 + i * 0.5,
      ) for i in range(n_periods)
  ]
