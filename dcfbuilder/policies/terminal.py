"""
Terminal value policies.

These policies value the business beyond the explicit forecast, either as
a growing perpetuity (Gordon Growth Model) or as a multiple of a
reference-period metric. Guard-rail problems are reported as warnings on
the output; neither policy raises.
"""

from abc import ABC
from abc import abstractmethod
import math
from typing import List, Optional, Sequence

from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.outputs import TerminalValueOutput
from dcfbuilder.domain.types import EXIT_METRICS
from dcfbuilder.domain.types import PolicyOutput
from dcfbuilder.domain.types import ValuationContext

GROWTH_EXCEEDS_DISCOUNT = 'Terminal growth >= discount rate; check assumptions.'
GROWTH_EXCEEDS_CAP = 'Growth exceeds sanity cap.'
EXIT_METRIC_NON_POSITIVE = 'Exit metric non-positive; check margins.'


class TerminalPolicy(ABC):
  """
  Base class for terminal value policies.

  Subclasses implement compute() to return a TerminalValueOutput.
  """

  @abstractmethod
  def compute(
      self,
      cashflows: Sequence[DerivedCashflow],
      discount_rate: float,
  ) -> PolicyOutput[TerminalValueOutput]:
    """
    Compute the undiscounted terminal value.

    Args:
      cashflows: Derived cash flows (non-empty), in forecast order
      discount_rate: Annual discount rate in percent

    Returns:
      PolicyOutput with terminal value and diagnostics
    """

class GordonTerminal(TerminalPolicy):
  """
  Gordon Growth Model on the final free cash flow.

  TV = FCF_last * (1 + g) / (r - g), rates in percent.
  """

  def __init__(self, growth_rate: float = 2.5,
               sanity_cap: Optional[float] = None):
    """
    Initialize Gordon terminal policy.

    Args:
      growth_rate: Perpetual growth rate in percent (default: 2.5%)
      sanity_cap: Growth above this triggers a warning
    """
    self.growth_rate = growth_rate
    self.sanity_cap = sanity_cap

  def compute(
      self,
      cashflows: Sequence[DerivedCashflow],
      discount_rate: float,
  ) -> PolicyOutput[TerminalValueOutput]:
    """Return Gordon terminal value; warns instead of failing when g >= r."""
    warning = None
    if self.growth_rate >= discount_rate:
      warning = GROWTH_EXCEEDS_DISCOUNT
    elif self.sanity_cap is not None and self.growth_rate > self.sanity_cap:
      warning = GROWTH_EXCEEDS_CAP

    numerator = cashflows[-1].free_cash_flow * (1 + self.growth_rate / 100)
    spread = (discount_rate - self.growth_rate) / 100
    if spread != 0:
      value = numerator / spread
    elif numerator != 0:
      value = math.copysign(math.inf, numerator)
    else:
      value = math.nan

    return PolicyOutput(value=TerminalValueOutput(method='gordon',
                                                  value=value,
                                                  warning=warning),
                        diag={
                            'terminal_method': 'gordon',
                            'growth_rate': self.growth_rate,
                            'discount_rate': discount_rate,
                        })


class ExitMultipleTerminal(TerminalPolicy):
  """
  Exit multiple on a reference-period metric.

  The metric is EBITDA (EBIT + depreciation), EBIT or revenue of the
  reference period; the final period when no reference is given.
  """

  def __init__(self, multiple: float = 11.0, metric: str = 'ebitda',
               reference_year: Optional[int] = None):
    """
    Initialize exit multiple policy.

    Args:
      multiple: Multiple applied to the metric
      metric: 'ebitda', 'ebit' or 'revenue'
      reference_year: Forecast index, clamped into range

    Raises:
      ValueError: If metric is unknown
    """
    if metric not in EXIT_METRICS:
      raise ValueError(f"Unknown exit metric: '{metric}'. "
                       f'Available: {list(EXIT_METRICS)}')
    self.multiple = multiple
    self.metric = metric
    self.reference_year = reference_year

  def compute(
      self,
      cashflows: Sequence[DerivedCashflow],
      discount_rate: float,  # pylint: disable=unused-argument
  ) -> PolicyOutput[TerminalValueOutput]:
    """Return metric * multiple; warns when the metric is non-positive."""
    last_index = len(cashflows) - 1
    index = last_index if self.reference_year is None else self.reference_year
    index = min(max(index, 0), last_index)
    metric_value = resolve_exit_metric(cashflows[index], self.metric)

    warning = EXIT_METRIC_NON_POSITIVE if metric_value <= 0 else None
    return PolicyOutput(value=TerminalValueOutput(
        method='exit',
        value=metric_value * self.multiple,
        implied_multiple=self.multiple,
        warning=warning,
    ),
                        diag={
                            'terminal_method': 'exit',
                            'metric': self.metric,
                            'metric_value': metric_value,
                            'reference_index': index,
                        })


def resolve_exit_metric(cashflow: DerivedCashflow, metric: str) -> float:
  if metric == 'ebitda':
    return cashflow.ebit + cashflow.depreciation
  if metric == 'ebit':
    return cashflow.ebit
  return cashflow.period.revenue


def compute_terminal_values(
    cashflows: Sequence[DerivedCashflow],
    context: ValuationContext,
    discount_rate: float,
    exit_multiple_override: Optional[float] = None,
) -> List[TerminalValueOutput]:
  """
  Run the enabled terminal value policies.

  Args:
    cashflows: Derived cash flows
    context: Supplies the terminal value settings
    discount_rate: Annual discount rate in percent
    exit_multiple_override: Replaces the configured exit multiple

  Returns:
    Both outputs (Gordon first) when apply_both is set, otherwise the
    Gordon output if enabled, else the exit output; empty when there are
    no cash flows or no method is enabled
  """
  if not cashflows:
    return []

  settings = context.terminal_value
  gordon: List[TerminalValueOutput] = []
  exit_values: List[TerminalValueOutput] = []

  if settings.gordon.enabled:
    policy = GordonTerminal(settings.gordon.growth_rate,
                            settings.gordon.sanity_cap)
    gordon.append(policy.compute(cashflows, discount_rate).value)

  if settings.exit_multiple.enabled:
    multiple = (exit_multiple_override if exit_multiple_override is not None
                else settings.exit_multiple.multiple)
    exit_policy = ExitMultipleTerminal(multiple, settings.exit_multiple.metric,
                                       settings.exit_multiple.reference_year)
    exit_values.append(exit_policy.compute(cashflows, discount_rate).value)

  if settings.apply_both:
    return gordon + exit_values
  return gordon if gordon else exit_values
