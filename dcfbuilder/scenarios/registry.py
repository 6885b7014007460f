"""
Scenario registry and overlay.

Maps scenario names to preset factories, resolves a scenario id against a
context, and applies a scenario's deltas to copies of the forecast and
context.

To add a new preset:
1. Add a classmethod on ScenarioDefinition in scenarios/config.py
2. Register it in SCENARIO_PRESETS below
"""

from collections.abc import Callable
from dataclasses import replace
import logging
from math import isfinite
from typing import List, Optional, Sequence, Tuple

from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.policies.wacc import calculate_wacc
from dcfbuilder.scenarios.config import ScenarioDefinition

logger = logging.getLogger(__name__)

SCENARIO_PRESETS: dict[str, Callable[[], ScenarioDefinition]] = {
    'base': ScenarioDefinition.base,
    'bull': ScenarioDefinition.bull,
    'bear': ScenarioDefinition.bear,
}


def list_scenarios(context: ValuationContext) -> List[str]:
  """Scenario ids defined on the context, then presets not shadowed."""
  ids = [s.id for s in context.scenarios]
  return ids + [name for name in SCENARIO_PRESETS if name not in ids]


def resolve_scenario(
    context: ValuationContext,
    scenario_id: Optional[str],
) -> Optional[ScenarioDefinition]:
  """
  Look up a scenario by id.

  Scenarios defined on the context take precedence over presets.

  Args:
    context: Valuation context
    scenario_id: Scenario id, or None for no scenario

  Returns:
    The ScenarioDefinition, or None when scenario_id is None

  Raises:
    KeyError: If the id is neither on the context nor a preset
  """
  if scenario_id is None:
    return None
  for scenario in context.scenarios:
    if scenario.id == scenario_id:
      return scenario
  try:
    return SCENARIO_PRESETS[scenario_id]()
  except KeyError as e:
    raise KeyError(f"Unknown scenario: '{scenario_id}'. "
                   f'Available: {list_scenarios(context)}') from e


def _percentage_change(previous: float, current: float) -> float:
  if previous == 0:
    return 0.0
  return (current - previous) / abs(previous) * 100


def apply_scenario(
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
    scenario: Optional[ScenarioDefinition] = None,
) -> Tuple[List[ForecastPeriod], ValuationContext]:
  """
  Overlay a scenario on copies of the forecast and context.

  Each period's growth over the previous (unadjusted) period is re-derived,
  the growth delta is added and revenue rebuilt from the previous period;
  the first period's revenue is kept. When the previous revenue is zero
  growth is undefined and the period keeps its own revenue; the browser
  calculator this was modeled on produces zero revenue in that case.
  Margin, exit multiple and discount rate deltas are additive. When the
  context has no discount rate the delta is applied to the WACC.

  Args:
    forecast: Forecast periods; never mutated
    context: Valuation context; never mutated
    scenario: Scenario to apply, or None

  Returns:
    Tuple of (adjusted forecast, adjusted context)
  """
  if scenario is None:
    return list(forecast), context

  adj = scenario.adjustments
  adjusted: List[ForecastPeriod] = []
  for index, period in enumerate(forecast):
    revenue = period.revenue
    if index > 0 and forecast[index - 1].revenue != 0:
      previous = forecast[index - 1].revenue
      growth = (_percentage_change(previous, period.revenue) +
                adj.revenue_growth_delta_pct)
      candidate = previous * (1 + growth / 100)
      if isfinite(candidate):
        revenue = candidate
    adjusted.append(
        replace(period,
                revenue=revenue,
                ebit_margin=period.ebit_margin + adj.margin_delta_pct))

  base_rate = context.discount_rate
  if base_rate is None:
    base_rate = calculate_wacc(context.wacc).wacc

  adjusted_context = replace(
      context.with_exit_multiple(
          multiple=context.terminal_value.exit_multiple.multiple +
          adj.exit_multiple_delta),
      discount_rate=base_rate + adj.discount_rate_delta_pct,
  )
  logger.debug('Applied scenario %s to %d periods', scenario.id,
               len(adjusted))
  return adjusted, adjusted_context
