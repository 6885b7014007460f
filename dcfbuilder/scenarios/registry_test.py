from dataclasses import replace

import pytest

from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.scenarios.config import ScenarioAdjustments
from dcfbuilder.scenarios.config import ScenarioDefinition
from dcfbuilder.scenarios.registry import apply_scenario
from dcfbuilder.scenarios.registry import list_scenarios
from dcfbuilder.scenarios.registry import resolve_scenario


class TestResolveScenario:
  """Tests for scenario lookup."""

  def test_none(self, simple_context):
    assert resolve_scenario(simple_context, None) is None

  def test_preset(self, simple_context):
    assert resolve_scenario(simple_context, 'bull') == ScenarioDefinition.bull()

  def test_context_scenario_shadows_preset(self, simple_context):
    custom = ScenarioDefinition(id='bull', label='Custom Bull')
    context = replace(simple_context, scenarios=(custom,))

    assert resolve_scenario(context, 'bull') is custom

  def test_unknown_id(self, simple_context):
    with pytest.raises(KeyError, match='Unknown scenario'):
      resolve_scenario(simple_context, 'moonshot')

  def test_list_scenarios(self, simple_context):
    custom = ScenarioDefinition(id='stress', label='Stress')
    context = replace(simple_context, scenarios=(custom,))

    assert list_scenarios(context) == ['stress', 'base', 'bull', 'bear']


class TestApplyScenario:
  """Tests for the scenario overlay."""

  def test_no_scenario_is_identity(self, simple_forecast, simple_context):
    forecast, context = apply_scenario(simple_forecast, simple_context)

    assert forecast == simple_forecast
    assert context is simple_context

  def test_bull_overlay(self, simple_forecast, simple_context):
    """Flat revenue gains 2pp growth per period; first period is kept."""
    forecast, context = apply_scenario(simple_forecast, simple_context,
                                       ScenarioDefinition.bull())

    assert [p.revenue for p in forecast] == pytest.approx([100.0, 102.0, 102.0])
    assert all(p.ebit_margin == pytest.approx(21.0) for p in forecast)
    assert context.terminal_value.exit_multiple.multiple == pytest.approx(12.0)
    assert context.discount_rate == pytest.approx(9.5)

  def test_inputs_are_not_mutated(self, simple_forecast, simple_context):
    before = list(simple_forecast)

    apply_scenario(simple_forecast, simple_context, ScenarioDefinition.bear())

    assert simple_forecast == before
    assert simple_context.discount_rate == 10.0
    assert simple_context.terminal_value.exit_multiple.multiple == 11.0

  def test_discount_delta_applies_to_wacc(self, simple_forecast,
                                          default_context):
    """Without a context rate the delta is added to the WACC."""
    context = replace(default_context, discount_rate=None)

    _, adjusted = apply_scenario(simple_forecast, context,
                                 ScenarioDefinition.bear())

    assert adjusted.discount_rate == pytest.approx(8.07575 + 0.75)

  def test_zero_previous_revenue_keeps_period(self, simple_context):
    """Growth cannot be derived from zero revenue."""
    periods = [
        ForecastPeriod(label='FY2025', year_offset=1, revenue=0.0,
                       ebit_margin=10.0),
        ForecastPeriod(label='FY2026', year_offset=2, revenue=50.0,
                       ebit_margin=10.0),
    ]
    scenario = ScenarioDefinition(
        id='growth',
        label='Growth',
        adjustments=ScenarioAdjustments(revenue_growth_delta_pct=5.0))

    adjusted, _ = apply_scenario(periods, simple_context, scenario)

    assert [p.revenue for p in adjusted] == [0.0, 50.0]
