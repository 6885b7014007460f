from dataclasses import replace
import math

import pytest

from dcfbuilder.domain.types import PolicyOutput
from dcfbuilder.engine.cashflows import derive_cashflows
from dcfbuilder.policies.terminal import compute_terminal_values
from dcfbuilder.policies.terminal import EXIT_METRIC_NON_POSITIVE
from dcfbuilder.policies.terminal import ExitMultipleTerminal
from dcfbuilder.policies.terminal import GordonTerminal
from dcfbuilder.policies.terminal import GROWTH_EXCEEDS_CAP
from dcfbuilder.policies.terminal import GROWTH_EXCEEDS_DISCOUNT


@pytest.fixture
def simple_cashflows(simple_forecast, simple_context):
  """Three periods of 20 FCF, EBIT 20, no depreciation."""
  return derive_cashflows(simple_forecast, simple_context)


class TestGordonTerminal:
  """Tests for GordonTerminal policy."""

  def test_basic_usage(self, simple_cashflows):
    """20 * 1.02 / (10% - 2%)."""
    result = GordonTerminal(growth_rate=2.0).compute(simple_cashflows, 10.0)

    assert isinstance(result, PolicyOutput)
    assert result.value.method == 'gordon'
    assert result.value.value == pytest.approx(255.0)
    assert result.value.warning is None
    assert result.diag['terminal_method'] == 'gordon'

  def test_default_initialization(self):
    """Default initialization to 2.5%."""
    policy = GordonTerminal()
    assert policy.growth_rate == 2.5
    assert policy.sanity_cap is None

  def test_growth_above_discount_warns(self, simple_cashflows):
    """Still returns a finite (negative) value."""
    result = GordonTerminal(growth_rate=10.5).compute(simple_cashflows, 10.0)

    assert result.value.warning == GROWTH_EXCEEDS_DISCOUNT
    assert math.isfinite(result.value.value)
    assert result.value.value < 0

  def test_growth_equal_to_discount(self, simple_cashflows):
    """Zero spread gives an infinite value instead of raising."""
    result = GordonTerminal(growth_rate=10.0).compute(simple_cashflows, 10.0)

    assert result.value.warning == GROWTH_EXCEEDS_DISCOUNT
    assert result.value.value == math.inf

  def test_sanity_cap(self, simple_cashflows):
    result = GordonTerminal(growth_rate=3.0,
                            sanity_cap=2.5).compute(simple_cashflows, 10.0)
    assert result.value.warning == GROWTH_EXCEEDS_CAP


class TestExitMultipleTerminal:
  """Tests for ExitMultipleTerminal policy."""

  def test_ebitda(self, simple_cashflows):
    result = ExitMultipleTerminal(multiple=11.0).compute(simple_cashflows, 10.0)

    assert result.value.method == 'exit'
    assert result.value.value == pytest.approx(220.0)
    assert result.value.implied_multiple == 11.0

  def test_revenue_metric(self, simple_cashflows):
    result = ExitMultipleTerminal(multiple=2.0,
                                  metric='revenue').compute(
                                      simple_cashflows, 10.0)
    assert result.value.value == pytest.approx(200.0)

  @pytest.mark.parametrize('reference_year,expected_index', [(10, 2), (-5, 0),
                                                             (1, 1)])
  def test_reference_year_is_clamped(self, simple_cashflows, reference_year,
                                     expected_index):
    result = ExitMultipleTerminal(reference_year=reference_year).compute(
        simple_cashflows, 10.0)
    assert result.diag['reference_index'] == expected_index

  def test_non_positive_metric_warns(self, simple_forecast, simple_context):
    forecast = [replace(p, ebit_margin=-5.0) for p in simple_forecast]
    cashflows = derive_cashflows(forecast, simple_context)
    result = ExitMultipleTerminal().compute(cashflows, 10.0)

    assert result.value.warning == EXIT_METRIC_NON_POSITIVE

  def test_unknown_metric(self):
    with pytest.raises(ValueError, match='Unknown exit metric'):
      ExitMultipleTerminal(metric='fcf')


class TestComputeTerminalValues:
  """Tests for method selection."""

  def test_apply_both_orders_gordon_first(self, default_forecast,
                                          default_context):
    cashflows = derive_cashflows(default_forecast, default_context)
    values = compute_terminal_values(cashflows, default_context, 9.0)

    assert [tv.method for tv in values] == ['gordon', 'exit']

  def test_gordon_wins_without_apply_both(self, simple_cashflows,
                                          simple_context):
    values = compute_terminal_values(simple_cashflows, simple_context, 10.0)
    assert [tv.method for tv in values] == ['gordon']

  def test_exit_only(self, simple_cashflows, simple_context):
    context = simple_context.with_gordon(enabled=False)
    values = compute_terminal_values(simple_cashflows, context, 10.0)
    assert [tv.method for tv in values] == ['exit']

  def test_exit_multiple_override(self, simple_cashflows, simple_context):
    context = simple_context.with_gordon(enabled=False)
    values = compute_terminal_values(simple_cashflows, context, 10.0,
                                     exit_multiple_override=5.0)
    assert values[0].value == pytest.approx(100.0)

  def test_nothing_enabled(self, simple_cashflows, simple_context):
    context = simple_context.with_gordon(enabled=False).with_exit_multiple(
        enabled=False)
    assert compute_terminal_values(simple_cashflows, context, 10.0) == []

  def test_empty_cashflows(self, simple_context):
    assert compute_terminal_values([], simple_context, 10.0) == []
