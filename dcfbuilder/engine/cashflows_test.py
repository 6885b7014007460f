from dataclasses import replace

import pytest

from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import TaxSettings
from dcfbuilder.domain.types import WorkingCapitalSettings
from dcfbuilder.engine.cashflows import apply_tax_rules
from dcfbuilder.engine.cashflows import CashflowState
from dcfbuilder.engine.cashflows import compute_ebit
from dcfbuilder.engine.cashflows import derive_cashflows
from dcfbuilder.engine.cashflows import derive_period
from dcfbuilder.engine.cashflows import resolve_working_capital


class TestDeriveCashflows:
  """Tests for the full-forecast fold."""

  def test_one_cashflow_per_period(self, default_forecast, default_context):
    cashflows = derive_cashflows(default_forecast, default_context)

    assert len(cashflows) == len(default_forecast)
    assert [cf.period for cf in cashflows] == default_forecast

  def test_first_period_breakdown(self, default_forecast, default_context):
    """
    Revenue 500 at 18%: EBIT 90, D&A 21, capex 37.5, lease interest 4.5,
    amortization 13.5, 30 of NOL used against 85.5 taxable income.
    """
    first = derive_cashflows(default_forecast, default_context)[0]

    assert first.ebit == pytest.approx(90.0)
    assert first.depreciation == pytest.approx(21.0)
    assert first.capex == pytest.approx(37.5)
    assert first.lease_interest == pytest.approx(4.5)
    assert first.lease_amortization == pytest.approx(13.5)
    assert first.nopat == pytest.approx(90.0 - 55.5 * 0.24)
    assert first.tax_paid == pytest.approx((55.5 + 30 * 0.10) * 0.20)
    assert first.ending_net_working_capital == pytest.approx(94.109589, abs=1e-6)
    assert first.change_in_net_working_capital == pytest.approx(-25.890411,
                                                                abs=1e-6)
    assert first.free_cash_flow == pytest.approx(72.570411, abs=1e-6)
    assert first.ending_net_ppe == pytest.approx(436.5)
    assert first.nol_balance == pytest.approx(25.0)

  def test_balances_carry_forward(self, default_forecast, default_context):
    """Second period starts from the first period's ending balances."""
    first, second = derive_cashflows(default_forecast, default_context)[:2]

    assert second.lease_interest == pytest.approx((90.0 - 13.5) * 0.05)
    assert second.change_in_net_working_capital == pytest.approx(
        second.ending_net_working_capital - first.ending_net_working_capital)
    assert second.nol_balance == 0.0

  def test_empty_forecast(self, default_context):
    assert derive_cashflows([], default_context) == []

  def test_simple_context_fcf_equals_ebit(self, simple_forecast,
                                          simple_context):
    cashflows = derive_cashflows(simple_forecast, simple_context)
    assert [cf.free_cash_flow for cf in cashflows] == pytest.approx(
        [20.0, 20.0, 20.0])


class TestOverrides:
  """Tests for per-period overrides."""

  def test_capex_and_depreciation_overrides(self, default_context):
    period = ForecastPeriod(label='FY1', year_offset=1, revenue=500.0,
                            ebit_margin=18.0, capex_override=12.0,
                            depreciation_override=7.0)
    derived, state = derive_period(period, default_context,
                                   CashflowState.opening(default_context))

    assert derived.capex == 12.0
    assert derived.depreciation == 7.0
    assert state.net_ppe == pytest.approx(420.0 + 12.0 - 7.0)

  def test_working_capital_override_keeps_other_items(self):
    settings = WorkingCapitalSettings(ar_days=45.0, other_current_assets=35.0,
                                      other_current_liabilities=25.0)
    period = ForecastPeriod(label='FY1', year_offset=1, revenue=500.0,
                            ebit_margin=18.0, working_capital_override=100.0)
    assert resolve_working_capital(period, settings) == pytest.approx(110.0)

  def test_negative_revenue_floors_working_capital(self):
    settings = WorkingCapitalSettings(ar_days=45.0, inventory_days=50.0)
    period = ForecastPeriod(label='FY1', year_offset=1, revenue=-100.0,
                            ebit_margin=10.0)
    assert resolve_working_capital(period, settings) == 0.0

  def test_other_operating_income(self):
    period = ForecastPeriod(label='FY1', year_offset=1, revenue=200.0,
                            ebit_margin=10.0, other_operating_income=5.0)
    assert compute_ebit(period) == pytest.approx(25.0)


class TestApplyTaxRules:
  """Tests for NOL carryforward."""

  def test_loss_adds_to_nol(self):
    outcome = apply_tax_rules(-50.0, TaxSettings(statutory_rate=25.0,
                                                 cash_tax_rate=20.0), 10.0)

    assert outcome.updated_nol == 60.0
    assert outcome.book_taxes == 0.0
    assert outcome.cash_taxes == 0.0

  def test_uncapped_usage(self):
    """Without a cap the whole balance can be used."""
    tax = TaxSettings(statutory_rate=25.0, cash_tax_rate=25.0)
    outcome = apply_tax_rules(100.0, tax, 80.0)

    assert outcome.nol_used == 80.0
    assert outcome.updated_nol == 0.0
    assert outcome.book_taxes == pytest.approx(5.0)

  def test_capped_usage(self):
    tax = TaxSettings(statutory_rate=25.0, cash_tax_rate=25.0,
                      nol_annual_usage_cap=30.0)
    outcome = apply_tax_rules(100.0, tax, 80.0)

    assert outcome.nol_used == 30.0
    assert outcome.updated_nol == 50.0

  def test_zero_cap_blocks_usage(self):
    tax = TaxSettings(statutory_rate=25.0, nol_annual_usage_cap=0.0)
    outcome = apply_tax_rules(100.0, tax, 80.0)

    assert outcome.updated_nol == 80.0
    assert outcome.book_taxes == pytest.approx(25.0)

  def test_deferred_rate_raises_cash_taxes(self):
    tax = TaxSettings(statutory_rate=20.0, cash_tax_rate=20.0,
                      deferred_tax_rate=50.0)
    outcome = apply_tax_rules(100.0, tax, 40.0)

    assert outcome.book_taxes == pytest.approx(12.0)
    assert outcome.cash_taxes == pytest.approx((60.0 + 20.0) * 0.2)


class TestStateIsolation:

  def test_inputs_unchanged(self, default_forecast, default_context):
    """Deriving twice from the same inputs gives the same result."""
    snapshot = replace(default_context)
    first = derive_cashflows(default_forecast, default_context)
    second = derive_cashflows(default_forecast, default_context)

    assert first == second
    assert default_context == snapshot
