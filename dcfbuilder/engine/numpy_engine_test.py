import asyncio
from dataclasses import replace
from decimal import Decimal

import numpy as np
import pytest

from dcfbuilder.domain.errors import NumericOverflowError
from dcfbuilder.domain.errors import RootNotBracketedError
from dcfbuilder.domain.errors import ValidationError
from dcfbuilder.engine.contract import Cashflow
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.contract import MIN_RATE
from dcfbuilder.engine.decimal_engine import npv_at_rate
from dcfbuilder.engine.money import Money
from dcfbuilder.engine.numpy_engine import create_numpy_engine
from dcfbuilder.engine.numpy_engine import NumpyEngine
from dcfbuilder.engine.numpy_engine import PreparedCashflows
from dcfbuilder.engine.numpy_engine import rate_to_bps
from dcfbuilder.engine.numpy_engine import solve_irr


def _long_horizon_input() -> DcfInput:
  """Second flow 90 years out; 0.0001**90 underflows float64."""
  return DcfInput(
      cashflows=(Cashflow(0, Money.from_number(-100)),
                 Cashflow(32_850, Money.from_number(500))),
      discount_rate_bps=750,
      compounding='annual',
      as_of_epoch_days=0,
  )


class TestPreparedCashflows:
  """Tests for the vectorized NPV."""

  def test_periods(self, sample_dcf_input):
    prepared = PreparedCashflows(sample_dcf_input)
    np.testing.assert_allclose(prepared.periods, [0.0, 1.0, 2.0])
    assert prepared.frequency == 1

  def test_monthly_periods(self, sample_dcf_input):
    prepared = PreparedCashflows(replace(sample_dcf_input,
                                         compounding='monthly'))
    np.testing.assert_allclose(prepared.periods, [0.0, 12.0, 24.0])

  def test_sample_npv(self, sample_dcf_input):
    npv = PreparedCashflows(sample_dcf_input).npv(0.075)
    assert float(npv) == pytest.approx(23.6452, abs=1e-2)

  def test_non_positive_base(self, sample_dcf_input):
    with pytest.raises(NumericOverflowError):
      PreparedCashflows(sample_dcf_input).npv(-1.5)

  def test_underflowing_factor_falls_back_to_decimal(self):
    """Matches the exact decimal NPV at the bottom of the IRR bracket."""
    dcf_input = _long_horizon_input()
    npv = PreparedCashflows(dcf_input).npv(float(MIN_RATE))
    expected = npv_at_rate(dcf_input, MIN_RATE)

    assert npv > 0
    assert abs(npv / expected - 1) < Decimal('1e-9')


class TestSolveIrr:

  def test_sample_irr(self, sample_dcf_input):
    prepared = PreparedCashflows(sample_dcf_input)
    irr = solve_irr(prepared)

    assert irr is not None
    assert abs(prepared.npv(irr)) < 1e-7
    assert rate_to_bps(irr) == 2153

  def test_no_sign_change(self):
    dcf_input = DcfInput(
        cashflows=(Cashflow(0, Money(-1)), Cashflow(365, Money(-1))),
        discount_rate_bps=500,
        compounding='annual',
        as_of_epoch_days=0,
    )
    assert solve_irr(PreparedCashflows(dcf_input)) is None


class TestNumpyEngine:
  """Tests for the async NumpyEngine contract."""

  def test_factory_probe(self):
    engine = asyncio.run(create_numpy_engine())
    assert isinstance(engine, NumpyEngine)
    assert engine.name == 'numpy'

  def test_npv_reports_irr(self, sample_dcf_input):
    output = asyncio.run(NumpyEngine().npv(sample_dcf_input))

    assert output.npv.to_number() == pytest.approx(23.645, abs=1e-2)
    assert output.irr_bps == 2153

  def test_irr(self, sample_dcf_input):
    assert asyncio.run(NumpyEngine().irr(sample_dcf_input)) == 2153

  def test_irr_without_root(self, sample_dcf_input):
    positive = replace(sample_dcf_input,
                       cashflows=sample_dcf_input.cashflows[1:])
    with pytest.raises(RootNotBracketedError):
      asyncio.run(NumpyEngine().irr(positive))

  def test_invalid_input(self, sample_dcf_input):
    with pytest.raises(ValidationError):
      asyncio.run(NumpyEngine().npv(replace(sample_dcf_input,
                                            compounding='daily')))

  def test_long_horizon(self):
    output = asyncio.run(NumpyEngine().npv(_long_horizon_input()))

    assert output.npv.to_number() == pytest.approx(-99.254911, abs=1e-2)
    assert output.irr_bps == 180

  def test_npv_survives_failed_irr_search(self, sample_dcf_input, monkeypatch):
    """An IRR search error leaves the NPV intact."""

    def failing_solve_irr(prepared):
      raise NumericOverflowError('discount factor out of range')

    monkeypatch.setattr('dcfbuilder.engine.numpy_engine.solve_irr',
                        failing_solve_irr)
    output = asyncio.run(NumpyEngine().npv(sample_dcf_input))

    assert output.npv.to_number() == pytest.approx(23.645, abs=1e-2)
    assert output.irr_bps is None
