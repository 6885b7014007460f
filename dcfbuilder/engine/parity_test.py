import asyncio

import pytest

from dcfbuilder.engine.contract import Cashflow
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.contract import IRR_PARITY_TOLERANCE_BPS
from dcfbuilder.engine.contract import NPV_PARITY_TOLERANCE
from dcfbuilder.engine.decimal_engine import DecimalEngine
from dcfbuilder.engine.money import Money
from dcfbuilder.engine.numpy_engine import NumpyEngine


def _flows(*pairs):
  return tuple(Cashflow(day, Money.from_number(amount)) for day, amount in pairs)


PARITY_INPUTS = [
    DcfInput(
        cashflows=_flows((18_250, -120), (18_615, 80), (18_980, 80)),
        discount_rate_bps=750,
        compounding='annual',
        as_of_epoch_days=18_250,
    ),
    DcfInput(
        cashflows=_flows((19_000, -500), (19_031, 60), (19_061, 60),
                         (19_092, 60), (19_122, 60), (19_153, 60),
                         (19_184, 260)),
        discount_rate_bps=400,
        compounding='monthly',
        as_of_epoch_days=19_000,
    ),
    DcfInput(
        cashflows=_flows((20_000, -1_000.5), (20_365, 150.25),
                         (20_730, 310.75), (21_095, 720.125)),
        discount_rate_bps=925,
        compounding='annual',
        as_of_epoch_days=19_900,
    ),
    DcfInput(
        cashflows=_flows((0, -100), (32_850, 500)),
        discount_rate_bps=750,
        compounding='annual',
        as_of_epoch_days=0,
    ),
]


@pytest.mark.parametrize('dcf_input', PARITY_INPUTS)
class TestEngineParity:
  """The two backends agree within the parity tolerances."""

  def test_npv_parity(self, dcf_input):
    reference = asyncio.run(DecimalEngine().npv(dcf_input))
    accelerated = asyncio.run(NumpyEngine().npv(dcf_input))

    assert abs(reference.npv.to_number() -
               accelerated.npv.to_number()) < NPV_PARITY_TOLERANCE

  def test_irr_parity(self, dcf_input):
    reference = asyncio.run(DecimalEngine().irr(dcf_input))
    accelerated = asyncio.run(NumpyEngine().irr(dcf_input))

    assert abs(reference - accelerated) < IRR_PARITY_TOLERANCE_BPS
