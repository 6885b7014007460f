"""
Discount rate policies.

These policies determine the rate (in percent) used to discount the
forecast and the terminal value.
"""

from abc import ABC
from abc import abstractmethod
from typing import Optional

from dcfbuilder.domain.types import PolicyOutput
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.domain.types import WaccInputs
from dcfbuilder.policies.wacc import calculate_wacc


class DiscountPolicy(ABC):
  """
  Base class for discount rate policies.

  Subclasses implement compute() to return a discount rate.
  """

  @abstractmethod
  def compute(self) -> PolicyOutput[float]:
    """
    Compute discount rate.

    Returns:
      PolicyOutput with discount rate and diagnostics
    """

class FixedRate(DiscountPolicy):
  """
  Fixed discount rate.

  Simple policy that returns a constant required return.
  """

  def __init__(self, rate: float = 10.0, source: str = 'fixed'):
    """
    Initialize fixed rate policy.

    Args:
      rate: Fixed discount rate in percent (default: 10%)
      source: Where the rate came from ('fixed', 'override', 'context')
    """
    self.rate = rate
    self.source = source

  def compute(self) -> PolicyOutput[float]:
    """Return fixed discount rate."""
    return PolicyOutput(
      value=self.rate,
      diag={
        'discount_method': self.source,
        'discount_rate': self.rate,
      }
    )

class WaccRate(DiscountPolicy):
  """Discount at the weighted average cost of capital."""

  def __init__(self, inputs: WaccInputs):
    self.inputs = inputs

  def compute(self) -> PolicyOutput[float]:
    breakdown = calculate_wacc(self.inputs)
    return PolicyOutput(
      value=breakdown.wacc,
      diag={
        'discount_method': 'wacc',
        'discount_rate': breakdown.wacc,
        'cost_of_equity': breakdown.cost_of_equity,
        'cost_of_debt_after_tax': breakdown.cost_of_debt_after_tax,
      }
    )


def resolve_discount_policy(
    context: ValuationContext,
    override: Optional[float] = None,
) -> DiscountPolicy:
  """
  Pick the discount policy for a run.

  Precedence: explicit override, then the context's discount rate, then
  the WACC computed from the context's capital structure.
  """
  if override is not None:
    return FixedRate(override, source='override')
  if context.discount_rate is not None:
    return FixedRate(context.discount_rate, source='context')
  return WaccRate(context.wacc)
