"""
Valuation policies for the discount rate and the terminal value.

Each policy computes one component of the valuation and returns both a
value and diagnostic information.

To add a new policy:
1. Create a new class inheriting from the appropriate base (e.g.,
   TerminalPolicy)
2. Implement the compute() method returning PolicyOutput

Example:
  class PerpetuityNoGrowth(TerminalPolicy):
    def compute(self, cashflows, discount_rate):
      value = cashflows[-1].free_cash_flow / (discount_rate / 100)
      return PolicyOutput(value=TerminalValueOutput('gordon', value),
                          diag={'terminal_method': 'no_growth'})
"""

from dcfbuilder.policies.discount import DiscountPolicy
from dcfbuilder.policies.discount import FixedRate
from dcfbuilder.policies.discount import resolve_discount_policy
from dcfbuilder.policies.discount import WaccRate
from dcfbuilder.policies.terminal import compute_terminal_values
from dcfbuilder.policies.terminal import ExitMultipleTerminal
from dcfbuilder.policies.terminal import GordonTerminal
from dcfbuilder.policies.terminal import TerminalPolicy
from dcfbuilder.policies.wacc import calculate_wacc

__all__ = [
  'DiscountPolicy', 'FixedRate', 'WaccRate', 'resolve_discount_policy',
  'TerminalPolicy', 'GordonTerminal', 'ExitMultipleTerminal',
  'compute_terminal_values',
  'calculate_wacc',
]
