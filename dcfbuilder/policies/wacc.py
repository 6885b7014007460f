"""
Weighted average cost of capital.

Pure functions over WaccInputs. Rates are in percent; non-finite inputs
propagate to the outputs.
"""

from dcfbuilder.domain.outputs import WaccBreakdown
from dcfbuilder.domain.types import WaccInputs


def unlever_beta(beta_levered: float, debt_to_equity: float,
                 tax_rate_pct: float) -> float:
  """Hamada: beta_u = beta_l / (1 + (1 - t) * D/E)."""
  tax = tax_rate_pct / 100
  return beta_levered / (1 + (1 - tax) * debt_to_equity)


def relever_beta(beta_unlevered: float, debt_to_equity: float,
                 tax_rate_pct: float) -> float:
  """Hamada: beta_l = beta_u * (1 + (1 - t) * D/E)."""
  tax = tax_rate_pct / 100
  return beta_unlevered * (1 + (1 - tax) * debt_to_equity)


def calculate_wacc(inputs: WaccInputs) -> WaccBreakdown:
  """
  Compute cost of equity, after-tax cost of debt, weights and WACC.

  Cost of equity = risk-free + beta * (market premium + country premium)
  + size premium. Debt weight = D/E / (1 + D/E).

  Args:
    inputs: Capital structure inputs; an unlevered beta is re-levered at
      the target D/E and takes precedence over beta_levered

  Returns:
    WaccBreakdown with rates in percent
  """
  if inputs.beta_unlevered is not None:
    beta = relever_beta(inputs.beta_unlevered, inputs.target_debt_to_equity,
                        inputs.tax_rate)
  else:
    beta = inputs.beta_levered

  market_premium = inputs.market_risk_premium + inputs.country_risk_premium
  cost_of_equity = (inputs.risk_free_rate + beta * market_premium +
                    inputs.size_premium)
  cost_of_debt_after_tax = inputs.cost_of_debt_pre_tax * (
      1 - inputs.tax_rate / 100)

  weight_of_debt = inputs.target_debt_to_equity / (
      1 + inputs.target_debt_to_equity)
  weight_of_equity = 1 - weight_of_debt
  wacc = (cost_of_equity * weight_of_equity +
          cost_of_debt_after_tax * weight_of_debt)

  return WaccBreakdown(
      cost_of_equity=cost_of_equity,
      cost_of_debt_after_tax=cost_of_debt_after_tax,
      weight_of_equity=weight_of_equity,
      weight_of_debt=weight_of_debt,
      wacc=wacc,
  )
