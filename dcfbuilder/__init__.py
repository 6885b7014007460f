'''
DCF valuation framework with policy-based terminal value and discounting.

This package derives free cash flows from a forecast and a valuation
context, values them with interchangeable terminal value and discount
policies, and runs sensitivity and Monte Carlo analyses on top. An exact
NPV/IRR kernel with two backends re-prices the resulting cash flows.

Usage:
  from dcfbuilder.domain.types import ValuationContext, default_forecast
  from dcfbuilder.run import compute_valuation
  from dcfbuilder.scenarios.registry import resolve_scenario

  context = ValuationContext.default()
  outputs = compute_valuation(default_forecast(), context,
                              scenario=resolve_scenario(context, 'bull'))
'''
