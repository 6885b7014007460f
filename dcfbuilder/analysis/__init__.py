'''
Valuation analysis utilities.

Note: To avoid RuntimeWarning when using -m flag, import directly:
  from dcfbuilder.analysis.sensitivity import run_sensitivity
  from dcfbuilder.analysis.monte_carlo import run_monte_carlo
  from dcfbuilder.analysis.bridge import build_ev_bridge
'''
