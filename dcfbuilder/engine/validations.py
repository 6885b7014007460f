"""
Non-fatal checks on a completed valuation.

Each check appends a ComputationWarning; none of them raises. The run
always returns its best-effort numbers alongside the warning list.
"""

from math import isfinite
from typing import List, Sequence

import numpy as np

from dcfbuilder.domain.errors import ComputationWarning
from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.outputs import TerminalValueOutput
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.policies.terminal import EXIT_METRIC_NON_POSITIVE
from dcfbuilder.policies.terminal import GROWTH_EXCEEDS_CAP


def count_sign_changes(values: Sequence[float]) -> int:
  """Adjacent pairs whose sign differs; zero counts as its own sign."""
  if len(values) < 2:
    return 0
  signs = np.sign(np.asarray(values, dtype=np.float64))
  return int(np.count_nonzero(signs[1:] != signs[:-1]))


def collect_validations(
    cashflows: Sequence[DerivedCashflow],
    terminal_values: Sequence[TerminalValueOutput],
    context: ValuationContext,
    discount_rate: float,
    enterprise_value: float,
) -> List[ComputationWarning]:
  """
  Run every guard-rail check.

  Args:
    cashflows: Derived cash flows
    terminal_values: Terminal values used
    context: Valuation context
    discount_rate: Resolved discount rate in percent
    enterprise_value: Resulting enterprise value

  Returns:
    Warnings in a fixed check order
  """
  warnings: List[ComputationWarning] = []

  if not cashflows:
    warnings.append(
        ComputationWarning('empty_forecast', 'No cashflows generated.'))
  elif all(cf.free_cash_flow < 0 for cf in cashflows):
    warnings.append(
        ComputationWarning('all_negative_fcf',
                           'All forecast free cash flows are negative.'))

  if not terminal_values:
    warnings.append(
        ComputationWarning('terminal_value_missing',
                           'Terminal value not computed.'))

  offsets = [cf.period.year_offset for cf in cashflows]
  if any(b <= a for a, b in zip(offsets, offsets[1:])):
    warnings.append(
        ComputationWarning(
            'non_monotonic_periods',
            'Forecast period offsets are not strictly increasing.',
            {'year_offsets': offsets}))

  non_finite = [
      cf.period.label for cf in cashflows if not isfinite(cf.free_cash_flow)
  ]
  if non_finite or not isfinite(enterprise_value):
    warnings.append(
        ComputationWarning(
            'non_finite_values',
            'Non-finite values encountered in cashflow projection.',
            {'periods': non_finite}))

  gordon = context.terminal_value.gordon
  if gordon.enabled and gordon.growth_rate >= discount_rate:
    warnings.append(
        ComputationWarning(
            'growth_exceeds_discount', 'Terminal growth >= discount rate.', {
                'growth_rate': gordon.growth_rate,
                'discount_rate': discount_rate
            }))

  for tv in terminal_values:
    if tv.warning == GROWTH_EXCEEDS_CAP:
      warnings.append(
          ComputationWarning('growth_exceeds_sanity_cap', tv.warning,
                             {'sanity_cap': gordon.sanity_cap}))
    elif tv.warning == EXIT_METRIC_NON_POSITIVE:
      warnings.append(ComputationWarning('exit_metric_non_positive',
                                         tv.warning))

  sign_changes = count_sign_changes(
      [cf.change_in_net_working_capital for cf in cashflows])
  if sign_changes > len(cashflows) / 2:
    warnings.append(
        ComputationWarning(
            'working_capital_sign_flips',
            'Working capital swings between sources and uses frequently.',
            {'sign_changes': sign_changes}))

  if (context.tax.nol_annual_usage_cap == 0 and
      any(cf.nol_balance > 0 for cf in cashflows)):
    warnings.append(
        ComputationWarning('nol_persists_zero_cap',
                           'NOL balance persists due to zero usage cap.'))

  if context.mid_year_convention and context.compounding != 'annual':
    warnings.append(
        ComputationWarning(
            'mid_year_non_annual',
            'Mid-year convention currently assumes annual periods; '
            'review compounding setting.'))

  return warnings
