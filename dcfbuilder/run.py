'''
Single-valuation entrypoint.

This module provides the main entry point for running valuations. It:
1. Applies the optional scenario overlay to copies of the inputs
2. Derives free cash flows period by period
3. Resolves the discount rate and computes terminal values
4. Discounts everything and assembles ValuationOutputs with diagnostics

Usage:
  from dcfbuilder.run import compute_valuation
  from dcfbuilder.domain.types import ValuationContext, default_forecast

  outputs = compute_valuation(default_forecast(), ValuationContext.default())
  print(f"EV: {outputs.enterprise_value:,.1f}M")
'''

import argparse
import asyncio
from datetime import datetime
from datetime import timezone
import logging
from pathlib import Path
import sys
from typing import Optional, Sequence

from dcfbuilder.analysis.bridge import build_ev_bridge
from dcfbuilder.analysis.bridge import compute_comps_check
from dcfbuilder.analysis.bridge import compute_sotp
from dcfbuilder.data_loader import ValuationFileLoader
from dcfbuilder.domain.errors import DcfError
from dcfbuilder.domain.errors import NumericOverflowError
from dcfbuilder.domain.errors import RootNotBracketedError
from dcfbuilder.domain.errors import ValidationError
from dcfbuilder.domain.outputs import RunMetadata
from dcfbuilder.domain.outputs import ValuationOutputs
from dcfbuilder.domain.types import default_forecast
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.engine.cashflows import derive_cashflows
from dcfbuilder.engine.discounting import discount_cashflows
from dcfbuilder.engine.validations import collect_validations
from dcfbuilder.policies.discount import resolve_discount_policy
from dcfbuilder.policies.terminal import compute_terminal_values
from dcfbuilder.policies.wacc import calculate_wacc
from dcfbuilder.scenarios.config import ScenarioDefinition
from dcfbuilder.scenarios.registry import apply_scenario
from dcfbuilder.scenarios.registry import resolve_scenario

logger = logging.getLogger(__name__)


def compute_valuation(
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
    scenario: Optional[ScenarioDefinition] = None,
    override_discount_rate: Optional[float] = None,
    exit_multiple_override: Optional[float] = None,
) -> ValuationOutputs:
  '''
  Run one deterministic valuation.

  Args:
    forecast: Forecast periods in order
    context: Valuation context
    scenario: Scenario overlay applied before derivation
    override_discount_rate: Discount rate in percent; beats the context
      rate and the WACC
    exit_multiple_override: Replaces the configured exit multiple

  Returns:
    ValuationOutputs; guard-rail problems are listed in validations
  '''
  forecast, context = apply_scenario(forecast, context, scenario)

  cashflows = derive_cashflows(forecast, context)
  wacc_breakdown = calculate_wacc(context.wacc)
  discount_result = resolve_discount_policy(context,
                                            override_discount_rate).compute()
  discount_rate = discount_result.value

  terminal_values = compute_terminal_values(cashflows, context, discount_rate,
                                            exit_multiple_override)
  discounted = discount_cashflows(cashflows, terminal_values, context,
                                  discount_rate)

  enterprise_value = (discounted.present_value +
                      discounted.terminal_present_value)
  adjustments = sum(item.amount for item in context.equity_adjustments)
  equity_value = enterprise_value - context.net_debt + adjustments
  per_share = equity_value / max(context.shares_outstanding, 1)

  validations = collect_validations(cashflows, terminal_values, context,
                                    discount_rate, enterprise_value)
  for warning in validations:
    logger.debug('Valuation warning [%s]: %s', warning.code, warning.message)

  return ValuationOutputs(
      cashflows=cashflows,
      present_value=discounted.present_value,
      terminal_present_value=discounted.terminal_present_value,
      terminal_values=terminal_values,
      enterprise_value=enterprise_value,
      equity_value=equity_value,
      per_share=per_share,
      discount_rate=discount_rate,
      wacc_breakdown=wacc_breakdown,
      validations=validations,
      ev_bridge=build_ev_bridge(discounted.present_value,
                                discounted.terminal_present_value,
                                enterprise_value, context),
      comps_check=compute_comps_check(context.peers, enterprise_value,
                                      cashflows),
      sotp=compute_sotp(context),
      run_metadata=RunMetadata(
          timestamp_iso=datetime.now(timezone.utc).isoformat(),
          scenario_id=scenario.id if scenario else None,
          git_commit=context.metadata.git_commit,
          config_path=context.metadata.config_path,
      ),
  )


def _log_outputs(outputs: ValuationOutputs, context: ValuationContext,
                 scenario: Optional[ScenarioDefinition]) -> None:
  separator = '=' * 70
  logger.info('\n%s', separator)
  logger.info('DCF Valuation - %s as of %s', context.metadata.company_name or
              'unnamed company', context.as_of)
  logger.info('Scenario: %s', scenario.label if scenario else 'none')
  logger.info(separator)

  logger.info('\nCash Flows:')
  for cf in outputs.cashflows:
    logger.info('  %-8s revenue %10.1f  EBIT %9.1f  FCF %9.1f',
                cf.period.label, cf.period.revenue, cf.ebit,
                cf.free_cash_flow)

  logger.info('\nDiscounting:')
  logger.info('  Discount Rate: %.2f%%', outputs.discount_rate)
  logger.info('  WACC: %.2f%% (Ke %.2f%%, Kd after tax %.2f%%)',
              outputs.wacc_breakdown.wacc,
              outputs.wacc_breakdown.cost_of_equity,
              outputs.wacc_breakdown.cost_of_debt_after_tax)
  for tv in outputs.terminal_values:
    logger.info('  Terminal (%s): %s', tv.method, f'{tv.value:,.1f}')

  logger.info('\nValuation Result:')
  logger.info('  PV Forecast: %s', f'{outputs.present_value:,.1f}')
  logger.info('  PV Terminal: %s', f'{outputs.terminal_present_value:,.1f}')
  logger.info('  Enterprise Value: %s', f'{outputs.enterprise_value:,.1f}')
  logger.info('  Equity Value: %s', f'{outputs.equity_value:,.1f}')
  logger.info('  Per Share: %.2f', outputs.per_share)

  if outputs.sotp:
    logger.info('  SOTP Total: %s', f'{outputs.sotp.total_value:,.1f}')

  for warning in outputs.validations:
    logger.warning('  [%s] %s', warning.code, warning.message)


async def _run_kernel(engine_name: str, forecast: Sequence[ForecastPeriod],
                      context: ValuationContext,
                      scenario: Optional[ScenarioDefinition]) -> None:
  from dcfbuilder.engine.loader import load_valuation_engine
  from dcfbuilder.payload import build_engine_payload

  try:
    payload = build_engine_payload(forecast, context, scenario)
  except ValidationError as e:
    logger.warning('\nKernel skipped, cash flows are not finite: %s', e)
    return

  loaded = await load_valuation_engine(engine_name)
  output = await loaded.engine.npv(payload.input)
  logger.info('\nKernel (%s):', loaded.kind)
  logger.info('  NPV: %s', output.npv)
  try:
    irr_bps = await loaded.engine.irr(payload.input)
  except (RootNotBracketedError, NumericOverflowError) as e:
    logger.warning('  IRR unavailable: %s', e)
  else:
    logger.info('  IRR: %.2f%%', irr_bps / 100)


def main() -> None:
  '''CLI entrypoint.'''
  from dcfbuilder.engine.loader import ENGINE_FACTORIES

  parser = argparse.ArgumentParser(description='Run DCF valuation')
  parser.add_argument('--config',
                      type=Path,
                      help='Valuation JSON file (default: example company)')
  parser.add_argument('--scenario',
                      type=str,
                      help='Scenario id (context scenario or preset)')
  parser.add_argument('--engine',
                      type=str,
                      default='numpy',
                      choices=list(ENGINE_FACTORIES.keys()),
                      help='Preferred NPV/IRR backend')
  parser.add_argument('--verbose',
                      '-v',
                      action='store_true',
                      help='Verbose output')
  args = parser.parse_args()

  logging.basicConfig(
      level=logging.DEBUG if args.verbose else logging.INFO,
      format='%(message)s',
  )

  if args.config:
    loader = ValuationFileLoader(args.config)
    forecast = loader.load_forecast()
    context = loader.load_context()
  else:
    context = ValuationContext.default()
    forecast = default_forecast(int(context.as_of[:4]))

  try:
    scenario = resolve_scenario(context, args.scenario)
    outputs = compute_valuation(forecast, context, scenario=scenario)
    _log_outputs(outputs, context, scenario)
    asyncio.run(_run_kernel(args.engine, forecast, context, scenario))
  except (DcfError, KeyError) as e:
    logger.error('Valuation failed: %s', e)
    sys.exit(1)


if __name__ == '__main__':
  main()
