"""
Sensitivity analysis for DCF valuation.

This module sweeps the valuation over WACC x terminal growth (Gordon) and
WACC x exit multiple, then pivots the sweep into 2D tables with WACC values
as rows.

CLI Usage:
  python -m dcfbuilder.analysis.sensitivity \\
      --wacc-values 7,8,9,10,11 \\
      --growth-rates 1.5,2,2.5,3 \\
      --mode gordon
"""

import argparse
from dataclasses import dataclass
from dataclasses import replace
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from dcfbuilder.data_loader import ValuationFileLoader
from dcfbuilder.domain.errors import RunCancelledError
from dcfbuilder.domain.outputs import SensitivityResult
from dcfbuilder.domain.types import default_forecast
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.run import compute_valuation

logger = logging.getLogger(__name__)

SENSITIVITY_MODES = ('gordon', 'exit')


def run_sensitivity(
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> List[SensitivityResult]:
  """
  Re-run the valuation over the configured sensitivity axes.

  For each WACC value: one row per terminal growth rate when Gordon is
  enabled, then one row per exit multiple when the exit method is enabled.
  Gordon rows record the base exit multiple; exit rows record the base
  growth rate.

  Args:
    forecast: Forecast periods
    context: Valuation context with sensitivity axes
    should_cancel: Polled before each valuation

  Returns:
    Sweep results in generation order

  Raises:
    RunCancelledError: If should_cancel returns True
  """
  settings = context.terminal_value
  axes = context.sensitivity
  base_growth = settings.gordon.growth_rate
  base_exit = settings.exit_multiple.multiple
  results: List[SensitivityResult] = []

  def check_cancel() -> None:
    if should_cancel is not None and should_cancel():
      raise RunCancelledError(
          f'Sensitivity run cancelled after {len(results)} points')

  for wacc in axes.wacc_values:
    if settings.gordon.enabled:
      for growth in axes.terminal_growth_rates:
        check_cancel()
        valuation = compute_valuation(forecast,
                                      context.with_gordon(growth_rate=growth),
                                      override_discount_rate=wacc)
        results.append(
            SensitivityResult(wacc=wacc,
                              terminal_growth=growth,
                              exit_multiple=base_exit,
                              enterprise_value=valuation.enterprise_value,
                              method='gordon'))

    if settings.exit_multiple.enabled:
      for multiple in axes.exit_multiples:
        check_cancel()
        valuation = compute_valuation(forecast,
                                      context,
                                      override_discount_rate=wacc,
                                      exit_multiple_override=multiple)
        results.append(
            SensitivityResult(wacc=wacc,
                              terminal_growth=base_growth,
                              exit_multiple=multiple,
                              enterprise_value=valuation.enterprise_value,
                              method='exit'))

  logger.debug('Sensitivity sweep produced %d points', len(results))
  return results


@dataclass(frozen=True)
class SensitivityGrid:
  """
  Pivoted sensitivity sweep.

  Attributes:
    mode: 'gordon' (columns are growth rates) or 'exit' (multiples)
    columns: Sorted column keys
    rows: (wacc, {column key: enterprise value}) sorted by WACC
  """
  mode: str
  columns: Tuple[float, ...]
  rows: Tuple[Tuple[float, Dict[float, float]], ...]

  def format_label(self, value: float) -> str:
    if self.mode == 'gordon':
      return f'{value:.1f}%'
    return f'{value:.1f}x'

  def to_frame(self) -> pd.DataFrame:
    """
    Render as a DataFrame.

    Returns:
      DataFrame with WACC labels as index, column labels from
      format_label, and NaN where the sweep has no value
    """
    data = [[values.get(col, float('nan'))
             for col in self.columns]
            for _, values in self.rows]
    df = pd.DataFrame(data,
                      index=[f'{wacc:.1f}%' for wacc, _ in self.rows],
                      columns=[self.format_label(c) for c in self.columns])
    df.index.name = 'WACC'
    df.columns.name = ('Terminal Growth'
                       if self.mode == 'gordon' else 'Exit Multiple')
    return df


def build_sensitivity_grid(
    results: Sequence[SensitivityResult],
    mode: str,
    context: ValuationContext,
    drop_base_case: bool = False,
) -> Optional[SensitivityGrid]:
  """
  Pivot sweep results of one method into a grid.

  Args:
    results: Output of run_sensitivity
    mode: 'gordon' or 'exit'
    context: Supplies the base growth rate and exit multiple
    drop_base_case: Drop the column equal to the base assumption

  Returns:
    SensitivityGrid, or None when no results remain

  Raises:
    ValueError: If mode is unknown
  """
  if mode not in SENSITIVITY_MODES:
    raise ValueError(f"Unknown sensitivity mode: '{mode}'. "
                     f'Available: {list(SENSITIVITY_MODES)}')

  def column_key(entry: SensitivityResult) -> float:
    return entry.terminal_growth if mode == 'gordon' else entry.exit_multiple

  base = (context.terminal_value.gordon.growth_rate if mode == 'gordon' else
          context.terminal_value.exit_multiple.multiple)
  selected = [r for r in results if r.method == mode]
  if drop_base_case:
    selected = [r for r in selected if column_key(r) != base]
  if not selected:
    return None

  rows: Dict[float, Dict[float, float]] = {}
  for entry in selected:
    rows.setdefault(entry.wacc, {})[column_key(entry)] = entry.enterprise_value

  return SensitivityGrid(
      mode=mode,
      columns=tuple(sorted({column_key(r) for r in selected})),
      rows=tuple(sorted(rows.items())),
  )


def _parse_float_list(s: str) -> Tuple[float, ...]:
  """Parse comma-separated float list."""
  return tuple(float(x.strip()) for x in s.split(','))


def main() -> None:
  """CLI entrypoint for sensitivity analysis."""
  parser = argparse.ArgumentParser(
      description='DCF Sensitivity Analysis',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  # Example company, Gordon grid from the configured axes
  python -m dcfbuilder.analysis.sensitivity

  # Exit multiple grid with explicit axes
  python -m dcfbuilder.analysis.sensitivity --mode exit \\
      --wacc-values 8,9,10 --exit-multiples 9,10,11,12

  # From a valuation file, saved as CSV
  python -m dcfbuilder.analysis.sensitivity \\
      --config configs/example.json --output sensitivity.csv
      """)

  parser.add_argument('--config',
                      type=Path,
                      help='Valuation JSON file (default: example company)')
  parser.add_argument('--mode',
                      type=str,
                      default='gordon',
                      choices=list(SENSITIVITY_MODES),
                      help='Terminal value method for the columns')
  parser.add_argument('--wacc-values',
                      type=str,
                      help='Comma-separated WACC values in percent')
  parser.add_argument('--growth-rates',
                      type=str,
                      help='Comma-separated terminal growth rates in percent')
  parser.add_argument('--exit-multiples',
                      type=str,
                      help='Comma-separated exit multiples')
  parser.add_argument('--drop-base-case',
                      action='store_true',
                      help='Hide the column equal to the base assumption')
  parser.add_argument('--output', type=Path, help='Output CSV path (optional)')
  parser.add_argument('--verbose',
                      '-v',
                      action='store_true',
                      help='Verbose output')

  args = parser.parse_args()

  logging.basicConfig(
      level=logging.DEBUG if args.verbose else logging.INFO,
      format='%(asctime)s [%(levelname)s] %(message)s',
      datefmt='%Y-%m-%d %H:%M:%S',
  )

  if args.config:
    loader = ValuationFileLoader(args.config)
    forecast = loader.load_forecast()
    context = loader.load_context()
  else:
    context = ValuationContext.default()
    forecast = default_forecast(int(context.as_of[:4]))

  axes = context.sensitivity
  if args.wacc_values:
    axes = replace(axes, wacc_values=_parse_float_list(args.wacc_values))
  if args.growth_rates:
    axes = replace(axes,
                   terminal_growth_rates=_parse_float_list(args.growth_rates))
  if args.exit_multiples:
    axes = replace(axes, exit_multiples=_parse_float_list(args.exit_multiples))
  context = replace(context, sensitivity=axes)

  logger.info('WACC values: %s', list(axes.wacc_values))
  logger.info('Growth rates: %s', list(axes.terminal_growth_rates))
  logger.info('Exit multiples: %s', list(axes.exit_multiples))

  results = run_sensitivity(forecast, context)
  grid = build_sensitivity_grid(results, args.mode, context,
                                drop_base_case=args.drop_base_case)
  if grid is None:
    logger.warning('No sensitivity results for mode %s', args.mode)
    return

  table = grid.to_frame()

  print('\n' + '=' * 80)
  print(f'Sensitivity Analysis: '
        f'{context.metadata.company_name or "unnamed company"} '
        f'(as of {context.as_of})')
  print('=' * 80)
  print('Enterprise Value (millions)')
  print('=' * 80)
  print(table.to_string(float_format=lambda x: f'{x:,.1f}'))
  print('=' * 80 + '\n')

  if args.output:
    table.to_csv(args.output)
    logger.info('Saved to: %s', args.output)


if __name__ == '__main__':
  main()
