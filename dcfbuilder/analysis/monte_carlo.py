"""
Monte Carlo simulation of enterprise value.

Each iteration draws one value per configured driver from a seeded
Mulberry32 stream, applies the draws to private copies of the forecast and
context, and re-runs the valuation. All draws are taken up front in
iteration order, so running the valuations on a thread pool gives the
same samples as running them serially.

CLI Usage:
  python -m dcfbuilder.analysis.monte_carlo --iterations 1000 --seed 7
"""

import argparse
from concurrent.futures import as_completed
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
import logging
import math
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from dcfbuilder.data_loader import ValuationFileLoader
from dcfbuilder.domain.errors import RunCancelledError
from dcfbuilder.domain.outputs import MonteCarloResult
from dcfbuilder.domain.types import default_forecast
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import MonteCarloDriver
from dcfbuilder.domain.types import ValuationContext
from dcfbuilder.policies.wacc import calculate_wacc
from dcfbuilder.run import compute_valuation

logger = logging.getLogger(__name__)

DEFAULT_SEED = 1_234_567
UINT32_MASK = 0xFFFFFFFF

Draws = Tuple[Tuple[MonteCarloDriver, float], ...]


def _imul(a: int, b: int) -> int:
  return (a * b) & UINT32_MASK


class Mulberry32:
  """
  Mulberry32 pseudo-random generator.

  Produces floats in [0, 1) from 32-bit state; the same seed yields the
  same stream on every platform.
  """

  def __init__(self, seed: int = DEFAULT_SEED):
    self.state = seed & UINT32_MASK

  def __call__(self) -> float:
    return self.next_float()

  def next_float(self) -> float:
    self.state = (self.state + 0x6D2B79F5) & UINT32_MASK
    t = self.state
    t = _imul(t ^ (t >> 15), t | 1)
    t = (t ^ ((t + _imul(t ^ (t >> 7), t | 61)) & UINT32_MASK)) & UINT32_MASK
    return ((t ^ (t >> 14)) & UINT32_MASK) / 4294967296


Rng = Callable[[], float]


def _nonzero(rng: Rng) -> float:
  value = 0.0
  while value == 0:
    value = rng()
  return value


def sample_normal(mean: float, std_dev: float, rng: Rng) -> float:
  """Box-Muller transform; consumes at least two draws."""
  u = _nonzero(rng)
  v = _nonzero(rng)
  z = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
  return mean + z * std_dev


def sample_lognormal(mean: float, std_dev: float, rng: Rng) -> float:
  return math.exp(sample_normal(math.log(max(mean, 1e-6)), std_dev, rng))


def sample_triangular(min_value: float, mode: float, max_value: float,
                      rng: Rng) -> float:
  """
  Inverse-CDF triangular draw.

  Consumes one draw. A degenerate range (max <= min) returns min.
  """
  u = rng()
  span = max_value - min_value
  if span <= 0:
    return min_value
  if u < (mode - min_value) / span:
    return min_value + math.sqrt(u * span * (mode - min_value))
  return max_value - math.sqrt((1 - u) * span * (max_value - mode))


def sample_driver(driver: MonteCarloDriver, rng: Rng) -> float:
  """
  Draw one value for a driver.

  Missing parameters default to: normal std = 10% of the mean, lognormal
  std = 0.1, triangular min/mode/max = 50%/100%/150% of the mean.
  """
  if driver.distribution == 'normal':
    std_dev = (driver.std_dev
               if driver.std_dev is not None else driver.mean * 0.1)
    return sample_normal(driver.mean, std_dev, rng)
  if driver.distribution == 'lognormal':
    std_dev = driver.std_dev if driver.std_dev is not None else 0.1
    return sample_lognormal(driver.mean, std_dev, rng)
  if driver.distribution == 'triangular':
    return sample_triangular(
        driver.min_value
        if driver.min_value is not None else driver.mean * 0.5,
        driver.mode if driver.mode is not None else driver.mean,
        driver.max_value
        if driver.max_value is not None else driver.mean * 1.5,
        rng,
    )
  return driver.mean


def apply_driver(
    key: str,
    value: float,
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
) -> Tuple[List[ForecastPeriod], ValuationContext]:
  """
  Apply one drawn value to copies of the forecast and context.

  revenue: all revenues scaled by (1 + value%); margin: value added to
  every EBIT margin; workingCapital: AR and inventory days scaled up and
  AP days scaled down by value%; capex: maintenance and growth capex
  percentages scaled by (1 + value%); discountRate: value added to the
  context rate, or to the WACC when the context has none. Unknown keys
  leave the inputs unchanged.
  """
  forecast = list(forecast)
  if key == 'revenue':
    forecast = [
        replace(p, revenue=p.revenue * (1 + value / 100)) for p in forecast
    ]
  elif key == 'margin':
    forecast = [replace(p, ebit_margin=p.ebit_margin + value) for p in forecast]
  elif key == 'workingCapital':
    wc = context.working_capital
    context = replace(context,
                      working_capital=replace(
                          wc,
                          ar_days=wc.ar_days * (1 + value / 100),
                          ap_days=wc.ap_days * (1 - value / 100),
                          inventory_days=wc.inventory_days * (1 + value / 100),
                      ))
  elif key == 'capex':
    capex = context.capex
    context = replace(
        context,
        capex=replace(
            capex,
            maintenance_capex_pct_revenue=capex.maintenance_capex_pct_revenue *
            (1 + value / 100),
            growth_capex_pct_revenue=capex.growth_capex_pct_revenue *
            (1 + value / 100),
        ))
  elif key == 'discountRate':
    base = context.discount_rate
    if base is None:
      base = calculate_wacc(context.wacc).wacc
    context = replace(context, discount_rate=base + value)
  return forecast, context


def percentile(sorted_values: Sequence[float], rank: float) -> float:
  """Linear interpolation between closest ranks; 0 for no values."""
  if not sorted_values:
    return 0.0
  return float(np.percentile(np.asarray(sorted_values), rank * 100))


def summarize(samples: Sequence[float]) -> MonteCarloResult:
  """
  Summary statistics of simulated enterprise values.

  The standard deviation uses an n - 1 denominator (n for a single
  sample). Every statistic is 0 when there are no samples.
  """
  ordered = sorted(samples)
  n = len(ordered)
  if n == 0:
    return MonteCarloResult(iterations=0, median=0.0, p10=0.0, p90=0.0,
                            mean=0.0, std_dev=0.0, samples=())

  values = np.asarray(ordered, dtype=np.float64)
  mean = float(values.mean())
  variance = float(np.sum((values - mean)**2)) / max(n - 1, 1)
  return MonteCarloResult(
      iterations=n,
      median=percentile(ordered, 0.5),
      p10=percentile(ordered, 0.1),
      p90=percentile(ordered, 0.9),
      mean=mean,
      std_dev=math.sqrt(variance),
      samples=tuple(ordered),
  )


def draw_iterations(config_drivers: Sequence[MonteCarloDriver], iterations: int,
                    seed: Optional[int]) -> List[Draws]:
  """Draw every iteration's driver values in order from one stream."""
  rng = Mulberry32(DEFAULT_SEED if seed is None else seed)
  return [
      tuple((driver, sample_driver(driver, rng)) for driver in config_drivers)
      for _ in range(iterations)
  ]


def _value_iteration(draws: Draws, forecast: Sequence[ForecastPeriod],
                     context: ValuationContext) -> float:
  for driver, value in draws:
    forecast, context = apply_driver(driver.key, value, forecast, context)
  return compute_valuation(forecast, context).enterprise_value


def run_monte_carlo(
    forecast: Sequence[ForecastPeriod],
    context: ValuationContext,
    max_workers: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> MonteCarloResult:
  """
  Simulate the enterprise value distribution.

  Args:
    forecast: Forecast periods
    context: Valuation context with the Monte Carlo configuration
    max_workers: Thread count; iterations run serially when None or 1
    should_cancel: Polled before each iteration

  Returns:
    MonteCarloResult over all iterations

  Raises:
    RunCancelledError: If should_cancel returns True
  """
  config = context.monte_carlo
  all_draws = draw_iterations(config.drivers, config.iterations, config.seed)

  def check_cancel(completed: int) -> None:
    if should_cancel is not None and should_cancel():
      raise RunCancelledError(
          f'Monte Carlo run cancelled after {completed} iterations')

  samples: List[float] = []
  if max_workers is None or max_workers <= 1:
    for draws in all_draws:
      check_cancel(len(samples))
      samples.append(_value_iteration(draws, forecast, context))
  else:

    def process_iteration(draws: Draws) -> float:
      check_cancel(len(samples))
      return _value_iteration(draws, forecast, context)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
      futures = [
          executor.submit(process_iteration, draws) for draws in all_draws
      ]
      try:
        for future in as_completed(futures):
          samples.append(future.result())
      except RunCancelledError:
        for future in futures:
          future.cancel()
        raise

  result = summarize(samples)
  logger.debug('Monte Carlo: %d iterations, median %.1f', result.iterations,
               result.median)
  return result


def main() -> None:
  """CLI entrypoint for Monte Carlo simulation."""
  parser = argparse.ArgumentParser(description='DCF Monte Carlo simulation')
  parser.add_argument('--config',
                      type=Path,
                      help='Valuation JSON file (default: example company)')
  parser.add_argument('--iterations',
                      type=int,
                      help='Override the configured iteration count')
  parser.add_argument('--seed', type=int, help='Override the configured seed')
  parser.add_argument('--workers',
                      type=int,
                      default=1,
                      help='Worker threads (default: 1)')
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

  config = context.monte_carlo
  if args.iterations is not None:
    config = replace(config, iterations=args.iterations)
  if args.seed is not None:
    config = replace(config, seed=args.seed)
  context = replace(context, monte_carlo=config)

  logger.info('Running %d iterations (seed %s, %d workers)', config.iterations,
              config.seed if config.seed is not None else DEFAULT_SEED,
              args.workers)
  result = run_monte_carlo(forecast, context, max_workers=args.workers)

  print('\n' + '=' * 60)
  print('Monte Carlo Enterprise Value (millions)')
  print('=' * 60)
  print(f'Iterations: {result.iterations}')
  print(f'P10:        {result.p10:,.1f}')
  print(f'Median:     {result.median:,.1f}')
  print(f'P90:        {result.p90:,.1f}')
  print(f'Mean:       {result.mean:,.1f}')
  print(f'Std Dev:    {result.std_dev:,.1f}')
  print('=' * 60 + '\n')


if __name__ == '__main__':
  main()
