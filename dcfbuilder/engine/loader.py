"""
Valuation engine selection.

Tries backends in order, preferred first, and returns the first one that
initializes. Lives outside the arithmetic core: only the command-line
entrypoints import this module.

Usage:
  result = asyncio.run(load_valuation_engine(preferred='numpy'))
  output = asyncio.run(result.engine.npv(dcf_input))
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import Dict, List

from dcfbuilder.domain.errors import EngineLoadError
from dcfbuilder.engine.contract import ValuationEngine
from dcfbuilder.engine.decimal_engine import create_decimal_engine
from dcfbuilder.engine.numpy_engine import create_numpy_engine

logger = logging.getLogger(__name__)

ENGINE_FACTORIES: Dict[str, Callable[[], Awaitable[ValuationEngine]]] = {
    'numpy': create_numpy_engine,
    'decimal': create_decimal_engine,
}


@dataclass(frozen=True)
class EngineLoadResult:
  engine: ValuationEngine
  kind: str


def _attempt_order(preferred: str) -> List[str]:
  if preferred not in ENGINE_FACTORIES:
    raise KeyError(f"Unknown engine: '{preferred}'. "
                   f'Available: {list(ENGINE_FACTORIES.keys())}')
  return [preferred] + [k for k in ENGINE_FACTORIES if k != preferred]


async def load_valuation_engine(
    preferred: str = 'numpy',
    allow_fallback: bool = True,
) -> EngineLoadResult:
  """
  Load the first backend that initializes.

  Args:
    preferred: Backend tried first
    allow_fallback: Whether to try the remaining backends on failure

  Returns:
    EngineLoadResult with the engine and the backend name

  Raises:
    KeyError: If preferred is not a known backend
    EngineLoadError: If no attempted backend could be initialized
  """
  attempts = _attempt_order(preferred)
  if not allow_fallback:
    attempts = attempts[:1]

  last_error = None
  for kind in attempts:
    try:
      engine = await ENGINE_FACTORIES[kind]()
    except EngineLoadError as e:
      logger.warning('Engine %s failed to load: %s', kind, e)
      last_error = e
      continue
    logger.debug('Loaded %s valuation engine', kind)
    return EngineLoadResult(engine=engine, kind=kind)

  raise EngineLoadError(
      f'Unable to load valuation engine (tried {attempts})') from last_error
