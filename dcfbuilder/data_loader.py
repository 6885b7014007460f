"""
Caching loader for valuation files.

A valuation file is a JSON object with a forecast and a context:

  {"forecast": [{"label": "FY2025", "year_offset": 1, ...}, ...],
   "context": {"as_of": "2025-01-01", ...}}

Usage:
  loader = ValuationFileLoader(Path('configs/example.json'))
  forecast = loader.load_forecast()
  context = loader.load_context()
"""

from dataclasses import replace
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import ValuationContext

logger = logging.getLogger(__name__)


class ValuationFileLoader:
  """
  Cached loader for a single valuation file.

  The file is read once; forecast and context are parsed from the cached
  document on each call.
  """

  def __init__(self, path: Path):
    """
    Initialize loader.

    Args:
      path: Path to the JSON valuation file
    """
    self.path = Path(path)
    self._document: Optional[Dict[str, Any]] = None

  def load_document(self) -> Dict[str, Any]:
    """
    Load and cache the raw JSON document.

    Raises:
      FileNotFoundError: If the file does not exist
      ValueError: If the document is not a JSON object
    """
    if self._document is not None:
      return self._document

    if not self.path.exists():
      raise FileNotFoundError(f'Valuation file not found: {self.path}')

    with self.path.open(encoding='utf-8') as f:
      document = json.load(f)
    if not isinstance(document, dict):
      raise ValueError(f'Valuation file must hold a JSON object: {self.path}')

    logger.debug('Loaded valuation file %s', self.path)
    self._document = document
    return document

  def load_forecast(self) -> List[ForecastPeriod]:
    return [
        ForecastPeriod.from_dict(p)
        for p in self.load_document().get('forecast', [])
    ]

  def load_context(self) -> ValuationContext:
    """Parse the context; records the file path in the context metadata."""
    context = ValuationContext.from_dict(self.load_document()['context'])
    if context.metadata.config_path is None:
      context = replace(context,
                        metadata=replace(context.metadata,
                                         config_path=str(self.path)))
    return context

  def clear_cache(self) -> None:
    self._document = None
