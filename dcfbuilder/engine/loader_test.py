import asyncio

import pytest

from dcfbuilder.domain.errors import EngineLoadError
from dcfbuilder.engine import loader
from dcfbuilder.engine.decimal_engine import create_decimal_engine
from dcfbuilder.engine.decimal_engine import DecimalEngine
from dcfbuilder.engine.numpy_engine import NumpyEngine


async def _failing_factory():
  raise EngineLoadError('backend unavailable')


class TestLoadValuationEngine:
  """Tests for backend selection and fallback."""

  def test_prefers_numpy(self):
    result = asyncio.run(loader.load_valuation_engine())

    assert result.kind == 'numpy'
    assert isinstance(result.engine, NumpyEngine)

  def test_explicit_decimal(self):
    result = asyncio.run(loader.load_valuation_engine('decimal'))

    assert result.kind == 'decimal'
    assert isinstance(result.engine, DecimalEngine)

  def test_falls_back_on_load_error(self, monkeypatch):
    """A failing preferred backend moves on to the next one."""
    monkeypatch.setattr(loader, 'ENGINE_FACTORIES', {
        'numpy': _failing_factory,
        'decimal': create_decimal_engine,
    })
    result = asyncio.run(loader.load_valuation_engine('numpy'))

    assert result.kind == 'decimal'

  def test_no_fallback_when_disabled(self, monkeypatch):
    monkeypatch.setattr(loader, 'ENGINE_FACTORIES', {
        'numpy': _failing_factory,
        'decimal': create_decimal_engine,
    })
    with pytest.raises(EngineLoadError):
      asyncio.run(loader.load_valuation_engine('numpy', allow_fallback=False))

  def test_all_backends_fail(self, monkeypatch):
    """The last load error is chained."""
    monkeypatch.setattr(loader, 'ENGINE_FACTORIES', {
        'numpy': _failing_factory,
        'decimal': _failing_factory,
    })
    with pytest.raises(EngineLoadError) as exc_info:
      asyncio.run(loader.load_valuation_engine())

    assert isinstance(exc_info.value.__cause__, EngineLoadError)

  def test_unknown_engine(self):
    with pytest.raises(KeyError, match='Unknown engine'):
      asyncio.run(loader.load_valuation_engine('gpu'))
