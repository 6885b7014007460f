import json
from unittest import mock

import pytest

from dcfbuilder.data_loader import ValuationFileLoader
from dcfbuilder.domain.types import default_forecast
from dcfbuilder.domain.types import ValuationContext


@pytest.fixture
def valuation_file(tmp_path):
  context = ValuationContext.default(as_of='2025-01-01')
  document = {
      'forecast': [p.to_dict() for p in default_forecast(2025)],
      'context': context.to_dict(),
  }
  path = tmp_path / 'example.json'
  path.write_text(json.dumps(document), encoding='utf-8')
  return path


class TestValuationFileLoader:

  def test_load_forecast(self, valuation_file):
    loader = ValuationFileLoader(valuation_file)
    assert loader.load_forecast() == default_forecast(2025)

  def test_load_context(self, valuation_file):
    """Context round-trips and records where it was loaded from."""
    context = ValuationFileLoader(valuation_file).load_context()
    expected = ValuationContext.default(as_of='2025-01-01')

    assert context.metadata.config_path == str(valuation_file)
    assert context.terminal_value == expected.terminal_value
    assert context.monte_carlo == expected.monte_carlo
    assert context.scenarios == expected.scenarios

  def test_document_caching(self, valuation_file):
    """File is read once until the cache is cleared."""
    loader = ValuationFileLoader(valuation_file)

    with mock.patch('json.load', wraps=json.load) as mock_load:
      loader.load_forecast()
      loader.load_context()
      assert mock_load.call_count == 1

      loader.clear_cache()
      loader.load_forecast()
      assert mock_load.call_count == 2

  def test_missing_file(self, tmp_path):
    loader = ValuationFileLoader(tmp_path / 'missing.json')
    with pytest.raises(FileNotFoundError, match='Valuation file not found'):
      loader.load_document()

  def test_not_an_object(self, tmp_path):
    path = tmp_path / 'list.json'
    path.write_text('[]', encoding='utf-8')
    with pytest.raises(ValueError, match='must hold a JSON object'):
      ValuationFileLoader(path).load_document()

  def test_empty_forecast(self, tmp_path):
    path = tmp_path / 'bare.json'
    path.write_text(json.dumps({'context': {'as_of': '2025-01-01'}}),
                    encoding='utf-8')
    loader = ValuationFileLoader(path)

    assert loader.load_forecast() == []
    assert loader.load_context().as_of == '2025-01-01'
