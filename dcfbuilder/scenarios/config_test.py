import json

from dcfbuilder.scenarios.config import ScenarioAdjustments
from dcfbuilder.scenarios.config import ScenarioDefinition


class TestScenarioDefinition:
  """Tests for ScenarioDefinition presets and serialization."""

  def test_base_has_no_adjustments(self):
    scenario = ScenarioDefinition.base()

    assert scenario.id == 'base'
    assert scenario.adjustments == ScenarioAdjustments()

  def test_bull_and_bear_are_opposed(self):
    """Bull raises growth and lowers the discount rate; bear the reverse."""
    bull = ScenarioDefinition.bull().adjustments
    bear = ScenarioDefinition.bear().adjustments

    assert bull.revenue_growth_delta_pct > 0 > bear.revenue_growth_delta_pct
    assert bull.margin_delta_pct > 0 > bear.margin_delta_pct
    assert bull.discount_rate_delta_pct < 0 < bear.discount_rate_delta_pct

  def test_presets_order(self):
    assert [s.id for s in ScenarioDefinition.presets()] == [
        'base', 'bull', 'bear'
    ]

  def test_json_round_trip(self):
    scenario = ScenarioDefinition.bear()

    restored = ScenarioDefinition.from_json(scenario.to_json())

    assert restored == scenario

  def test_from_dict_defaults(self):
    """Missing label falls back to the id; missing deltas are zero."""
    scenario = ScenarioDefinition.from_dict({'id': 'flat'})

    assert scenario.label == 'flat'
    assert scenario.adjustments == ScenarioAdjustments()

  def test_to_json_is_plain_json(self):
    data = json.loads(ScenarioDefinition.bull().to_json())

    assert data['adjustments']['exit_multiple_delta'] == 1.0
