"""
Scenario definitions and overlay.

Only the serializable definitions are re-exported here; import the overlay
directly:
  from dcfbuilder.scenarios.registry import apply_scenario
"""

from dcfbuilder.scenarios.config import ScenarioAdjustments
from dcfbuilder.scenarios.config import ScenarioDefinition

__all__ = [
  'ScenarioAdjustments',
  'ScenarioDefinition',
]
