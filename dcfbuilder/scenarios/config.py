"""
Scenario definitions for valuation experiments.

A ScenarioDefinition is a serializable (JSON-friendly) set of additive
deltas applied on top of a forecast and context before valuing. Rates and
margins are in percent points.
"""

from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
import json
from typing import Any, Tuple


@dataclass(frozen=True)
class ScenarioAdjustments:
  '''
  Additive deltas applied by a scenario overlay.

  Attributes:
    revenue_growth_delta_pct: Added to each period's revenue growth rate
    margin_delta_pct: Added to each period's EBIT margin
    exit_multiple_delta: Added to the exit multiple
    discount_rate_delta_pct: Added to the discount rate
  '''
  revenue_growth_delta_pct: float = 0.0
  margin_delta_pct: float = 0.0
  exit_multiple_delta: float = 0.0
  discount_rate_delta_pct: float = 0.0


@dataclass(frozen=True)
class ScenarioDefinition:
  """
  Named scenario.

  Attributes:
    id: Identifier used for lookup and recorded in run metadata
    label: Human-readable scenario name
    adjustments: Deltas applied by the overlay
  """
  id: str
  label: str
  adjustments: ScenarioAdjustments = field(
      default_factory=ScenarioAdjustments)

  @classmethod
  def base(cls) -> 'ScenarioDefinition':
    """Scenario with no adjustments."""
    return cls(id='base', label='Base')

  @classmethod
  def bull(cls) -> 'ScenarioDefinition':
    """
    Upside scenario.

    Uses:
      - +2pp revenue growth
      - +1pp EBIT margin
      - +1.0x exit multiple
      - -0.5pp discount rate
    """
    return cls(id='bull',
               label='Bull',
               adjustments=ScenarioAdjustments(
                   revenue_growth_delta_pct=2.0,
                   margin_delta_pct=1.0,
                   exit_multiple_delta=1.0,
                   discount_rate_delta_pct=-0.5,
               ))

  @classmethod
  def bear(cls) -> 'ScenarioDefinition':
    """
    Downside scenario.

    Uses:
      - -2pp revenue growth
      - -1.5pp EBIT margin
      - -1.0x exit multiple
      - +0.75pp discount rate
    """
    return cls(id='bear',
               label='Bear',
               adjustments=ScenarioAdjustments(
                   revenue_growth_delta_pct=-2.0,
                   margin_delta_pct=-1.5,
                   exit_multiple_delta=-1.0,
                   discount_rate_delta_pct=0.75,
               ))

  @classmethod
  def presets(cls) -> Tuple['ScenarioDefinition', ...]:
    return (cls.base(), cls.bull(), cls.bear())

  def to_dict(self) -> dict[str, Any]:
    """Convert to dictionary."""
    return asdict(self)

  def to_json(self) -> str:
    """Serialize to JSON string."""
    return json.dumps(self.to_dict(), indent=2)

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> 'ScenarioDefinition':
    """Create from dictionary."""
    return cls(
        id=data['id'],
        label=data.get('label', data['id']),
        adjustments=ScenarioAdjustments(**data.get('adjustments', {})),
    )

  @classmethod
  def from_json(cls, json_str: str) -> 'ScenarioDefinition':
    """Create from JSON string."""
    return cls.from_dict(json.loads(json_str))
