"""
Error taxonomy for the valuation framework.

Fatal conditions are raised as exceptions. Non-fatal conditions found while
valuing are collected as ComputationWarning records on the outputs.
"""

from dataclasses import dataclass
from dataclasses import field
from typing import Any, Dict


class DcfError(Exception):
  """Base class for all framework errors."""


class ValidationError(DcfError, ValueError):
  """Malformed kernel input, raised before any arithmetic."""


class RootNotBracketedError(DcfError, ArithmeticError):
  """NPV has the same sign at both ends of the IRR search bracket."""

  def __init__(self, message: str = 'IRR not found'):
    super().__init__(message)


class NumericOverflowError(DcfError, ArithmeticError):
  """A discount factor left the representable range."""


class EngineLoadError(DcfError, RuntimeError):
  """A valuation engine backend could not be initialized."""


class RunCancelledError(DcfError):
  """A sensitivity or Monte Carlo run was cancelled by its caller."""


@dataclass(frozen=True)
class ComputationWarning:
  '''
  Non-fatal issue found while computing a valuation.

  Attributes:
    code: Machine-readable code (e.g., 'growth_exceeds_discount')
    message: Human-readable explanation
    details: Additional context
  '''
  code: str
  message: str
  details: Dict[str, Any] = field(default_factory=dict, compare=False)

  def __str__(self) -> str:
    return self.message
