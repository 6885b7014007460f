"""Domain types for the valuation framework."""

from dcfbuilder.domain.errors import ComputationWarning
from dcfbuilder.domain.errors import RootNotBracketedError
from dcfbuilder.domain.errors import ValidationError
from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.outputs import TerminalValueOutput
from dcfbuilder.domain.outputs import ValuationOutputs
from dcfbuilder.domain.types import ForecastPeriod
from dcfbuilder.domain.types import PolicyOutput
from dcfbuilder.domain.types import ValuationContext

__all__ = [
    'ForecastPeriod',
    'ValuationContext',
    'DerivedCashflow',
    'TerminalValueOutput',
    'ValuationOutputs',
    'PolicyOutput',
    'ComputationWarning',
    'ValidationError',
    'RootNotBracketedError',
]
