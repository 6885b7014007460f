'''DCF calculation engine: cash flow derivation, discounting and the exact
NPV/IRR kernel.'''

from dcfbuilder.engine.cashflows import derive_cashflows
from dcfbuilder.engine.contract import DcfInput
from dcfbuilder.engine.contract import DcfOutput
from dcfbuilder.engine.contract import ValuationEngine
from dcfbuilder.engine.discounting import discount_cashflows
from dcfbuilder.engine.money import Money

__all__ = [
    'derive_cashflows',
    'discount_cashflows',
    'DcfInput',
    'DcfOutput',
    'Money',
    'ValuationEngine',
]
