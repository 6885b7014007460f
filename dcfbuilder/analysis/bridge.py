"""
Cross checks reported next to the enterprise value.

- EV bridge: forecast PV, terminal PV and net debt with their share of EV
- Comps check: peer median multiples and the implied premium
- Sum of the parts: segment EBITDA times segment (or default) exit multiple
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from dcfbuilder.domain.outputs import CompsCheck
from dcfbuilder.domain.outputs import DerivedCashflow
from dcfbuilder.domain.outputs import EvBridgeItem
from dcfbuilder.domain.outputs import SotpOutput
from dcfbuilder.domain.outputs import SotpSegmentValue
from dcfbuilder.domain.types import CompsPeer
from dcfbuilder.domain.types import ValuationContext


def _share_of(value: float, total: float) -> float:
  if total == 0:
    return math.nan
  return value / total


def build_ev_bridge(
    present_value: float,
    terminal_present_value: float,
    enterprise_value: float,
    context: ValuationContext,
) -> List[EvBridgeItem]:
  """
  Itemize the enterprise value.

  Impact is each line's value as a fraction of EV (NaN when EV is 0).
  """
  lines = [
      ('PV of Forecast', present_value),
      ('PV of Terminal Value', terminal_present_value),
      ('Net Debt', -context.net_debt),
  ]
  return [
      EvBridgeItem(label=label,
                   value=value,
                   impact=_share_of(value, enterprise_value))
      for label, value in lines
  ]


def _median(values: Sequence[float]) -> Optional[float]:
  finite = [v for v in values if math.isfinite(v)]
  if not finite:
    return None
  return float(np.median(finite))


def compute_comps_check(
    peers: Sequence[CompsPeer],
    enterprise_value: float,
    cashflows: Sequence[DerivedCashflow],
) -> Optional[CompsCheck]:
  """
  Compare the valuation with peer trading multiples.

  Peer denominators are floored at 1 so tiny or negative EBITDA does not
  blow up the median. The implied multiple uses first-period EBITDA and is
  left empty when that EBITDA is not positive.

  The premium compares multiples (implied EV/EBITDA over the peer median,
  minus 1). The browser calculator this was modeled on divides the raw EV
  by the median multiple instead, which mixes millions with a multiple;
  premiums here are not comparable with that figure.

  Args:
    peers: Comparable companies
    enterprise_value: Valuation EV in millions
    cashflows: Derived cash flows of the valuation

  Returns:
    CompsCheck, or None when there are no peers
  """
  if not peers:
    return None

  median_ev_ebitda = _median(
      [p.enterprise_value / max(p.ebitda, 1) for p in peers])
  median_ev_sales = _median(
      [p.enterprise_value / max(p.revenue, 1) for p in peers])

  implied = None
  if cashflows:
    first = cashflows[0]
    ebitda = first.ebit + first.depreciation
    if ebitda > 0 and math.isfinite(enterprise_value):
      implied = enterprise_value / ebitda

  premium = None
  if implied is not None and median_ev_ebitda:
    premium = implied / median_ev_ebitda - 1

  return CompsCheck(
      median_ev_ebitda=median_ev_ebitda,
      median_ev_sales=median_ev_sales,
      implied_ev_ebitda=implied,
      implied_premium_vs_median=premium,
  )


def compute_sotp(context: ValuationContext) -> Optional[SotpOutput]:
  """
  Value each segment on its own exit multiple.

  Returns:
    SotpOutput, or None when the context has no segments. A non-positive
    total is reported as 0 with zero weights.
  """
  if not context.segments:
    return None

  default_multiple = context.terminal_value.exit_multiple.multiple
  values = []
  for segment in context.segments:
    ebitda = segment.revenue * segment.ebitda_margin / 100
    multiple = (segment.exit_multiple
                if segment.exit_multiple is not None else default_multiple)
    values.append((segment, ebitda * multiple))

  total = sum(value for _, value in values)
  if total <= 0:
    return SotpOutput(
        total_value=0.0,
        segments=tuple(
            SotpSegmentValue(segment=s, value=v, weight=0.0)
            for s, v in values),
    )

  return SotpOutput(
      total_value=total,
      segments=tuple(
          SotpSegmentValue(segment=s, value=v, weight=v / total)
          for s, v in values),
  )
