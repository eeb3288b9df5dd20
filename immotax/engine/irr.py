"""After-tax IRR computation using scipy.

Pure functions. No I/O.
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from scipy.optimize import brentq

from immotax.config import settings

logger = logging.getLogger(__name__)

FOUR_PLACES = Decimal("0.0001")
ZERO = Decimal("0")


def npv(rate: float, cash_flows: Sequence[float]) -> float:
    """Net present value of yearly flows, the first one at t=0."""
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(cash_flows))


def compute_irr(cash_flows: Sequence[Decimal]) -> Optional[Decimal]:
    """Compute IRR from a vector of annual cash flows.

    cash_flows[0] should be negative (down payment).
    cash_flows[-1] should include the net sale balance.

    Uses Brent's method on the NPV function over the configured interval.
    Returns None when the series has no root there: fewer than two flows,
    a non-finite flow, or no sign change between the bounds.
    """
    if not cash_flows or len(cash_flows) < 2:
        return None

    # Convert to float for scipy
    cf_float = [float(cf) for cf in cash_flows]
    if not all(math.isfinite(cf) for cf in cf_float):
        logger.warning("IRR skipped: non-finite cash flow in %s", cf_float)
        return None

    low, high = settings.irr_lower_bound, settings.irr_upper_bound
    npv_low, npv_high = npv(low, cf_float), npv(high, cf_float)
    if not (math.isfinite(npv_low) and math.isfinite(npv_high)) or npv_low * npv_high > 0:
        logger.warning("IRR has no solution in [%s, %s] for %s", low, high, cf_float)
        return None

    irr = brentq(npv, low, high, args=(cf_float,), xtol=1e-10, maxiter=1000)
    return Decimal(str(irr)).quantize(FOUR_PLACES, ROUND_HALF_UP)


def compute_equity_multiple(returned: Decimal, down_payment: Decimal) -> Decimal:
    """Cash received over the holding (yearly flows plus net sale balance) per euro put in."""
    if down_payment <= 0:
        return ZERO
    return (returned / down_payment).quantize(FOUR_PLACES, ROUND_HALF_UP)
