"""
Scheme Evaluator: promotional slabs for a resolved order line.

The eligible slab is the richest one the order qualifies for (highest min_qty not above
the order quantity). The percentage is recomputed from the actual order quantity instead
of trusting the stored value.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple
import logging

from ...config import Settings, get_settings
from ...errors import MasterDataError
from ...models import Scheme, SchemeSlab
from ..core.structures import SchemeResult, UpsellSuggestion
from ..text.normalizer import compact, normalize_text

logger = logging.getLogger(__name__)


def scheme_percent(free_qty: int, order_qty: int) -> float:
    """free/order*100 rounded half-up to 2 decimals (5 free on 80 → 6.25)."""
    if order_qty <= 0:
        return 0.0
    value = Decimal(free_qty) / Decimal(order_qty) * Decimal(100)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _matches_product(scheme: Scheme, product_code: Optional[str], item_desc: Optional[str]) -> bool:
    if product_code and scheme.product_code and scheme.product_code.strip().upper() == product_code.strip().upper():
        return True
    if item_desc and scheme.product_name:
        a, b = normalize_text(item_desc), normalize_text(scheme.product_name)
        return bool(a) and (a == b or compact(a) == compact(b))
    return False


def _applies(
    scheme: Scheme,
    product_code: Optional[str],
    item_desc: Optional[str],
    division: Optional[str],
    customer_code: Optional[str],
) -> bool:
    if not scheme.is_active or not scheme.slabs:
        return False
    if not _matches_product(scheme, product_code, item_desc):
        return False
    if scheme.applicable_customers:
        allowed = {c.strip().upper() for c in scheme.applicable_customers}
        if not customer_code or customer_code.strip().upper() not in allowed:
            return False
    if division and scheme.division and scheme.division.strip().upper() != division.strip().upper():
        return False
    return True


def eligible_slab(slabs: Sequence[SchemeSlab], order_qty: int) -> Optional[SchemeSlab]:
    qualifying = [s for s in slabs if s.min_qty <= order_qty]
    if not qualifying:
        return None
    return max(qualifying, key=lambda s: s.min_qty)


def find_applicable_schemes(
    schemes: Optional[Sequence[Scheme]],
    product_code: Optional[str] = None,
    item_desc: Optional[str] = None,
    division: Optional[str] = None,
    customer_code: Optional[str] = None,
) -> List[Scheme]:
    if schemes is None:
        raise MasterDataError("schemes")
    return [s for s in schemes if _applies(s, product_code, item_desc, division, customer_code)]


def apply_scheme(
    product_code: Optional[str],
    order_qty: Optional[int],
    schemes: Optional[Sequence[Scheme]],
    item_desc: Optional[str] = None,
    division: Optional[str] = None,
    customer_code: Optional[str] = None,
) -> SchemeResult:
    """
    Find the scheme slab an order line earns.

    Args:
        product_code: Resolved product code
        order_qty: Ordered quantity
        schemes: Scheme master snapshot (must not be None)
        item_desc: Line description, matched against scheme product names
        division: Only checked when given
        customer_code: Required when a scheme restricts its customers

    Returns:
        SchemeResult; when several schemes apply, the one granting the most free units wins
    """
    applicable = find_applicable_schemes(schemes, product_code, item_desc, division, customer_code)
    if not applicable or not order_qty or order_qty <= 0:
        return SchemeResult(scheme_applied=False)

    best: Optional[Tuple[Scheme, SchemeSlab]] = None
    for scheme in applicable:
        slab = eligible_slab(scheme.slabs, order_qty)
        if slab is not None and (best is None or slab.free_qty > best[1].free_qty):
            best = (scheme, slab)

    if best is None:
        return SchemeResult(
            scheme_applied=False,
            available_slabs=tuple(sorted(applicable[0].slabs, key=lambda s: s.min_qty)),
        )

    scheme, slab = best
    percent = scheme_percent(slab.free_qty, order_qty)
    logger.info(
        f"Scheme applied to {scheme.product_code}: {order_qty}+{slab.free_qty} "
        f"(slab min {slab.min_qty}, {percent}%)"
    )
    return SchemeResult(
        scheme_applied=True,
        free_qty=slab.free_qty,
        scheme_percent=percent,
        applied_slab=slab,
        available_slabs=tuple(sorted(scheme.slabs, key=lambda s: s.min_qty)),
    )


def find_upsell_opportunity(
    product_code: Optional[str],
    order_qty: Optional[int],
    schemes: Optional[Sequence[Scheme]],
    item_desc: Optional[str] = None,
    division: Optional[str] = None,
    customer_code: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Optional[UpsellSuggestion]:
    """
    Suggest topping the order up to the next slab when the extra quantity is small.

    Small means at most settings.upsell_max_ratio of the current order, or at most
    settings.upsell_max_units units.
    """
    cfg = get_settings(settings)
    applicable = find_applicable_schemes(schemes, product_code, item_desc, division, customer_code)
    if not applicable or not order_qty or order_qty <= 0:
        return None

    best: Optional[UpsellSuggestion] = None
    for scheme in applicable:
        current = eligible_slab(scheme.slabs, order_qty)
        higher = sorted((s for s in scheme.slabs if s.min_qty > order_qty), key=lambda s: s.min_qty)
        if not higher:
            continue
        nxt = higher[0]
        additional = nxt.min_qty - order_qty
        if additional > order_qty * cfg.upsell_max_ratio and additional > cfg.upsell_max_units:
            continue
        suggestion = UpsellSuggestion(
            target_qty=nxt.min_qty,
            additional_qty=additional,
            free_qty=nxt.free_qty,
            current_free_qty=current.free_qty if current else 0,
        )
        if best is None or suggestion.additional_qty < best.additional_qty:
            best = suggestion

    if best is not None:
        logger.info(
            f"Upsell for {product_code}: order {best.target_qty} (+{best.additional_qty}) "
            f"to get {best.free_qty} free"
        )
    return best
