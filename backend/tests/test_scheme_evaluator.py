"""Scheme slabs, percentage rounding and upsell suggestions."""
import pytest

from orderlens.errors import MasterDataError
from orderlens.models import Scheme
from orderlens.processors.matching import apply_scheme, find_upsell_opportunity, scheme_percent


def test_richest_eligible_slab(schemes):
    result = apply_scheme("205116", 80, schemes)
    assert result.scheme_applied
    assert result.free_qty == 5
    assert result.applied_slab.min_qty == 50
    assert result.scheme_percent == 6.25


def test_percentage_recomputed_from_order_quantity(schemes):
    """The stored 12% is ignored; 12 free on 100 is recomputed."""
    result = apply_scheme("205116", 100, schemes)
    assert result.free_qty == 12
    assert result.scheme_percent == 12.0


def test_below_every_slab(schemes):
    result = apply_scheme("205116", 30, schemes)
    assert not result.scheme_applied
    assert [s.min_qty for s in result.available_slabs] == [50, 100]


def test_percent_rounds_half_up():
    assert scheme_percent(1, 160) == 0.63
    assert scheme_percent(1, 6) == 16.67
    assert scheme_percent(1, 0) == 0.0


def test_scheme_matched_by_description(schemes):
    result = apply_scheme(None, 60, schemes, item_desc="arbitel 40mg tab")
    assert result.scheme_applied
    assert result.free_qty == 5


def test_customer_restriction(schemes):
    assert not apply_scheme("110011", 10, schemes, customer_code="C001").scheme_applied
    assert not apply_scheme("110011", 10, schemes).scheme_applied
    assert apply_scheme("110011", 10, schemes, customer_code="C002").free_qty == 2


def test_division_filter(schemes):
    assert apply_scheme("205116", 80, schemes, division="cardio").scheme_applied
    assert not apply_scheme("205116", 80, schemes, division="DIABETIC").scheme_applied


def test_inactive_scheme_ignored():
    scheme = Scheme.model_validate({
        "productCode": "X1", "isActive": False, "slabs": [{"minQty": 10, "freeQty": 1}],
    })
    assert not apply_scheme("X1", 20, [scheme]).scheme_applied


def test_missing_scheme_list_raises():
    with pytest.raises(MasterDataError):
        apply_scheme("205116", 80, None)


def test_upsell_to_next_slab(schemes, settings):
    upsell = find_upsell_opportunity("205116", 80, schemes, settings=settings)
    assert upsell.target_qty == 100
    assert upsell.additional_qty == 20
    assert upsell.free_qty == 12
    assert upsell.current_free_qty == 5

    upsell = find_upsell_opportunity("205116", 30, schemes, settings=settings)
    assert upsell.target_qty == 50
    assert upsell.current_free_qty == 0


def test_no_upsell_when_gap_too_large(settings):
    scheme = Scheme.model_validate({"productCode": "X1", "slabs": [{"minQty": 100, "freeQty": 10}]})
    assert find_upsell_opportunity("X1", 10, [scheme], settings=settings) is None
    assert find_upsell_opportunity("205116", 150, [], settings=settings) is None
