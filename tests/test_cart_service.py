from datetime import timedelta

import pytest

from shopcore.data.models.cart import CartModel
from shopcore.data.models.variant import VariantModel
from shopcore.domain.errors import (
    Conflict,
    Ineligible,
    InsufficientInventory,
    InvalidRequest,
    NotFound,
)
from shopcore.services.cart_service import CartService
from tests.fakes import STORE_ID, add_discount


@pytest.fixture
def svc(db, store):
    return CartService(db)


@pytest.fixture
def cart(svc, now):
    return svc.create_cart(STORE_ID, "buyer@example.com", now)


def test_create_cart(svc, now):
    cart = svc.create_cart(STORE_ID, "buyer@example.com", now)

    assert cart["status"] == "open"
    assert cart["items"] == []
    assert cart["totals"]["total_cents"] == 0
    assert cart["expires_at"] == now + timedelta(minutes=30)


def test_create_cart_requires_email(svc, now):
    with pytest.raises(InvalidRequest):
        svc.create_cart(STORE_ID, "not-an-email", now)


def test_create_cart_unknown_store(db, now):
    with pytest.raises(NotFound):
        CartService(db).create_cart("ghost", "buyer@example.com", now)


def test_replace_items_snapshots_prices(svc, cart, now):
    view = svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 2}, {"sku": "C", "qty": 1}], now)

    assert [(i["sku"], i["qty"], i["unit_price_cents"]) for i in view["items"]] == [
        ("A", 2, 1000),
        ("C", 1, 1500),
    ]
    assert view["totals"]["subtotal_cents"] == 3500
    assert view["totals"]["total_cents"] == 3500


def test_replace_items_replaces_previous_set(svc, cart, now):
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 2}], now)
    view = svc.replace_items(STORE_ID, cart["id"], [{"sku": "B", "qty": 1}], now)

    assert [i["sku"] for i in view["items"]] == ["B"]
    assert view["totals"]["subtotal_cents"] == 2500


def test_replace_items_merges_repeated_skus(svc, cart, now):
    view = svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 2}, {"sku": "A", "qty": 1}], now)

    assert [(i["sku"], i["qty"]) for i in view["items"]] == [("A", 3)]


def test_replace_items_is_all_or_nothing(svc, cart, now):
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)

    with pytest.raises(InsufficientInventory) as exc:
        svc.replace_items(STORE_ID, cart["id"], [{"sku": "C", "qty": 1}, {"sku": "B", "qty": 3}], now)
    assert exc.value.sku == "B"

    view = svc.get_cart(STORE_ID, cart["id"])
    assert [i["sku"] for i in view["items"]] == ["A"]


def test_replace_items_unknown_sku(svc, cart, now):
    with pytest.raises(NotFound, match="SKU not found: Z"):
        svc.replace_items(STORE_ID, cart["id"], [{"sku": "Z", "qty": 1}], now)


def test_replace_items_inactive_variant(db, svc, cart, now):
    variant = db.query(VariantModel).filter_by(store_id=STORE_ID, sku="C").one()
    variant.status = "archived"
    db.commit()

    with pytest.raises(InvalidRequest, match="not active"):
        svc.replace_items(STORE_ID, cart["id"], [{"sku": "C", "qty": 1}], now)


@pytest.mark.parametrize("items", [[], [{"sku": "A", "qty": 0}], [{"sku": "", "qty": 1}], [{"qty": 1}]])
def test_replace_items_rejects_malformed(svc, cart, now, items):
    with pytest.raises(InvalidRequest):
        svc.replace_items(STORE_ID, cart["id"], items, now)


def test_replace_items_on_checked_out_cart(db, svc, cart, now):
    db.get(CartModel, cart["id"]).status = "checked_out"
    db.commit()

    with pytest.raises(Conflict):
        svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)


def test_replace_items_past_expiry(svc, cart, now):
    with pytest.raises(Conflict, match="expired"):
        svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now + timedelta(minutes=31))


def test_cart_is_scoped_to_store(svc, cart, now):
    with pytest.raises(NotFound):
        svc.get_cart("other-store", cart["id"])


def test_apply_discount_uses_canonical_code(db, svc, cart, now):
    discount = add_discount(db, code="SAVE10", value=10)
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 3}], now)

    result = svc.apply_discount(STORE_ID, cart["id"], "  save10 ", now)

    assert result["discount"] == {"code": "SAVE10", "type": "percentage", "amount_cents": 300}
    assert result["totals"]["total_cents"] == 2700

    stored = db.get(CartModel, cart["id"])
    db.refresh(stored)
    assert (stored.discount_code, stored.discount_id) == ("SAVE10", discount.id)


def test_apply_discount_unknown_code(svc, cart, now):
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)
    with pytest.raises(NotFound):
        svc.apply_discount(STORE_ID, cart["id"], "NOPE", now)


def test_apply_discount_on_empty_cart(db, svc, cart, now):
    add_discount(db)
    with pytest.raises(InvalidRequest, match="empty"):
        svc.apply_discount(STORE_ID, cart["id"], "SAVE10", now)


def test_apply_discount_surfaces_ineligibility(db, svc, cart, now):
    add_discount(db, min_purchase_cents=100000)
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)

    with pytest.raises(Ineligible):
        svc.apply_discount(STORE_ID, cart["id"], "SAVE10", now)


def test_refresh_recalculates_discount(db, svc, cart, now):
    add_discount(db, value=10)
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)
    svc.apply_discount(STORE_ID, cart["id"], "SAVE10", now)

    view = svc.replace_items(STORE_ID, cart["id"], [{"sku": "C", "qty": 2}], now)

    assert view["discount"]["amount_cents"] == 300
    assert view["totals"]["total_cents"] == 2700


def test_refresh_silently_drops_ineligible_discount(db, svc, cart, now):
    add_discount(db, min_purchase_cents=2000)
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "C", "qty": 2}], now)
    svc.apply_discount(STORE_ID, cart["id"], "SAVE10", now)

    view = svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 1}], now)

    assert view["discount"] is None
    assert view["totals"]["discount_cents"] == 0

    stored = db.get(CartModel, cart["id"])
    db.refresh(stored)
    assert stored.discount_id is None and stored.discount_code is None


def test_remove_discount_keeps_items(db, svc, cart, now):
    add_discount(db)
    svc.replace_items(STORE_ID, cart["id"], [{"sku": "A", "qty": 2}], now)
    svc.apply_discount(STORE_ID, cart["id"], "SAVE10", now)

    result = svc.remove_discount(STORE_ID, cart["id"], now)

    assert result["discount"] is None
    assert result["totals"] == {
        "subtotal_cents": 2000,
        "discount_cents": 0,
        "shipping_cents": 0,
        "tax_cents": 0,
        "total_cents": 2000,
    }
    view = svc.get_cart(STORE_ID, cart["id"])
    assert [(i["sku"], i["qty"]) for i in view["items"]] == [("A", 2)]
