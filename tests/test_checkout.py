from datetime import timedelta

import pytest

from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.domain.errors import (
    Conflict,
    InsufficientInventory,
    InvalidRequest,
    NotFound,
    ProcessorError,
)
from shopcore.repos.cart_repo import CartRepo
from shopcore.services.cart_service import CartService
from shopcore.services.checkout_service import CheckoutService
from shopcore.services.inventory_ledger import InventoryLedger
from tests.fakes import STORE_ID, add_discount, seed_store

SUCCESS = "https://shop.example/thanks"
CANCEL = "https://shop.example/cart"


@pytest.fixture
def carts(db, store):
    return CartService(db)


@pytest.fixture
def checkout(db, store, processor):
    return CheckoutService(db, processor_factory=processor)


def _cart_with(carts, now, items):
    cart = carts.create_cart(STORE_ID, "buyer@example.com", now)
    carts.replace_items(STORE_ID, cart["id"], items, now)
    return cart["id"]


def _reserved(db, sku):
    return InventoryLedger(db).get(STORE_ID, sku).reserved


def test_checkout_reserves_and_opens_session(db, carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 2}, {"sku": "C", "qty": 3}])

    result = checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert result == {
        "checkout_url": "https://pay.example/cs_test_1",
        "stripe_checkout_session_id": "cs_test_1",
    }
    assert _reserved(db, "A") == 2
    assert _reserved(db, "C") == 3

    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    assert cart.status == "checked_out"
    assert cart.stripe_checkout_session_id == "cs_test_1"
    assert [i.reserved_qty for i in cart.items] == [2, 3]

    params = processor.sessions[0]
    assert params["metadata"] == {"cart_id": cart_id, "store_id": STORE_ID}
    assert [(li["price_data"]["unit_amount"], li["quantity"]) for li in params["line_items"]] == [
        (1000, 2),
        (1500, 3),
    ]
    assert "discounts" not in params


def test_checkout_rolls_back_on_insufficient_inventory(db, carts, checkout, processor, now):
    # scenario: A qty 5 of 5 available, B qty 3 with only 2 available
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 5}, {"sku": "B", "qty": 2}])
    db.query(CartItemModel).filter_by(cart_id=cart_id, sku="B").update({"qty": 3})
    db.commit()

    with pytest.raises(InsufficientInventory) as exc:
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert exc.value.sku == "B"
    assert _reserved(db, "A") == 0
    assert _reserved(db, "B") == 0
    assert processor.sessions == []

    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    assert cart.status == "open"
    assert all(i.reserved_qty == 0 for i in cart.items)


def test_insufficient_inventory_when_stock_sold_since_cart_update(db, carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 2}, {"sku": "C", "qty": 1}])
    InventoryLedger(db).reserve(STORE_ID, "C", 10, now)
    db.commit()

    with pytest.raises(InsufficientInventory):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0
    assert _reserved(db, "C") == 10


def test_processor_failure_releases_everything(db, carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}, {"sku": "C", "qty": 2}])
    processor.fail_session = True

    with pytest.raises(ProcessorError):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0
    assert _reserved(db, "C") == 0
    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    assert cart.status == "open"


def test_unexpected_error_still_releases(db, carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])
    processor.session_error = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0


def test_coupon_failure_releases(db, carts, checkout, processor, now):
    add_discount(db, value=10)
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 2}])
    carts.apply_discount(STORE_ID, cart_id, "SAVE10", now)
    processor.fail_coupon = True

    with pytest.raises(ProcessorError, match="Failed to apply discount"):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0


def test_discount_becomes_processor_coupon(db, carts, checkout, processor, now):
    discount = add_discount(db, value=10)
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 3}])
    carts.apply_discount(STORE_ID, cart_id, "save10", now)

    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert processor.coupons[0]["amount_off"] == 300
    params = processor.sessions[0]
    assert params["discounts"] == [{"coupon": "coupon_1"}]
    assert params["metadata"]["discount_id"] == discount.id
    assert params["metadata"]["discount_code"] == "SAVE10"

    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    assert cart.discount_amount_cents == 300


def test_stale_discount_is_dropped_not_fatal(db, carts, checkout, processor, now):
    discount = add_discount(db, value=10)
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 3}])
    carts.apply_discount(STORE_ID, cart_id, "SAVE10", now)

    discount.status = "inactive"
    db.commit()

    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert processor.coupons == []
    assert "discount_id" not in processor.sessions[0]["metadata"]
    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    assert cart.discount_id is None
    assert cart.discount_amount_cents == 0


def test_collect_shipping_adds_default_rate(carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])

    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, collect_shipping=True,
                      shipping_countries=["US", "CA"], now=now)

    params = processor.sessions[0]
    assert params["shipping_address_collection"] == {"allowed_countries": ["US", "CA"]}
    assert params["shipping_options"][0]["shipping_rate_data"]["fixed_amount"]["amount"] == 0


def test_second_checkout_conflicts(carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])
    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    with pytest.raises(Conflict):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)


def test_expired_cart_cannot_check_out(db, carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])

    with pytest.raises(Conflict, match="expired"):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now + timedelta(minutes=45))
    assert _reserved(db, "A") == 0


def test_empty_cart(carts, checkout, now):
    cart = carts.create_cart(STORE_ID, "buyer@example.com", now)
    with pytest.raises(InvalidRequest, match="empty"):
        checkout.checkout(STORE_ID, cart["id"], SUCCESS, CANCEL, now=now)


def test_urls_required(carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])
    with pytest.raises(InvalidRequest, match="success_url"):
        checkout.checkout(STORE_ID, cart_id, "", CANCEL, now=now)
    with pytest.raises(InvalidRequest, match="cancel_url"):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, "", now=now)


def test_store_without_processor(db, processor, now):
    store = seed_store(db, store_id="store-2")
    store.stripe_secret_key = None
    db.commit()

    carts = CartService(db)
    cart = carts.create_cart("store-2", "buyer@example.com", now)
    carts.replace_items("store-2", cart["id"], [{"sku": "A", "qty": 1}], now)

    with pytest.raises(InvalidRequest, match="not connected"):
        CheckoutService(db, processor_factory=processor).checkout("store-2", cart["id"], SUCCESS, CANCEL, now=now)


def test_unknown_cart(checkout, now):
    with pytest.raises(NotFound):
        checkout.checkout(STORE_ID, "missing", SUCCESS, CANCEL, now=now)


def test_caller_shipping_options_replace_default(carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])
    express = [{
        "shipping_rate_data": {
            "type": "fixed_amount",
            "fixed_amount": {"amount": 1500, "currency": "usd"},
            "display_name": "Express",
        },
    }]

    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, collect_shipping=True,
                      shipping_options=express, now=now)

    assert processor.sessions[0]["shipping_options"] == express


def test_shipping_options_ignored_without_collection(carts, checkout, processor, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 1}])

    checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, shipping_options=[{"shipping_rate": "shr_1"}], now=now)

    assert "shipping_options" not in processor.sessions[0]


def test_losing_the_transition_to_a_sweep_releases_once(monkeypatch, db, carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 2}, {"sku": "C", "qty": 3}])
    repo = CartRepo(db)
    ledger = InventoryLedger(db)

    def swept_meanwhile(cid, session_id, discount_cents):
        #a sweep expires the cart and frees its holds before our update lands
        repo.mark_expired(cid)
        for item in repo.get_cart_items(cid):
            qty = repo.claim_held(item.id)
            ledger.release(STORE_ID, item.sku, qty, now)
        db.commit()
        return 0

    monkeypatch.setattr(checkout.repo, "mark_checked_out", swept_meanwhile)

    with pytest.raises(Conflict, match="not open"):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0
    assert _reserved(db, "C") == 0
    assert _status(db, cart_id) == "expired"
    for sku in ("A", "C"):
        releases = [log for log in ledger.repo.get_logs(STORE_ID, sku) if log.reason == "release"]
        assert len(releases) == 1


def test_losing_the_transition_without_a_sweep_releases(monkeypatch, db, carts, checkout, now):
    cart_id = _cart_with(carts, now, [{"sku": "A", "qty": 2}])
    monkeypatch.setattr(checkout.repo, "mark_checked_out", lambda *args: 0)

    with pytest.raises(Conflict):
        checkout.checkout(STORE_ID, cart_id, SUCCESS, CANCEL, now=now)

    assert _reserved(db, "A") == 0


def _status(db, cart_id):
    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    return cart.status
