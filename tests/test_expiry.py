from datetime import timedelta

from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.repos.cart_repo import CartRepo
from shopcore.services.cart_service import CartService
from shopcore.services.checkout_service import CheckoutService
from shopcore.services.expiry_service import ExpiryService
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.tasks import expire
from tests.fakes import STORE_ID


def _open_cart_holding(db, now, sku="A", qty=2):
    """An open cart whose reservation was never released, e.g. a crashed checkout."""
    carts = CartService(db)
    cart = carts.create_cart(STORE_ID, "buyer@example.com", now)
    carts.replace_items(STORE_ID, cart["id"], [{"sku": sku, "qty": qty}], now)

    item = db.query(CartItemModel).filter_by(cart_id=cart["id"]).one()
    assert InventoryLedger(db).reserve(STORE_ID, sku, qty, now)
    CartRepo(db).hold(item.id, qty)
    db.commit()
    return cart["id"]


def _status(db, cart_id):
    cart = db.get(CartModel, cart_id)
    db.refresh(cart)
    return cart.status


def test_sweep_expires_and_releases(db, store, now):
    cart_id = _open_cart_holding(db, now)

    assert ExpiryService(db).sweep(now + timedelta(minutes=31)) == 1

    assert _status(db, cart_id) == "expired"
    assert InventoryLedger(db).get(STORE_ID, "A").reserved == 0
    assert db.query(CartItemModel).filter_by(cart_id=cart_id).one().reserved_qty == 0


def test_sweep_leaves_fresh_carts(db, store, now):
    cart_id = _open_cart_holding(db, now)

    assert ExpiryService(db).sweep(now + timedelta(minutes=29)) == 0

    assert _status(db, cart_id) == "open"
    assert InventoryLedger(db).get(STORE_ID, "A").reserved == 2


def test_sweep_ignores_checked_out_carts(db, store, processor, now):
    carts = CartService(db)
    cart = carts.create_cart(STORE_ID, "buyer@example.com", now)
    carts.replace_items(STORE_ID, cart["id"], [{"sku": "C", "qty": 4}], now)
    CheckoutService(db, processor_factory=processor).checkout(
        STORE_ID, cart["id"], "https://shop.example/ok", "https://shop.example/cancel", now=now
    )

    assert ExpiryService(db).sweep(now + timedelta(hours=2)) == 0

    assert _status(db, cart["id"]) == "checked_out"
    assert InventoryLedger(db).get(STORE_ID, "C").reserved == 4


def test_expired_cart_without_holds(db, store, now):
    cart = CartService(db).create_cart(STORE_ID, "buyer@example.com", now)

    assert ExpiryService(db).sweep(now + timedelta(hours=1)) == 1
    assert _status(db, cart["id"]) == "expired"


def test_second_sweep_releases_nothing(db, store, now):
    _open_cart_holding(db, now, sku="C", qty=3)
    later = now + timedelta(hours=1)

    ExpiryService(db).sweep(later)
    assert ExpiryService(db).sweep(later) == 0

    assert InventoryLedger(db).get(STORE_ID, "C").reserved == 0
    releases = [log for log in InventoryLedger(db).repo.get_logs(STORE_ID, "C") if log.reason == "release"]
    assert len(releases) == 1


class FakeLock:

    def __init__(self, free=True):
        self.free = free
        self.released = []

    def acquire_task_lock(self, name, owner, ttl):
        return self.free

    def release_task_lock(self, name, owner):
        self.released.append(name)
        return True


def test_task_sweeps_under_lock(monkeypatch, db, store, session_factory, now):
    cart_id = _open_cart_holding(db, now)
    lock = FakeLock()
    monkeypatch.setattr(expire, "lock_service", lock)
    monkeypatch.setattr(expire, "SessionLocal", session_factory)

    assert expire.expire_carts_task() == 1

    assert lock.released == ["expire_carts"]
    assert _status(db, cart_id) == "expired"


def test_task_skips_when_lock_is_held(monkeypatch, db, store, session_factory, now):
    cart_id = _open_cart_holding(db, now)
    monkeypatch.setattr(expire, "lock_service", FakeLock(free=False))
    monkeypatch.setattr(expire, "SessionLocal", session_factory)

    assert expire.expire_carts_task() == 0
    assert _status(db, cart_id) == "open"
