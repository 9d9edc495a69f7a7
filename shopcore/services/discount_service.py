# shopcore/services/discount_service.py
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcore.data.models.discount import DiscountModel
from shopcore.domain.enums import DiscountStatus, DiscountType
from shopcore.domain.errors import Conflict, Ineligible, InvalidRequest, NotFound
from shopcore.repos.discount_repo import DiscountRepo
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def calculate_discount(discount: DiscountModel, subtotal_cents: int) -> int:
    """
    Amount in cents the discount takes off subtotal_cents.

    Percentages are floored, never rounded, and capped by
    max_discount_cents. Fixed amounts never exceed the subtotal.
    """
    if subtotal_cents <= 0 or discount.value <= 0:
        return 0

    kind = DiscountType(discount.type)

    if kind is DiscountType.PERCENTAGE:
        amount = subtotal_cents * discount.value // 100
        if discount.max_discount_cents is not None:
            amount = min(amount, discount.max_discount_cents)
        return amount

    if kind is DiscountType.FIXED_AMOUNT:
        return min(discount.value, subtotal_cents)

    raise ValueError(f"Unknown discount type: {discount.type}")


def _aware(value: datetime | None) -> datetime | None:
    #naive input is taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_within_window(discount: DiscountModel, now: datetime) -> bool:
    if discount.starts_at is not None and now < discount.starts_at:
        return False
    if discount.expires_at is not None and now > discount.expires_at:
        return False
    return True


def is_countable(discount: DiscountModel, now: datetime) -> bool:
    return discount.status == DiscountStatus.ACTIVE.value and is_within_window(discount, now)


class DiscountService:

    def __init__(self, db: Session):
        self.repo = DiscountRepo(db)

    def validate(self, discount: DiscountModel, subtotal_cents: int, customer_email: str, now: datetime) -> None:
        """
        Raises Ineligible with the first reason the discount cannot be used.
        """
        if discount.status != DiscountStatus.ACTIVE.value:
            raise Ineligible("Discount is not active")

        if discount.starts_at is not None and now < discount.starts_at:
            raise Ineligible("Discount is not yet active")

        if discount.expires_at is not None and now > discount.expires_at:
            raise Ineligible("Discount has expired")

        if subtotal_cents < discount.min_purchase_cents:
            raise Ineligible(
                f"Minimum purchase of {discount.min_purchase_cents} cents required"
            )

        if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
            raise Ineligible("Discount usage limit reached")

        if discount.usage_limit_per_customer is not None:
            used = self.repo.count_customer_usage(discount.id, customer_email)
            if used >= discount.usage_limit_per_customer:
                raise Ineligible("You have already used this discount")

    def try_validate(self, discount: DiscountModel, subtotal_cents: int, customer_email: str, now: datetime) -> bool:
        try:
            self.validate(discount, subtotal_cents, customer_email, now)
        except Ineligible as e:
            logger.info(f"Discount {discount.code} no longer applies: {e.message}")
            return False
        return True

    def get_by_code(self, store_id: str, code: str) -> DiscountModel | None:
        return self.repo.get_by_code(store_id, normalize_code(code))

    def get_by_id(self, store_id: str, discount_id: str) -> DiscountModel | None:
        return self.repo.get_by_id(store_id, discount_id)

    def record_usage(self, discount_id: str, now: datetime) -> bool:
        return self.repo.increment_usage(discount_id, now) == 1

    def add_usage(self, discount_id: str, order_id: str, customer_email: str, amount_cents: int, now: datetime):
        return self.repo.add_usage(discount_id, order_id, customer_email, amount_cents, now)

    # operator surface

    def create_discount(self, store_id: str, data: dict, now: datetime) -> DiscountModel:
        code = normalize_code(data.get("code") or "")
        if not code:
            raise InvalidRequest("code is required")

        try:
            kind = DiscountType(data.get("type"))
        except ValueError:
            raise InvalidRequest("type must be percentage or fixed_amount")

        value = data.get("value")
        if value is None or value < 0:
            raise InvalidRequest("value must be a non-negative integer")
        if kind is DiscountType.PERCENTAGE and value > 100:
            raise InvalidRequest("percentage value cannot exceed 100")

        starts_at = _aware(data.get("starts_at"))
        expires_at = _aware(data.get("expires_at"))
        if starts_at and expires_at and expires_at <= starts_at:
            raise InvalidRequest("expires_at must be after starts_at")

        discount = DiscountModel(
            id=str(uuid.uuid4()),
            store_id=store_id,
            code=code,
            type=kind.value,
            value=value,
            status=DiscountStatus(data.get("status") or DiscountStatus.ACTIVE.value).value,
            min_purchase_cents=data.get("min_purchase_cents") or 0,
            max_discount_cents=data.get("max_discount_cents"),
            starts_at=starts_at,
            expires_at=expires_at,
            usage_limit=data.get("usage_limit"),
            usage_limit_per_customer=data.get("usage_limit_per_customer"),
            usage_count=0,
            created_at=now,
            updated_at=now,
        )

        try:
            created = self.repo.create_discount(discount)
        except IntegrityError:
            self.repo.db.rollback()
            raise Conflict(f"Discount code already exists: {code}")

        logger.info(f"Created discount {created.code} in store {store_id}")
        return created

    def get_discount(self, store_id: str, discount_id: str) -> DiscountModel:
        discount = self.repo.get_by_id(store_id, discount_id)
        if not discount:
            raise NotFound("Discount not found")
        return discount

    def list_discounts(self, store_id: str) -> list[DiscountModel]:
        return self.repo.list_for_store(store_id)
