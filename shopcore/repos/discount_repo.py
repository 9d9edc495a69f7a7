# shopcore/repos/discount_repo.py
from datetime import datetime

from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import Session

from shopcore.data.models.discount import DiscountModel, DiscountUsageModel


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_discount(self, discount: DiscountModel) -> DiscountModel:
        self.db.add(discount)
        self.db.commit()
        self.db.refresh(discount)
        return discount

    def get_by_id(self, store_id: str, discount_id: str) -> DiscountModel | None:
        return self.db.execute(
            select(DiscountModel)
            .where(DiscountModel.id == discount_id, DiscountModel.store_id == store_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_by_code(self, store_id: str, code: str) -> DiscountModel | None:
        return self.db.execute(
            select(DiscountModel)
            .where(DiscountModel.code == code, DiscountModel.store_id == store_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_for_store(self, store_id: str) -> list[DiscountModel]:
        return list(
            self.db.execute(
                select(DiscountModel)
                .where(DiscountModel.store_id == store_id)
                .order_by(DiscountModel.created_at.desc())
            ).scalars()
        )

    def count_customer_usage(self, discount_id: str, customer_email: str) -> int:
        return self.db.execute(
            select(func.count(DiscountUsageModel.id)).where(
                DiscountUsageModel.discount_id == discount_id,
                DiscountUsageModel.customer_email == customer_email.lower(),
            )
        ).scalar_one()

    def increment_usage(self, discount_id: str, now: datetime) -> int:
        result = self.db.execute(
            update(DiscountModel)
            .where(
                DiscountModel.id == discount_id,
                or_(
                    DiscountModel.usage_limit.is_(None),
                    DiscountModel.usage_count < DiscountModel.usage_limit,
                ),
            )
            .values(usage_count=DiscountModel.usage_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def add_usage(self, discount_id: str, order_id: str, customer_email: str, amount_cents: int, now: datetime):
        usage = DiscountUsageModel(
            discount_id=discount_id,
            order_id=order_id,
            customer_email=customer_email.lower(),
            discount_amount_cents=amount_cents,
            created_at=now,
        )
        self.db.add(usage)
        return usage
