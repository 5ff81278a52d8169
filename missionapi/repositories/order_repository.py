from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from missionapi.models.order import (
    OrderStatus,
    Payment,
    PaymentStatus,
    ProductOrder,
)
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.order import PaymentResponse, ProductOrderResponse


class OrderRepository(BaseRepository[ProductOrder, ProductOrderResponse]):
    def __init__(self, db: Session):
        super().__init__(ProductOrder, ProductOrderResponse, db)

    def create(self, **kwargs) -> ProductOrder:
        return self.add(ProductOrder(**kwargs))

    def find_by_payment_id(self, payment_id: str) -> Optional[ProductOrder]:
        return self.db.scalars(
            select(ProductOrder).where(ProductOrder.payment_id == payment_id)
            .execution_options(populate_existing=True)
        ).first()

    def transition(
        self,
        order_id: int,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        **values: Any,
    ) -> bool:
        updates = {"status": to_status}
        updates.update(values)
        affected = self._conditional_update(
            [
                ProductOrder.id == order_id,
                ProductOrder.status.in_(list(from_statuses)),
            ],
            updates,
        )
        return affected == 1

    def link_campaign(self, order_id: int, campaign_id: int) -> None:
        self._conditional_update(
            [ProductOrder.id == order_id], {"campaign_id": campaign_id}
        )


class PaymentRepository(BaseRepository[Payment, PaymentResponse]):
    def __init__(self, db: Session):
        super().__init__(Payment, PaymentResponse, db)

    def create(self, **kwargs) -> Payment:
        return self.add(Payment(**kwargs))

    def transition(
        self,
        payment_id: str,
        from_statuses: Iterable[PaymentStatus],
        to_status: PaymentStatus,
        provider_ref: Optional[str] = None,
    ) -> bool:
        values: dict = {"status": to_status}
        if provider_ref is not None:
            values["provider_ref"] = provider_ref
        affected = self._conditional_update(
            [
                Payment.id == payment_id,
                Payment.status.in_(list(from_statuses)),
            ],
            values,
        )
        return affected == 1
