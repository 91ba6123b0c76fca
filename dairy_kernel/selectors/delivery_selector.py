"""Read-only queries over deliveries and their line items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from dairy_kernel.domain.enums import DeliveryStatus
from dairy_kernel.models.customer import Product
from dairy_kernel.models.delivery import Delivery, DeliveryItem
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DeliveryView:
    id: UUID
    customer_id: UUID
    delivery_date: date
    status: str
    item_count: int


@dataclass(frozen=True)
class DeliveredItemView:
    delivery_id: UUID
    product_id: UUID
    product_name: str
    quantity: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class DayStatusCounts:
    total: int
    delivered: int
    pending: int


class DeliverySelector(BaseSelector):

    def exists(self, customer_id: UUID, delivery_date: date) -> bool:
        found = self.session.execute(
            select(Delivery.id).where(
                Delivery.customer_id == customer_id,
                Delivery.delivery_date == delivery_date,
            )
        ).first()
        return found is not None

    def for_date(self, delivery_date: date, status: str | None = None) -> tuple[DeliveryView, ...]:
        item_count = (
            select(func.count(DeliveryItem.id))
            .where(DeliveryItem.delivery_id == Delivery.id)
            .correlate(Delivery)
            .scalar_subquery()
        )
        stmt = select(Delivery, item_count).where(Delivery.delivery_date == delivery_date)
        if status is not None:
            stmt = stmt.where(Delivery.status == status)
        rows = self.session.execute(stmt.order_by(Delivery.created_at, Delivery.id)).all()
        return tuple(
            DeliveryView(
                id=d.id,
                customer_id=d.customer_id,
                delivery_date=d.delivery_date,
                status=d.status,
                item_count=count or 0,
            )
            for d, count in rows
        )

    def pending_for_date(self, delivery_date: date) -> tuple[DeliveryView, ...]:
        return self.for_date(delivery_date, DeliveryStatus.PENDING.value)

    def status_counts(self, delivery_date: date) -> DayStatusCounts:
        rows = self.session.execute(
            select(Delivery.status, func.count(Delivery.id))
            .where(Delivery.delivery_date == delivery_date)
            .group_by(Delivery.status)
        ).all()
        counts = {status: n for status, n in rows}
        return DayStatusCounts(
            total=sum(counts.values()),
            delivered=counts.get(DeliveryStatus.DELIVERED.value, 0),
            pending=counts.get(DeliveryStatus.PENDING.value, 0),
        )

    def delivered_ids_in_period(
        self, customer_id: UUID, start: date, end: date,
    ) -> tuple[UUID, ...]:
        rows = self.session.execute(
            select(Delivery.id).where(
                Delivery.customer_id == customer_id,
                Delivery.status == DeliveryStatus.DELIVERED.value,
                Delivery.delivery_date >= start,
                Delivery.delivery_date <= end,
            )
        ).scalars()
        return tuple(rows)

    def items_for_deliveries(self, delivery_ids: tuple[UUID, ...]) -> tuple[DeliveredItemView, ...]:
        if not delivery_ids:
            return ()
        rows = self.session.execute(
            select(DeliveryItem, Product.name)
            .join(Product, Product.id == DeliveryItem.product_id)
            .where(DeliveryItem.delivery_id.in_(delivery_ids))
        ).all()
        return tuple(
            DeliveredItemView(
                delivery_id=item.delivery_id,
                product_id=item.product_id,
                product_name=name,
                quantity=item.quantity,
                total_amount=item.total_amount,
            )
            for item, name in rows
        )
