"""Read-only queries over customers, subscriptions and vacations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.models.customer import Customer, Product, SubscriptionLine, Vacation
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CustomerView:
    id: UUID
    name: str
    subscription_type: str
    is_active: bool
    delivery_schedule: dict[str, Any] | None
    notes: str | None


@dataclass(frozen=True)
class SubscriptionView:
    id: UUID
    customer_id: UUID
    product_id: UUID
    product_name: str
    quantity: Decimal
    custom_price: Decimal | None
    base_price: Decimal | None


def _customer_view(row: Customer) -> CustomerView:
    return CustomerView(
        id=row.id,
        name=row.name,
        subscription_type=row.subscription_type,
        is_active=row.is_active,
        delivery_schedule=dict(row.delivery_schedule) if row.delivery_schedule else None,
        notes=row.notes,
    )


class CustomerSelector(BaseSelector):
    """Customer-side reads for the scheduler and invoice generator."""

    def get(self, customer_id: UUID) -> CustomerView | None:
        row = self.session.get(Customer, customer_id)
        return _customer_view(row) if row is not None else None

    def active_customers(self) -> tuple[CustomerView, ...]:
        rows = self.session.execute(
            select(Customer).where(Customer.is_active.is_(True)).order_by(Customer.name)
        ).scalars()
        return tuple(_customer_view(r) for r in rows)

    def all_customers(self) -> tuple[CustomerView, ...]:
        rows = self.session.execute(select(Customer).order_by(Customer.name)).scalars()
        return tuple(_customer_view(r) for r in rows)

    def customer_ids_with_active_subscriptions(self) -> tuple[UUID, ...]:
        """Distinct customers holding at least one active subscription line."""
        rows = self.session.execute(
            select(SubscriptionLine.customer_id)
            .where(SubscriptionLine.is_active.is_(True))
            .distinct()
        ).scalars()
        return tuple(sorted(rows, key=str))

    def active_subscriptions(self, customer_id: UUID) -> tuple[SubscriptionView, ...]:
        rows = self.session.execute(
            select(SubscriptionLine, Product)
            .join(Product, Product.id == SubscriptionLine.product_id)
            .where(
                SubscriptionLine.customer_id == customer_id,
                SubscriptionLine.is_active.is_(True),
            )
            .order_by(Product.name)
        ).all()
        return tuple(
            SubscriptionView(
                id=line.id,
                customer_id=line.customer_id,
                product_id=line.product_id,
                product_name=product.name,
                quantity=line.quantity,
                custom_price=line.custom_price,
                base_price=product.base_price,
            )
            for line, product in rows
        )

    def vacation_windows(self, customer_id: UUID) -> tuple[tuple[date, date], ...]:
        """Active (start, end) windows; overlaps are returned as stored."""
        rows = self.session.execute(
            select(Vacation.start_date, Vacation.end_date).where(
                Vacation.customer_id == customer_id,
                Vacation.is_active.is_(True),
            )
        ).all()
        return tuple((start, end) for start, end in rows)
