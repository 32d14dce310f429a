from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from seedshop.core import get_logger
from seedshop.domain.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    OrderLockedError,
    OrderServiceError,
    ProductNotFoundError,
    StoreError,
    ValidationError,
)
from seedshop.domain.models import LOCKED_STATUSES, Order, OrderItem, OrderStatus, Product
from seedshop.infrastructure.db import Database
from .pricing import (
    calculate_totals,
    generate_order_number,
    line_total,
    normalize_status,
    round_money,
    status_error_message,
    unit_price,
    validate_order,
)
from .schemas import OrderItemIn, OrderPayload, OrderStatistics

logger = get_logger(__name__)

class OrderService:
    """Order lifecycle: placement, replacement, cancellation and reporting.

    Every write runs inside one database transaction. Stock is debited with a
    conditional ``UPDATE ... WHERE stock >= quantity`` so that concurrent
    checkouts are serialized by the database row lock, never by a read
    followed by a write.
    """

    def __init__(self, db: Database):
        self.db = db

    # Reads

    def _with_items(self):
        return select(Order).options(selectinload(Order.items))

    def list_orders(self) -> list[Order]:
        with self.db.session() as session:
            return list(session.scalars(self._with_items().order_by(Order.created_at.desc(), Order.id.desc())))

    def get(self, order_id: int) -> Optional[Order]:
        with self.db.session() as session:
            return session.scalars(self._with_items().where(Order.id == order_id)).first()

    def get_by_number(self, order_number: str) -> Optional[Order]:
        if not order_number or not order_number.strip():
            return None
        with self.db.session() as session:
            return session.scalars(self._with_items().where(Order.order_number == order_number.strip())).first()

    def list_by_customer_email(self, email: str) -> list[Order]:
        if not email or not email.strip():
            return []
        with self.db.session() as session:
            query = self._with_items().where(Order.customer_email == email.strip())
            return list(session.scalars(query.order_by(Order.created_at.desc(), Order.id.desc())))

    def list_by_status(self, status: str) -> list[Order]:
        status = normalize_status(status)
        if status not in OrderStatus.values():
            raise ValidationError([status_error_message()])
        with self.db.session() as session:
            query = self._with_items().where(Order.status == status)
            return list(session.scalars(query.order_by(Order.created_at.desc(), Order.id.desc())))

    def statistics(self) -> OrderStatistics:
        status_counts = [
            func.coalesce(func.sum(case((Order.status == status, 1), else_=0)), 0).label(f"{status}_orders")
            for status in OrderStatus.values()
        ]
        query = select(
            func.count(Order.id).label("total_orders"),
            func.coalesce(func.sum(Order.total), 0).label("total_revenue"),
            func.coalesce(func.avg(Order.total), 0).label("average_order_value"),
            *status_counts,
        )
        try:
            with self.db.session() as session:
                row = session.execute(query).mappings().one()
        except SQLAlchemyError as e:
            raise self._store_error("Error fetching order statistics", e) from e
        return OrderStatistics(
            total_orders=row["total_orders"],
            total_revenue=float(round_money(row["total_revenue"])),
            average_order_value=float(round_money(row["average_order_value"])),
            **{f"{status}_orders": int(row[f"{status}_orders"]) for status in OrderStatus.values()},
        )

    # Writes

    def create(self, data: OrderPayload) -> Order:
        order_number = data.order_number if data.order_number is not None else generate_order_number()
        errors = validate_order(data, order_number)
        if errors:
            raise ValidationError(errors)

        subtotal, total = calculate_totals(data.items, data.shipping_cost)
        try:
            with self.db.transaction() as session:
                order = Order(
                    order_number=order_number.strip(),
                    subtotal=subtotal,
                    shipping_cost=round_money(data.shipping_cost or 0),
                    total=total,
                    status=normalize_status(data.status) or OrderStatus.PENDING.value,
                    **self._snapshot(data),
                )
                session.add(order)
                session.flush()  # assign id

                session.add_all(self._build_items(order.id, data.items))
                session.flush()

                for item in data.items:
                    self._debit_stock(session, item.product_id, item.quantity)
                order_id = order.id
        except OrderServiceError:
            logger.warning(
                "Order placement rolled back",
                extra={'extra_fields': {'order_number': order_number}}
            )
            raise
        except IntegrityError as e:
            raise ConflictError(f"Order number {order_number} already exists") from e
        except SQLAlchemyError as e:
            raise self._store_error("Error creating order", e) from e

        logger.info(
            "Order created",
            extra={'extra_fields': {
                'order_id': order_id,
                'order_number': order_number,
                'items': len(data.items),
                'total': str(total),
            }}
        )
        return self.get(order_id)

    def replace(self, order_id: int, data: OrderPayload) -> Order:
        """Overwrite header and items of an existing order.

        Stock is not reconciled against the previous item set.
        """
        errors = validate_order(data)
        if errors:
            raise ValidationError(errors)

        subtotal, total = calculate_totals(data.items, data.shipping_cost)
        try:
            with self.db.transaction() as session:
                order = session.get(Order, order_id, with_for_update=True)
                if order is None:
                    raise NotFoundError("Order", order_id)

                if data.order_number is not None:
                    order.order_number = data.order_number.strip()
                for field, value in self._snapshot(data).items():
                    setattr(order, field, value)
                order.subtotal = subtotal
                order.shipping_cost = round_money(data.shipping_cost or 0)
                order.total = total
                if data.status is not None:
                    order.status = normalize_status(data.status)
                order.updated_at = func.now()

                session.execute(
                    delete(OrderItem).where(OrderItem.order_id == order_id),
                    execution_options={"synchronize_session": False},
                )
                session.add_all(self._build_items(order_id, data.items))
        except OrderServiceError:
            raise
        except IntegrityError as e:
            raise ConflictError(f"Order number {data.order_number} already exists") from e
        except SQLAlchemyError as e:
            raise self._store_error("Error updating order", e) from e

        logger.info(
            "Order replaced",
            extra={'extra_fields': {'order_id': order_id, 'items': len(data.items), 'total': str(total)}}
        )
        return self.get(order_id)

    def delete(self, order_id: int) -> None:
        """Delete an order and put its quantities back into stock.

        Shipped and delivered orders are refused; the status is checked under
        the row lock so a concurrent status change cannot slip in between.
        """
        try:
            with self.db.transaction() as session:
                order = session.get(Order, order_id, with_for_update=True)
                if order is None:
                    raise NotFoundError("Order", order_id)
                # Shipped stock has left the warehouse and cannot be credited back
                if order.status in LOCKED_STATUSES:
                    raise OrderLockedError(order_id, order.status)

                lines = session.execute(
                    select(OrderItem.product_id, OrderItem.quantity).where(OrderItem.order_id == order_id)
                ).all()
                for product_id, quantity in lines:
                    if product_id:
                        self._credit_stock(session, product_id, quantity)

                session.execute(
                    delete(OrderItem).where(OrderItem.order_id == order_id),
                    execution_options={"synchronize_session": False},
                )
                result = session.execute(
                    delete(Order).where(Order.id == order_id),
                    execution_options={"synchronize_session": False},
                )
                if result.rowcount == 0:
                    # deleted by a concurrent request between lookup and delete
                    raise NotFoundError("Order", order_id)
        except OrderServiceError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error("Error deleting order", e) from e

        logger.info(
            "Order deleted and stock restored",
            extra={'extra_fields': {'order_id': order_id, 'lines': len(lines)}}
        )

    def update_status(self, order_id: int, status: str) -> Order:
        """Set the status only. Cancelling through here does not restock."""
        new_status = normalize_status(status)
        if not new_status:
            raise ValidationError(["Status is required"])
        if new_status not in OrderStatus.values():
            raise ValidationError([status_error_message()])

        try:
            with self.db.transaction() as session:
                result = session.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(status=new_status, updated_at=func.now()),
                    execution_options={"synchronize_session": False},
                )
                if result.rowcount == 0:
                    raise NotFoundError("Order", order_id)
        except OrderServiceError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error("Error updating order status", e) from e

        logger.info(
            "Order status updated",
            extra={'extra_fields': {'order_id': order_id, 'status': new_status}}
        )
        return self.get(order_id)

    # Helpers

    @staticmethod
    def _snapshot(data: OrderPayload) -> dict:
        return {
            field: (getattr(data, field) or "").strip()
            for field in (
                "customer_first_name",
                "customer_last_name",
                "customer_email",
                "customer_phone",
                "shipping_address",
                "shipping_city",
                "shipping_postal_code",
                "shipping_province",
            )
        }

    @staticmethod
    def _build_items(order_id: int, items: list[OrderItemIn]) -> list[OrderItem]:
        return [
            OrderItem(
                order_id=order_id,
                product_id=item.product_id,
                product_name=item.product_name.strip(),
                quantity=item.quantity,
                price=unit_price(item),
                total_price=line_total(item),
            )
            for item in items
        ]

    def _debit_stock(self, session: Session, product_id: int, quantity: int) -> None:
        result = session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount:
            return

        available = session.execute(select(Product.stock).where(Product.id == product_id)).scalar_one_or_none()
        if available is None:
            raise ProductNotFoundError(product_id)
        logger.warning(
            "Insufficient stock",
            extra={'extra_fields': {'product_id': product_id, 'available': available, 'requested': quantity}}
        )
        raise InsufficientStockError(product_id, available, quantity)

    def _credit_stock(self, session: Session, product_id: int, quantity: int) -> None:
        session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity),
            execution_options={"synchronize_session": False},
        )

    @staticmethod
    def _store_error(message: str, error: SQLAlchemyError) -> StoreError:
        transient = isinstance(error, OperationalError) or (
            isinstance(error, DBAPIError) and error.connection_invalidated
        )
        logger.error(f"{message}: {error}", exc_info=error)
        return StoreError(f"{message}: {error.__class__.__name__}", transient=transient, details=str(error))
