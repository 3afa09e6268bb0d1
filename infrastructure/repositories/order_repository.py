"""
订单仓储实现
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.checkout.entity import ShippingAddress
from domain.order.entity import (
    DeliveryStatus,
    Order,
    OrderItem,
    OrderPaymentStatus,
    PaymentMethod,
)
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderItemModel, OrderModel


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            user_id=model.user_id,
            total_amount=Decimal(str(model.total_amount)),
            payment_method=PaymentMethod(model.payment_method),
            payment_status=OrderPaymentStatus(model.payment_status),
            delivery_status=DeliveryStatus(model.delivery_status),
            shipping_address=ShippingAddress.from_mapping(model.shipping_address),
            items=[
                OrderItem(product_id=i.product_id, quantity=i.quantity, price=Decimal(str(i.price)))
                for i in model.items
            ],
            transaction_id=model.transaction_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: Order) -> OrderModel:
        return OrderModel(
            id=entity.id,
            user_id=str(entity.user_id),
            total_amount=entity.total_amount,
            payment_method=entity.payment_method.value,
            payment_status=entity.payment_status.value,
            delivery_status=entity.delivery_status.value,
            shipping_address=entity.shipping_address.to_dict(),
            transaction_id=entity.transaction_id,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            extra_metadata=entity.metadata,
            items=[
                OrderItemModel(product_id=i.product_id, quantity=i.quantity, price=i.price)
                for i in entity.items
            ],
        )

    async def create(self, order: Order) -> Order:
        """创建订单及明细（随事务提交）"""
        self.session.add(self._to_model(order))
        await self.session.flush()
        return order

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(select(OrderModel).where(OrderModel.id == order_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        result = await self.session.execute(select(OrderModel).where(OrderModel.transaction_id == transaction_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None
