"""
订单数据库模型 - SQLAlchemy ORM模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, Index, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """订单数据库模型"""
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, comment="订单ID")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")

    total_amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单总额")
    payment_method = Column(String(20), nullable=False, comment="支付方式: ONLINE/COD")
    payment_status = Column(String(20), nullable=False, default="PENDING", comment="支付状态: PENDING/PAID/FAILED/REFUNDED")
    delivery_status = Column(String(20), nullable=False, default="PENDING", index=True, comment="配送状态")
    shipping_address = Column(JSON, nullable=False, comment="收货地址（复制自支付会话）")

    # 产生该订单的支付会话（COD 订单为空）
    transaction_id = Column(String(100), nullable=True, unique=True, comment="支付会话交易ID")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id='{self.id}', total_amount={self.total_amount}, "
            f"payment_method='{self.payment_method}', payment_status='{self.payment_status}')>"
        )


class OrderItemModel(Base):
    """订单明细（价格在物化时冻结）"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    product_id = Column(String(64), nullable=False, index=True, comment="商品ID")
    quantity = Column(Integer, nullable=False, comment="数量")
    price = Column(Numeric(precision=15, scale=2), nullable=False, comment="下单时单价")

    order = relationship("OrderModel", back_populates="items")

    def __repr__(self):
        return f"<OrderItemModel(order_id='{self.order_id}', product_id='{self.product_id}', quantity={self.quantity})>"
