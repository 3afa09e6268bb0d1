"""
商品与购物车数据库模型

商品/购物车的增删改由外部目录服务负责，本服务只读取、扣减库存、删除已下单的购物车条目
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class ProductModel(Base):
    """商品数据库模型"""
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, comment="商品ID")
    name = Column(String(255), nullable=False, comment="商品名称")
    price = Column(Numeric(precision=15, scale=2), nullable=False, comment="当前单价")
    stock = Column(Integer, nullable=False, default=0, comment="库存")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否上架")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="stock_non_negative"),
    )

    def __repr__(self):
        return f"<ProductModel(id='{self.id}', name='{self.name}', stock={self.stock})>"


class CartItemModel(Base):
    """购物车条目数据库模型"""
    __tablename__ = "cart_items"

    id = Column(String(64), primary_key=True, comment="购物车条目ID")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")
    product_id = Column(
        String(64),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        comment="商品ID"
    )
    quantity = Column(Integer, nullable=False, comment="数量")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="加入时间"
    )

    product = relationship("ProductModel", lazy="joined")

    __table_args__ = (
        Index("ix_cart_items_user_product", "user_id", "product_id"),
    )

    def __repr__(self):
        return f"<CartItemModel(id='{self.id}', user_id='{self.user_id}', product_id='{self.product_id}', quantity={self.quantity})>"
