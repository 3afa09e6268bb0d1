"""
支付会话数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class PaymentSessionModel(Base):
    """
    支付会话数据库模型

    会话永不删除，作为一次支付尝试的审计记录；
    状态流转规则在 domain.checkout.entity.PaymentSession 与仓储的条件更新中
    """
    __tablename__ = "payment_sessions"

    id = Column(Integer, primary_key=True, index=True)

    transaction_id = Column(String(100), unique=True, index=True, nullable=False, comment="交易关联ID（客户端/网关可见）")
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")

    # 创建时冻结的金额与购物车快照
    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="会话金额")
    cart_item_ids = Column(JSON, nullable=False, comment="所选购物车条目ID（有序）")
    items = Column(JSON, nullable=False, comment="条目快照: cart_item_id/product_id/quantity/unit_price")
    shipping_address = Column(JSON, nullable=False, comment="收货地址快照")

    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="会话状态: PENDING/SUCCESS/FAILED/EXPIRED"
    )
    provider = Column(String(50), nullable=False, comment="支付网关: phonepe/mock")

    # 网关信息
    gateway_transaction_id = Column(String(200), nullable=True, index=True, comment="网关交易ID")
    payment_url = Column(String(1000), nullable=True, comment="网关支付页地址")
    payment_method = Column(String(50), nullable=True, comment="网关回报的支付方式")
    failure_reason = Column(Text, nullable=True, comment="发起失败原因")

    # 订单物化
    order_id = Column(String(64), nullable=True, unique=True, comment="物化后的订单ID（只设置一次）")
    materialization_state = Column(
        String(20),
        nullable=False,
        default="NOT_STARTED",
        comment="订单物化状态: NOT_STARTED/COMPLETED/FAILED"
    )
    materialization_error = Column(Text, nullable=True, comment="物化失败原因（待人工对账）")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, comment="过期时间")
    completed_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    __table_args__ = (
        # 过期清理：status='PENDING' AND expires_at < now
        Index("ix_payment_sessions_status_expires", "status", "expires_at"),
        Index("ix_payment_sessions_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentSessionModel(transaction_id='{self.transaction_id}', "
            f"amount={self.amount}, status='{self.status}', order_id={self.order_id!r})>"
        )
