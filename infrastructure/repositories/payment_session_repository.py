"""
支付会话仓储实现 - 使用SQLAlchemy实现数据访问

状态变更全部是单条带条件的 UPDATE（compare-and-set），以受影响行数判断
调用方是否"赢得"本次流转；不存在先读后写。
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.checkout.entity import (
    MaterializationState,
    PaymentSession,
    SessionItem,
    SessionStatus,
    ShippingAddress,
)
from domain.checkout.repository import PaymentSessionRepository
from infrastructure.models.checkout import PaymentSessionModel


logger = get_logger(__name__)


class SQLAlchemyPaymentSessionRepository(PaymentSessionRepository):
    """支付会话仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentSessionModel) -> PaymentSession:
        """将数据库模型转换为领域实体"""
        return PaymentSession(
            id=model.id,
            transaction_id=model.transaction_id,
            user_id=model.user_id,
            amount=Decimal(str(model.amount)),
            cart_item_ids=[str(i) for i in (model.cart_item_ids or [])],
            items=[SessionItem.from_dict(i) for i in (model.items or [])],
            shipping_address=ShippingAddress.from_mapping(model.shipping_address),
            status=SessionStatus(model.status),
            provider=model.provider,
            gateway_transaction_id=model.gateway_transaction_id,
            payment_url=model.payment_url,
            payment_method=model.payment_method,
            failure_reason=model.failure_reason,
            order_id=model.order_id,
            materialization_state=MaterializationState(model.materialization_state),
            materialization_error=model.materialization_error,
            created_at=model.created_at,
            expires_at=model.expires_at,
            completed_at=model.completed_at,
            updated_at=model.updated_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: PaymentSession) -> PaymentSessionModel:
        """将领域实体转换为数据库模型"""
        return PaymentSessionModel(
            id=entity.id,
            transaction_id=entity.transaction_id,
            user_id=str(entity.user_id),
            amount=entity.amount,
            cart_item_ids=list(entity.cart_item_ids),
            items=[i.to_dict() for i in entity.items],
            shipping_address=entity.shipping_address.to_dict(),
            status=entity.status.value,
            provider=entity.provider,
            gateway_transaction_id=entity.gateway_transaction_id,
            payment_url=entity.payment_url,
            payment_method=entity.payment_method,
            failure_reason=entity.failure_reason,
            order_id=entity.order_id,
            materialization_state=entity.materialization_state.value,
            materialization_error=entity.materialization_error,
            created_at=entity.created_at,
            expires_at=entity.expires_at,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
            extra_metadata=entity.metadata,
        )

    async def create(self, session: PaymentSession) -> PaymentSession:
        """创建支付会话"""
        try:
            db_session = self._to_model(session)
            self.session.add(db_session)
            await self.session.flush()
            await self.session.refresh(db_session)
            return self._to_entity(db_session)
        except IntegrityError:
            logger.warning("payment_session_create_conflict", transaction_id=session.transaction_id)
            raise

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentSession]:
        result = await self.session.execute(
            select(PaymentSessionModel).where(PaymentSessionModel.transaction_id == transaction_id)
        )
        db_session = result.scalar_one_or_none()
        return self._to_entity(db_session) if db_session else None

    async def _conditional_update(self, conditions: list, values: dict[str, Any]) -> bool:
        stmt = (
            update(PaymentSessionModel)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def attach_gateway_reference(
        self,
        transaction_id: str,
        *,
        payment_url: Optional[str],
        gateway_transaction_id: Optional[str],
    ) -> bool:
        values: dict[str, Any] = {"payment_url": payment_url}
        if gateway_transaction_id:
            values["gateway_transaction_id"] = gateway_transaction_id
        return await self._conditional_update(
            [
                PaymentSessionModel.transaction_id == transaction_id,
                PaymentSessionModel.status == SessionStatus.PENDING.value,
            ],
            values,
        )

    async def transition_status(
        self,
        transaction_id: str,
        *,
        expected: SessionStatus,
        new: SessionStatus,
        now: datetime,
        gateway_transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        failure_reason: Optional[str] = None,
        expires_before: Optional[datetime] = None,
    ) -> bool:
        conditions = [
            PaymentSessionModel.transaction_id == transaction_id,
            PaymentSessionModel.status == expected.value,
        ]
        if expires_before is not None:
            conditions.append(PaymentSessionModel.expires_at < expires_before)

        values: dict[str, Any] = {"status": new.value, "updated_at": now}
        if new == SessionStatus.SUCCESS:
            values["completed_at"] = now
        if gateway_transaction_id:
            values["gateway_transaction_id"] = gateway_transaction_id
        if payment_method:
            values["payment_method"] = payment_method
        if failure_reason:
            values["failure_reason"] = failure_reason
        return await self._conditional_update(conditions, values)

    async def set_order_id(self, transaction_id: str, order_id: str, *, now: datetime) -> bool:
        return await self._conditional_update(
            [
                PaymentSessionModel.transaction_id == transaction_id,
                PaymentSessionModel.status == SessionStatus.SUCCESS.value,
                PaymentSessionModel.order_id.is_(None),
            ],
            {
                "order_id": order_id,
                "materialization_state": MaterializationState.COMPLETED.value,
                "materialization_error": None,
                "updated_at": now,
            },
        )

    async def mark_materialization_failed(self, transaction_id: str, error: str, *, now: datetime) -> bool:
        return await self._conditional_update(
            [
                PaymentSessionModel.transaction_id == transaction_id,
                PaymentSessionModel.order_id.is_(None),
            ],
            {
                "materialization_state": MaterializationState.FAILED.value,
                "materialization_error": error[:2000],
                "updated_at": now,
            },
        )

    async def list_expired_pending(self, now: datetime, limit: int = 200) -> List[PaymentSession]:
        result = await self.session.execute(
            select(PaymentSessionModel)
            .where(
                PaymentSessionModel.status == SessionStatus.PENDING.value,
                PaymentSessionModel.expires_at < now,
            )
            .order_by(PaymentSessionModel.expires_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_awaiting_materialization(self, skip: int = 0, limit: int = 100) -> List[PaymentSession]:
        result = await self.session.execute(
            select(PaymentSessionModel)
            .where(
                PaymentSessionModel.status == SessionStatus.SUCCESS.value,
                PaymentSessionModel.order_id.is_(None),
            )
            .order_by(PaymentSessionModel.completed_at.asc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_status(
        self,
        status: Optional[SessionStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PaymentSession]:
        query = select(PaymentSessionModel)
        if status:
            query = query.where(PaymentSessionModel.status == status.value)
        query = query.order_by(PaymentSessionModel.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]
