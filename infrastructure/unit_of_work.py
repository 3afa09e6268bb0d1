"""SQLAlchemy Unit of Work：一个 AsyncSession 对应一个事务，结算的四个仓储共享它"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.catalog_repository import SQLAlchemyCartRepository, SQLAlchemyProductRepository
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.repositories.payment_session_repository import SQLAlchemyPaymentSessionRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None
        self._transaction: Optional[AsyncSessionTransaction] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.payment_session_repository = SQLAlchemyPaymentSessionRepository(self.session)
        self.order_repository = SQLAlchemyOrderRepository(self.session)
        self.product_repository = SQLAlchemyProductRepository(self.session)
        self.cart_repository = SQLAlchemyCartRepository(self.session)
        # 只读模式依赖 autobegin，关闭会话时隐式回滚
        if not self._readonly:
            self._transaction = await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            await self.session.close()
            self.session = None
            self._transaction = None

    async def commit(self) -> None:
        if not self._readonly and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session.in_transaction():
            await self.session.rollback()
        self._committed = False


def sqlalchemy_uow_factory(session_factory: Callable[[], AsyncSession] = AsyncSessionLocal):
    """应用服务使用的工厂：factory() 开启读写事务，factory(readonly=True) 只读"""

    def factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory, readonly=readonly)

    return factory
