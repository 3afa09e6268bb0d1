"""Unit of Work 抽象：应用服务通过它获得同一事务内的全部结算仓储"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.catalog.repository import CartRepository, ProductRepository
from domain.checkout.repository import PaymentSessionRepository
from domain.order.repository import OrderRepository


class AbstractUnitOfWork(ABC):
    """
    async with uow_factory() as uow: ...

    正常退出时自动提交（只读或已显式提交的除外），异常退出时回滚。
    """

    payment_session_repository: PaymentSessionRepository
    order_repository: OrderRepository
    product_repository: ProductRepository
    cart_repository: CartRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._readonly = readonly
        self._committed = False

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
