"""
商品/购物车仓储实现（结算流程所需的最小读写面）
"""
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog.entity import CartItem, Product
from domain.catalog.repository import CartRepository, ProductRepository
from infrastructure.models.catalog import CartItemModel, ProductModel


def _product_to_entity(model: ProductModel) -> Product:
    return Product(
        id=model.id,
        name=model.name,
        price=Decimal(str(model.price)),
        stock=model.stock,
        is_active=bool(model.is_active),
    )


class SQLAlchemyProductRepository(ProductRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self.session.execute(select(ProductModel).where(ProductModel.id == product_id))
        model = result.scalar_one_or_none()
        return _product_to_entity(model) if model else None

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        # 单条条件更新：库存不足时影响 0 行
        result = await self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SQLAlchemyCartRepository(CartRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: str, item_ids: Iterable[str]) -> List[CartItem]:
        ids = list(item_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(CartItemModel).where(CartItemModel.user_id == str(user_id), CartItemModel.id.in_(ids))
        )
        return [
            CartItem(
                id=m.id,
                user_id=m.user_id,
                product_id=m.product_id,
                quantity=m.quantity,
                product=_product_to_entity(m.product) if m.product is not None else None,
            )
            for m in result.unique().scalars().all()
        ]

    async def delete_items(self, user_id: str, item_ids: Iterable[str]) -> int:
        ids = list(item_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            delete(CartItemModel)
            .where(CartItemModel.user_id == str(user_id), CartItemModel.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
