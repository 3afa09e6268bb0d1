"""
Cart line snapshotting shared by online and cash-on-delivery checkout.

Validation here is best effort: nothing is reserved, stock is only
decremented when an order is materialized.
"""
from __future__ import annotations

from typing import Iterable

from domain.checkout.entity import SessionItem
from domain.common.exceptions import (
    CartItemsNotFoundException,
    DomainValidationException,
    InsufficientStockException,
    ProductUnavailableException,
)
from domain.common.unit_of_work import AbstractUnitOfWork


def normalize_cart_item_ids(cart_item_ids: Iterable[str] | None) -> list[str]:
    """Stringify, drop blanks and duplicates, keep client order."""
    seen: dict[str, None] = {}
    for raw in cart_item_ids or ():
        value = str(raw).strip()
        if value:
            seen.setdefault(value, None)
    if not seen:
        raise DomainValidationException("At least one cart item must be selected", field="cartItemIds")
    return list(seen)


async def snapshot_cart_lines(uow: AbstractUnitOfWork, user_id: str, cart_item_ids: list[str]) -> list[SessionItem]:
    """Load the user's selected cart lines and freeze them with current prices.

    Raises:
        CartItemsNotFoundException: some ids are unknown or owned by someone else
        ProductUnavailableException: a product is inactive or gone
        InsufficientStockException: current stock is below the requested quantity
    """
    cart_items = await uow.cart_repository.list_for_user(user_id, cart_item_ids)
    if len(cart_items) != len(cart_item_ids):
        raise CartItemsNotFoundException(requested=len(cart_item_ids), found=len(cart_items))

    by_id = {str(item.id): item for item in cart_items}

    unavailable = [
        str(item.product_id) for item in cart_items if item.product is None or not item.product.is_active
    ]
    if unavailable:
        raise ProductUnavailableException(unavailable)

    lines: list[SessionItem] = []
    for cart_item_id in cart_item_ids:
        item = by_id[cart_item_id]
        product = item.product
        if not product.has_stock_for(item.quantity):
            raise InsufficientStockException(
                product.id, requested=item.quantity, available=product.stock, name=product.name
            )
        lines.append(
            SessionItem(
                cart_item_id=cart_item_id,
                product_id=str(product.id),
                quantity=item.quantity,
                unit_price=product.price,
            )
        )
    return lines
