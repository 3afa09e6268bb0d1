"""Catalog domain exports."""
from .entity import CartItem, Product
from .repository import CartRepository, ProductRepository

__all__ = ["CartItem", "CartRepository", "Product", "ProductRepository"]
