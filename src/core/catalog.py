from __future__ import annotations

import math
from datetime import datetime
from numbers import Real
from typing import List, Optional

from core.errors import ValidationError
from db.models import Product
from db.store import DocumentStore, new_id
from utils.logger import get_logger

_logger = get_logger(__name__)

PRODUCTS = "products"


def _price(value) -> float:
    # zero is a legitimate price; only a missing value is rejected
    if value is None or value == "":
        raise ValidationError("price is required")
    if isinstance(value, bool):
        raise ValidationError("price must be a number")
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise ValidationError("price must be a number")
    if not isinstance(value, Real):
        raise ValidationError("price must be a non-negative number")
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite or value < 0:
        raise ValidationError("price must be a non-negative number")
    return value


def _quantity(value) -> int:
    if value is None or value == "":
        raise ValidationError("quantity is required")
    if isinstance(value, bool):
        raise ValidationError("quantity must be an integer")
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            raise ValidationError("quantity must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise ValidationError("quantity must be a non-negative integer")
    return value


class CatalogStore:
    """Product persistence: add, remove by id, list. Products are never updated."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add_product(self, name, description, price, quantity) -> Product:
        name = "" if name is None else str(name).strip()
        if not name:
            raise ValidationError("name is required")
        product = Product(
            pid=new_id(),
            name=name,
            description="" if description is None else str(description),
            price=_price(price),
            quantity=_quantity(quantity),
            created_at=datetime.now(),
        )
        await self.store.save(PRODUCTS, product.to_document(), create=True)
        _logger.info(f"Added product {product.pid} ({product.name})")
        return product

    async def remove_product(self, product_id) -> None:
        """Idempotent: removing an unknown id succeeds. Carts are left untouched."""
        if product_id is None or not str(product_id).strip():
            return
        await self.store.delete_by_id(PRODUCTS, str(product_id).strip())
        _logger.info(f"Removed product {product_id}")

    async def list_products(self) -> List[Product]:
        return [Product.from_document(doc) for doc in await self.store.find_all(PRODUCTS)]

    async def get_product(self, product_id) -> Optional[Product]:
        """Return the Product for `product_id`, or None."""
        doc = await self.store.find_one(PRODUCTS, {"_id": str(product_id)})
        return Product.from_document(doc) if doc else None
