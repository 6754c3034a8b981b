from __future__ import annotations

from typing import List

from core.accounts import AccountRegistry
from core.catalog import CatalogStore
from core.errors import ValidationError
from db.models import Product
from utils.logger import get_logger

_logger = get_logger(__name__)


def _product_ref(product_id) -> str:
    ref = "" if product_id is None else str(product_id).strip()
    if not ref:
        raise ValidationError("productID is required")
    return ref


class CartManager:
    """
    Per-account cart of product ids, kept on the account document.

    Each mutation is one read and one whole-document write of the account;
    concurrent writers to the same account are last-write-wins. Product ids are
    not checked on add, and ids whose product has since been removed are skipped
    when the cart is read.
    """

    def __init__(self, accounts: AccountRegistry, catalog: CatalogStore):
        self.accounts = accounts
        self.catalog = catalog

    async def add_to_cart(self, user_id, product_id) -> None:
        """Add `product_id` once; adding it again is a no-op."""
        ref = _product_ref(product_id)
        account = await self.accounts.get_account(user_id)
        if ref in account.cart:
            return
        account.cart.append(ref)
        await self.accounts.save_account(account)
        _logger.debug(f"{account.user_id}: added {ref} to cart")

    async def remove_from_cart(self, user_id, product_id) -> None:
        """Drop `product_id` from the cart; a product that isn't there is a no-op."""
        ref = _product_ref(product_id)
        account = await self.accounts.get_account(user_id)
        kept = [pid for pid in account.cart if pid != ref]
        if len(kept) == len(account.cart):
            return
        account.cart = kept
        await self.accounts.save_account(account)
        _logger.debug(f"{account.user_id}: removed {ref} from cart")

    async def get_cart(self, user_id) -> List[Product]:
        """Resolve the cart against the catalog, in cart order, omitting dangling ids."""
        account = await self.accounts.get_account(user_id)
        products: List[Product] = []
        for pid in account.cart:
            product = await self.catalog.get_product(pid)
            if product is None:
                _logger.debug(f"{account.user_id}: cart entry {pid} no longer exists")
                continue
            products.append(product)
        return products
