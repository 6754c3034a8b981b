"""Transport-agnostic request handlers.

Each handler takes the request payload as a plain dict (or a path parameter),
runs one operation and returns a Response carrying the status code and JSON body
an HTTP layer would send back. Errors are mapped to statuses here and nowhere else.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Optional

from core.accounts import AccountRegistry
from core.cart import CartManager
from core.catalog import CatalogStore
from core.credentials import CredentialGenerator
from core.errors import AuthError, ShopError
from core.notifier import Notifier, QueueNotifier, build_sender
from core.sessions import MemorySessionStore, SessionStore
from db.store import DocumentStore, SqliteStore
from utils.config import Settings, get_settings
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class Response:
    status: int
    body: Any
    session_token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status < 400


def _handler(action: str):
    """Turn ShopErrors raised by a handler into error Responses."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Response:
            try:
                return await func(*args, **kwargs)
            except ShopError as exc:
                if exc.status >= 500:
                    _logger.error(f"{action} failed: {exc!r}")
                    return Response(exc.status, {"message": f"{action} failed"})
                _logger.info(f"{action} rejected: {exc.message}")
                return Response(exc.status, {"message": exc.message})

        return wrapper

    return decorator


def _field(payload: Optional[dict], key: str):
    return (payload or {}).get(key)


class Backend:
    def __init__(
        self,
        store: DocumentStore,
        sessions: Optional[SessionStore] = None,
        notifier: Optional[Notifier] = None,
        generator: Optional[CredentialGenerator] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.sessions = sessions or MemorySessionStore(ttl=settings.session_ttl)
        self.notifier = notifier or QueueNotifier(build_sender(settings))
        self.accounts = AccountRegistry(
            store,
            self.sessions,
            self.notifier,
            generator=generator,
            max_attempts=settings.userid_max_attempts,
        )
        self.catalog = CatalogStore(store)
        self.cart = CartManager(self.accounts, self.catalog)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Backend":
        settings = settings or get_settings()
        store = SqliteStore(settings.db_path, timeout=settings.store_timeout)
        return cls(store, settings=settings)

    async def health(self) -> Response:
        return Response(200, {"message": "E-Commerce backend running"})

    @_handler("Registration")
    async def register(self, payload: dict) -> Response:
        reg = await self.accounts.register(
            _field(payload, "fullName"), _field(payload, "email"), _field(payload, "role")
        )
        return Response(
            200, {"message": "Registered successfully", "userID": reg.user_id, "pin": reg.pin}
        )

    @_handler("Login")
    async def login(self, payload: dict) -> Response:
        result = await self.accounts.login(_field(payload, "userID"), _field(payload, "pin"))
        return Response(
            200,
            {"message": "Login successful", "role": result.role.value, "userID": result.user_id},
            session_token=result.token,
        )

    @_handler("Session lookup")
    async def whoami(self, token: Optional[str]) -> Response:
        session = self.sessions.resolve(token)
        if session is None:
            raise AuthError("Not logged in")
        return Response(200, {"userID": session.account_ref, "role": session.role.value})

    @_handler("Adding product")
    async def add_product(self, payload: dict) -> Response:
        product = await self.catalog.add_product(
            _field(payload, "name"),
            _field(payload, "description"),
            _field(payload, "price"),
            _field(payload, "quantity"),
        )
        return Response(200, product.to_public())

    @_handler("Removing product")
    async def remove_product(self, product_id: str) -> Response:
        await self.catalog.remove_product(product_id)
        return Response(200, {"message": "Product removed successfully"})

    @_handler("Fetching products")
    async def list_products(self) -> Response:
        return Response(200, [p.to_public() for p in await self.catalog.list_products()])

    @_handler("Adding to cart")
    async def cart_add(self, payload: dict) -> Response:
        await self.cart.add_to_cart(_field(payload, "userID"), _field(payload, "productID"))
        return Response(200, {"message": "Product added to cart"})

    @_handler("Removing from cart")
    async def cart_remove(self, payload: dict) -> Response:
        await self.cart.remove_from_cart(_field(payload, "userID"), _field(payload, "productID"))
        return Response(200, {"message": "Product removed from cart"})

    @_handler("Fetching cart")
    async def get_cart(self, user_id: str) -> Response:
        return Response(200, [p.to_public() for p in await self.cart.get_cart(user_id)])

    async def close(self) -> None:
        """Let queued emails go out, then stop the notifier worker."""
        if isinstance(self.notifier, QueueNotifier):
            await self.notifier.join()
            await self.notifier.close()
