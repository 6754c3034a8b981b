# provide dataclass models and their document mapping

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    ADMIN = "admin"
    BUYER = "buyer"


def _parse_ts(val) -> datetime:
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val)


@dataclass
class Account:
    user_id: str
    pin: str
    full_name: str
    email: str
    role: Role
    cart: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def to_document(self) -> dict:
        return {
            "_id": self.user_id,
            "userID": self.user_id,
            "pin": self.pin,
            "fullName": self.full_name,
            "email": self.email,
            "role": self.role.value,
            "cart": list(self.cart),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "Account":
        return cls(
            user_id=doc["userID"],
            pin=doc["pin"],
            full_name=doc["fullName"],
            email=doc["email"],
            role=Role(doc["role"]),
            cart=list(doc.get("cart") or []),
            created_at=_parse_ts(doc["createdAt"]),
        )

    def to_public(self) -> dict:
        """Account payload without the PIN."""
        return {
            "userID": self.user_id,
            "fullName": self.full_name,
            "email": self.email,
            "role": self.role.value,
            "cart": list(self.cart),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Product:
    pid: str
    name: str
    description: str
    price: float
    quantity: int
    created_at: datetime

    def to_document(self) -> dict:
        return {
            "_id": self.pid,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "quantity": self.quantity,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "Product":
        return cls(
            pid=doc["_id"],
            name=doc["name"],
            description=doc.get("description") or "",
            price=doc["price"],
            quantity=doc["quantity"],
            created_at=_parse_ts(doc["createdAt"]),
        )

    def to_public(self) -> dict:
        doc = self.to_document()
        doc["id"] = doc.pop("_id")
        return doc


@dataclass(frozen=True)
class Session:
    account_ref: str
    role: Role
    expires_at: Optional[float] = None  # time.monotonic() deadline


@dataclass(frozen=True)
class Registration:
    user_id: str
    pin: str


@dataclass(frozen=True)
class LoginResult:
    role: Role
    user_id: str
    token: str
