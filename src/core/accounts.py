from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.credentials import CredentialGenerator
from core.errors import AuthError, ConflictError, NotFoundError, ValidationError
from core.notifier import CredentialsMessage, Notifier
from core.sessions import SessionStore
from db.models import Account, LoginResult, Registration, Role
from db.store import DocumentStore, DuplicateKeyError
from utils.logger import get_logger

_logger = get_logger(__name__)

ACCOUNTS = "accounts"


def _required(value, field: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


class AccountRegistry:
    """
    Owns account creation and authentication.

    The userID is the account document's key, so a create-only save is the
    uniqueness check; a collision regenerates credentials and tries again.
    """

    def __init__(
        self,
        store: DocumentStore,
        sessions: SessionStore,
        notifier: Notifier,
        generator: Optional[CredentialGenerator] = None,
        max_attempts: int = 5,
    ):
        self.store = store
        self.sessions = sessions
        self.notifier = notifier
        self.generator = generator or CredentialGenerator()
        self.max_attempts = max(1, max_attempts)

    async def register(self, full_name, email, role) -> Registration:
        """Create an account and queue its credentials for email.

        Returns the new (userID, pin). This is the only place the PIN is handed out.
        """
        full_name = _required(full_name, "fullName")
        email = _required(email, "email")
        role_value = _required(role, "role")
        try:
            role = Role(role_value)
        except ValueError:
            raise ValidationError(f"role must be one of: {', '.join(r.value for r in Role)}")

        account = None
        for attempt in range(1, self.max_attempts + 1):
            account = Account(
                user_id=self.generator.generate_user_id(),
                pin=self.generator.generate_pin(),
                full_name=full_name,
                email=email,
                role=role,
                created_at=datetime.now(),
            )
            try:
                await self.store.save(ACCOUNTS, account.to_document(), create=True)
                break
            except DuplicateKeyError:
                _logger.warning(
                    f"userID {account.user_id} already taken (attempt {attempt}/{self.max_attempts})"
                )
        else:
            raise ConflictError("Could not allocate a unique userID")

        _logger.info(f"Registered {account.role.value} account {account.user_id}")
        try:
            self.notifier.notify(
                CredentialsMessage.for_account(full_name, email, account.user_id, account.pin)
            )
        except Exception:
            _logger.exception(f"Could not queue credentials email for {account.user_id}")

        return Registration(user_id=account.user_id, pin=account.pin)

    async def login(self, user_id, pin) -> LoginResult:
        """Match the exact (userID, pin) pair and open a session.

        Unknown ID and wrong PIN fail the same way.
        """
        if user_id is None or pin is None or not str(user_id).strip() or not str(pin).strip():
            raise AuthError()
        # exact match: padded input is a different credential
        doc = await self.store.find_one(ACCOUNTS, {"userID": str(user_id), "pin": str(pin)})
        if doc is None:
            _logger.info("Rejected login attempt")
            raise AuthError()

        account = Account.from_document(doc)
        token = self.sessions.create(account.user_id, account.role)
        _logger.info(f"Login for {account.user_id} ({account.role.value})")
        return LoginResult(role=account.role, user_id=account.user_id, token=token)

    async def get_account(self, user_id) -> Account:
        if user_id is None or not str(user_id).strip():
            raise ValidationError("userID is required")
        doc = await self.store.find_one(ACCOUNTS, {"userID": str(user_id).strip()})
        if doc is None:
            raise NotFoundError("User not found")
        return Account.from_document(doc)

    async def save_account(self, account: Account) -> None:
        await self.store.save(ACCOUNTS, account.to_document())
