import random
import secrets

USER_ID_PREFIX = "ID"
USER_ID_HEX_BYTES = 3  # 6 hex characters


class CredentialGenerator:
    """
    Produces login credentials for new accounts.

    User IDs come from `secrets` and are not unique by construction; the account
    registry retries on a key collision. PINs are a 4-digit convenience value from
    `random` and are never unique.
    """

    def generate_user_id(self) -> str:
        return USER_ID_PREFIX + secrets.token_hex(USER_ID_HEX_BYTES).upper()

    def generate_pin(self) -> str:
        return str(random.randint(1000, 9999))
