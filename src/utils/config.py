# runtime settings, read from the environment once per process
import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """
    Environment-backed configuration.

    Fields:
      - db_path: sqlite file backing the document store
      - store_timeout: seconds allowed for any single store call
      - userid_max_attempts: registration attempts before giving up on a unique userID
      - session_ttl: seconds a login session stays valid, 0 means no expiry
      - email_backend: "log" or "smtp"
    """

    db_path: str = "data/shop.sqlite"
    store_timeout: float = 5.0
    userid_max_attempts: int = 5
    session_ttl: int = 0
    email_backend: str = "log"
    email_user: str = ""
    email_pass: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=os.getenv("DB_PATH", cls.db_path),
            store_timeout=_env_float("STORE_TIMEOUT", cls.store_timeout),
            userid_max_attempts=_env_int("USERID_MAX_ATTEMPTS", cls.userid_max_attempts),
            session_ttl=_env_int("SESSION_TTL", cls.session_ttl),
            email_backend=os.getenv("EMAIL_BACKEND", cls.email_backend).lower(),
            email_user=os.getenv("EMAIL_USER", cls.email_user),
            email_pass=os.getenv("EMAIL_PASS", cls.email_pass),
            smtp_host=os.getenv("SMTP_HOST", cls.smtp_host),
            smtp_port=_env_int("SMTP_PORT", cls.smtp_port),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
