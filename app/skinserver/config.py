import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    site_url: str

    mail_driver: str
    mail_host: str
    mail_port: int
    mail_username: str
    mail_password: str
    mail_encryption: str
    mail_from_address: str
    mail_from_name: str
    mail_timeout: int

    reset_link_ttl: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///skinserver.db"),
        site_url=_getenv("SITE_URL", ""),
        mail_driver=_getenv("MAIL_DRIVER", "").lower(),
        mail_host=_getenv("MAIL_HOST", "localhost"),
        mail_port=_getenv_int("MAIL_PORT", 587),
        mail_username=_getenv("MAIL_USERNAME", ""),
        mail_password=_getenv("MAIL_PASSWORD", ""),
        mail_encryption=_getenv("MAIL_ENCRYPTION", "tls").lower(),
        mail_from_address=_getenv("MAIL_FROM_ADDRESS", ""),
        mail_from_name=_getenv("MAIL_FROM_NAME", ""),
        mail_timeout=_getenv_int("MAIL_TIMEOUT", 10),
        reset_link_ttl=_getenv_int("RESET_LINK_TTL", 3600),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "SITE_URL": s.site_url,
        "MAIL_DRIVER": s.mail_driver,
        "MAIL_HOST": s.mail_host,
        "MAIL_PORT": s.mail_port,
        "MAIL_USERNAME": s.mail_username,
        "MAIL_PASSWORD": s.mail_password,
        "MAIL_ENCRYPTION": s.mail_encryption,
        "MAIL_FROM_ADDRESS": s.mail_from_address,
        "MAIL_FROM_NAME": s.mail_from_name,
        "MAIL_TIMEOUT": s.mail_timeout,
        "RESET_LINK_TTL": s.reset_link_ttl,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
