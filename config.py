from __future__ import annotations
import os
from pathlib import Path

# Absolute project dir
BASE_DIR = Path(__file__).resolve().parent
# Absolute instance dir (defaults to <project>/instance)
INSTANCE_DIR = Path(os.getenv("INSTANCE_DIR", BASE_DIR / "instance")).resolve()


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class BaseConfig:
    # Flask basics
    SECRET_KEY = os.getenv("SECRET_KEY", "dev")  # override in prod!
    TEMPLATES_AUTO_RELOAD = False

    # Database (absolute sqlite path; forward slashes are fine on Windows)
    DEFAULT_SQLITE = f"sqlite:///{(INSTANCE_DIR / 'roledesk.db').as_posix()}"
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", DEFAULT_SQLITE)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cookie security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")

    # CSRF: accept the header sent by Inertia/axios alongside the Flask-WTF default
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token", "X-XSRF-TOKEN"]

    # Cache configuration (defaults to in-process SimpleCache)
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", 600))
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_REDIS_URL = os.getenv("CACHE_REDIS_URL")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per minute")
    RATELIMIT_LOGIN = os.getenv("RATELIMIT_LOGIN", "5 per minute")
    ENABLE_TALISMAN = _env_flag("ENABLE_TALISMAN", "1")
    TALISMAN_FORCE_HTTPS = _env_flag("TALISMAN_FORCE_HTTPS", "1")
    CONTENT_SECURITY_POLICY = {
        "default-src": "'self'",
        "img-src": "'self' data:",
        "script-src": "'self'",
        "style-src": "'self' 'unsafe-inline'",
        "connect-src": "'self'",
        "font-src": "'self' data:",
    }

    # Authorization
    AUTH_GUARD = os.getenv("AUTH_GUARD", "web")
    MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", 8))
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

    # Listing / export policy
    LIST_DEFAULT_PER_PAGE = int(os.getenv("LIST_DEFAULT_PER_PAGE", 15))
    LIST_MAX_PER_PAGE = int(os.getenv("LIST_MAX_PER_PAGE", 100))
    SELECTED_MAX_PER_PAGE = int(os.getenv("SELECTED_MAX_PER_PAGE", 100))
    EXPORT_PAGE_SIZE = int(os.getenv("EXPORT_PAGE_SIZE", 1000))
    DEFAULT_EXPORT_FORMAT = os.getenv("DEFAULT_EXPORT_FORMAT", "csv")
    ASSET_VERSION = os.getenv("ASSET_VERSION")
    EXPORT_BOOLEAN_LABELS = ("Activo", "Inactivo")

    # Role deletion rules
    ROLES_PROTECTED = _env_list("ROLES_PROTECTED")
    ROLES_DELETION_BLOCK_IF_HAS_PERMISSIONS = _env_flag("ROLES_DELETION_BLOCK_IF_HAS_PERMISSIONS")
    ROLES_DELETION_REQUIRE_INACTIVE = _env_flag("ROLES_DELETION_REQUIRE_INACTIVE")
    ROLES_CRITICAL_PERMISSIONS = _env_list(
        "ROLES_CRITICAL_PERMISSIONS",
        "roles.view,roles.update,roles.delete,roles.export",
    )


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    TEMPLATES_AUTO_RELOAD = True
    ENABLE_TALISMAN = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    ENABLE_TALISMAN = False
    CACHE_TYPE = "NullCache"
    SERVER_NAME = "localhost"


def select_config():
    """Pick the config class from FLASK_ENV; production refuses the default secret."""
    env = os.getenv("FLASK_ENV")
    if env == "development":
        return DevelopmentConfig
    if env == "testing":
        return TestingConfig
    secret = os.getenv("SECRET_KEY", "dev")
    if not secret or secret == "dev":
        raise RuntimeError("SECRET_KEY must be set to a non-default value in production.")
    return ProductionConfig

