from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone

from onboardflow.utils.datetime import ORG_UTC_OFFSET_MINUTES, org_timezone


def _csv(value: str) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default) or default)


@dataclass(frozen=True)
class BaseConfig:
    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"

    # Fixed organization offset (IST, +05:30). No DST handling.
    ORG_UTC_OFFSET_MINUTES: int = ORG_UTC_OFFSET_MINUTES

    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "onboarding"
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    CORS_ORIGINS: list[str] | str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"

    INTERNAL_CRON_TOKEN: str = ""
    MAX_BATCH_SIZE: int = 100
    DEFAULT_BATCH_DURATION_MINUTES: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "APP_VERSION", _env_str("APP_VERSION", self.APP_VERSION))
        object.__setattr__(
            self, "ORG_UTC_OFFSET_MINUTES", _env_int("ORG_UTC_OFFSET_MINUTES", self.ORG_UTC_OFFSET_MINUTES)
        )

        object.__setattr__(self, "MONGODB_URI", _env_str("MONGODB_URI", self.MONGODB_URI))
        object.__setattr__(self, "DB_NAME", _env_str("DB_NAME", self.DB_NAME))
        object.__setattr__(
            self,
            "MONGO_SERVER_SELECTION_TIMEOUT_MS",
            _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", self.MONGO_SERVER_SELECTION_TIMEOUT_MS),
        )

        cors_raw = os.getenv("CORS_ORIGINS")
        if cors_raw is not None:
            cors_raw = str(cors_raw or "").strip()
            object.__setattr__(self, "CORS_ORIGINS", "*" if cors_raw == "*" else _csv(cors_raw))
        elif isinstance(self.CORS_ORIGINS, str) and self.CORS_ORIGINS != "*":
            object.__setattr__(self, "CORS_ORIGINS", _csv(self.CORS_ORIGINS))
        object.__setattr__(
            self, "CORS_ALLOW_CREDENTIALS", _env_bool("CORS_ALLOW_CREDENTIALS", self.CORS_ALLOW_CREDENTIALS)
        )

        object.__setattr__(self, "LOG_LEVEL", _env_str("LOG_LEVEL", self.LOG_LEVEL).upper())

        object.__setattr__(
            self, "INTERNAL_CRON_TOKEN", str(os.getenv("INTERNAL_CRON_TOKEN", self.INTERNAL_CRON_TOKEN) or "").strip()
        )
        object.__setattr__(self, "MAX_BATCH_SIZE", _env_int("MAX_BATCH_SIZE", self.MAX_BATCH_SIZE))
        object.__setattr__(
            self,
            "DEFAULT_BATCH_DURATION_MINUTES",
            _env_int("DEFAULT_BATCH_DURATION_MINUTES", self.DEFAULT_BATCH_DURATION_MINUTES),
        )

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    @property
    def ORG_TZ(self) -> timezone:
        return org_timezone(self.ORG_UTC_OFFSET_MINUTES)

    def validate(self) -> None:
        if self.IS_PRODUCTION and (not str(self.MONGODB_URI or "").strip() or not str(self.DB_NAME or "").strip()):
            raise RuntimeError("MONGODB_URI and DB_NAME must be set in production")
        if self.IS_PRODUCTION and str(self.MONGODB_URI).startswith("mongomock://"):
            raise RuntimeError("mongomock:// is not allowed in production")
        if self.IS_PRODUCTION and not self.INTERNAL_CRON_TOKEN:
            raise RuntimeError("INTERNAL_CRON_TOKEN must be set in production")
        if not -14 * 60 <= int(self.ORG_UTC_OFFSET_MINUTES) <= 14 * 60:
            raise RuntimeError("ORG_UTC_OFFSET_MINUTES must be within +/-840")
        if int(self.MAX_BATCH_SIZE) < 1:
            raise RuntimeError("MAX_BATCH_SIZE must be >= 1")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    MONGODB_URI: str = "mongomock://localhost"
    DB_NAME: str = "onboarding_test"


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
