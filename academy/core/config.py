from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
CertificatePolicy = Literal["review", "auto"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it's easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str, *, minimum: int) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None

    # Bearer token verification (tokens are minted by the auth service)
    jwt_issuer: str = "auth-service"
    jwt_audience: str = "academy"
    jwt_public_key: str | None = None

    # Certificate workflow
    certificate_policy: CertificatePolicy = "review"
    certificate_code_prefix: str = "HACK"
    certificate_code_max_attempts: int = 5

    # Advisory "ready for certification" threshold shown to instructors
    ready_quiz_average: int = 70

    # Analytics projections
    analytics_cache_ttl: int = 300
    analytics_refresh_interval: int = 900

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def auto_issue_certificates(self) -> bool:
        return self.certificate_policy == "auto"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    policy_raw = _getenv("CERTIFICATE_POLICY", "review").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    if policy_raw not in ("review", "auto"):
        raise ValueError(
            f"CERTIFICATE_POLICY must be review|auto (got {policy_raw!r})"
        )

    code_prefix = _getenv("CERTIFICATE_CODE_PREFIX", "HACK").upper()
    if not code_prefix.isalnum():
        raise ValueError(
            f"CERTIFICATE_CODE_PREFIX must be alphanumeric (got {code_prefix!r})"
        )

    ready_quiz_average = _getint("READY_QUIZ_AVERAGE", "70", minimum=0)
    if ready_quiz_average > 100:
        raise ValueError(
            f"READY_QUIZ_AVERAGE must be <= 100 (got {ready_quiz_average})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if app_env_raw == "prod" and jwt_public_key is None:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=_getint("PORT", "8000", minimum=1),
        database_url=database_url,
        redis_url=redis_url,
        jwt_issuer=_getenv("JWT_ISSUER", "auth-service"),
        jwt_audience=_getenv("JWT_AUDIENCE", "academy"),
        jwt_public_key=jwt_public_key,
        certificate_policy=policy_raw,
        certificate_code_prefix=code_prefix,
        certificate_code_max_attempts=_getint(
            "CERTIFICATE_CODE_MAX_ATTEMPTS", "5", minimum=1
        ),
        ready_quiz_average=ready_quiz_average,
        analytics_cache_ttl=_getint("ANALYTICS_CACHE_TTL", "300", minimum=0),
        analytics_refresh_interval=_getint(
            "ANALYTICS_REFRESH_INTERVAL", "900", minimum=1
        ),
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
