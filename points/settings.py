import logging
import os

from pydantic import BaseModel, Field


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    service_name: str = "points-ledger"
    log_level: str = "INFO"
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            service_name=_env_str("POINTS_SERVICE_NAME", "points-ledger"),
            log_level=_env_str("POINTS_LOG_LEVEL", "INFO").upper(),
            cors_allow_origins=_env_list("POINTS_CORS_ORIGINS", ["*"]),
            host=_env_str("POINTS_HOST", "0.0.0.0"),
            port=_env_int("POINTS_PORT", 3001),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
