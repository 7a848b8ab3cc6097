import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///./examhall.db"
    secret: str = "change-me"
    jwt_lifetime_seconds: int = 3600
    sql_echo: bool = False
    # seconds allowed past the deadline before a submit counts as late
    submit_grace_seconds: int = 30
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        secret=os.getenv("SECRET", defaults.secret),
        jwt_lifetime_seconds=int(os.getenv("JWT_LIFETIME_SECONDS", defaults.jwt_lifetime_seconds)),
        sql_echo=os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes"),
        submit_grace_seconds=int(os.getenv("EXAM_SUBMIT_GRACE_SECONDS", defaults.submit_grace_seconds)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")) or defaults.cors_origins,
    )


settings = load_settings()
