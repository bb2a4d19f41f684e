import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    env: str
    database_url: str

    record_store: str
    authority_identity: str
    db_create_all: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///dvr.db"),
        record_store=_getenv("RECORD_STORE", "sql").lower(),
        authority_identity=_getenv("AUTHORITY_IDENTITY", ""),
        db_create_all=_getenv("DB_CREATE_ALL", "0") == "1",
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "RECORD_STORE": s.record_store,
        "AUTHORITY_IDENTITY": s.authority_identity,
        "DB_CREATE_ALL": s.db_create_all,
    }
