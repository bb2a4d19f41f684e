import logging

from flask import Flask
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.dvr.cli import designs_cli
from app.dvr.config import load_config
from app.dvr.constants import RECORD_STORE_BACKENDS
from app.dvr.db import init_db
from app.dvr.models import Base
from app.dvr.modules.design_verification import record_store_from_config, registry_from_config

REQUIRED_TABLES = ("designs", "design_approvals", "audit_events")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    backend = app.config["RECORD_STORE"]
    if backend not in RECORD_STORE_BACKENDS:
        raise RuntimeError(f"RECORD_STORE must be one of {sorted(RECORD_STORE_BACKENDS)}, got {backend!r}.")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if backend != "sql":
            raise RuntimeError("RECORD_STORE must be sql in production (memory state is lost on restart).")
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")

    sm = None
    if backend == "sql":
        init_db(app)
        engine = app.extensions["sqlalchemy_engine"]
        if app.config.get("DB_CREATE_ALL"):
            app.logger.warning("DB_CREATE_ALL=1 set; creating tables without migrations.")
            Base.metadata.create_all(bind=engine)
        _run_schema_health_check(app)
        sm = app.extensions["sqlalchemy_sessionmaker"]

    store = record_store_from_config(app.config, sm)
    app.extensions["record_store"] = store
    app.extensions["design_registry"] = registry_from_config(app.config, store)

    app.cli.add_command(designs_cli)

    logging.getLogger(__name__).info("create_app() complete; registry ready (store=%s)", backend)

    return app


def _run_schema_health_check(app: Flask) -> None:
    """Detect drift between code expectations and DB schema; log loudly, don't block startup."""
    missing: list[str] = []
    try:
        insp = sa_inspect(app.extensions["sqlalchemy_engine"])
        for table in REQUIRED_TABLES:
            if not insp.has_table(table):
                missing.append(f"{table} (table)")
    except Exception as e:
        app.logger.exception("Schema health check failed: %s", e)

    app.config["_schema_health_ok"] = not missing
    app.config["_schema_health_missing"] = missing
    if missing:
        app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
