from __future__ import annotations

import importlib
from typing import Optional

import structlog
from dotenv import load_dotenv
from flask import Flask

from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .logging import setup_logging

logger = structlog.get_logger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", None))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if container is None:
        store_backend = getattr(settings, "STORE_BACKEND", "memory")
        db_config = getattr(settings, "DB_CONFIG", {})
        container = build_container(
            store_backend=store_backend,
            db_config=db_config,
            poll_interval=float(getattr(settings, "FEED_POLL_SECONDS", 2.0)),
        )
        logger.info(
            "app_configured",
            settings=settings_module,
            store=store_backend,
            db=container.conn.describe() if container.conn is not None else None,
        )

        if container.conn is not None and bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(container.conn)
            logger.info("schema_ready", tables=len(list_tables(container.conn)))

    app.extensions["attendance_container"] = container
    register_attendance(app, container)

    return app
