from __future__ import annotations

import importlib
import logging
import time
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .attendance.controller import register as register_attendance
from .common.web import json_error
from .config import get_settings_module
from .container import Container, build_container
from .core.enums import MarkErrorCode
from .database.bootstrap import SCHEMA_PATH, apply_schema, list_tables
from .lifecycle.watcher import LifecycleWatcher
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)


def _cors_origins(value) -> list[str] | str:
    if isinstance(value, (list, tuple)):
        return list(value)
    value = str(value or "*").strip()
    if value == "*":
        return "*"
    return [o.strip() for o in value.split(",") if o.strip()]


def create_app(container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["LATE_WINDOW_MINUTES"] = int(getattr(settings, "LATE_WINDOW_MINUTES", 10))
    app.config["STATUS_POLL_SECONDS"] = int(getattr(settings, "STATUS_POLL_SECONDS", 10))
    app.config["REFRESH_SECONDS"] = int(getattr(settings, "REFRESH_SECONDS", 30))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    # OPTIONS preflights on /api/* are answered by flask-cors before any view runs.
    CORS(app, resources={r"/api/*": {"origins": _cors_origins(getattr(settings, "CORS_ORIGINS", "*"))}})

    if container is None:
        container = build_container(db_config=db_config, late_window_minutes=app.config["LATE_WINDOW_MINUTES"])
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(container.conn, db_config["database"], schema_path=SCHEMA_PATH)
            logger.info("Schema ready (tables=%s)", len(list_tables(container.conn)))

    app.extensions["class_attendance"] = container

    register_error_handlers(app)
    register_attendance(app, container)
    register_sessions(app, container)
    register_cli(app, container)

    return app


def register_error_handlers(app: Flask) -> None:
    def handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return json_error("Internal server error", 500, error_code=MarkErrorCode.INTERNAL_ERROR.value)

    app.register_error_handler(Exception, handle_unexpected)


def register_cli(app: Flask, container: Container) -> None:
    @app.cli.command("watch-sessions")
    @click.option("--student", "student_id", type=int, default=None, help="Watch sessions of this student.")
    @click.option("--delegate", "delegate_id", type=int, default=None, help="Watch sessions of this delegate.")
    @click.option("--close-stale", is_flag=True, default=False, help="Also close sessions already ended at first load.")
    def watch_sessions(student_id: Optional[int], delegate_id: Optional[int], close_stale: bool) -> None:
        """Track session status and backfill absences as sessions close."""
        if (student_id is None) == (delegate_id is None):
            raise click.UsageError("Pass exactly one of --student or --delegate")

        options = dict(
            status_interval=app.config["STATUS_POLL_SECONDS"],
            refresh_interval=app.config["REFRESH_SECONDS"],
            close_stale_on_load=close_stale,
        )
        if student_id is not None:
            watcher = LifecycleWatcher.for_student(container.query_service, container.closure_service, student_id, **options)
        else:
            watcher = LifecycleWatcher.for_delegate(container.query_service, container.closure_service, delegate_id, **options)

        with watcher:
            buckets = watcher.buckets
            click.echo(
                f"Watching {len(buckets.all())} session(s): "
                f"{len(buckets.scheduled)} scheduled, {len(buckets.open)} open, {len(buckets.closed)} closed"
            )
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                click.echo("Stopping")
