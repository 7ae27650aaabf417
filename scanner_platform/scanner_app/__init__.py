"""scanner_app package – application factory and blueprint registration."""

from __future__ import annotations

import os
from pathlib import Path
from time import perf_counter

import click
from flask import Flask, g, request
from sqlalchemy import event

from config import resolve_config
from .blueprints import BLUEPRINTS
from .extensions import cors, db, migrate
from .logging_config import assign_request_id, configure_logging
from .metrics import record_request


def create_app(config_name: str | None = None) -> Flask:
    """Application factory used by both CLI and runtime servers."""

    app = Flask(__name__)
    _configure_app(app, config_name)
    configure_logging(app)
    _register_extensions(app)
    _register_blueprints(app)
    _register_shellcontext(app)
    _register_cli(app)
    _register_bootstrap(app)
    _register_request_hooks(app)

    return app


def _configure_app(app: Flask, config_name: str | None) -> None:
    env_name = config_name or os.getenv("FLASK_CONFIG")
    config_obj = resolve_config(env_name)
    app.config.from_object(config_obj)


def _register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    _configure_sqlite_engine(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
    )


def _register_blueprints(app: Flask) -> None:
    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)


def _register_shellcontext(app: Flask) -> None:
    # Lazy import inside function to avoid circular dependencies.
    from . import models  # noqa: F401

    @app.shell_context_processor
    def shell_context():
        return {"db": db}


def _register_bootstrap(app: Flask) -> None:
    @app.before_request
    def ensure_schema():
        if app.config.get("_SCHEMA_READY"):
            return
        _ensure_schema(app)
        app.config["_SCHEMA_READY"] = True


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def start_request():
        assign_request_id()
        g.request_started_at = perf_counter()

    @app.after_request
    def finalize(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        started = getattr(g, "request_started_at", None)
        latency = perf_counter() - started if started else 0.0
        endpoint = request.endpoint or request.path
        record_request(request.method, endpoint, response.status_code, latency)
        return response


def _configure_sqlite_engine(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not uri.startswith("sqlite"):
        return
    busy_timeout_ms = int(app.config.get("SQLITE_BUSY_TIMEOUT_MS", 15000))

    with app.app_context():
        engine = db.engine

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):  # pragma: no cover
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms};")
                cursor.execute("PRAGMA synchronous=NORMAL;")
            finally:
                cursor.close()


def _ensure_schema(app: Flask) -> None:
    from . import models  # noqa: F401

    with app.app_context():
        db.create_all()


def _register_cli(app: Flask) -> None:
    @app.cli.command("seed-catalog")
    @click.option("--exam", "exam_name", default="Sample Exam", show_default=True)
    @click.option("--course", "course_name", default="Sample Course", show_default=True)
    @click.option("--slot", "slot_name", default="Slot 1", show_default=True)
    @click.option("--part", "part_name", default="Part A", show_default=True)
    def seed_catalog(exam_name: str, course_name: str, slot_name: str, part_name: str) -> None:
        """Create an exam / course / slot / part to tag scans with."""

        from .models import Course, Exam, Part, Slot

        with app.app_context():
            _ensure_schema(app)
            exam = Exam.query.filter_by(name=exam_name).first()
            if not exam:
                exam = Exam(name=exam_name)
                db.session.add(exam)
            course = None
            if exam.id:
                course = Course.query.filter_by(exam_id=exam.id, name=course_name).first()
            if not course:
                course = Course(exam=exam, name=course_name)
                db.session.add(course)
                slot = Slot(course=course, slot_name=slot_name)
                db.session.add(slot)
                db.session.add(Part(course=course, slot=slot, part_name=part_name))
            db.session.commit()
            click.echo(f"Exam {exam.id} / course {course.id} ready.")

    @app.cli.command("scan-pdf")
    @click.argument(
        "pdf_paths",
        nargs=-1,
        required=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
    )
    @click.option("--year", type=int, required=True, help="Exam year stamped on every question.")
    @click.option("--course-id", required=True, help="Catalogue course id.")
    @click.option("--slot-id", default=None, help="Catalogue slot id.")
    @click.option("--part-id", default=None, help="Catalogue part id.")
    @click.option("--no-save", is_flag=True, default=False, help="Extract without storing questions.")
    @click.option(
        "--api-key",
        "api_keys",
        multiple=True,
        help="Gemini API key; repeat to rotate across several. Defaults to GEMINI_API_KEYS.",
    )
    def scan_pdf(
        pdf_paths: tuple[Path, ...],
        year: int,
        course_id: str,
        slot_id: str | None,
        part_id: str | None,
        no_save: bool,
        api_keys: tuple[str, ...],
    ) -> None:
        """Scan one or more PDFs in sequence and print a summary per document."""

        from .models import Course, ScanJob
        from .services.question_types import build_question_types, serialize_question_types
        from .tasks.scan_tasks import process_scan_batch

        keys = [key for key in api_keys if key.strip()] or list(app.config.get("GEMINI_API_KEYS") or [])
        if not keys:
            raise click.UsageError("Provide --api-key or set GEMINI_API_KEYS.")

        with app.app_context():
            _ensure_schema(app)
            if db.session.get(Course, course_id) is None:
                raise click.UsageError(f"Course {course_id} not found; run `flask seed-catalog` first.")
            question_types = serialize_question_types(build_question_types())
            jobs = []
            for path in pdf_paths:
                job = ScanJob(
                    filename=path.name,
                    source_path=str(path.resolve()),
                    year=year,
                    course_id=course_id,
                    slot_id=slot_id,
                    part_id=part_id,
                    question_types=question_types,
                    auto_save=not no_save,
                    status_message="Queued",
                )
                db.session.add(job)
                jobs.append(job)
            db.session.commit()

            for job in process_scan_batch([job.id for job in jobs], api_keys=keys):
                line = f"{job.filename}: {job.status}, {job.total_questions} questions from {job.total_pages} pages"
                if job.skipped_pages:
                    line += f"; skipped pages {', '.join(str(i + 1) for i in job.skipped_pages)}"
                if job.failed_pages:
                    line += f"; failed pages {', '.join(str(int(i) + 1) for i in job.failed_pages)}"
                if job.error_message:
                    line += f" ({job.error_message})"
                click.echo(line)
