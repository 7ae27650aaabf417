"""Scan job endpoints: upload PDFs, follow progress, browse results."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from threading import Thread
from typing import List

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from marshmallow import ValidationError
from sqlalchemy.orm import scoped_session, sessionmaker

from ..extensions import db
from ..models import Course, ScanJob
from ..schemas import QuestionSchema, ScanJobCreateSchema
from ..services import inference_log, question_service
from ..services.job_events import KEEPALIVE, job_event_broker
from ..services.question_types import build_question_types, enabled_type_names, serialize_question_types
from ..tasks.scan_tasks import process_scan_batch
from ..utils import commit_with_retry, is_pdf, save_upload

logger = logging.getLogger(__name__)

scan_bp = Blueprint("scan_bp", __name__)
create_schema = ScanJobCreateSchema()
questions_schema = QuestionSchema(many=True)

JSON_FORM_FIELDS = ("question_types", "api_keys", "years")


@scan_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@scan_bp.get("/ping")
def ping():
    return jsonify({"module": "scan", "status": "ok"})


def _split_api_keys(raw: str) -> List[str]:
    return [line.strip() for line in raw.replace(",", "\n").splitlines() if line.strip()]


def _form_payload() -> dict:
    """Form fields as a plain dict, decoding the JSON-encoded ones."""
    payload = {key: value for key, value in request.form.items() if value != ""}
    for key in JSON_FORM_FIELDS:
        raw = payload.get(key)
        if raw is None:
            continue
        try:
            payload[key] = json.loads(raw)
        except ValueError:
            if key != "api_keys":
                raise ValidationError({key: ["Invalid JSON."]})
            payload[key] = _split_api_keys(raw)
    return payload


def _run_batch_async(app, job_ids: List[int], api_keys: List[str]) -> None:
    """Background helper to scan a batch without blocking the request."""

    def _target():
        with app.app_context():
            try:
                process_scan_batch(job_ids, api_keys=api_keys)
            finally:
                db.session.remove()

    Thread(target=_target, daemon=True).start()


def _dispatch_batch(jobs: List[ScanJob], api_keys: List[str]) -> None:
    """Run the batch synchronously in tests, asynchronously otherwise."""
    app = current_app._get_current_object()
    job_ids = [job.id for job in jobs]
    if app.config.get("TESTING") or app.config.get("SCAN_JOBS_SYNC"):
        process_scan_batch(job_ids, api_keys=api_keys)
        for job in jobs:
            db.session.refresh(job)
        return
    _run_batch_async(app, job_ids, api_keys)


@scan_bp.post("/jobs")
def create_jobs():
    files = [file for file in request.files.getlist("file") if file and file.filename]
    if not files:
        return jsonify({"message": "No file provided"}), HTTPStatus.BAD_REQUEST
    if not all(is_pdf(file) for file in files):
        return jsonify({"message": "Only PDF files are accepted"}), HTTPStatus.BAD_REQUEST
    max_files = current_app.config.get("SCAN_MAX_FILES", 20)
    if len(files) > max_files:
        return jsonify({"message": f"At most {max_files} files per batch"}), HTTPStatus.BAD_REQUEST

    data = create_schema.load(_form_payload())
    if db.session.get(Course, data["course_id"]) is None:
        return jsonify({"message": "Unknown course"}), HTTPStatus.BAD_REQUEST

    years = data["years"] or [data["year"]] * len(files)
    if len(years) != len(files) or any(year is None for year in years):
        raise ValidationError({"year": ["A year is required for every file."]})

    api_keys = data["api_keys"] or list(current_app.config.get("GEMINI_API_KEYS") or [])
    api_keys = [key.strip() for key in api_keys if key and key.strip()]
    if not api_keys:
        return jsonify({"message": "At least one API key is required"}), HTTPStatus.BAD_REQUEST

    question_types = build_question_types(data["question_types"])
    if not enabled_type_names(question_types):
        raise ValidationError({"question_types": ["Enable at least one question type."]})
    auto_save = data["auto_save"]
    if auto_save is None:
        auto_save = current_app.config.get("SCAN_AUTO_SAVE", True)

    jobs: List[ScanJob] = []
    for file, year in zip(files, years):
        original_name, path = save_upload(file)
        job = ScanJob(
            filename=original_name,
            source_path=str(path),
            year=year,
            course_id=data["course_id"],
            slot_id=data["slot_id"],
            part_id=data["part_id"],
            question_types=serialize_question_types(question_types),
            auto_save=auto_save,
            status="pending",
            status_message="Queued",
        )
        db.session.add(job)
        jobs.append(job)
    commit_with_retry()
    logger.info("Queued %s scan jobs", len(jobs))
    for job in jobs:
        job_event_broker.publish({"type": "job", "payload": job.serialize()})

    _dispatch_batch(jobs, api_keys)
    return jsonify({"jobs": [job.serialize() for job in jobs]}), HTTPStatus.ACCEPTED


@scan_bp.get("/jobs")
def list_jobs():
    limit = max(1, min(int(request.args.get("limit", 50)), 200))
    jobs = ScanJob.query.order_by(ScanJob.created_at.desc(), ScanJob.id.desc()).limit(limit).all()
    return jsonify({"jobs": [job.serialize() for job in jobs]})


@scan_bp.get("/jobs/<int:job_id>")
def get_job(job_id: int):
    job = db.session.get(ScanJob, job_id)
    if job is None:
        return jsonify({"message": "Job not found"}), HTTPStatus.NOT_FOUND
    return jsonify({"job": job.serialize()})


@scan_bp.post("/jobs/<int:job_id>/save")
def save_job_questions(job_id: int):
    job = db.session.get(ScanJob, job_id)
    if job is None:
        return jsonify({"message": "Job not found"}), HTTPStatus.NOT_FOUND
    if job.status != "completed":
        return jsonify({"message": "Job has not finished scanning"}), HTTPStatus.CONFLICT
    if not job.unsaved_questions:
        return jsonify({"message": "No unsaved questions for this job"}), HTTPStatus.BAD_REQUEST
    saved, failed = question_service.save_unsaved_questions(job)
    job = db.session.get(ScanJob, job_id)
    job_event_broker.publish({"type": "job", "payload": job.serialize()})
    return jsonify({"saved": saved, "failed": failed, "job": job.serialize()})


@scan_bp.get("/questions")
def list_questions():
    page = int(request.args.get("page", 1))
    per_page = int(request.args.get("per_page", 20))
    pagination = question_service.list_questions(
        page=page,
        per_page=per_page,
        job_id=request.args.get("job_id", type=int),
        course_id=request.args.get("course_id"),
        question_type=request.args.get("question_type"),
    )
    return jsonify(
        {
            "items": questions_schema.dump(pagination.items),
            "total": pagination.total,
            "page": pagination.page,
            "per_page": pagination.per_page,
        }
    )


@scan_bp.get("/logs/inference")
def inference_logs():
    limit = request.args.get("limit", default=100, type=int)
    return jsonify({"items": inference_log.get_logs(limit)})


@scan_bp.get("/events")
def scan_events():
    def event_stream():
        Session = scoped_session(sessionmaker(bind=db.engine))
        try:
            session = Session()
            jobs = session.query(ScanJob).order_by(ScanJob.created_at.desc()).limit(20).all()
            payload = [job.serialize() for job in jobs]
            yield f"data: {json.dumps({'type': 'snapshot', 'payload': payload})}\n\n"
        finally:
            Session.remove()
        for message in job_event_broker.listen():
            if message == KEEPALIVE:
                yield f"{message}\n\n"
            else:
                yield f"data: {message}\n\n"

    return Response(stream_with_context(event_stream()), mimetype="text/event-stream")
