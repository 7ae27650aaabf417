"""Tasks for processing uploaded exam PDFs."""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Iterable, List, Optional

from flask import current_app

from ..extensions import db
from ..models import Part, ScanJob, Slot
from ..services.credential_rotator import CredentialRotator
from ..services.inference_gateway import build_gateway
from ..services.job_events import job_event_broker
from ..services.pdf_render import render_pdf_pages
from ..services.question_service import save_question
from ..services.question_types import build_question_types
from ..services.scan_service import scan_document
from ..services.scan_types import Provenance, QuestionRecord
from ..utils.db import commit_with_retry

logger = logging.getLogger(__name__)


def _publish_job(job: ScanJob) -> None:
    job_event_broker.publish({"type": "job", "payload": job.serialize()})


def _provenance_for(job: ScanJob) -> Provenance:
    slot = db.session.get(Slot, job.slot_id) if job.slot_id else None
    part = db.session.get(Part, job.part_id) if job.part_id else None
    return Provenance(
        year=job.year,
        course_id=job.course_id,
        slot=slot.slot_name if slot else "",
        part=part.part_name if part else "",
        slot_id=job.slot_id,
        part_id=job.part_id,
    )


def _default_rotator() -> CredentialRotator:
    return CredentialRotator(current_app.config.get("GEMINI_API_KEYS") or [])


def process_scan_job(job_id: int, rotator: Optional[CredentialRotator] = None) -> ScanJob:
    job = db.session.get(ScanJob, job_id)
    if not job:
        raise ValueError(f"Job {job_id} not found")
    job_id_int = job.id
    if rotator is None:
        rotator = _default_rotator()
    config = current_app.config
    log_extra = {"job_id": job_id_int}

    job.status = "processing"
    job.error_message = None
    job.status_message = "Rendering pages"
    commit_with_retry()
    _publish_job(job)
    logger.info("Scanning %s", job.filename, extra=log_extra)

    def _progress(processed: int, total: int, questions: int, message: str) -> None:
        job.processed_pages = processed
        job.total_pages = total
        job.total_questions = questions
        job.status_message = message
        commit_with_retry()
        _publish_job(job)

    def _on_question(record: QuestionRecord) -> None:
        job_event_broker.publish(
            {"type": "question", "job_id": job_id_int, "payload": record.to_payload()}
        )

    persist = partial(save_question, job_id=job_id_int) if job.auto_save else None
    render = partial(
        render_pdf_pages,
        resolution=config.get("PDF_RENDER_RESOLUTION", 144),
        max_pages=config.get("PDF_MAX_PAGES"),
    )
    try:
        document_bytes = Path(job.source_path).read_bytes()
        summary = scan_document(
            document_bytes,
            gateway=build_gateway(rotator, job_id=job_id_int),
            provenance=_provenance_for(job),
            question_types=build_question_types(job.question_types),
            render=render,
            persist=persist,
            question_cb=_on_question,
            progress_cb=_progress,
        )
    except Exception as exc:
        logger.exception("Scan of job %s failed", job_id_int, extra=log_extra)
        db.session.rollback()
        job = db.session.get(ScanJob, job_id_int)
        job.status = "error"
        job.error_message = str(exc)
        job.status_message = "Failed"
        commit_with_retry()
        _publish_job(job)
        return job

    job = db.session.get(ScanJob, job_id_int)
    job.status = "completed"
    job.total_pages = summary.total_pages
    job.processed_pages = summary.total_pages
    job.total_questions = summary.total_questions
    job.skipped_pages = list(summary.skipped_page_indices)
    job.failed_pages = {str(k): v for k, v in summary.failed_pages.items()}
    if not job.auto_save:
        job.unsaved_questions = [record.to_payload() for record in summary.questions] or None
    if summary.skipped_page_indices:
        pages = ", ".join(str(index + 1) for index in summary.skipped_page_indices)
        job.status_message = f"Completed with {summary.total_questions} questions; skipped pages: {pages}"
    else:
        job.status_message = f"Completed with {summary.total_questions} questions"
    commit_with_retry()
    _publish_job(job)
    job_event_broker.publish({"type": "summary", "job_id": job_id_int, "payload": summary.serialize()})
    return job


def process_scan_batch(job_ids: Iterable[int], api_keys: Optional[List[str]] = None) -> List[ScanJob]:
    """Run jobs one after another, sharing a single key rotation across the batch."""
    rotator = CredentialRotator(api_keys) if api_keys else _default_rotator()
    results: List[ScanJob] = []
    for job_id in job_ids:
        try:
            results.append(process_scan_job(job_id, rotator=rotator))
        except Exception:
            # keep going with the rest of the batch
            logger.exception("Scan job %s aborted", job_id, extra={"job_id": job_id})
            db.session.rollback()
    return results
