"""Question storage: the persistence sink for scanned records."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..metrics import record_question_saved
from ..models import Question, ScanJob
from ..utils.db import commit_with_retry
from .scan_types import QuestionRecord

logger = logging.getLogger(__name__)


def _question_from_record(record: QuestionRecord, job_id: Optional[int]) -> Question:
    provenance = record.provenance
    marking = record.marking
    return Question(
        question_type=record.question_type,
        question_statement=record.question_statement,
        options=list(record.options) if record.options is not None else None,
        course_id=provenance.course_id or None,
        year=provenance.year,
        slot=provenance.slot or None,
        part=provenance.part or None,
        slot_id=provenance.slot_id or None,
        part_id=provenance.part_id or None,
        correct_marks=marking.correct_marks,
        incorrect_marks=marking.incorrect_marks,
        skipped_marks=marking.skipped_marks,
        partial_marks=marking.partial_marks,
        time_minutes=marking.time_minutes,
        categorized=False,
        source_page=record.source_page,
        scan_job_id=job_id,
    )


def save_question(record: QuestionRecord, job_id: Optional[int] = None) -> bool:
    """Insert one record. Returns False (after rolling back) on database errors."""
    try:
        db.session.add(_question_from_record(record, job_id))
        commit_with_retry()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Error saving question: %s", exc)
        record_question_saved(False)
        return False
    record_question_saved(True)
    return True


def save_unsaved_questions(job: ScanJob) -> Tuple[int, int]:
    """Store the records a job held back. Records that fail stay on the job for another try."""
    job_id = job.id
    payloads = list(job.unsaved_questions or [])
    remaining = []
    for payload in payloads:
        if not save_question(QuestionRecord.from_payload(payload), job_id=job_id):
            remaining.append(payload)
    job = db.session.get(ScanJob, job_id)
    job.unsaved_questions = remaining or None
    commit_with_retry()
    saved = len(payloads) - len(remaining)
    logger.info("Saved %s held-back questions for job %s (%s failed)", saved, job_id, len(remaining))
    return saved, len(remaining)


def list_questions(
    page: int,
    per_page: int,
    job_id: Optional[int] = None,
    course_id: Optional[str] = None,
    question_type: Optional[str] = None,
):
    per_page = max(1, min(per_page, 100))
    query = Question.query
    if job_id:
        query = query.filter(Question.scan_job_id == job_id)
    if course_id:
        query = query.filter(Question.course_id == course_id)
    if question_type:
        query = query.filter(Question.question_type == question_type.upper())
    return query.order_by(Question.id.asc()).paginate(page=page, per_page=per_page, error_out=False)
