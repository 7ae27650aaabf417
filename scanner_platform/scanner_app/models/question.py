"""Question bank model for scanned questions."""

from __future__ import annotations

from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    dt = value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    question_type = db.Column(db.String(8), nullable=False, index=True)  # MCQ / MSQ / NAT / SUB
    question_statement = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=True)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id"), nullable=True, index=True)
    year = db.Column(db.Integer, nullable=False)
    slot = db.Column(db.String(128), nullable=True)
    part = db.Column(db.String(128), nullable=True)
    slot_id = db.Column(db.String(36), nullable=True)
    part_id = db.Column(db.String(36), nullable=True)
    correct_marks = db.Column(db.Float, nullable=False, default=0)
    incorrect_marks = db.Column(db.Float, nullable=False, default=0)
    skipped_marks = db.Column(db.Float, nullable=False, default=0)
    partial_marks = db.Column(db.Float, nullable=False, default=0)
    time_minutes = db.Column(db.Float, nullable=False, default=0)
    categorized = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    source_page = db.Column(db.Integer, nullable=True)
    scan_job_id = db.Column(db.Integer, db.ForeignKey("scan_jobs.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    scan_job = db.relationship("ScanJob", back_populates="questions")

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "question_type": self.question_type,
            "question_statement": self.question_statement,
            "options": self.options,
            "course_id": self.course_id,
            "year": self.year,
            "slot": self.slot,
            "part": self.part,
            "slot_id": self.slot_id,
            "part_id": self.part_id,
            "correct_marks": self.correct_marks,
            "incorrect_marks": self.incorrect_marks,
            "skipped_marks": self.skipped_marks,
            "partial_marks": self.partial_marks,
            "time_minutes": self.time_minutes,
            "categorized": self.categorized,
            "source_page": self.source_page,
            "scan_job_id": self.scan_job_id,
            "created_at": _isoformat(self.created_at),
        }
