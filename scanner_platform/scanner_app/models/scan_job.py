"""One uploaded PDF and its scan progress."""

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


class ScanJob(db.Model):
    __tablename__ = "scan_jobs"

    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(255), nullable=True)
    source_path = db.Column(db.String(512), nullable=True)
    year = db.Column(db.Integer, nullable=False)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id"), nullable=False, index=True)
    slot_id = db.Column(db.String(36), nullable=True)
    part_id = db.Column(db.String(36), nullable=True)
    question_types = db.Column(db.JSON, nullable=True)
    auto_save = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(db.String(32), default="pending", nullable=False)  # pending/processing/completed/error
    total_pages = db.Column(db.Integer, default=0, nullable=False)
    processed_pages = db.Column(db.Integer, default=0, nullable=False)
    total_questions = db.Column(db.Integer, default=0, nullable=False)
    skipped_pages = db.Column(db.JSON, nullable=True)
    failed_pages = db.Column(db.JSON, nullable=True)
    # record payloads held back when auto-save is off, until saved through the API
    unsaved_questions = db.Column(db.JSON, nullable=True)
    status_message = db.Column(db.Text, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    questions = db.relationship("Question", back_populates="scan_job", lazy="dynamic")

    @property
    def progress(self) -> int:
        if not self.total_pages:
            return 0
        return int(min(self.processed_pages, self.total_pages) * 100 / self.total_pages)

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "year": self.year,
            "course_id": self.course_id,
            "slot_id": self.slot_id,
            "part_id": self.part_id,
            "auto_save": self.auto_save,
            "status": self.status,
            "progress": self.progress,
            "total_pages": self.total_pages,
            "processed_pages": self.processed_pages,
            "total_questions": self.total_questions,
            "skipped_pages": self.skipped_pages or [],
            "failed_pages": self.failed_pages or {},
            "unsaved_count": len(self.unsaved_questions or []),
            "status_message": self.status_message,
            "error_message": self.error_message,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }
