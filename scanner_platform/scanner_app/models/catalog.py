"""Exam catalogue used to tag scanned questions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Exam(db.Model):
    __tablename__ = "exams"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    courses = db.relationship("Course", back_populates="exam", cascade="all, delete-orphan")

    def serialize(self) -> dict:
        return {"id": self.id, "name": self.name}


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    exam = db.relationship("Exam", back_populates="courses")
    slots = db.relationship("Slot", back_populates="course", cascade="all, delete-orphan")
    parts = db.relationship("Part", back_populates="course", cascade="all, delete-orphan")

    def serialize(self) -> dict:
        return {"id": self.id, "name": self.name, "exam_id": self.exam_id}


class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id"), nullable=False, index=True)
    slot_name = db.Column(db.String(128), nullable=False)

    course = db.relationship("Course", back_populates="slots")

    def serialize(self) -> dict:
        return {"id": self.id, "slot_name": self.slot_name, "course_id": self.course_id}


class Part(db.Model):
    __tablename__ = "parts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id"), nullable=False, index=True)
    slot_id = db.Column(db.String(36), db.ForeignKey("slots.id"), nullable=True, index=True)
    part_name = db.Column(db.String(128), nullable=False)

    course = db.relationship("Course", back_populates="parts")
    slot = db.relationship("Slot")

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "part_name": self.part_name,
            "course_id": self.course_id,
            "slot_id": self.slot_id,
        }
