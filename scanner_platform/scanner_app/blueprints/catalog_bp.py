"""Read-only exam catalogue used to tag scan jobs."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..models import Course, Exam, Part, Slot

catalog_bp = Blueprint("catalog_bp", __name__)


@catalog_bp.get("/exams")
def list_exams():
    exams = Exam.query.order_by(Exam.name).all()
    return jsonify({"items": [exam.serialize() for exam in exams]})


@catalog_bp.get("/exams/<exam_id>/courses")
def list_courses(exam_id: str):
    courses = Course.query.filter_by(exam_id=exam_id).order_by(Course.name).all()
    return jsonify({"items": [course.serialize() for course in courses]})


@catalog_bp.get("/courses/<course_id>/slots")
def list_slots(course_id: str):
    slots = Slot.query.filter_by(course_id=course_id).order_by(Slot.slot_name).all()
    return jsonify({"items": [slot.serialize() for slot in slots]})


@catalog_bp.get("/courses/<course_id>/parts")
def list_parts(course_id: str):
    query = Part.query.filter_by(course_id=course_id)
    slot_id = request.args.get("slot_id")
    if slot_id:
        query = query.filter_by(slot_id=slot_id)
    return jsonify({"items": [part.serialize() for part in query.order_by(Part.part_name).all()]})
