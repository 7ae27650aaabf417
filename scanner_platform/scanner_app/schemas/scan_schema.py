"""Schemas for scan job endpoints."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from ..services.question_types import QUESTION_TYPE_ORDER


class QuestionTypeOverrideSchema(Schema):
    type = fields.String(required=True, validate=validate.OneOf(QUESTION_TYPE_ORDER))
    enabled = fields.Boolean()
    correct_marks = fields.Float()
    incorrect_marks = fields.Float()
    skipped_marks = fields.Float()
    partial_marks = fields.Float()
    time_minutes = fields.Float(validate=validate.Range(min=0))


class ScanJobCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    year = fields.Integer(load_default=None, allow_none=True, validate=validate.Range(min=1900, max=2100))
    # per-file years, same order as the uploaded files
    years = fields.List(fields.Integer(validate=validate.Range(min=1900, max=2100)), load_default=list)
    course_id = fields.String(required=True, validate=validate.Length(min=1))
    slot_id = fields.String(load_default=None, allow_none=True)
    part_id = fields.String(load_default=None, allow_none=True)
    auto_save = fields.Boolean(load_default=None, allow_none=True)
    question_types = fields.List(fields.Nested(QuestionTypeOverrideSchema), load_default=list)
    api_keys = fields.List(fields.String(), load_default=list)


class QuestionSchema(Schema):
    id = fields.Integer(dump_only=True)
    question_type = fields.String(dump_only=True)
    question_statement = fields.String(dump_only=True)
    options = fields.List(fields.String(), dump_only=True, allow_none=True)
    course_id = fields.String(dump_only=True)
    year = fields.Integer(dump_only=True)
    slot = fields.String(dump_only=True, allow_none=True)
    part = fields.String(dump_only=True, allow_none=True)
    slot_id = fields.String(dump_only=True, allow_none=True)
    part_id = fields.String(dump_only=True, allow_none=True)
    correct_marks = fields.Float(dump_only=True)
    incorrect_marks = fields.Float(dump_only=True)
    skipped_marks = fields.Float(dump_only=True)
    partial_marks = fields.Float(dump_only=True)
    time_minutes = fields.Float(dump_only=True)
    categorized = fields.Boolean(dump_only=True)
    source_page = fields.Integer(dump_only=True, allow_none=True)
    scan_job_id = fields.Integer(dump_only=True, allow_none=True)
    created_at = fields.DateTime(dump_only=True)
