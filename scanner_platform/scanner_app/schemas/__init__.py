"""Serialization / validation schemas (Marshmallow)."""

from .scan_schema import QuestionSchema, QuestionTypeOverrideSchema, ScanJobCreateSchema

__all__ = [
    "QuestionSchema",
    "QuestionTypeOverrideSchema",
    "ScanJobCreateSchema",
]
