"""Database models package."""

from .catalog import Course, Exam, Part, Slot
from .question import Question
from .scan_job import ScanJob

__all__ = [
    "Exam",
    "Course",
    "Slot",
    "Part",
    "Question",
    "ScanJob",
]
