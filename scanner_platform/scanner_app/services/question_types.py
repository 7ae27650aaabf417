"""Question type catalogue and per-type marking scheme."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping

from .scan_types import MarkingScheme

QUESTION_TYPE_ORDER = ("MCQ", "MSQ", "NAT", "SUB")
OPTION_TYPES = frozenset({"MCQ", "MSQ"})


@dataclass(frozen=True)
class QuestionTypeConfig:
    type: str
    enabled: bool
    correct_marks: float
    incorrect_marks: float
    skipped_marks: float
    partial_marks: float
    time_minutes: float

    @property
    def marking(self) -> MarkingScheme:
        return MarkingScheme(
            correct_marks=self.correct_marks,
            incorrect_marks=self.incorrect_marks,
            skipped_marks=self.skipped_marks,
            partial_marks=self.partial_marks,
            time_minutes=self.time_minutes,
        )

    def serialize(self) -> dict:
        return {
            "type": self.type,
            "enabled": self.enabled,
            "correct_marks": self.correct_marks,
            "incorrect_marks": self.incorrect_marks,
            "skipped_marks": self.skipped_marks,
            "partial_marks": self.partial_marks,
            "time_minutes": self.time_minutes,
        }


DEFAULT_QUESTION_TYPES: Dict[str, QuestionTypeConfig] = {
    "MCQ": QuestionTypeConfig("MCQ", True, 4, -1, 0, 0, 3),
    "MSQ": QuestionTypeConfig("MSQ", True, 4, -2, 0, 1, 3),
    "NAT": QuestionTypeConfig("NAT", True, 4, 0, 0, 0, 3),
    "SUB": QuestionTypeConfig("SUB", True, 10, 0, 0, 2, 15),
}


def build_question_types(
    overrides: Iterable[Mapping[str, Any]] | None = None,
) -> Dict[str, QuestionTypeConfig]:
    """Merge validated per-type overrides onto the defaults.

    Each override must carry ``type``; any other field it carries replaces the
    default for that type. Unknown types are ignored.
    """
    merged = dict(DEFAULT_QUESTION_TYPES)
    for override in overrides or []:
        type_name = str(override.get("type") or "").strip().upper()
        if type_name not in merged:
            continue
        changes = {k: v for k, v in override.items() if k != "type" and v is not None}
        merged[type_name] = replace(merged[type_name], **changes)
    return merged


def enabled_type_names(question_types: Mapping[str, QuestionTypeConfig]) -> List[str]:
    return [name for name in QUESTION_TYPE_ORDER if name in question_types and question_types[name].enabled]


def serialize_question_types(question_types: Mapping[str, QuestionTypeConfig]) -> List[dict]:
    return [question_types[name].serialize() for name in QUESTION_TYPE_ORDER if name in question_types]
