"""Value objects passed between the scan pipeline stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class MarkingScheme:
    correct_marks: float
    incorrect_marks: float
    skipped_marks: float
    partial_marks: float
    time_minutes: float


@dataclass(frozen=True)
class Provenance:
    year: int
    course_id: Optional[str] = None
    slot: str = ""
    part: str = ""
    slot_id: Optional[str] = None
    part_id: Optional[str] = None


MARKING_FIELDS = tuple(f.name for f in fields(MarkingScheme))
PROVENANCE_FIELDS = tuple(f.name for f in fields(Provenance))


@dataclass(frozen=True)
class QuestionRecord:
    """One extracted question, ready for the storage sink.

    ``options`` is only ever populated for MCQ/MSQ records.
    """

    question_type: str
    question_statement: str
    options: Optional[tuple[str, ...]]
    marking: MarkingScheme
    provenance: Provenance
    source_page: Optional[int] = None

    def to_payload(self) -> dict:
        payload = {
            "question_type": self.question_type,
            "question_statement": self.question_statement,
            "options": list(self.options) if self.options is not None else None,
            "source_page": self.source_page,
            "categorized": False,
        }
        payload.update(asdict(self.marking))
        payload.update(asdict(self.provenance))
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "QuestionRecord":
        options = payload.get("options")
        return cls(
            question_type=payload["question_type"],
            question_statement=payload["question_statement"],
            options=tuple(options) if options is not None else None,
            marking=MarkingScheme(**{name: payload[name] for name in MARKING_FIELDS}),
            provenance=Provenance(**{name: payload.get(name) for name in PROVENANCE_FIELDS}),
            source_page=payload.get("source_page"),
        )


@dataclass(frozen=True)
class VerificationResult:
    score: int
    feedback: str


class PageStatus(str, Enum):
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    EMPTY = "empty"
    ERRORED = "errored"


@dataclass(frozen=True)
class PageOutcome:
    page_index: int
    questions: tuple[QuestionRecord, ...]
    attempts_used: int
    final_score: int
    status: PageStatus
    retry_candidate: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class PageImage:
    page_index: int
    data_b64: str


@dataclass
class DocumentSummary:
    total_pages: int = 0
    skipped_page_indices: list[int] = field(default_factory=list)
    failed_pages: dict[int, str] = field(default_factory=dict)
    questions: list[QuestionRecord] = field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def serialize(self) -> dict:
        return {
            "total_pages": self.total_pages,
            "total_questions": self.total_questions,
            "skipped_page_indices": list(self.skipped_page_indices),
            "failed_pages": {str(k): v for k, v in self.failed_pages.items()},
        }
