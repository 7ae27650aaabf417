"""Per-page extract / verify / repair loop.

The loop asks the model for the questions on one page, has the model grade
its own transcription against the image, and feeds the grade's feedback
into a repair call until the transcription is accepted or the attempt
budget runs out. Acceptance is two-tier: a near-perfect score is enough on
its own, a good score only counts when no expected question is missing.
"""

from __future__ import annotations

import logging
import time
from typing import List, Mapping

from ..metrics import record_page_outcome
from .credential_rotator import EmptyPoolError
from .question_types import QuestionTypeConfig, enabled_type_names
from .response_parser import parse_questions
from .scan_prompts import (
    EMPTY_PAGE_FEEDBACK,
    EMPTY_PAGE_FEEDBACK_ESCALATED,
    ERROR_RETRY_FEEDBACK,
    build_extraction_prompt,
    mismatch_clause,
)
from .scan_types import PageOutcome, PageStatus, QuestionRecord

logger = logging.getLogger(__name__)

PERFECT_SCORE = 99
ACCEPT_SCORE = 95
MISMATCH_PENALTY = 20
EMPTY_RETRY_DELAY_SEC = 1.0
LOW_SCORE_RETRY_DELAY_SEC = 1.5
ERROR_RETRY_DELAY_SEC = 2.0
FIRST_PASS_MAX_ATTEMPTS = 6
RETRY_PASS_MAX_ATTEMPTS = 8


def is_accepted(score: int, mismatch: bool) -> bool:
    return score >= PERFECT_SCORE or (score >= ACCEPT_SCORE and not mismatch)


def apply_mismatch_penalty(score: int) -> int:
    return max(0, score - MISMATCH_PENALTY)


def _finish(outcome: PageOutcome, is_retry_pass: bool) -> PageOutcome:
    record_page_outcome("retry" if is_retry_pass else "first", outcome.status.value)
    return outcome


def _log_completeness(page_index: int, expected: int, extracted: int) -> None:
    if expected <= 0:
        return
    if extracted >= expected:
        logger.info(
            "Page %s: all %s expected questions extracted",
            page_index + 1,
            expected,
            extra={"page_index": page_index},
        )
    else:
        logger.warning(
            "Page %s: expected %s questions, extracted %s",
            page_index + 1,
            expected,
            extracted,
            extra={"page_index": page_index},
        )


def converge_page(
    gateway,
    image: str,
    *,
    page_index: int,
    year: int,
    question_types: Mapping[str, QuestionTypeConfig],
    max_attempts: int,
    is_retry_pass: bool,
    requeue_errors: bool = True,
) -> PageOutcome:
    """Run the convergence loop for one page image (base64 PNG).

    Returns a :class:`PageOutcome`. An exception on the final attempt
    propagates, except on a first pass with ``requeue_errors`` where the page
    comes back ``errored`` and flagged for the deferred pass.
    """
    log_extra = {"page_index": page_index}
    instructions = build_extraction_prompt(
        enabled_type_names(question_types), escalated=is_retry_pass
    )
    expected = gateway.count_questions(image)
    logger.info("Page %s: expecting %s questions", page_index + 1, expected, extra=log_extra)

    records: List[QuestionRecord] = []
    last_raw = ""
    feedback = ""
    score = 0

    for attempt in range(1, max_attempts + 1):
        final_attempt = attempt == max_attempts
        try:
            if attempt == 1 or not last_raw:
                raw = gateway.extract(image, instructions)
            else:
                raw = gateway.repair(image, last_raw, feedback)
            last_raw = raw
            records = parse_questions(raw, year=year, question_types=question_types)

            if not records:
                if not final_attempt:
                    feedback = EMPTY_PAGE_FEEDBACK_ESCALATED if is_retry_pass else EMPTY_PAGE_FEEDBACK
                    logger.info(
                        "Page %s attempt %s/%s: no questions, re-scanning",
                        page_index + 1,
                        attempt,
                        max_attempts,
                        extra=log_extra,
                    )
                    time.sleep(EMPTY_RETRY_DELAY_SEC)
                    continue
                return _finish(
                    PageOutcome(
                        page_index=page_index,
                        questions=(),
                        attempts_used=attempt,
                        final_score=0,
                        status=PageStatus.EMPTY,
                        retry_candidate=not is_retry_pass,
                    ),
                    is_retry_pass,
                )

            verification = gateway.verify(image, raw)
            score = verification.score
            feedback = verification.feedback
            mismatch = expected > 0 and len(records) < expected
            if mismatch:
                feedback += mismatch_clause(expected, len(records))
                score = apply_mismatch_penalty(score)
            logger.info(
                "Page %s attempt %s/%s: %s questions, score %s%s",
                page_index + 1,
                attempt,
                max_attempts,
                len(records),
                score,
                " (count mismatch)" if mismatch else "",
                extra=log_extra,
            )

            if is_accepted(score, mismatch):
                _log_completeness(page_index, expected, len(records))
                return _finish(
                    PageOutcome(
                        page_index=page_index,
                        questions=tuple(records),
                        attempts_used=attempt,
                        final_score=score,
                        status=PageStatus.ACCEPTED,
                    ),
                    is_retry_pass,
                )
            if not final_attempt:
                time.sleep(LOW_SCORE_RETRY_DELAY_SEC)
                continue

            logger.warning(
                "Page %s: attempts exhausted at score %s, keeping last extraction",
                page_index + 1,
                score,
                extra=log_extra,
            )
            _log_completeness(page_index, expected, len(records))
            return _finish(
                PageOutcome(
                    page_index=page_index,
                    questions=tuple(records),
                    attempts_used=attempt,
                    final_score=score,
                    status=PageStatus.EXHAUSTED,
                ),
                is_retry_pass,
            )
        except EmptyPoolError:
            raise
        except Exception as exc:
            if not final_attempt:
                logger.warning(
                    "Page %s attempt %s/%s failed: %s",
                    page_index + 1,
                    attempt,
                    max_attempts,
                    exc,
                    extra=log_extra,
                )
                feedback = ERROR_RETRY_FEEDBACK
                time.sleep(ERROR_RETRY_DELAY_SEC)
                continue
            if is_retry_pass or not requeue_errors:
                raise
            logger.error(
                "Page %s failed on every attempt, deferring: %s",
                page_index + 1,
                exc,
                extra=log_extra,
            )
            return _finish(
                PageOutcome(
                    page_index=page_index,
                    questions=(),
                    attempts_used=attempt,
                    final_score=0,
                    status=PageStatus.ERRORED,
                    retry_candidate=True,
                    error=str(exc),
                ),
                is_retry_pass,
            )

    raise ValueError("max_attempts must be at least 1")
