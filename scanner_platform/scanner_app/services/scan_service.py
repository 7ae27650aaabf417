"""Document-level scan pipeline: first pass, deferred pass, summary."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, List, Mapping, Optional, Tuple

from flask import current_app, has_app_context

from .credential_rotator import EmptyPoolError
from .page_convergence import FIRST_PASS_MAX_ATTEMPTS, RETRY_PASS_MAX_ATTEMPTS, converge_page
from .pdf_render import render_pdf_pages
from .question_types import QuestionTypeConfig
from .scan_types import DocumentSummary, PageImage, PageOutcome, Provenance, QuestionRecord

logger = logging.getLogger(__name__)

PAGE_PAUSE_SEC = 0.1

ProgressCallback = Callable[[int, int, int, str], None]
Renderer = Callable[[bytes], List[PageImage]]
PersistFn = Callable[[QuestionRecord], bool]


def _requeue_errors_enabled() -> bool:
    if has_app_context():
        return bool(current_app.config.get("SCAN_REQUEUE_ERRORED_PAGES", True))
    return True


def _with_provenance(record: QuestionRecord, provenance: Provenance, page_index: int) -> QuestionRecord:
    enriched = dataclasses.replace(provenance, year=record.provenance.year)
    return dataclasses.replace(record, provenance=enriched, source_page=page_index + 1)


def scan_document(
    document_bytes: bytes,
    *,
    gateway,
    provenance: Provenance,
    question_types: Mapping[str, QuestionTypeConfig],
    render: Renderer = render_pdf_pages,
    persist: Optional[PersistFn] = None,
    question_cb: Optional[Callable[[QuestionRecord], None]] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> DocumentSummary:
    """
    Sequential pipeline:
      1) Render every page; a render failure aborts the document.
      2) First pass over the pages in order; zero-result and errored pages are deferred.
      3) Deferred pass with a larger budget and escalated wording.
    Only one model call is in flight at any time.
    """
    pages = render(document_bytes)
    summary = DocumentSummary(total_pages=len(pages))
    requeue_errors = _requeue_errors_enabled()
    deferred: List[Tuple[int, str]] = []

    def _collect(outcome: PageOutcome) -> None:
        for record in outcome.questions:
            record = _with_provenance(record, provenance, outcome.page_index)
            summary.questions.append(record)
            if question_cb:
                question_cb(record)
            if persist is not None:
                _persist_safely(persist, record)

    def _run(page_index: int, image: str, *, retry_pass: bool) -> Optional[PageOutcome]:
        try:
            return converge_page(
                gateway,
                image,
                page_index=page_index,
                year=provenance.year,
                question_types=question_types,
                max_attempts=RETRY_PASS_MAX_ATTEMPTS if retry_pass else FIRST_PASS_MAX_ATTEMPTS,
                is_retry_pass=retry_pass,
                requeue_errors=requeue_errors,
            )
        except EmptyPoolError:
            raise
        except Exception as exc:
            logger.error(
                "Page %s failed: %s", page_index + 1, exc, extra={"page_index": page_index}
            )
            summary.failed_pages[page_index] = str(exc)
            return None

    if progress_cb:
        progress_cb(0, len(pages), 0, "Starting scan")

    for position, page in enumerate(pages):
        outcome = _run(page.page_index, page.data_b64, retry_pass=False)
        if outcome is not None:
            _collect(outcome)
            if outcome.retry_candidate:
                deferred.append((page.page_index, page.data_b64))
        if progress_cb:
            progress_cb(
                position + 1,
                len(pages),
                summary.total_questions,
                f"Page {page.page_index + 1}/{len(pages)} done",
            )
        time.sleep(PAGE_PAUSE_SEC)

    if deferred:
        logger.info("Retrying %s pages with no questions", len(deferred))
    for position, (page_index, image) in enumerate(deferred, start=1):
        outcome = _run(page_index, image, retry_pass=True)
        if outcome is not None:
            _collect(outcome)
            if not outcome.questions:
                summary.skipped_page_indices.append(page_index)
        if progress_cb:
            progress_cb(
                len(pages),
                len(pages),
                summary.total_questions,
                f"Retry pass {position}/{len(deferred)} (page {page_index + 1})",
            )
        time.sleep(PAGE_PAUSE_SEC)

    # deferred-pass records were streamed late; the summary keeps page order
    summary.questions.sort(key=lambda record: record.source_page or 0)

    if summary.skipped_page_indices:
        logger.warning(
            "Skipped pages with no questions: %s",
            ", ".join(str(index + 1) for index in summary.skipped_page_indices),
        )
    logger.info(
        "Scan complete: %s questions from %s pages", summary.total_questions, summary.total_pages
    )
    return summary


def _persist_safely(persist: PersistFn, record: QuestionRecord) -> None:
    try:
        saved = persist(record)
    except Exception as exc:
        logger.error("Failed to save question from page %s: %s", record.source_page, exc)
        return
    if saved is False:
        logger.error("Failed to save question from page %s", record.source_page)
