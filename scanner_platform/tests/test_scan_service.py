"""Tests for the document orchestrator."""

from __future__ import annotations

import pytest

from conftest import FakeGateway, PageRoutingGateway, questions_json
from scanner_app.services.credential_rotator import EmptyPoolError
from scanner_app.services.page_convergence import FIRST_PASS_MAX_ATTEMPTS, RETRY_PASS_MAX_ATTEMPTS
from scanner_app.services.pdf_render import PdfRenderError
from scanner_app.services.question_types import DEFAULT_QUESTION_TYPES
from scanner_app.services.scan_service import scan_document
from scanner_app.services.scan_types import PageImage, Provenance

PROVENANCE = Provenance(
    year=2022,
    course_id="course-1",
    slot="Morning",
    part="Part A",
    slot_id="slot-1",
    part_id="part-1",
)


def _render_pages(*images):
    def _render(_document_bytes):
        return [PageImage(page_index=index, data_b64=image) for index, image in enumerate(images)]

    return _render


def _scan(gateway, render, **kwargs):
    return scan_document(
        b"%PDF-fake",
        gateway=gateway,
        provenance=PROVENANCE,
        question_types=DEFAULT_QUESTION_TYPES,
        render=render,
        **kwargs,
    )


def test_records_keep_page_order_and_provenance(no_sleep):
    gateway = PageRoutingGateway(
        {
            "p0": FakeGateway(count=2, replies=[questions_json(["A1", "A2"])], scores=[99]),
            "p1": FakeGateway(count=1, replies=[questions_json(["B1"], "NAT")], scores=[97]),
        }
    )
    seen = []

    summary = _scan(gateway, _render_pages("p0", "p1"), question_cb=seen.append)

    assert summary.total_pages == 2
    assert summary.total_questions == 3
    assert [q.question_statement for q in summary.questions] == ["A1", "A2", "B1"]
    assert seen == summary.questions
    first = summary.questions[0]
    assert first.provenance == PROVENANCE
    assert first.source_page == 1
    assert summary.questions[2].source_page == 2
    assert summary.questions[2].options is None
    assert summary.skipped_page_indices == []
    assert no_sleep.count(0.1) == 2


def test_empty_page_is_deferred_once_then_skipped(no_sleep):
    empty_page = FakeGateway(count=0, replies=["[]"] * (FIRST_PASS_MAX_ATTEMPTS + RETRY_PASS_MAX_ATTEMPTS))
    gateway = PageRoutingGateway(
        {
            "p0": empty_page,
            "p1": FakeGateway(count=1, replies=[questions_json(["B1"])], scores=[99]),
        }
    )

    summary = _scan(gateway, _render_pages("p0", "p1"))

    assert summary.skipped_page_indices == [0]
    assert [q.question_statement for q in summary.questions] == ["B1"]
    # one count per pass: the page went through the deferred pass exactly once
    assert empty_page.operations().count("count") == 2
    assert empty_page.replies == []


def test_deferred_page_recovered_on_retry_pass(no_sleep):
    replies = ["[]"] * FIRST_PASS_MAX_ATTEMPTS + [questions_json(["Late"])]
    late_page = FakeGateway(count=0, replies=replies, scores=[99])
    gateway = PageRoutingGateway(
        {
            "p0": late_page,
            "p1": FakeGateway(count=1, replies=[questions_json(["Early"])], scores=[99]),
        }
    )
    streamed = []

    summary = _scan(gateway, _render_pages("p0", "p1"), question_cb=streamed.append)

    assert summary.skipped_page_indices == []
    # the live stream follows processing order, the summary follows page order
    assert [q.question_statement for q in streamed] == ["Early", "Late"]
    assert [q.question_statement for q in summary.questions] == ["Late", "Early"]
    assert [q.source_page for q in summary.questions] == [1, 2]


def test_page_failure_is_recorded_and_document_continues(no_sleep):
    failures = [RuntimeError("model down")] * (FIRST_PASS_MAX_ATTEMPTS + RETRY_PASS_MAX_ATTEMPTS)
    gateway = PageRoutingGateway(
        {
            "p0": FakeGateway(count=0, replies=failures),
            "p1": FakeGateway(count=1, replies=[questions_json(["B1"])], scores=[99]),
        }
    )

    summary = _scan(gateway, _render_pages("p0", "p1"))

    assert summary.failed_pages == {0: "model down"}
    assert summary.skipped_page_indices == []
    assert [q.question_statement for q in summary.questions] == ["B1"]


def test_persist_failures_do_not_abort(no_sleep):
    gateway = FakeGateway(count=0, replies=[questions_json(["Q1", "Q2", "Q3"])], scores=[99])
    saved = []

    def _persist(record):
        if record.question_statement == "Q1":
            raise RuntimeError("db offline")
        if record.question_statement == "Q2":
            return False
        saved.append(record)
        return True

    summary = _scan(gateway, _render_pages("p0"), persist=_persist)

    assert summary.total_questions == 3
    assert [q.question_statement for q in saved] == ["Q3"]


def test_progress_callback_reports_each_page(no_sleep):
    gateway = PageRoutingGateway(
        {
            "p0": FakeGateway(count=0, replies=[questions_json(["A1"])], scores=[99]),
            "p1": FakeGateway(count=0, replies=[questions_json(["B1"])], scores=[99]),
        }
    )
    progress = []

    _scan(gateway, _render_pages("p0", "p1"), progress_cb=lambda *args: progress.append(args))

    assert [(p[0], p[1], p[2]) for p in progress] == [(0, 2, 0), (1, 2, 1), (2, 2, 2)]


def test_render_failure_is_fatal():
    def _broken(_document_bytes):
        raise PdfRenderError("not a pdf")

    with pytest.raises(PdfRenderError):
        _scan(FakeGateway(), _broken)


def test_empty_pool_aborts_document(no_sleep):
    gateway = FakeGateway(count=0, replies=[EmptyPoolError("No valid API keys provided")])

    with pytest.raises(EmptyPoolError):
        _scan(gateway, _render_pages("p0", "p1"))
