"""Tests for the scan job and catalogue endpoints."""

from __future__ import annotations

import io
import json
import queue

import pytest

from conftest import FakeGateway, PageRoutingGateway, questions_json
from scanner_app.extensions import db
from scanner_app.models import Question, ScanJob
from scanner_app.services import question_service
from scanner_app.services.job_events import job_event_broker
from scanner_app.services.pdf_render import PdfRenderError
from scanner_app.services.scan_types import PageImage


@pytest.fixture()
def fake_scan(monkeypatch, no_sleep):
    """Two-page document: page 1 has two questions, page 2 never yields any."""
    state = {"rotators": []}

    def _render(document_bytes, resolution=144, max_pages=None):
        assert document_bytes.startswith(b"%PDF")
        return [PageImage(0, "p0"), PageImage(1, "p1")]

    def _build_gateway(rotator, job_id=None):
        state["rotators"].append(rotator)
        return PageRoutingGateway(
            {
                "p0": FakeGateway(count=2, replies=[questions_json(["Q1", "Q2"])], scores=[99]),
                "p1": FakeGateway(count=0, replies=["[]"] * 14),
            }
        )

    monkeypatch.setattr("scanner_app.tasks.scan_tasks.render_pdf_pages", _render)
    monkeypatch.setattr("scanner_app.tasks.scan_tasks.build_gateway", _build_gateway)
    return state


def _upload(client, catalog, files=None, **fields):
    data = {
        "year": "2023",
        "course_id": catalog["course_id"],
        "slot_id": catalog["slot_id"],
        "part_id": catalog["part_id"],
    }
    data.update(fields)
    if files is None:
        files = [(io.BytesIO(b"%PDF-1.4 fake"), "paper.pdf")]
    data["file"] = files
    return client.post("/api/scan/jobs", data=data, content_type="multipart/form-data")


def test_upload_scans_and_saves_questions(client, catalog, fake_scan):
    resp = _upload(client, catalog)

    assert resp.status_code == 202
    job = resp.get_json()["jobs"][0]
    assert job["status"] == "completed"
    assert job["filename"] == "paper.pdf"
    assert job["total_pages"] == 2
    assert job["total_questions"] == 2
    assert job["skipped_pages"] == [1]
    assert job["progress"] == 100

    questions = Question.query.order_by(Question.id).all()
    assert [q.question_statement for q in questions] == ["Q1", "Q2"]
    first = questions[0]
    assert first.course_id == catalog["course_id"]
    assert first.slot == "Morning"
    assert first.part == "Part A"
    assert first.year == 2023
    assert first.source_page == 1
    assert first.correct_marks == 4
    assert first.categorized is False
    assert first.scan_job_id == job["id"]


def test_batch_shares_one_rotator(client, catalog, fake_scan):
    files = [
        (io.BytesIO(b"%PDF-1.4 one"), "one.pdf"),
        (io.BytesIO(b"%PDF-1.4 two"), "two.pdf"),
    ]

    resp = _upload(client, catalog, files=files, year="", years=json.dumps([2019, 2020]))

    assert resp.status_code == 202
    jobs = resp.get_json()["jobs"]
    assert [job["year"] for job in jobs] == [2019, 2020]
    assert len(fake_scan["rotators"]) == 2
    assert fake_scan["rotators"][0] is fake_scan["rotators"][1]


def test_request_api_keys_override_config(client, catalog, fake_scan):
    resp = _upload(client, catalog, api_keys="key-a\nkey-b\n")

    assert resp.status_code == 202
    rotator = fake_scan["rotators"][0]
    assert [rotator.next(), rotator.next()] == ["key-a", "key-b"]


def test_auto_save_off_holds_results_until_saved(client, catalog, fake_scan):
    resp = _upload(client, catalog, auto_save="false")

    assert resp.status_code == 202
    job = resp.get_json()["jobs"][0]
    assert job["total_questions"] == 2
    assert job["unsaved_count"] == 2
    assert Question.query.count() == 0

    saved = client.post(f"/api/scan/jobs/{job['id']}/save")

    assert saved.status_code == 200
    body = saved.get_json()
    assert (body["saved"], body["failed"]) == (2, 0)
    assert body["job"]["unsaved_count"] == 0
    questions = Question.query.order_by(Question.id).all()
    assert [q.question_statement for q in questions] == ["Q1", "Q2"]
    assert questions[0].slot == "Morning"
    assert questions[0].source_page == 1
    assert questions[0].scan_job_id == job["id"]

    again = client.post(f"/api/scan/jobs/{job['id']}/save")
    assert again.status_code == 400


def test_auto_save_on_leaves_nothing_to_save(client, catalog, fake_scan):
    job = _upload(client, catalog).get_json()["jobs"][0]

    assert job["unsaved_count"] == 0
    assert client.post(f"/api/scan/jobs/{job['id']}/save").status_code == 400


def test_save_failures_stay_on_job(client, catalog, fake_scan, monkeypatch):
    job = _upload(client, catalog, auto_save="false").get_json()["jobs"][0]
    real_save = question_service.save_question

    def _flaky_save(record, job_id=None):
        if record.question_statement == "Q1":
            return False
        return real_save(record, job_id=job_id)

    monkeypatch.setattr(question_service, "save_question", _flaky_save)

    body = client.post(f"/api/scan/jobs/{job['id']}/save").get_json()

    assert (body["saved"], body["failed"]) == (1, 1)
    assert body["job"]["unsaved_count"] == 1
    pending = db.session.get(ScanJob, job["id"]).unsaved_questions
    assert [item["question_statement"] for item in pending] == ["Q1"]


def test_save_requires_finished_job(client, catalog):
    job = ScanJob(
        filename="paper.pdf",
        year=2023,
        course_id=catalog["course_id"],
        auto_save=False,
        status="processing",
        unsaved_questions=[],
    )
    db.session.add(job)
    db.session.commit()

    assert client.post(f"/api/scan/jobs/{job.id}/save").status_code == 409
    assert client.post("/api/scan/jobs/999/save").status_code == 404


def test_render_failure_marks_job_errored(client, catalog, monkeypatch, no_sleep):
    def _broken(document_bytes, resolution=144, max_pages=None):
        raise PdfRenderError("Failed to render PDF: bad xref")

    monkeypatch.setattr("scanner_app.tasks.scan_tasks.render_pdf_pages", _broken)

    resp = _upload(client, catalog)

    job = resp.get_json()["jobs"][0]
    assert job["status"] == "error"
    assert "bad xref" in job["error_message"]
    assert db.session.get(ScanJob, job["id"]).status == "error"


def test_events_published_for_job_questions_and_summary(client, catalog, fake_scan):
    listener = job_event_broker.subscribe()
    try:
        _upload(client, catalog)
        events = []
        while True:
            try:
                events.append(json.loads(listener.get_nowait()))
            except queue.Empty:
                break
    finally:
        job_event_broker.unsubscribe(listener)

    types = [event["type"] for event in events]
    assert types.count("question") == 2
    assert "summary" in types
    summary = next(event for event in events if event["type"] == "summary")
    assert summary["payload"]["skipped_page_indices"] == [1]
    question = next(event for event in events if event["type"] == "question")
    assert question["payload"]["slot"] == "Morning"
    assert question["payload"]["options"] == ["$1$", "$2$", "$3$", "$4$"]


def test_missing_file_rejected(client, catalog):
    resp = client.post(
        "/api/scan/jobs",
        data={"year": "2023", "course_id": catalog["course_id"]},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_non_pdf_rejected(client, catalog):
    resp = _upload(client, catalog, files=[(io.BytesIO(b"hello"), "notes.txt")])
    assert resp.status_code == 400


def test_unknown_course_rejected(client, catalog):
    resp = _upload(client, {**catalog, "course_id": "missing"})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Unknown course"


def test_missing_year_rejected(client, catalog):
    resp = _upload(client, catalog, year="")
    assert resp.status_code == 400
    assert "year" in resp.get_json()["errors"]


def test_invalid_question_types_rejected(client, catalog):
    resp = _upload(client, catalog, question_types=json.dumps([{"type": "ESSAY"}]))
    assert resp.status_code == 400
    assert "question_types" in resp.get_json()["errors"]


def test_missing_api_keys_rejected(client, catalog, app_with_db):
    app_with_db.config["GEMINI_API_KEYS"] = []
    resp = _upload(client, catalog)
    assert resp.status_code == 400
    assert "API key" in resp.get_json()["message"]


def test_job_and_question_listing(client, catalog, fake_scan):
    job_id = _upload(client, catalog).get_json()["jobs"][0]["id"]

    detail = client.get(f"/api/scan/jobs/{job_id}")
    assert detail.status_code == 200
    assert detail.get_json()["job"]["status"] == "completed"

    listing = client.get("/api/scan/jobs").get_json()["jobs"]
    assert [job["id"] for job in listing] == [job_id]

    page = client.get(f"/api/scan/questions?job_id={job_id}&per_page=1").get_json()
    assert page["total"] == 2
    assert len(page["items"]) == 1
    assert page["items"][0]["question_statement"] == "Q1"

    assert client.get("/api/scan/jobs/999").status_code == 404


def test_inference_log_endpoint(client):
    resp = client.get("/api/scan/logs/inference?limit=5")
    assert resp.status_code == 200
    assert resp.get_json()["items"] == []


def test_catalog_endpoints(client, catalog):
    exams = client.get("/api/catalog/exams").get_json()["items"]
    assert exams == [{"id": catalog["exam_id"], "name": "GATE"}]

    courses = client.get(f"/api/catalog/exams/{catalog['exam_id']}/courses").get_json()["items"]
    assert [course["id"] for course in courses] == [catalog["course_id"]]

    slots = client.get(f"/api/catalog/courses/{catalog['course_id']}/slots").get_json()["items"]
    assert slots[0]["slot_name"] == "Morning"

    parts = client.get(
        f"/api/catalog/courses/{catalog['course_id']}/parts?slot_id={catalog['slot_id']}"
    ).get_json()["items"]
    assert parts[0]["part_name"] == "Part A"
    other = client.get(f"/api/catalog/courses/{catalog['course_id']}/parts?slot_id=none").get_json()
    assert other["items"] == []
