"""Pytest configuration for ensuring project modules resolve correctly."""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from scanner_app import create_app
from scanner_app.extensions import db
from scanner_app.models import Course, Exam, Part, Slot
from scanner_app.services import inference_log
from scanner_app.services.scan_types import VerificationResult


def questions_json(statements, question_type="MCQ"):
    """Model-style extraction reply for the given statements."""
    items = []
    for statement in statements:
        item = {"question_type": question_type, "question_statement": statement}
        if question_type in {"MCQ", "MSQ"}:
            item["options"] = ["$1$", "$2$", "$3$", "$4$"]
        items.append(item)
    return json.dumps(items)


class FakeGateway:
    """Scripted stand-in for InferenceGateway.

    ``replies`` feeds extract and repair in order; an Exception instance in
    the script is raised instead of returned. ``scores`` feeds verify.
    """

    def __init__(self, *, count=0, replies=(), scores=()):
        self.count = count
        self.replies = list(replies)
        self.scores = list(scores)
        self.calls = []

    def _next_reply(self):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def count_questions(self, image):
        self.calls.append(("count", image))
        return self.count

    def extract(self, image, instructions):
        self.calls.append(("extract", image, instructions))
        return self._next_reply()

    def repair(self, image, prior_raw_text, feedback):
        self.calls.append(("repair", image, prior_raw_text, feedback))
        return self._next_reply()

    def verify(self, image, candidate_raw_text):
        self.calls.append(("verify", image, candidate_raw_text))
        score = self.scores.pop(0)
        if isinstance(score, VerificationResult):
            return score
        return VerificationResult(score=score, feedback="ok")

    def operations(self):
        return [call[0] for call in self.calls]


class PageRoutingGateway:
    """Dispatches each call to the FakeGateway scripted for that page image."""

    def __init__(self, pages):
        self.pages = pages

    def count_questions(self, image):
        return self.pages[image].count_questions(image)

    def extract(self, image, instructions):
        return self.pages[image].extract(image, instructions)

    def repair(self, image, prior_raw_text, feedback):
        return self.pages[image].repair(image, prior_raw_text, feedback)

    def verify(self, image, candidate_raw_text):
        return self.pages[image].verify(image, candidate_raw_text)


@pytest.fixture()
def no_sleep(monkeypatch):
    """Skip real delays; returns the list of requested sleep durations."""
    sleeps = []
    monkeypatch.setattr(time, "sleep", lambda seconds: sleeps.append(seconds))
    return sleeps


@pytest.fixture(autouse=True)
def _reset_inference_log():
    inference_log.clear()
    yield
    inference_log.clear()


@pytest.fixture()
def app_with_db(tmp_path):
    app = create_app("test")
    app.instance_path = str(tmp_path / "instance")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_with_db):
    return app_with_db.test_client()


@pytest.fixture()
def catalog(app_with_db):
    exam = Exam(name="GATE")
    course = Course(exam=exam, name="Computer Science")
    slot = Slot(course=course, slot_name="Morning")
    part = Part(course=course, slot=slot, part_name="Part A")
    db.session.add_all([exam, course, slot, part])
    db.session.commit()
    return {"exam_id": exam.id, "course_id": course.id, "slot_id": slot.id, "part_id": part.id}
