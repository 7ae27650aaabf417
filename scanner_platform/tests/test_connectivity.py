"""Tests for the network availability wait."""

from __future__ import annotations

import pytest
import requests

from scanner_app.services import connectivity


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(connectivity, "time", fake)
    return fake


def test_is_online_treats_any_http_answer_as_up(monkeypatch):
    class Answer:
        status_code = 503

    monkeypatch.setattr(connectivity.requests, "head", lambda *args, **kwargs: Answer())

    assert connectivity.is_online("https://example.test") is True


def test_is_online_false_on_connection_error(monkeypatch):
    def _head(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(connectivity.requests, "head", _head)

    assert connectivity.is_online("https://example.test") is False


def test_wait_returns_once_back_online(monkeypatch, clock):
    answers = iter([False, False, True])
    monkeypatch.setattr(connectivity, "is_online", lambda url: next(answers))

    connectivity.wait_for_network("https://example.test", max_wait_sec=300, poll_interval_sec=2.0)

    assert clock.sleeps == [2.0, 2.0]


def test_wait_gives_up_after_ceiling(monkeypatch, clock):
    monkeypatch.setattr(connectivity, "is_online", lambda url: False)

    with pytest.raises(connectivity.NetworkTimeoutError, match="after 5 seconds"):
        connectivity.wait_for_network("https://example.test", max_wait_sec=5, poll_interval_sec=2.0)

    assert clock.sleeps == [2.0, 2.0, 2.0]


@pytest.mark.parametrize(
    "exc, expected",
    [
        (requests.ConnectionError("reset"), True),
        (requests.Timeout("read timed out"), True),
        (requests.HTTPError("502 Bad Gateway for url: https://network.example"), False),
        (RuntimeError("Failed to fetch"), True),
        (ValueError("Unexpected token"), False),
    ],
)
def test_is_network_error(exc, expected):
    assert connectivity.is_network_error(exc) is expected
