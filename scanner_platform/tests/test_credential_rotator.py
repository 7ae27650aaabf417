"""Tests for round-robin API key rotation."""

from __future__ import annotations

import pytest

from scanner_app.services.credential_rotator import CredentialRotator, EmptyPoolError


@pytest.mark.parametrize("pool", [["k1"], ["k1", "k2"], ["k1", "k2", "k3", "k4"]])
def test_each_key_once_per_cycle_then_wraps(pool):
    rotator = CredentialRotator(pool)

    first_cycle = [rotator.next() for _ in pool]

    assert first_cycle == pool
    assert rotator.next() == pool[0]


def test_blank_keys_are_discarded():
    rotator = CredentialRotator(["  k1 ", "", "   ", "k2"])

    assert len(rotator) == 2
    assert [rotator.next(), rotator.next(), rotator.next()] == ["k1", "k2", "k1"]


def test_empty_pool_fails_on_first_request():
    rotator = CredentialRotator(["", " "])

    assert len(rotator) == 0
    with pytest.raises(EmptyPoolError, match="No valid API keys provided"):
        rotator.next()
