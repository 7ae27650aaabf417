"""Round-robin pool of model API keys."""

from __future__ import annotations

from typing import Iterable


class EmptyPoolError(RuntimeError):
    """Raised when a credential is requested from a pool with no usable keys."""


class CredentialRotator:
    """Hands out credentials in strict insertion order, wrapping around.

    Blank entries are discarded. An empty pool is only an error once a
    credential is actually requested.
    """

    def __init__(self, credentials: Iterable[str]) -> None:
        self._credentials = [c.strip() for c in credentials if c and c.strip()]
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._credentials)

    def next(self) -> str:
        if not self._credentials:
            raise EmptyPoolError("No valid API keys provided")
        credential = self._credentials[self._cursor % len(self._credentials)]
        self._cursor = (self._cursor + 1) % len(self._credentials)
        return credential
