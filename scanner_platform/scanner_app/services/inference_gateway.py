"""Gemini vision calls used by the page scanner.

Four operations share one transport: count, extract, repair and verify.
Every HTTP attempt takes exactly one key from the rotator right before the
request, so interleaved operations spread evenly over the pool.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from ..metrics import record_model_call
from .connectivity import NetworkTimeoutError, is_network_error, wait_for_network
from .credential_rotator import CredentialRotator, EmptyPoolError
from .inference_log import log_event
from .response_parser import parse_count, parse_verification
from .scan_prompts import COUNT_PROMPT, build_repair_prompt, build_verification_prompt
from .scan_types import VerificationResult

logger = logging.getLogger(__name__)

BACKOFF_BASE_SEC = 1.0
BACKOFF_JITTER_SEC = 2.0

__all__ = [
    "AllCredentialsExhaustedError",
    "EmptyPoolError",
    "EmptyResponseError",
    "InferenceError",
    "InferenceGateway",
    "NetworkTimeoutError",
    "build_gateway",
]


class InferenceError(RuntimeError):
    """Base class for model call failures."""


class EmptyResponseError(InferenceError):
    """The model answered with no text."""


class AllCredentialsExhaustedError(InferenceError):
    """Every retry slot failed for one operation."""


def _mask(credential: str) -> str:
    return f"...{credential[-4:]}" if len(credential) > 4 else "****"


def _response_text(data: Dict[str, Any]) -> str:
    texts: List[str] = []
    for candidate in (data.get("candidates") or [])[:1]:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            if isinstance(part, dict) and part.get("text"):
                texts.append(part["text"])
    return "".join(texts)


@dataclass
class InferenceGateway:
    rotator: CredentialRotator
    model: str = "gemini-2.5-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    max_retries: int = 3
    temperature: float = 0.1
    connect_timeout: float = 15
    read_timeout: float = 120
    network_wait_sec: float = 300
    network_poll_sec: float = 2.0
    network_retry_limit: int = 5
    probe_url: Optional[str] = None
    job_id: Optional[int] = None

    # ---------------- operations ----------------
    def count_questions(self, image_b64: str) -> int:
        """Expected number of complete questions on the page, 0 when unknown."""
        try:
            raw = self._call("count", COUNT_PROMPT, image_b64)
        except EmptyPoolError:
            raise
        except Exception as exc:
            logger.warning("Question count failed: %s", exc)
            return 0
        return parse_count(raw)

    def extract(self, image_b64: str, instructions: str) -> str:
        return self._call_with_rotation("extract", instructions, image_b64)

    def repair(self, image_b64: str, prior_raw_text: str, feedback: str) -> str:
        prompt = build_repair_prompt(prior_raw_text, feedback)
        return self._call_with_rotation("repair", prompt, image_b64)

    def verify(self, image_b64: str, candidate_raw_text: str) -> VerificationResult:
        """Grade a candidate extraction. Failures score 0 instead of raising."""
        try:
            raw = self._call("verify", build_verification_prompt(candidate_raw_text), image_b64)
        except EmptyPoolError:
            raise
        except Exception as exc:
            logger.warning("Verification failed: %s", exc)
            return VerificationResult(score=0, feedback=f"Verification error: {exc}")
        return parse_verification(raw)

    # ---------------- transport ----------------
    def _call_with_rotation(self, operation: str, prompt: str, image_b64: str) -> str:
        slots = min(self.max_retries, len(self.rotator))
        if slots <= 0:
            self.rotator.next()  # raises EmptyPoolError
        last_error: Exception | None = None
        for slot in range(slots):
            try:
                return self._call(operation, prompt, image_b64)
            except (EmptyPoolError, NetworkTimeoutError):
                raise
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Model %s failed on key slot %s/%s: %s",
                    operation,
                    slot + 1,
                    slots,
                    exc,
                )
                if slot < slots - 1:
                    time.sleep(BACKOFF_BASE_SEC + random.uniform(0, BACKOFF_JITTER_SEC))
        raise AllCredentialsExhaustedError(
            f"All {slots} API key attempts failed for {operation}"
        ) from last_error

    def _call(self, operation: str, prompt: str, image_b64: str) -> str:
        """One logical call; network drops re-issue it after connectivity returns."""
        network_retries = 0
        while True:
            self._wait_for_network()
            credential = self.rotator.next()
            try:
                return self._post(operation, credential, prompt, image_b64)
            except requests.RequestException as exc:
                if not is_network_error(exc):
                    raise
                if network_retries >= self.network_retry_limit:
                    raise NetworkTimeoutError(
                        f"{operation} kept failing on network errors after {network_retries} retries"
                    ) from exc
                network_retries += 1
                logger.warning("Network error during %s, waiting for connection...", operation)

    def _wait_for_network(self) -> None:
        wait_for_network(
            self.probe_url or self.api_base,
            max_wait_sec=self.network_wait_sec,
            poll_interval_sec=self.network_poll_sec,
        )

    def _post(self, operation: str, credential: str, prompt: str, image_b64: str) -> str:
        url = f"{self.api_base.rstrip('/')}/models/{self.model}:generateContent"
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": "image/png", "data": image_b64}},
                    ],
                }
            ],
            "generationConfig": {"temperature": self.temperature},
        }
        headers = {"x-goog-api-key": credential, "Content-Type": "application/json"}
        start_time = time.perf_counter()
        event = {
            "job_id": self.job_id,
            "operation": operation,
            "model": self.model,
            "key": _mask(credential),
        }
        try:
            response = requests.post(
                url,
                headers=headers,
                json=payload,
                timeout=(self.connect_timeout, self.read_timeout),
            )
            response.raise_for_status()
            text = _response_text(response.json())
            if not text.strip():
                raise EmptyResponseError(f"Empty response from model ({operation})")
        except Exception as exc:
            elapsed = time.perf_counter() - start_time
            record_model_call(operation, "error", elapsed)
            log_event(
                "model_failure",
                {**event, "duration_ms": int(elapsed * 1000), "error": str(exc)},
            )
            raise
        elapsed = time.perf_counter() - start_time
        record_model_call(operation, "success", elapsed)
        log_event(
            "model_success",
            {**event, "status_code": response.status_code, "duration_ms": int(elapsed * 1000)},
        )
        return text


def build_gateway(rotator: CredentialRotator, *, job_id: int | None = None) -> InferenceGateway:
    """Gateway configured from the current Flask app."""
    config = current_app.config
    return InferenceGateway(
        rotator=rotator,
        model=config.get("GEMINI_MODEL", "gemini-2.5-flash"),
        api_base=config.get("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"),
        max_retries=max(1, int(config.get("AI_API_MAX_RETRIES", 3))),
        temperature=float(config.get("GEMINI_TEMPERATURE", 0.1)),
        connect_timeout=config.get("AI_CONNECT_TIMEOUT_SEC", 15),
        read_timeout=config.get("AI_READ_TIMEOUT_SEC", 120),
        network_wait_sec=config.get("NETWORK_WAIT_MAX_SEC", 300),
        network_poll_sec=config.get("NETWORK_POLL_INTERVAL_SEC", 2.0),
        network_retry_limit=int(config.get("NETWORK_RETRY_LIMIT", 5)),
        probe_url=config.get("NETWORK_PROBE_URL"),
        job_id=job_id,
    )
