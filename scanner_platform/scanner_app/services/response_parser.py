"""Turn free-form model output into question records.

Model replies are noisy: code fences, prose before or after the payload,
scalar objects where an array was requested. Everything here is best-effort
and never raises; a reply we cannot read simply yields nothing, which the
convergence loop treats as evidence for another attempt.

JSON payload lookup order (shared by every call site):
    1. fenced block (```json ... ``` or ``` ... ```)
    2. the whole stripped text
    3. first decodable object/array starting at any ``[`` or ``{``
    4. give up (``None``)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Mapping, Optional

from .question_types import OPTION_TYPES, QuestionTypeConfig
from .scan_types import Provenance, QuestionRecord, VerificationResult

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_SCORE_RE = re.compile(r"score[\"'\s:]*(\d+)", re.IGNORECASE)
_COUNT_RE = re.compile(r"\"count\"\s*:\s*\"?(\d+)")
_decoder = json.JSONDecoder()

DEFAULT_FEEDBACK = "Needs improvement"


def _try_loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (TypeError, ValueError):
        return False, None


def _scan_for_json(text: str) -> tuple[bool, Any]:
    for match in re.finditer(r"[\[{]", text):
        try:
            value, _ = _decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        return True, value
    return False, None


def extract_json_payload(text: str | None) -> Optional[Any]:
    if not text:
        return None
    stripped = text.strip()
    for block in _FENCE_RE.findall(stripped):
        ok, value = _try_loads(block.strip())
        if ok:
            return value
    ok, value = _try_loads(stripped)
    if ok:
        return value
    ok, value = _scan_for_json(stripped)
    if ok:
        return value
    return None


def _coerce_options(raw: Any) -> Optional[tuple[str, ...]]:
    if not isinstance(raw, list):
        return None
    options = tuple(str(item) for item in raw if item is not None and str(item).strip())
    return options or None


def parse_questions(
    raw_text: str | None,
    *,
    year: int,
    question_types: Mapping[str, QuestionTypeConfig],
) -> List[QuestionRecord]:
    try:
        payload = extract_json_payload(raw_text)
        if payload is None:
            logger.warning("No JSON payload in model response: %s", (raw_text or "")[:200])
            return []
        if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
            payload = payload["questions"]
        items = payload if isinstance(payload, list) else [payload]
        provenance = Provenance(year=year)
        records: List[QuestionRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            type_name = str(item.get("question_type") or "").strip().upper()
            statement = item.get("question_statement")
            if not type_name or not isinstance(statement, str) or not statement.strip():
                continue
            config = question_types.get(type_name)
            if config is None or not config.enabled:
                logger.info("Dropping question of disabled or unknown type %r", type_name)
                continue
            options = _coerce_options(item.get("options")) if type_name in OPTION_TYPES else None
            records.append(
                QuestionRecord(
                    question_type=type_name,
                    question_statement=statement,
                    options=options,
                    marking=config.marking,
                    provenance=provenance,
                )
            )
        return records
    except Exception:
        logger.exception("Error parsing model response")
        return []


def _clamp_score(value: Any) -> Optional[int]:
    try:
        score = int(float(value))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, score))


def parse_verification(raw_text: str | None) -> VerificationResult:
    payload = extract_json_payload(raw_text)
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        payload = payload[0]
    if isinstance(payload, dict) and "score" in payload:
        score = _clamp_score(payload.get("score"))
        if score is not None:
            feedback = payload.get("feedback")
            if not isinstance(feedback, str) or not feedback.strip():
                feedback = DEFAULT_FEEDBACK
            return VerificationResult(score=score, feedback=feedback.strip())
    match = _SCORE_RE.search(raw_text or "")
    if match:
        return VerificationResult(score=_clamp_score(match.group(1)) or 0, feedback=DEFAULT_FEEDBACK)
    logger.warning("No score found in verification response")
    return VerificationResult(score=0, feedback="Verification failed")


def parse_count(raw_text: str | None) -> int:
    payload = extract_json_payload(raw_text)
    if isinstance(payload, dict):
        payload = payload.get("count")
    if isinstance(payload, (int, float, str)) and not isinstance(payload, bool):
        try:
            return max(0, int(float(payload)))
        except (ValueError, OverflowError):
            pass
    match = _COUNT_RE.search(raw_text or "")
    if match:
        return int(match.group(1))
    logger.warning("Could not parse question count")
    return 0
