"""Business logic modules (model gateway, page convergence, storage, etc.)."""

from . import (
    credential_rotator,
    connectivity,
    inference_gateway,
    inference_log,
    page_convergence,
    pdf_render,
    question_service,
    question_types,
    response_parser,
    scan_service,
)

__all__ = [
    "credential_rotator",
    "connectivity",
    "inference_gateway",
    "inference_log",
    "page_convergence",
    "pdf_render",
    "question_service",
    "question_types",
    "response_parser",
    "scan_service",
]
