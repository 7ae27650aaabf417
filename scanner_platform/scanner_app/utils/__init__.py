"""Utility helpers (database commits, upload storage)."""

from .db import commit_with_retry
from .uploads import is_pdf, save_upload

__all__ = ["commit_with_retry", "is_pdf", "save_upload"]
