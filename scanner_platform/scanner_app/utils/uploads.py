"""Storage of uploaded PDFs under the instance folder."""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

PDF_MIMETYPES = {"application/pdf", "application/x-pdf"}


def is_pdf(file: FileStorage) -> bool:
    name = (file.filename or "").lower()
    return name.endswith(".pdf") or (file.mimetype or "") in PDF_MIMETYPES


def save_upload(file: FileStorage) -> tuple[str, Path]:
    """Save ``file`` to ``instance/uploads`` and return (display name, stored path)."""
    filename = secure_filename(file.filename or "") or f"upload-{uuid4().hex}.pdf"
    upload_dir = Path(current_app.instance_path) / "uploads"
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / filename
    if path.exists():
        path = upload_dir / f"{uuid4().hex}-{filename}"
    file.save(path)
    return file.filename or filename, path
