"""Session helpers that ride out SQLite write locks."""

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError

from ..extensions import db


def commit_with_retry(attempts: int = 5, base_delay: float = 0.2) -> None:
    """Commit with simple backoff to reduce SQLite 'database is locked' errors."""
    for attempt in range(attempts):
        try:
            db.session.commit()
            return
        except OperationalError as exc:
            if "locked" not in str(exc).lower():
                db.session.rollback()
                raise
            db.session.rollback()
            time.sleep(base_delay * (attempt + 1))
        except Exception:
            db.session.rollback()
            raise
    # final attempt
    db.session.commit()
