# Overview: Retry and locking helpers for the read-mutate-write cycle over the sync document.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking to the document read.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version counter
    on SyncDocument is the only guard.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("SYNC_RETRY_ATTEMPTS", 3) or 3)
    return 3


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a full read -> mutate -> write operation, retrying it from the
    read when another writer committed first.

    Retries on OperationalError (locks), IntegrityError (two first-time
    creators of the document row) and StaleDataError (the document's
    version_id moved underneath us). func must reload the document itself;
    anything it computed from the stale snapshot is discarded.
    """
    attempts = attempts or _default_attempts()
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (IntegrityError, OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("sync document write conflict, retrying (attempt %s/%s)", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
