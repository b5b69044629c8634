# Overview: Transaction helpers shared by every mutating service.

from __future__ import annotations

from contextlib import contextmanager

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run a block as one unit of work on the request session.

    Commits when the block finishes; rolls back and re-raises on any error so
    no partial stock or status change is ever visible. There is no retry: the
    caller reports the failure and the client resubmits.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
