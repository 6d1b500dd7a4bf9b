"""Transaction scope helper shared by repositories and services."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from extensions import db

_DEPTH_KEY = "atomic_depth"


@contextmanager
def atomic() -> Iterator[None]:
    """Commit on success, roll back on error; nested scopes join the outermost."""
    session = db.session()
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield
        if depth == 0:
            session.commit()
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = depth
