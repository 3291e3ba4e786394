"""
BaseService -- abstract base for kernel services.

Services receive a SQLAlchemy ``Session`` from the caller and use
``session.flush()`` -- never ``session.commit()``.  The caller (a
``session_scope()`` block, the SLA monitor, or a test fixture) owns
commit and rollback, so a multi-step write such as "clear the other
defaults, then set this one" is atomic.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Common constructor for session-bound services."""

    def __init__(self, session: Session):
        self.session = session


def parse_uuid(value: str | UUID) -> UUID | None:
    """Parse an id coming from outside the kernel; None when malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
