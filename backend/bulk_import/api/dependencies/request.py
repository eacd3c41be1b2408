"""Per-request dependencies: database session and caller identity."""

from collections.abc import Generator

from fastapi import Header
from sqlalchemy.orm import Session

from bulk_import.db.session import get_db


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a managed SQLAlchemy session."""
    yield from get_db()


def get_current_user_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> str | None:
    """Caller identity forwarded by the authenticating gateway, if any."""
    if not x_user_id or not x_user_id.strip():
        return None
    return x_user_id.strip()
