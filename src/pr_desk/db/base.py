"""
pr_desk.db.base

SQLAlchemy declarative base.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # All pr_desk tables register here; `init_db` and Alembic read this metadata.
    pass
