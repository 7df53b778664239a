"""
pr_desk.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.
