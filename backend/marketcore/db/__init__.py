"""Database Infrastructure — SQLAlchemy declarative Base and session factory.

Invariants:
    - All sessions are async (AsyncSession)
"""
