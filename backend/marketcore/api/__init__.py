"""API Layer — thin FastAPI surface over the orchestration services.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes never contain business rules (delegate to services/)
    - Caller identity is resolved once per request in deps.get_caller
"""
