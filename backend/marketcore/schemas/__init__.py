"""Pydantic Schemas — request/response contracts for the HTTP surface.

Invariants:
    - Schemas validate shape at the boundary; business rules stay in core/
    - Domain enums from core/domain_types used for enum fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
