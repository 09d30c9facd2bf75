"""Infrastructure Layer — database plumbing and cross-cutting concerns.

Invariants:
    - Infrastructure never imports domain rules from core/ (errors excepted)
    - All database failures leave this layer as MarketError subclasses
"""
