"""Services Layer — imperative shell around the pure core.

Invariants:
    - Every public operation runs inside run_bounded() (no unbounded waits)
    - Primary writes commit before side effects are dispatched
"""
