"""Core Layer: pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - Phase and inventory model are always explicit parameters (no ambient state)
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: the shell loads snapshots,
      the core decides, the shell persists the decision
"""
