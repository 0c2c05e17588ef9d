"""Services Layer: transactional orchestration around the pure core.

Invariants:
    - Each public operation opens at most one write transaction
    - Decisions are taken by core/ functions; services only load and persist

Design Decisions:
    - One service per component (lifecycle, anomalies, capacity) plus one store
"""
