"""Infrastructure Layer: database session management and logging setup.

Invariants:
    - Only module allowed to own the engine and connection pool
    - SQLAlchemy exceptions never escape this layer unmapped on write paths
"""
