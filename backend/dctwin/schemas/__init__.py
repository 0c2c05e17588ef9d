"""Pydantic Schemas: request/response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (user input, API responses)
    - Enum fields reuse core/domain_types enums

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
