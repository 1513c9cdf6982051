"""
Greenlight — Movie Catalog API Package
=======================================

What: JSON API for creating, reading, updating, deleting and listing movie records.
How:  FastAPI on top of async SQLAlchemy (asyncpg) with Alembic-managed schema.

Architecture Note:
    ┌─────────────────────────────────────┐
    │     Middleware (request id, logs,   │  ← panic recovery, rate limiting
    │     recovery, rate limit)           │
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only, /v1 prefix
    ├─────────────────────────────────────┤
    │      Services (Business Rules)      │  ← validation, optimistic locking
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
