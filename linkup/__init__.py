"""
Linkup Backend
================

Professional networking API built on FastAPI and async SQLAlchemy.

    ┌─────────────────────────────────────┐
    │  routes/     HTTP surface           │
    ├─────────────────────────────────────┤
    │  api/        pipeline: rate limit,  │
    │              auth, validation,      │
    │              envelopes              │
    ├─────────────────────────────────────┤
    │  services/   business rules         │
    ├─────────────────────────────────────┤
    │  models/ + schemas/                 │
    ├─────────────────────────────────────┤
    │  database.py persistence handle     │
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
