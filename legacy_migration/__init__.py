"""
Legacy Migration

Moves the data of a legacy shop-task system, exported as a MySQL textual
dump, into the PostgreSQL schema of the new order management system.

Supports:
- Tokenizing and decoding extended INSERT statements of the dump
- Declared column manifests per legacy table, with schema drift detection
- UUID surrogate keys with a persisted legacy-id identity map
- Foreign-key resolution across separate migration passes
- Idempotent loading (existing rows are skipped, never updated)
"""

__version__ = "0.1.0"
