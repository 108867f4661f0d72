"""Canonical schema — the structural contract for every persisted document.

Validation here is a hard gate: adapters may drop junk, but a record that
reaches the schema and fails it aborts the operation.
"""

SCHEMA_VERSION = "1.0.0"
