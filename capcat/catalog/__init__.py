"""Catalog — the reconciled, persisted set of capabilities.

This package provides:
- Reconciliation: defaulting, schema gating and same-id merge
- Sync state: per-registry cursors and freshness
- Storage: the on-disk catalog, whitelist and quarantine documents
- Sync runs: resolving every registry into one catalog write
"""
