"""Registry — external sources of catalog entries.

The registry layer provides:
- Descriptors: which registries exist, how to reach them, who may be trusted
- Adapters: pure mappings from each external payload shape to canonical records
- Remote resolution: fetching, paginating and falling back to local entries
"""
