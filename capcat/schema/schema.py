"""JSON Schema documents for capcat's persisted state.

These are the normative structural definitions for the catalog, the
whitelist, the quarantine store, sync state, security reports and install
audits. Tools can export them and use any JSON Schema validator; capcat
itself checks them with ``capcat.schema.validator``.
"""

from capcat.schema import SCHEMA_VERSION

ISO_DATE = r"^(19|20|21)\d{2}-[01]\d-[0-3]\d$"
ISO_DATETIME = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"

RISK_TIERS = ["low", "medium", "high", "critical"]

_SIGNAL = {"type": "number", "minimum": 0, "maximum": 100}
_COUNTER = {"type": "integer", "minimum": 0}
_TAGS = {"type": "array", "items": {"type": "string", "minLength": 1}}

INSTALL_METHOD_SCHEMA: dict = {
    "oneOf": [
        {
            "type": "object",
            "required": ["kind", "target", "args"],
            "properties": {
                "kind": {"const": "skill.sh"},
                "target": {"type": "string", "minLength": 1},
                "args": {"type": "array", "items": {"type": "string"}},
            },
        },
        {
            "type": "object",
            "required": ["kind", "target", "args"],
            "properties": {
                "kind": {"const": "gh-cli"},
                "target": {"type": "string", "minLength": 1},
                "args": {"type": "array", "items": {"type": "string"}},
            },
        },
        {
            "type": "object",
            "required": ["kind", "instructions"],
            "properties": {
                "kind": {"const": "manual"},
                "instructions": {"type": "string", "minLength": 1},
                "url": {"type": "string", "minLength": 1},
            },
        },
    ]
}

CATALOG_ITEM_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": f"https://capcat.dev/schema/catalog-item/v{SCHEMA_VERSION}",
    "title": "Catalog item",
    "type": "object",
    "required": [
        "id",
        "kind",
        "provider",
        "name",
        "description",
        "source",
        "lastSeenAt",
        "install",
    ],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "kind": {
            "type": "string",
            "enum": ["skill", "mcp", "claude-plugin", "copilot-extension"],
        },
        "provider": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string", "minLength": 1},
        "capabilities": _TAGS,
        "compatibility": _TAGS,
        "source": {"type": "string", "minLength": 1},
        "lastSeenAt": {"type": "string", "pattern": ISO_DATE},
        "install": INSTALL_METHOD_SCHEMA,
        "adoptionSignal": _SIGNAL,
        "maintenanceSignal": _SIGNAL,
        "provenanceSignal": _SIGNAL,
        "freshnessSignal": _SIGNAL,
        "securitySignals": {
            "type": "object",
            "properties": {
                "knownVulnerabilities": _COUNTER,
                "suspiciousPatterns": _COUNTER,
                "injectionFindings": _COUNTER,
                "exfiltrationSignals": _COUNTER,
                "integrityAlerts": _COUNTER,
            },
        },
        "metadata": {"type": "object"},
    },
}

WHITELIST_SCHEMA: dict = {
    "type": "object",
    "required": ["approved"],
    "properties": {
        "approved": {"type": "array", "items": {"type": "string", "minLength": 1}},
    },
}

QUARANTINE_SCHEMA: dict = {
    "type": "object",
    "required": ["quarantined"],
    "properties": {
        "quarantined": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "reason", "quarantinedAt"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "reason": {"type": "string", "minLength": 1},
                    "quarantinedAt": {"type": "string", "pattern": ISO_DATETIME},
                },
            },
        },
    },
}

SYNC_STATE_SCHEMA: dict = {
    "type": "object",
    "required": ["registries"],
    "properties": {
        "registries": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "lastSuccessfulSyncAt": {"type": "string", "pattern": ISO_DATETIME},
                    "lastUpdatedSince": {"type": "string", "minLength": 1},
                },
            },
        },
    },
}

SECURITY_REPORT_SCHEMA: dict = {
    "type": "object",
    "required": ["generatedAt", "passed", "failed"],
    "properties": {
        "generatedAt": {"type": "string", "pattern": ISO_DATETIME},
        "staleRegistries": {"type": "array", "items": {"type": "string"}},
        "passed": {"type": "array", "items": {"type": "string"}},
        "failed": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "riskTier", "riskScore", "reasons"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "riskTier": {"type": "string", "enum": RISK_TIERS},
                    "riskScore": {"type": "number", "minimum": 0, "maximum": 100},
                    "reasons": {"type": "array", "minItems": 1, "items": {"type": "string"}},
                },
            },
        },
    },
}

INSTALL_AUDIT_SCHEMA: dict = {
    "type": "object",
    "required": ["id", "requestedAt", "policyDecision", "overrideUsed", "installer", "exitCode"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "requestedAt": {"type": "string", "pattern": ISO_DATETIME},
        "policyDecision": {"type": "string", "enum": ["allowed", "blocked", "override-allowed"]},
        "overrideUsed": {"type": "boolean"},
        "installer": {"type": "string", "enum": ["skill.sh", "gh-cli", "manual"]},
        "exitCode": {"type": "integer"},
    },
}


def get_schema(name: str = "catalog-item") -> dict:
    """Return a schema document by name."""
    return SCHEMAS[name]


SCHEMAS: dict[str, dict] = {
    "catalog-item": CATALOG_ITEM_SCHEMA,
    "whitelist": WHITELIST_SCHEMA,
    "quarantine": QUARANTINE_SCHEMA,
    "sync-state": SYNC_STATE_SCHEMA,
    "security-report": SECURITY_REPORT_SCHEMA,
    "install-audit": INSTALL_AUDIT_SCHEMA,
}
