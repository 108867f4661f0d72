"""Install audit trail.

One immutable JSON record per install attempt, stored under
``security-reports/audits/``. Records are created exclusively and never
rewritten.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from capcat.schema.validator import require_valid
from capcat.utils.json_files import read_json, write_json_exclusive

ALLOWED = "allowed"
BLOCKED = "blocked"
OVERRIDE_ALLOWED = "override-allowed"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class InstallAudit:
    """A single install attempt and the policy decision behind it."""

    id: str
    requested_at: str
    policy_decision: str
    override_used: bool
    installer: str
    exit_code: int


class AuditTrail:
    """Writes and reads install audit records in one directory."""

    def __init__(self, audits_dir: Path) -> None:
        self._audits_dir = Path(audits_dir)

    def record(self, audit: InstallAudit) -> Path:
        """Persist an audit record and return its path."""
        doc = audit_to_dict(audit)
        require_valid(doc, "install-audit")
        stamp = re.sub(r"[:.+]", "-", audit.requested_at)
        safe_id = _UNSAFE_CHARS.sub("_", audit.id)
        path = self._audits_dir / f"{stamp}-{safe_id}-{uuid.uuid4().hex[:8]}.json"
        write_json_exclusive(path, doc)
        return path

    def list_audits(self, item_id: Optional[str] = None) -> list[InstallAudit]:
        """Return stored audits, oldest first, optionally for one id."""
        if not self._audits_dir.exists():
            return []
        audits = []
        for path in sorted(self._audits_dir.glob("*.json")):
            audit = dict_to_audit(read_json(path))
            if item_id is None or audit.id == item_id:
                audits.append(audit)
        return sorted(audits, key=lambda a: a.requested_at)


def audit_to_dict(audit: InstallAudit) -> dict:
    return {
        "id": audit.id,
        "requestedAt": audit.requested_at,
        "policyDecision": audit.policy_decision,
        "overrideUsed": audit.override_used,
        "installer": audit.installer,
        "exitCode": audit.exit_code,
    }


def dict_to_audit(data: dict) -> InstallAudit:
    return InstallAudit(
        id=data["id"],
        requested_at=data["requestedAt"],
        policy_decision=data["policyDecision"],
        override_used=data["overrideUsed"],
        installer=data["installer"],
        exit_code=data["exitCode"],
    )
