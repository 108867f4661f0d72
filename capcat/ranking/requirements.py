"""Requirements profile — what the consumer explicitly asks for."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from capcat.errors import ConfigError

POSTURES = ("balanced", "strict")


@dataclass
class RequirementsProfile:
    use_case: str = "general"
    stack: list[str] = field(default_factory=list)
    deployment: str = "local"
    security_posture: str = "balanced"
    required_capabilities: list[str] = field(default_factory=list)

    @property
    def strict(self) -> bool:
        return self.security_posture == "strict"


def load_requirements(path: Optional[str | Path] = None) -> RequirementsProfile:
    """Load a YAML or JSON requirements file; no path means defaults."""
    if path is None:
        return RequirementsProfile()

    path = Path(path)
    if path.suffix not in (".yaml", ".yml", ".json"):
        raise ConfigError(f"Unsupported requirements format: {path}", hint="use .yaml, .yml or .json")
    if not path.exists():
        raise ConfigError(f"Requirements file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e
    return dict_to_requirements(data or {})


def dict_to_requirements(data: dict) -> RequirementsProfile:
    if not isinstance(data, dict):
        raise ConfigError("requirements profile must be a mapping")

    posture = data.get("securityPosture", data.get("security_posture", "balanced"))
    if posture not in POSTURES:
        raise ConfigError(f"securityPosture must be one of {', '.join(POSTURES)}, got {posture!r}")

    return RequirementsProfile(
        use_case=str(data.get("useCase", data.get("use_case", "general"))),
        stack=_string_list(data.get("stack", []), "stack"),
        deployment=str(data.get("deployment", "local")),
        security_posture=posture,
        required_capabilities=_string_list(
            data.get("requiredCapabilities", data.get("required_capabilities", [])),
            "requiredCapabilities",
        ),
    )


def _string_list(value, name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"requirements {name} must be a list of strings")
    return [v.strip() for v in value if v.strip()]
