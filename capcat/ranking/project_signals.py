"""Project signals — detect a consuming project's stack from its files."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Directories to always skip
SKIP_DIRS = {
    ".git", "__pycache__", "node_modules", ".venv", "venv", ".env",
    "dist", "build", ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "target", "vendor", ".next", ".nuxt", "coverage",
}

# Source extensions, mapped to language
LANGUAGE_MAP = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".jsx": "javascript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".rb": "ruby",
    ".sh": "shell",
}

# Marker file -> (stack entry, compatibility tag)
MARKER_FILES = {
    "package.json": ("node", "node"),
    "pyproject.toml": ("python", "python"),
    "requirements.txt": ("python", "python"),
    "Dockerfile": (None, "container"),
    "pom.xml": ("java", "java"),
    "build.gradle": ("java", "java"),
    "go.mod": ("go", "go"),
    "Cargo.toml": ("rust", "rust"),
    "Gemfile": ("ruby", "ruby"),
}

# Path present in the project -> capability it suggests
CAPABILITY_HINTS = {
    ".github/workflows": "ci",
    "tests": "testing",
    "test": "testing",
    "docs": "documentation",
    "migrations": "database",
    "Dockerfile": "deployment",
}

# Languages worth a compatibility tag once they make up this share of files
LANGUAGE_SHARE = 0.2


@dataclass
class ProjectSignals:
    """What a scan of the consuming project found."""

    stack: list[str] = field(default_factory=list)
    compatibility_tags: list[str] = field(default_factory=list)
    inferred_capabilities: list[str] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)  # language -> file count
    evidence: list[str] = field(default_factory=list)


def detect_project_signals(project_path: str | Path) -> ProjectSignals:
    """Scan a project directory for stack markers and source languages.

    A project with no recognizable stack is tagged ``general``.
    """
    root = Path(project_path).resolve()
    stack: set[str] = set()
    tags: set[str] = set()
    capabilities: set[str] = set()
    evidence: list[str] = []

    for marker, (stack_entry, tag) in MARKER_FILES.items():
        if (root / marker).is_file():
            if stack_entry:
                stack.add(stack_entry)
            tags.add(tag)
            evidence.append(f"{marker} -> {tag}")

    for dep_tag in _package_json_tags(root / "package.json"):
        stack.add(dep_tag)
        tags.add(dep_tag)
        evidence.append(f"package.json dependency -> {dep_tag}")

    for hint, capability in CAPABILITY_HINTS.items():
        if (root / hint).exists():
            capabilities.add(capability)
            evidence.append(f"{hint} -> {capability}")

    languages = Counter(
        LANGUAGE_MAP[path.suffix] for path in scan_project_files(root)
    )
    total = sum(languages.values())
    for language, count in languages.items():
        if total and count / total >= LANGUAGE_SHARE:
            tags.add(language)
            evidence.append(f"{count} {language} files")

    if not stack:
        stack.add("unknown")
        tags.add("general")

    signals = ProjectSignals(
        stack=sorted(stack),
        compatibility_tags=sorted(tags),
        inferred_capabilities=sorted(capabilities),
        languages=dict(sorted(languages.items())),
        evidence=evidence,
    )
    logger.debug("Project signals for %s: %s", root, signals)
    return signals


def _package_json_tags(path: Path) -> list[str]:
    if not path.is_file():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            pkg = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return []
    if not isinstance(pkg, dict):
        return []

    deps = {**(pkg.get("dependencies") or {}), **(pkg.get("devDependencies") or {})}
    tags = []
    if "react" in deps or "next" in deps:
        tags.append("react")
    if "typescript" in deps:
        tags.append("typescript")
    return tags


def scan_project_files(root: Path) -> list[Path]:
    """Recursively list source files, skipping build and vendor directories."""
    files = []
    for item in root.rglob("*"):
        if item.is_file() and _should_include(item.relative_to(root)):
            files.append(item)
    return files


def _should_include(path: Path) -> bool:
    for part in path.parts:
        if part in SKIP_DIRS:
            return False
    return path.suffix in LANGUAGE_MAP
