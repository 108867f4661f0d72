"""Tests for consuming-project stack detection."""

import json
import tempfile
from pathlib import Path

from capcat.ranking.project_signals import detect_project_signals, scan_project_files


def _touch(root: Path, rel: str, content: str = "") -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def test_python_project():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _touch(root, "pyproject.toml", "[project]\nname = 'x'\n")
        _touch(root, "src/app.py")
        _touch(root, "tests/test_app.py")
        _touch(root, ".github/workflows/ci.yml")

        signals = detect_project_signals(root)
        assert signals.stack == ["python"]
        assert "python" in signals.compatibility_tags
        assert signals.inferred_capabilities == ["ci", "testing"]
        assert signals.languages == {"python": 2}
        assert any("pyproject.toml" in e for e in signals.evidence)


def test_node_project_reads_package_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _touch(
            root,
            "package.json",
            json.dumps({"dependencies": {"react": "^18"}, "devDependencies": {"typescript": "^5"}}),
        )
        _touch(root, "src/App.tsx")
        _touch(root, "Dockerfile")

        signals = detect_project_signals(root)
        assert signals.stack == ["node", "react", "typescript"]
        assert {"container", "node", "react", "typescript"} <= set(signals.compatibility_tags)
        assert "deployment" in signals.inferred_capabilities


def test_unknown_project_is_general():
    with tempfile.TemporaryDirectory() as tmpdir:
        signals = detect_project_signals(tmpdir)
        assert signals.stack == ["unknown"]
        assert signals.compatibility_tags == ["general"]
        assert signals.inferred_capabilities == []


def test_malformed_package_json_is_ignored():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _touch(root, "package.json", "{not json")
        signals = detect_project_signals(root)
        assert signals.stack == ["node"]


def test_scan_skips_vendor_directories():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _touch(root, "main.go")
        _touch(root, "node_modules/lib/index.js")
        _touch(root, "README.md")
        files = scan_project_files(root)
        assert [f.name for f in files] == ["main.go"]
