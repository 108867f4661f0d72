"""Doctor — environment health checks for installs and sync."""

from __future__ import annotations

import platform
import shutil
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from capcat.catalog.store import CatalogStore
from capcat.catalog.sync_state import stale_registries
from capcat.config import RuntimeConfig, load_registries
from capcat.errors import CapcatError
from capcat.install.installer import GH, INSTALL_SUGGESTIONS, SKILL_SH


class CheckStatus(Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class DoctorCheck:
    name: str
    status: CheckStatus
    message: str
    suggestion: str = ""


def run_doctor_checks(
    config: RuntimeConfig,
    store: Optional[CatalogStore] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> list[DoctorCheck]:
    store = store or CatalogStore(config.data_dir)
    checks = [
        check_binary(SKILL_SH, required=True, which=which),
        check_binary(GH, required=False, which=which),
        check_python(),
        check_catalog(store),
        check_sync_freshness(config, store),
    ]
    return checks


def check_binary(
    name: str, required: bool, which: Callable[[str], Optional[str]] = shutil.which
) -> DoctorCheck:
    if which(name):
        return DoctorCheck(name, CheckStatus.PASS, f"{name} available")
    return DoctorCheck(
        name,
        CheckStatus.FAIL if required else CheckStatus.WARN,
        f"{name} not found",
        INSTALL_SUGGESTIONS.get(name, f"install {name}"),
    )


def check_python() -> DoctorCheck:
    version = platform.python_version()
    if sys.version_info >= (3, 10):
        return DoctorCheck("Python version", CheckStatus.PASS, f"Python {version}")
    return DoctorCheck("Python version", CheckStatus.FAIL, f"Python {version}", "upgrade to Python >= 3.10")


def check_catalog(store: CatalogStore) -> DoctorCheck:
    try:
        items = store.load_items()
    except (CapcatError, OSError, ValueError) as e:
        return DoctorCheck("Catalog", CheckStatus.FAIL, f"Catalog unreadable: {e}", "run `capcat sync`")
    if not items:
        return DoctorCheck("Catalog", CheckStatus.WARN, "Catalog is empty", "run `capcat sync`")
    return DoctorCheck("Catalog", CheckStatus.PASS, f"{len(items)} items loaded")


def check_sync_freshness(config: RuntimeConfig, store: CatalogStore) -> DoctorCheck:
    try:
        state = store.load_sync_state()
        known = [r.id for r in load_registries(config)]
    except CapcatError as e:
        return DoctorCheck("Sync freshness", CheckStatus.FAIL, str(e), e.hint or "run `capcat sync`")

    stale = stale_registries(state, stale_after_hours=config.stale_after_hours, known_ids=known)
    if stale:
        return DoctorCheck(
            "Sync freshness",
            CheckStatus.WARN,
            f"{len(stale)} stale registries: {', '.join(stale)}",
            "run `capcat sync`",
        )
    return DoctorCheck("Sync freshness", CheckStatus.PASS, "No stale registries")
