"""Dart / Flutter adapter (pubspec.yaml + pubspec.lock + pub cache)."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from guidescout.lib.files import GUIDES_DIR, exists_any, read_any
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import UNKNOWN, LanguageContext, PackageInfo

logger = logging.getLogger("lib.languages.dart")

CONTRIB_PREFIX = "dotguides_contrib_"
DEFAULT_HOST = "pub.dev"
SUPPORTED_SOURCES = ("hosted", "path")


def flatten_name(name: str) -> str:
    """Dart package names are identifiers: ``@scope/some-pkg`` -> ``scope_some_pkg``."""
    return name.lstrip("@").replace("/", "_").replace("-", "_")


@dataclass
class LockedPackage:
    """One ``hosted`` or ``path`` entry from pubspec.lock."""

    name: str
    version: str
    source: str
    dependency: str = ""
    path: Path | None = None
    host: str = DEFAULT_HOST


def _load_yaml(directory: Path, filename: str) -> dict[str, Any] | None:
    found = read_any(directory, filename)
    if found is None:
        return None
    try:
        data = yaml.safe_load(found[1])
    except yaml.YAMLError as e:
        logger.warning("Could not parse %s: %s", found[0], e)
        return None
    return data if isinstance(data, dict) else None


def parse_lockfile(directory: Path, lock: dict[str, Any]) -> list[LockedPackage]:
    """Extract supported entries from a parsed pubspec.lock.

    ``git``/``sdk`` sources are skipped; relative ``path`` descriptions are
    resolved against ``directory``.
    """
    locked: list[LockedPackage] = []
    packages = lock.get("packages") or {}
    if not isinstance(packages, dict):
        return locked

    for name, entry in packages.items():
        if not isinstance(entry, dict):
            continue
        source = entry.get("source")
        if source not in SUPPORTED_SOURCES:
            continue
        description = entry.get("description") or {}
        pkg = LockedPackage(
            name=str(name),
            version=str(entry.get("version") or UNKNOWN),
            source=source,
            dependency=str(entry.get("dependency") or ""),
        )
        if source == "path":
            raw_path = description.get("path") if isinstance(description, dict) else None
            if not raw_path:
                continue
            path = Path(raw_path)
            pkg.path = path if path.is_absolute() else (directory / path).resolve()
        elif isinstance(description, dict) and description.get("url"):
            pkg.host = urlparse(str(description["url"])).netloc or DEFAULT_HOST
        locked.append(pkg)
    return locked


def _declared_version(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        version = value.get("version")
        return str(version) if version else "any"
    return str(value)


class DartLanguageAdapter(LanguageAdapter):
    """Reads pubspec.yaml for identity and pubspec.lock for resolved packages."""

    name = "dart"
    contrib_key = "dart"

    def pub_cache_root(self) -> Path:
        if self.config.pub_cache:
            return Path(self.config.pub_cache)
        if sys.platform == "win32" and os.environ.get("LOCALAPPDATA"):
            return Path(os.environ["LOCALAPPDATA"]) / "Pub" / "Cache"
        return Path.home() / ".pub-cache"

    def guides_candidates(self, pkg: LockedPackage) -> list[Path]:
        """Where the guides for a locked package may live, in priority order."""
        if pkg.source == "path":
            return [pkg.path / GUIDES_DIR] if pkg.path else []
        hosted = self.pub_cache_root() / "hosted" / pkg.host
        contrib = f"{CONTRIB_PREFIX}{flatten_name(pkg.name)}"
        return [
            hosted / f"{pkg.name}-{pkg.version}" / GUIDES_DIR,
            hosted / f"{contrib}-{pkg.version}" / GUIDES_DIR,
        ]

    def _package_dir(self, pkg: LockedPackage) -> Path:
        if pkg.source == "path" and pkg.path:
            return pkg.path
        return self.pub_cache_root() / "hosted" / pkg.host / f"{pkg.name}-{pkg.version}"

    async def discover(self, directory: str | Path) -> LanguageContext:
        directory = Path(directory)
        if not (directory / "pubspec.yaml").exists():
            return LanguageContext.not_detected(self.name)

        context = LanguageContext(
            detected=True, name="dart", package_manager="pub", runtime="dart"
        )

        pubspec = _load_yaml(directory, "pubspec.yaml") or {}
        if pubspec.get("name"):
            version = str(pubspec.get("version") or "0.0.0")
            context.workspace_package = PackageInfo(
                name=str(pubspec["name"]),
                dir=str(directory),
                package_version=version,
                dependency_version=version,
                guides=(directory / GUIDES_DIR).exists(),
            )

        dependencies = pubspec.get("dependencies") or {}
        dev_dependencies = pubspec.get("dev_dependencies") or {}
        if not isinstance(dependencies, dict):
            dependencies = {}
        if not isinstance(dev_dependencies, dict):
            dev_dependencies = {}

        if "flutter" in dependencies:
            context.name = "flutter"
            context.runtime = "flutter"

        environment = pubspec.get("environment")
        if isinstance(environment, dict) and environment.get("sdk"):
            context.runtime_version = str(environment["sdk"])

        lock = _load_yaml(directory, "pubspec.lock")
        if lock is None:
            return context

        for pkg in parse_lockfile(directory, lock):
            declared = _declared_version(
                dependencies.get(pkg.name, dev_dependencies.get(pkg.name))
            )
            context.packages.append(
                PackageInfo(
                    name=pkg.name,
                    dir=str(self._package_dir(pkg)),
                    package_version=pkg.version,
                    dependency_version=declared or "any",
                    guides=exists_any(None, *self.guides_candidates(pkg)) is not None,
                    development=pkg.name in dev_dependencies or pkg.dependency == "direct dev",
                    optional=False,
                )
            )

        return context

    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        directory = Path(directory)
        lock = _load_yaml(directory, "pubspec.lock")
        if lock is None:
            raise GuidesNotFoundError(f"No readable pubspec.lock in '{directory}'")

        for pkg in parse_lockfile(directory, lock):
            if pkg.name != name:
                continue
            found = exists_any(None, *self.guides_candidates(pkg))
            if found is None:
                raise GuidesNotFoundError(f"Could not find guides for package {name}")
            return found

        raise GuidesNotFoundError(f"Package {name} not found in pubspec.lock")

    def contrib_local_name(self, name: str) -> str:
        return flatten_name(name)

    def contrib_url(self, name: str) -> str | None:
        return f"https://pub.dev/packages/{CONTRIB_PREFIX}{flatten_name(name)}"
