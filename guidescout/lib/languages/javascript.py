"""JavaScript / TypeScript adapter (package.json + node_modules)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from guidescout.lib.files import GUIDES_DIR, exists_any, read_any
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import LanguageContext, PackageInfo

logger = logging.getLogger("lib.languages.javascript")

CONTRIB_SCOPE = "@dotguides-contrib"
NPM_REGISTRY = "https://registry.npmjs.org"

# First match wins for both lookups.
LOCKFILES = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
    ("bun.lockb", "bun"),
]
RUNTIME_FILES = [
    ("bun.lockb", "bun"),
    ("deno.json", "deno"),
    (".nvmrc", "nodejs"),
    (".node-version", "nodejs"),
]


def flatten_name(name: str) -> str:
    """``@scope/pkg`` -> ``scope__pkg``; unscoped names are unchanged."""
    if name.startswith("@"):
        return name[1:].replace("/", "__", 1)
    return name


def _load_json(path: Path) -> dict[str, Any] | None:
    found = read_any(path.parent, path.name)
    if found is None:
        return None
    try:
        data = json.loads(found[1])
    except json.JSONDecodeError as e:
        logger.warning("Could not parse %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _dependency_bucket(manifest: dict[str, Any], key: str, directory: Path) -> dict[str, Any]:
    bucket = manifest.get(key) or {}
    if not isinstance(bucket, dict):
        logger.warning("Ignoring non-object '%s' in %s/package.json", key, directory)
        return {}
    return bucket


def _sort_key(name: str) -> str:
    return name[1:] if name.startswith("@") else name


def sort_packages(packages: list[PackageInfo], deps: dict[str, list[str]]) -> list[PackageInfo]:
    """Order packages so each comes after the packages it depends on.

    Ties are broken alphabetically (ignoring a leading ``@``); packages caught
    in a cycle are appended alphabetically at the end.
    """
    by_name = {p.name: p for p in packages}
    in_degree = {p.name: 0 for p in packages}
    dependents: dict[str, list[str]] = {p.name: [] for p in packages}

    for pkg in packages:
        for dep in deps.get(pkg.name, []):
            if dep in by_name and dep != pkg.name:
                dependents[dep].append(pkg.name)
                in_degree[pkg.name] += 1

    queue = sorted((n for n, d in in_degree.items() if d == 0), key=_sort_key)
    ordered: list[PackageInfo] = []
    while queue:
        name = queue.pop(0)
        ordered.append(by_name[name])
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)
        queue.sort(key=_sort_key)

    if len(ordered) < len(packages):
        seen = {p.name for p in ordered}
        remaining = sorted((p for p in packages if p.name not in seen), key=lambda p: _sort_key(p.name))
        ordered.extend(remaining)

    return ordered


class JavascriptLanguageAdapter(LanguageAdapter):
    """Reads package.json and the local node_modules tree."""

    name = "javascript"
    contrib_key = "js"

    def _package_dir(self, directory: Path, name: str) -> Path:
        return directory / "node_modules" / name

    def _contrib_dir(self, directory: Path, name: str) -> Path:
        return directory / "node_modules" / CONTRIB_SCOPE / flatten_name(name)

    async def discover(self, directory: str | Path) -> LanguageContext:
        directory = Path(directory)
        name = "typescript" if (directory / "tsconfig.json").exists() else "javascript"

        manifest = _load_json(directory / "package.json")
        if manifest is None:
            return LanguageContext.not_detected(name)

        context = LanguageContext(detected=True, name=name)
        version = str(manifest.get("version") or "0.0.0")
        context.workspace_package = PackageInfo(
            name=str(manifest.get("name") or directory.name),
            dir=str(directory),
            package_version=version,
            dependency_version=version,
            guides=(directory / GUIDES_DIR).exists(),
        )

        for filename, manager in LOCKFILES:
            if (directory / filename).exists():
                context.package_manager = manager
                break

        context.runtime = "nodejs"
        for filename, runtime in RUNTIME_FILES:
            if (directory / filename).exists():
                context.runtime = runtime
                break

        version_file = read_any(directory, ".nvmrc", ".node-version")
        if version_file and version_file[1].strip():
            context.runtime_version = version_file[1].strip()

        dependencies = _dependency_bucket(manifest, "dependencies", directory)
        dev_dependencies = _dependency_bucket(manifest, "devDependencies", directory)
        optional_dependencies = _dependency_bucket(manifest, "optionalDependencies", directory)
        all_deps = {**dependencies, **dev_dependencies, **optional_dependencies}

        packages: list[PackageInfo] = []
        installed_deps: dict[str, list[str]] = {}
        for dep_name, declared in all_deps.items():
            package_dir = self._package_dir(directory, dep_name)
            dependency_version = str(declared)
            package_version = dependency_version

            installed = _load_json(package_dir / "package.json")
            if installed is not None:
                package_version = str(installed.get("version") or dependency_version)
                installed_deps[dep_name] = [
                    *_dependency_bucket(installed, "dependencies", package_dir),
                    *_dependency_bucket(installed, "peerDependencies", package_dir),
                ]

            packages.append(
                PackageInfo(
                    name=dep_name,
                    dir=str(package_dir),
                    package_version=package_version,
                    dependency_version=dependency_version,
                    guides=exists_any(
                        None,
                        package_dir / GUIDES_DIR,
                        self._contrib_dir(directory, dep_name),
                    )
                    is not None,
                    development=dep_name in dev_dependencies,
                    optional=dep_name in optional_dependencies,
                )
            )

        context.packages = sort_packages(packages, installed_deps)
        return context

    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        directory = Path(directory)
        found = exists_any(
            None,
            self._package_dir(directory, name) / GUIDES_DIR,
            self._contrib_dir(directory, name),
        )
        if found is None:
            raise GuidesNotFoundError(
                f"Could not find guides for dependency package '{name}' "
                f"in directory '{directory}'"
            )
        return found

    def contrib_local_name(self, name: str) -> str:
        return flatten_name(name)

    def contrib_url(self, name: str) -> str | None:
        return f"{NPM_REGISTRY}/{CONTRIB_SCOPE}/{flatten_name(name)}"
