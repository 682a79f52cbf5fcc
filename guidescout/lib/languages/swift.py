"""Swift adapter (Package.swift manifests and Xcode projects).

This is the most heuristic adapter. Manifests are read with regular
expressions rather than by running ``swift package``, and Xcode project
dependencies are located by searching the DerivedData tree. A dependency
whose checkout cannot be found is still reported, with ``dir=UNKNOWN``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from guidescout.lib.files import GUIDES_DIR, read_any
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import UNKNOWN, LanguageContext, PackageInfo
from guidescout.lib.languages.pbxproj import PbxprojError, objects_of, parse_pbxproj
from guidescout.lib.shell import ToolNotFoundError

logger = logging.getLogger("lib.languages.swift")

MANIFEST = "Package.swift"
RESOLVED = "Package.resolved"
XCODE_RESOLVED = Path("project.xcworkspace") / "xcshareddata" / "swiftpm" / RESOLVED

_PACKAGE_NAME_RE = re.compile(r'Package\s*\(\s*name\s*:\s*"([^"]+)"')
# One level of nested parentheses covers .upToNextMajor(from: "...").
_PACKAGE_DEP_RE = re.compile(r"\.package\s*\(((?:[^()]|\([^()]*\))*)\)")
_URL_RE = re.compile(r'url\s*:\s*"([^"]+)"')
_PATH_RE = re.compile(r'path\s*:\s*"([^"]+)"')
_RANGE_RE = re.compile(r'"([^"]+)"\s*(\.\.[<.])\s*"([^"]+)"')
_REQUIREMENT_RE = re.compile(r'\b(from|exact|branch|revision)\s*:\s*"([^"]+)"')


@dataclass
class ManifestDependency:
    """A ``.package(...)`` entry from Package.swift."""

    name: str
    url: str | None = None
    path: str | None = None
    requirement: str = UNKNOWN


def repository_name(url: str) -> str:
    """``https://github.com/apple/swift-nio.git`` -> ``swift-nio``."""
    name = url.rstrip("/").rsplit("/", 1)[-1]
    if ":" in name:  # scp-style git@host:repo
        name = name.rsplit(":", 1)[-1]
    return name[:-4] if name.endswith(".git") else name


def _requirement(args: str) -> str:
    match = _RANGE_RE.search(args)
    if match:
        return "".join(match.groups())
    match = _REQUIREMENT_RE.search(args)
    if not match:
        return UNKNOWN
    kind, value = match.groups()
    if kind == "from" and "upToNextMinor" in args:
        kind = "upToNextMinor"
    return f"{kind} {value}"


def parse_package_manifest(text: str) -> tuple[str | None, list[ManifestDependency]]:
    """Extract the package name and its ``.package`` dependencies."""
    name_match = _PACKAGE_NAME_RE.search(text)
    dependencies = []
    for match in _PACKAGE_DEP_RE.finditer(text):
        args = match.group(1)
        url = _URL_RE.search(args)
        if url:
            dependencies.append(
                ManifestDependency(
                    name=repository_name(url.group(1)),
                    url=url.group(1),
                    requirement=_requirement(args),
                )
            )
            continue
        path = _PATH_RE.search(args)
        if path:
            dependencies.append(
                ManifestDependency(name=Path(path.group(1)).name, path=path.group(1))
            )
    return (name_match.group(1) if name_match else None), dependencies


def parse_resolved(text: str) -> dict[str, str]:
    """Pinned versions from Package.resolved, keyed by lower-cased identity."""
    data = json.loads(text)
    pins = data.get("pins")
    if pins is None:
        pins = (data.get("object") or {}).get("pins") or []

    versions: dict[str, str] = {}
    for pin in pins:
        identity = pin.get("identity") or pin.get("package")
        location = pin.get("location") or pin.get("repositoryURL")
        if location:
            identity = repository_name(location)
        if not identity:
            continue
        state = pin.get("state") or {}
        version = state.get("version") or state.get("branch") or (state.get("revision") or "")[:12]
        if version:
            versions[identity.lower()] = version
    return versions


def xcode_requirement(requirement: Any) -> str:
    """Render an XCRemoteSwiftPackageReference ``requirement`` dictionary."""
    if not isinstance(requirement, dict):
        return UNKNOWN
    kind = requirement.get("kind", "")
    if kind in ("upToNextMajorVersion", "upToNextMinorVersion"):
        prefix = "from" if kind == "upToNextMajorVersion" else "upToNextMinor"
        return f"{prefix} {requirement.get('minimumVersion', UNKNOWN)}"
    if kind == "exactVersion":
        return f"exact {requirement.get('version', UNKNOWN)}"
    if kind == "versionRange":
        return f"{requirement.get('minimumVersion')}..<{requirement.get('maximumVersion')}"
    if kind in ("branch", "revision"):
        return f"{kind} {requirement.get(kind, UNKNOWN)}"
    return UNKNOWN


class SwiftLanguageAdapter(LanguageAdapter):
    """Reads Package.swift / *.xcodeproj and finds checkouts on disk."""

    name = "swift"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        # Keyed by resolved project directory, then package name.
        self._packages: dict[Path, dict[str, PackageInfo]] = {}

    @staticmethod
    def _xcodeproj(directory: Path) -> Path | None:
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return None
        for entry in entries:
            if entry.is_dir() and entry.suffix == ".xcodeproj":
                return entry
        return None

    @staticmethod
    def _read_resolved(directory: Path) -> dict[str, str]:
        found = read_any(directory, RESOLVED)
        if found is None:
            return {}
        try:
            return parse_resolved(found[1])
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning("Could not parse %s: %s", found[0], e)
            return {}

    async def discover(self, directory: str | Path) -> LanguageContext:
        directory = Path(directory)
        manifest = read_any(directory, MANIFEST)
        xcodeproj = self._xcodeproj(directory)
        if manifest is None and xcodeproj is None:
            return LanguageContext.not_detected(self.name)

        packages: dict[str, PackageInfo] = {}
        self._packages[directory.resolve()] = packages
        context = LanguageContext(
            detected=True,
            name="swift",
            runtime="swift",
            package_manager="swiftpm" if manifest else "xcode",
        )

        if manifest is not None:
            self._discover_manifest(directory, manifest[1], context, packages)
        if xcodeproj is not None:
            await self._discover_xcodeproj(directory, xcodeproj, context, packages)

        context.packages = list(packages.values())
        return context

    @staticmethod
    def _add(packages: dict[str, PackageInfo], info: PackageInfo) -> None:
        packages.setdefault(info.name, info)

    def _discover_manifest(
        self, directory: Path, text: str, context: LanguageContext, packages: dict[str, PackageInfo]
    ) -> None:
        name, dependencies = parse_package_manifest(text)
        if name:
            context.workspace_package = PackageInfo(
                name=name,
                dir=str(directory),
                guides=(directory / GUIDES_DIR).exists(),
            )

        pinned = self._read_resolved(directory)
        checkouts = directory / ".build" / "checkouts"
        for dep in dependencies:
            if dep.path:
                location = (directory / dep.path).resolve()
            else:
                location = self._match_dir(checkouts, dep.name)
            self._add(
                packages,
                PackageInfo(
                    name=dep.name,
                    dir=str(location) if location else UNKNOWN,
                    package_version=pinned.get(dep.name.lower(), UNKNOWN),
                    dependency_version=dep.requirement,
                    guides=bool(location) and (location / GUIDES_DIR).exists(),
                ),
            )

    @staticmethod
    def _match_dir(parent: Path, name: str) -> Path | None:
        """Child of ``parent`` named ``name``, compared case-insensitively."""
        if not parent.is_dir():
            return None
        exact = parent / name
        if exact.is_dir():
            return exact
        for child in parent.iterdir():
            if child.is_dir() and child.name.lower() == name.lower():
                return child
        return None

    async def _discover_xcodeproj(
        self,
        directory: Path,
        xcodeproj: Path,
        context: LanguageContext,
        packages: dict[str, PackageInfo],
    ) -> None:
        project_name = xcodeproj.stem
        if context.workspace_package is None:
            context.workspace_package = PackageInfo(
                name=project_name,
                dir=str(directory),
                guides=(directory / GUIDES_DIR).exists(),
            )

        found = read_any(xcodeproj, "project.pbxproj")
        if found is None:
            return
        try:
            graph = parse_pbxproj(found[1])
        except PbxprojError as e:
            logger.warning("Could not parse %s: %s", found[0], e)
            return

        objects = graph.get("objects")
        if not isinstance(objects, dict):
            objects = {}
        local_refs = []
        for ref in objects_of(graph, "XCLocalSwiftPackageReference").values():
            rel = ref.get("relativePath") or ref.get("path")
            if isinstance(rel, str) and rel:
                local_refs.append(rel)
        pinned = self._read_resolved(xcodeproj / XCODE_RESOLVED.parent)
        checkouts: Path | None = None
        searched = False

        for target in objects_of(graph, "PBXNativeTarget").values():
            product_ids = target.get("packageProductDependencies")
            if not isinstance(product_ids, list):
                product_ids = []
            for product_id in product_ids:
                if not isinstance(product_id, str):
                    continue
                product = objects.get(product_id)
                if not isinstance(product, dict):
                    continue
                product_name = product.get("productName")
                if not isinstance(product_name, str) or not product_name:
                    continue

                local = next(
                    (
                        rel
                        for rel in local_refs
                        if rel and product_name.lower().startswith(Path(rel).name.lower())
                    ),
                    None,
                )
                if local is not None:
                    location = (directory / local).resolve()
                    self._add(
                        packages,
                        PackageInfo(
                            name=Path(local).name,
                            dir=str(location),
                            guides=(location / GUIDES_DIR).exists(),
                        ),
                    )
                    continue

                package_id = product.get("package")
                ref = objects.get(package_id) if isinstance(package_id, str) else None
                requirement = UNKNOWN
                name = product_name
                if isinstance(ref, dict) and ref.get("isa") == "XCRemoteSwiftPackageReference":
                    if isinstance(ref.get("repositoryURL"), str) and ref["repositoryURL"]:
                        name = repository_name(ref["repositoryURL"])
                    requirement = xcode_requirement(ref.get("requirement"))
                if name in packages:
                    continue

                if not searched:
                    checkouts = await self._derived_data_checkouts(project_name)
                    searched = True
                location = await self._find_checkout(checkouts, name) if checkouts else None
                self._add(
                    packages,
                    PackageInfo(
                        name=name,
                        dir=str(location) if location else UNKNOWN,
                        package_version=pinned.get(name.lower(), UNKNOWN),
                        dependency_version=requirement,
                        guides=bool(location) and (location / GUIDES_DIR).exists(),
                    ),
                )

    async def _find(self, *argv: str) -> str | None:
        """First line printed by ``find``; None on failure or no match."""
        try:
            result = await self.runner.run(["find", *argv])
        except ToolNotFoundError as e:
            logger.debug("find unavailable: %s", e)
            return None
        if not result.ok:
            return None
        lines = [line for line in result.stdout.splitlines() if line.strip()]
        return lines[0].strip() if lines else None

    async def _derived_data_checkouts(self, project_name: str) -> Path | None:
        derived_data = self.config.derived_data_dir
        if not derived_data.is_dir():
            return None
        subtree = await self._find(
            str(derived_data), "-maxdepth", "1", "-type", "d", "-name", f"{project_name}-*"
        )
        return Path(subtree) / "SourcePackages" / "checkouts" if subtree else None

    async def _find_checkout(self, checkouts: Path, name: str) -> Path | None:
        found = await self._find(
            str(checkouts), "-maxdepth", "1", "-type", "d", "-iname", name
        )
        return Path(found) if found else None

    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        key = Path(directory).resolve()
        if name not in self._packages.get(key, {}):
            await self.discover(directory)
        info = self._packages.get(key, {}).get(name)
        if info is not None and info.dir != UNKNOWN:
            guides_dir = Path(info.dir) / GUIDES_DIR
            if guides_dir.is_dir():
                return guides_dir
        raise GuidesNotFoundError(f"Could not find guides for Swift package '{name}'.")
