"""Python adapter (project metadata + virtual environment site-packages).

Guides ship inside wheels, so the adapter never looks at declared
requirements: it scans every ``*.dist-info`` in the project's virtual
environment and keeps the distributions whose RECORD lists files under a
``.guides/`` directory.
"""

from __future__ import annotations

import configparser
import csv
import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from guidescout.lib.files import GUIDES_DIR, exists_any, read_any
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import UNKNOWN, LanguageContext, PackageInfo

if TYPE_CHECKING:
    from guidescout.engine.package import Package
    from guidescout.engine.workspace import Workspace

logger = logging.getLogger("lib.languages.python")

VENV_MARKER = "pyvenv.cfg"
VENV_NAMES = [".venv", ".env", "venv", "env"]
WORKSPACE_FILES = ["pyproject.toml", "uv.lock"]
DETECTION_FILES = [
    "pyproject.toml",
    "setup.cfg",
    "setup.py",
    "requirements.txt",
    "uv.lock",
]

_GUIDES_FRAGMENT = f"/{GUIDES_DIR}/"
_NAME_SEPARATORS = re.compile(r"[-_.]+")


def normalize_name(name: str) -> str:
    """PEP 503 canonical form: ``My_Package`` and ``my.package`` -> ``my-package``."""
    return _NAME_SEPARATORS.sub("-", name).lower()


@dataclass
class ProjectMetadata:
    name: str | None = None
    version: str | None = None
    manager_hints: set[str] = field(default_factory=set)


@dataclass
class GuideLocation:
    """A ``.guides`` directory installed by one distribution."""

    distribution: str
    version: str | None
    package_dir: Path
    package_name: str

    @property
    def guides_dir(self) -> Path:
        return self.package_dir / GUIDES_DIR


# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------


def parse_pyproject(content: str) -> ProjectMetadata:
    """Read name/version from ``[project]``, falling back to ``[tool.poetry]``."""
    metadata = ProjectMetadata()
    try:
        doc = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        logger.warning("Failed to parse pyproject.toml: %s", e)
        return metadata

    project = doc.get("project")
    if isinstance(project, dict):
        if isinstance(project.get("name"), str):
            metadata.name = project["name"]
        if isinstance(project.get("version"), str):
            metadata.version = project["version"]

    tool = doc.get("tool")
    if isinstance(tool, dict):
        poetry = tool.get("poetry")
        if isinstance(poetry, dict):
            metadata.manager_hints.add("tool.poetry")
            if not metadata.name and isinstance(poetry.get("name"), str):
                metadata.name = poetry["name"]
            if not metadata.version and isinstance(poetry.get("version"), str):
                metadata.version = poetry["version"]
        if "pdm" in tool:
            metadata.manager_hints.add("tool.pdm")

    return metadata


def parse_setup_cfg(content: str) -> ProjectMetadata:
    """Read name/version from the ``[metadata]`` section of setup.cfg."""
    metadata = ProjectMetadata()
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read_string(content)
    except configparser.Error as e:
        logger.warning("Failed to parse setup.cfg: %s", e)
        return metadata
    metadata.name = parser.get("metadata", "name", fallback=None) or None
    metadata.version = parser.get("metadata", "version", fallback=None) or None
    return metadata


def read_project_metadata(directory: Path) -> ProjectMetadata:
    metadata = ProjectMetadata()

    pyproject = read_any(directory, "pyproject.toml")
    if pyproject:
        metadata = parse_pyproject(pyproject[1])

    setup_cfg = read_any(directory, "setup.cfg")
    if setup_cfg:
        parsed = parse_setup_cfg(setup_cfg[1])
        metadata.name = metadata.name or parsed.name
        metadata.version = metadata.version or parsed.version

    return metadata


def detect_package_manager(directory: Path, metadata: ProjectMetadata) -> str | None:
    if (directory / "uv.lock").exists():
        return "uv"
    if "tool.poetry" in metadata.manager_hints:
        return "poetry"
    if (directory / "requirements.txt").exists():
        return "pip"
    if (directory / "setup.py").exists():
        return "setuptools"
    return None


# ---------------------------------------------------------------------------
# Virtual environment lookup
# ---------------------------------------------------------------------------


def _is_venv(path: Path) -> bool:
    return (path / VENV_MARKER).is_file()


def nearest_workspace_root(start: Path) -> Path | None:
    """Closest ancestor (inclusive) holding pyproject.toml or uv.lock."""
    for candidate in [start, *start.parents]:
        if exists_any(candidate, *WORKSPACE_FILES):
            return candidate
    return None


def find_environment(start_dir: str | Path, override: str | None = None) -> Path | None:
    """Locate the virtual environment serving ``start_dir``.

    Args:
        start_dir: Project directory.
        override: ``UV_PROJECT_ENVIRONMENT``-style path; relative values are
            resolved against the workspace root.

    Returns:
        The environment root (directory containing pyvenv.cfg), or None.
    """
    start = Path(start_dir).resolve()
    workspace_root = nearest_workspace_root(start)
    search_root = workspace_root or start

    if override:
        target = Path(override)
        if not target.is_absolute():
            target = search_root / target
        if _is_venv(target):
            return target.resolve()

    current = start
    while True:
        for name in VENV_NAMES:
            candidate = current / name
            if _is_venv(candidate):
                return candidate
        if workspace_root is not None and current == workspace_root:
            break
        if current.parent == current:
            break
        current = current.parent
    return None


def find_site_packages(env_root: Path) -> list[Path]:
    """All site-packages directories (Windows and POSIX layouts)."""
    roots = []
    windows = env_root / "Lib" / "site-packages"
    if windows.is_dir():
        roots.append(windows)
    lib = env_root / "lib"
    if lib.is_dir():
        for entry in sorted(lib.iterdir()):
            site = entry / "site-packages"
            if entry.name.startswith("python") and site.is_dir():
                roots.append(site)
    return roots


def detect_runtime_version(env: Path | None, directory: Path) -> str | None:
    """pyvenv.cfg ``version``/``version_info``, else ``.python-version``."""
    if env is not None:
        found = read_any(env, VENV_MARKER)
        if found:
            parser = configparser.ConfigParser(interpolation=None)
            try:
                parser.read_string("[pyvenv]\n" + found[1])
            except configparser.Error as e:
                logger.warning("Failed to parse %s: %s", found[0], e)
            else:
                version = parser.get("pyvenv", "version", fallback="") or parser.get(
                    "pyvenv", "version_info", fallback=""
                )
                if version.strip():
                    return version.strip()

    pinned = read_any(directory, ".python-version")
    if pinned and pinned[1].strip():
        return pinned[1].strip()
    return None


# ---------------------------------------------------------------------------
# Installed distributions
# ---------------------------------------------------------------------------


def parse_distribution_metadata(dist_info: Path) -> tuple[str, str] | None:
    """``(Name, Version)`` from a dist-info METADATA file."""
    found = read_any(dist_info, "METADATA")
    if found is None:
        return None
    name = version = None
    for line in found[1].splitlines():
        if not line.strip():
            break  # end of headers
        if line.startswith("Name:"):
            name = line[len("Name:"):].strip()
        elif line.startswith("Version:"):
            version = line[len("Version:"):].strip()
    if not name or not version:
        return None
    return name, version


def read_record_paths(dist_info: Path) -> list[str]:
    found = read_any(dist_info, "RECORD")
    if found is None:
        return []
    return [row[0] for row in csv.reader(found[1].splitlines()) if row]


def guide_location(
    site_packages: Path, distribution: str, version: str | None, record_path: str
) -> GuideLocation | None:
    """Map a RECORD entry under ``.guides/`` to the directory that holds it.

    The package directory is whatever precedes the ``.guides`` segment, so
    packages installed below ``src/`` or a namespace folder still resolve.
    """
    if _GUIDES_FRAGMENT not in record_path or "../" in record_path:
        return None
    parts = record_path.split("/")
    index = parts.index(GUIDES_DIR)
    if index <= 0:
        return None
    package_parts = parts[:index]
    return GuideLocation(
        distribution=distribution,
        version=version,
        package_dir=site_packages.joinpath(*package_parts),
        package_name=package_parts[-1] or distribution,
    )


def list_guides(site_packages: Path) -> list[GuideLocation]:
    """Every guide location installed into one site-packages directory."""
    guides = []
    try:
        entries = sorted(site_packages.iterdir())
    except FileNotFoundError:
        return guides

    for dist_info in entries:
        if not dist_info.is_dir() or not dist_info.name.endswith(".dist-info"):
            continue
        metadata = parse_distribution_metadata(dist_info)
        if metadata is None:
            continue
        name, version = metadata
        for record_path in read_record_paths(dist_info):
            location = guide_location(site_packages, name, version, record_path)
            if location:
                guides.append(location)
    return guides


class PythonLanguageAdapter(LanguageAdapter):
    """Scans the project's virtual environment for wheels that ship guides."""

    name = "python"
    contrib_key = "python"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        # Keyed by resolved project directory, then normalized distribution name.
        self._guides: dict[Path, dict[str, GuideLocation]] = {}

    def _register(self, directory: Path, location: GuideLocation) -> None:
        found = self._guides.setdefault(directory.resolve(), {})
        found.setdefault(normalize_name(location.distribution), location)

    def _scan(self, env: Path | None) -> list[GuideLocation]:
        if env is None:
            return []
        found = []
        for site_packages in find_site_packages(env):
            found.extend(list_guides(site_packages))
        return found

    async def discover(self, directory: str | Path) -> LanguageContext:
        directory = Path(directory)
        if not exists_any(directory, *DETECTION_FILES):
            return LanguageContext.not_detected(self.name)

        metadata = read_project_metadata(directory)
        env = find_environment(directory, self.config.python_env)
        if env is None:
            logger.warning(
                "No virtual environment found under '%s' (expected .venv/.env). "
                "Python package guides will be unavailable until an environment exists.",
                directory,
            )

        self._guides[directory.resolve()] = {}
        for location in self._scan(env):
            self._register(directory, location)

        version = metadata.version or "0.0.0"
        return LanguageContext(
            detected=True,
            name="python",
            runtime="python",
            package_manager=detect_package_manager(directory, metadata),
            runtime_version=detect_runtime_version(env, directory),
            workspace_package=PackageInfo(
                name=metadata.name or directory.name,
                dir=str(directory),
                package_version=version,
                dependency_version=version,
                guides=(directory / GUIDES_DIR).exists(),
            ),
            packages=[
                PackageInfo(
                    name=loc.distribution,
                    dir=str(loc.package_dir),
                    package_version=loc.version or UNKNOWN,
                    dependency_version=loc.version or UNKNOWN,
                    guides=True,
                    development=False,
                    optional=False,
                )
                for loc in self._guides[directory.resolve()].values()
            ],
        )

    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        return self.find_guides(directory, name).guides_dir

    def find_guides(self, directory: str | Path, name: str) -> GuideLocation:
        """Guide location for ``name`` under any equivalent spelling."""
        directory = Path(directory)
        key = normalize_name(name)
        cached = self._guides.get(directory.resolve(), {}).get(key)
        if cached:
            return cached

        env = find_environment(directory, self.config.python_env)
        for location in self._scan(env):
            self._register(directory, location)
            if key in (
                normalize_name(location.distribution),
                normalize_name(location.package_name),
            ):
                return location

        raise GuidesNotFoundError(f"Could not find guides for Python package '{name}'.")

    async def load_package(
        self, workspace: Workspace, directory: str | Path, name: str
    ) -> Package:
        from guidescout.engine.package import Package

        location = self.find_guides(directory, name)
        return await Package.load(workspace, location.distribution, location.guides_dir)

    def contrib_local_name(self, name: str) -> str:
        return normalize_name(name)

    def contrib_url(self, name: str) -> str | None:
        return f"https://pypi.org/pypi/dotguides-contrib-{normalize_name(name)}/json"
