"""Go modules adapter (go.mod + ``go list``)."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from guidescout.lib.files import GUIDES_DIR, read_any
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import UNKNOWN, LanguageContext, PackageInfo
from guidescout.lib.shell import ToolNotFoundError

logger = logging.getLogger("lib.languages.go")

LIST_FORMAT = "{{if not .Indirect}}{{.Path}} {{.Version}} {{.Dir}}{{end}}"

_MODULE_RE = re.compile(r"^module\s+(\S+)", re.MULTILINE)
_GO_DIRECTIVE_RE = re.compile(r"^go\s+([0-9.]+)", re.MULTILINE)
_GO_VERSION_RE = re.compile(r"go version go([0-9.]+\S*)")


def parse_module_list(stdout: str) -> list[tuple[str, str, str]]:
    """Parse ``go list -m`` output into ``(path, version, dir)`` triples.

    Lines missing any of the three fields (the main module has no version,
    modules absent from the cache have no dir) are skipped.
    """
    modules = []
    for line in stdout.splitlines():
        parts = line.split(" ")
        if len(parts) < 3 or not all(parts[:3]):
            continue
        path, version, module_dir = parts[0], parts[1], " ".join(parts[2:])
        modules.append((path, version, module_dir))
    return modules


class GoLanguageAdapter(LanguageAdapter):
    """Shells out to the ``go`` toolchain for version and module listing."""

    name = "go"

    async def _toolchain_version(self) -> str | None:
        try:
            result = await self.runner.run(["go", "version"])
        except ToolNotFoundError as e:
            logger.debug("Cannot determine Go version: %s", e)
            return None
        if not result.ok:
            return None
        match = _GO_VERSION_RE.search(result.stdout)
        return match.group(1) if match else None

    async def discover(self, directory: str | Path) -> LanguageContext:
        directory = Path(directory)
        found = read_any(directory, "go.mod")
        if found is None:
            return LanguageContext.not_detected(self.name)
        go_mod = found[1]

        context = LanguageContext(detected=True, name="go")

        module = _MODULE_RE.search(go_mod)
        if module:
            context.workspace_package = PackageInfo(
                name=module.group(1),
                dir=str(directory),
                package_version=UNKNOWN,
                dependency_version=UNKNOWN,
                guides=(directory / GUIDES_DIR).exists(),
            )

        directive = _GO_DIRECTIVE_RE.search(go_mod)
        if directive:
            context.runtime_version = directive.group(1)
        else:
            context.runtime_version = await self._toolchain_version()

        # A failed listing leaves the directory detected with no packages.
        try:
            result = await self.runner.run(
                ["go", "list", "-m", "-f", LIST_FORMAT, "all"], cwd=directory
            )
        except ToolNotFoundError as e:
            logger.warning("Could not list go dependencies in %s: %s", directory, e)
            return context
        if not result.ok:
            logger.warning(
                "Could not list go dependencies in %s (exit %d): %s",
                directory,
                result.exit_code,
                result.stderr.strip()[:300],
            )
            return context

        for path, version, module_dir in parse_module_list(result.stdout):
            context.packages.append(
                PackageInfo(
                    name=path,
                    dir=module_dir,
                    package_version=version,
                    dependency_version=version,
                    guides=(Path(module_dir) / GUIDES_DIR).exists(),
                )
            )

        return context

    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        try:
            result = await self.runner.run(
                ["go", "list", "-f", "{{.Dir}}", "-m", name], cwd=directory
            )
        except ToolNotFoundError as e:
            raise GuidesNotFoundError(f"Could not find guides for package {name}: {e}") from e

        module_dir = result.stdout.strip()
        if not result.ok or not module_dir:
            raise GuidesNotFoundError(f"Could not find guides for package {name}")

        guides_dir = Path(module_dir) / GUIDES_DIR
        if not guides_dir.is_dir():
            raise GuidesNotFoundError(f"Could not find guides for package {name}")
        return guides_dir
