"""Workspace -- drives the language adapters over one or more root directories."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from guidescout.config import ScoutConfig
from guidescout.engine.package import Package
from guidescout.lib.languages import all_languages
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.models import LanguageContext, PackageInfo

logger = logging.getLogger("engine.workspace")


@dataclass
class Detection:
    """Which adapter claimed which directory."""

    adapter: LanguageAdapter
    directory: Path
    context: LanguageContext


class Workspace:
    """A set of project roots scanned together.

    Usage::

        workspace = await Workspace.load(["/path/to/app", "/path/to/backend"])
        for pkg in workspace.packages:
            print(pkg.name, pkg.guides_dir)
    """

    def __init__(
        self,
        directories: list[str | Path],
        adapters: list[LanguageAdapter] | None = None,
        config: ScoutConfig | None = None,
    ) -> None:
        self.directories = [Path(d).resolve() for d in directories]
        self.adapters = adapters if adapters is not None else all_languages(config=config)
        self.detections: list[Detection] = []
        self.package_map: dict[str, Package] = {}

    @classmethod
    async def load(
        cls,
        directories: list[str | Path],
        adapters: list[LanguageAdapter] | None = None,
        config: ScoutConfig | None = None,
    ) -> Workspace:
        workspace = cls(directories, adapters=adapters, config=config)
        await workspace._load()
        return workspace

    async def _load(self) -> None:
        for directory in self.directories:
            detection = await self._detect(directory)
            if detection is None:
                logger.info("No supported language detected in %s", directory)
                continue

            self.detections.append(detection)
            context = detection.context
            logger.info(
                "Detected %s in %s (%d packages, %d with guides)",
                context.name,
                directory,
                len(context.packages),
                len(context.packages_with_guides),
            )

            for info in context.packages_with_guides:
                try:
                    pkg = await detection.adapter.load_package(self, directory, info.name)
                except GuidesNotFoundError as e:
                    logger.warning("Skipping %s: %s", info.name, e)
                    continue
                self.package_map[pkg.name] = pkg

    async def _detect(self, directory: Path) -> Detection | None:
        for adapter in self.adapters:
            context = await adapter.discover(directory)
            if context.detected:
                return Detection(adapter=adapter, directory=directory, context=context)
        return None

    @property
    def languages(self) -> list[LanguageContext]:
        return [d.context for d in self.detections]

    @property
    def packages(self) -> list[Package]:
        return list(self.package_map.values())

    def package(self, name: str) -> Package | None:
        return self.package_map.get(name)

    def package_info(self, name: str) -> PackageInfo | None:
        """Discovery record for ``name`` from any detected language."""
        for context in self.languages:
            info = context.find(name)
            if info is not None:
                return info
        return None

    async def discover_contrib(self) -> dict[str, list[str]]:
        """Probe contrib guide packages for every dependency without guides.

        Returns:
            Contrib locations keyed by detected language name.
        """
        results: dict[str, list[str]] = {}
        for detection in self.detections:
            missing = [p.name for p in detection.context.packages if not p.guides]
            if not missing:
                continue
            found = await detection.adapter.discover_contrib(missing)
            if found:
                results.setdefault(detection.context.name, []).extend(found)
        return results
