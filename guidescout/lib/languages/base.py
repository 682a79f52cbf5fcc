"""LanguageAdapter -- the contract every ecosystem implementation satisfies."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from guidescout.config import ScoutConfig, get_config
from guidescout.lib.cache.fetch import FETCH_ERRORS, CachedFetcher
from guidescout.lib.languages.models import LanguageContext
from guidescout.lib.shell import CommandRunner

if TYPE_CHECKING:
    from guidescout.engine.package import Package
    from guidescout.engine.workspace import Workspace

logger = logging.getLogger("lib.languages.base")


class GuidesNotFoundError(LookupError):
    """A dependency's guide directory is not present in resolved state."""


class LanguageAdapter(ABC):
    """Base class for all language adapters.

    Subclasses implement ``discover()`` and ``resolve_guides_dir()``. The
    contrib hooks (``contrib_key``, ``contrib_local_name()``, ``contrib_url()``)
    are optional; an adapter that leaves ``contrib_key`` unset has no contrib
    registry and ``discover_contrib()`` returns nothing for it.
    """

    name: str = "unknown"
    contrib_key: str | None = None

    def __init__(
        self,
        config: ScoutConfig | None = None,
        runner: CommandRunner | None = None,
        fetcher: CachedFetcher | None = None,
    ) -> None:
        self.config = config or get_config()
        self.runner = runner or CommandRunner()
        self.fetcher = fetcher or CachedFetcher(
            self.config.cache_dir, timeout=self.config.fetch_timeout
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    @abstractmethod
    async def discover(self, directory: str | Path) -> LanguageContext:
        """Detect the ecosystem in ``directory`` and enumerate its dependencies.

        Must not raise on missing or malformed manifests.
        """

    @abstractmethod
    async def resolve_guides_dir(self, directory: str | Path, name: str) -> Path:
        """Locate the guide directory of dependency ``name``.

        Raises:
            GuidesNotFoundError: If the package or its guides cannot be found.
        """

    async def load_package(
        self, workspace: Workspace, directory: str | Path, name: str
    ) -> Package:
        """Resolve ``name``'s guides and hand them to the content loader."""
        from guidescout.engine.package import Package

        guides_dir = await self.resolve_guides_dir(directory, name)
        return await Package.load(workspace, name, guides_dir)

    # -------------------------------------------------------------------
    # Contrib discovery
    # -------------------------------------------------------------------

    def contrib_local_name(self, name: str) -> str:
        return name

    def contrib_url(self, name: str) -> str | None:
        return None

    async def discover_contrib(self, names: list[str]) -> list[str]:
        """Find community guide packages for dependencies without guides.

        A configured contrib directory replaces the remote check entirely.

        Returns:
            ``file:<dir>`` entries for local overrides, or the names found in
            the remote registry.
        """
        if not self.contrib_key:
            return []

        if self.config.contrib_dir:
            discovered: list[str] = []
            root = Path(self.config.contrib_dir) / self.contrib_key
            for name in names:
                contrib_dir = (root / self.contrib_local_name(name)).resolve()
                if contrib_dir.is_dir():
                    discovered.append(f"file:{contrib_dir}")
            return discovered

        results = await asyncio.gather(*(self._probe_contrib(name) for name in names))
        return [name for name in results if name is not None]

    async def _probe_contrib(self, name: str) -> str | None:
        url = self.contrib_url(name)
        if not url:
            return None
        try:
            response = await self.fetcher.fetch(url, method="HEAD")
        except FETCH_ERRORS as e:
            logger.debug("Contrib probe for %s failed: %s", name, e)
            return None
        return name if response.ok else None
