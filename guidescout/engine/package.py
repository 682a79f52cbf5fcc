"""Package -- the content loader for a resolved guide directory.

Rendering is out of scope here: a Package only records which guide, doc and
command files a guide directory provides, plus its optional ``config.json``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from guidescout.lib.languages.base import GuidesNotFoundError

if TYPE_CHECKING:
    from guidescout.engine.workspace import Workspace

logger = logging.getLogger("engine.package")

GUIDE_TYPES = ["usage", "style", "setup", "upgrade"]
CONTENT_SUFFIXES = (".md", ".prompt")


@dataclass
class Package:
    """Guide content for one dependency."""

    workspace: Workspace = field(repr=False)
    name: str
    guides_dir: Path
    config: dict[str, Any] | None = None
    package_version: str | None = None
    dependency_version: str | None = None
    dir: str | None = None
    guides: dict[str, Path] = field(default_factory=dict)
    docs: dict[str, Path] = field(default_factory=dict)
    commands: dict[str, Path] = field(default_factory=dict)

    @classmethod
    async def load(cls, workspace: Workspace, name: str, guides_dir: str | Path) -> Package:
        """Index the content of ``guides_dir``.

        Raises:
            GuidesNotFoundError: If ``guides_dir`` is not a directory.
        """
        guides_dir = Path(guides_dir)
        if not guides_dir.is_dir():
            raise GuidesNotFoundError(f"Guide directory '{guides_dir}' for {name} does not exist")
        pkg = cls(workspace=workspace, name=name, guides_dir=guides_dir)
        pkg._load()
        return pkg

    def _load(self) -> None:
        info = self.workspace.package_info(self.name)
        if info is not None:
            self.package_version = info.package_version
            self.dependency_version = info.dependency_version
            self.dir = info.dir

        config_path = self.guides_dir / "config.json"
        if config_path.is_file():
            try:
                self.config = json.loads(config_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.error("Unable to parse '%s': %s", config_path, e)

        for builtin in GUIDE_TYPES:
            for suffix in CONTENT_SUFFIXES:
                path = self.guides_dir / f"{builtin}{suffix}"
                if path.is_file():
                    self.guides[builtin] = path
                    break

        docs_dir = self.guides_dir / "docs"
        if docs_dir.is_dir():
            for path in sorted(docs_dir.rglob("*")):
                if path.is_file() and path.suffix in CONTENT_SUFFIXES:
                    doc_name = path.relative_to(docs_dir).with_suffix("").as_posix()
                    self.docs[doc_name] = path

        commands_dir = self.guides_dir / "commands"
        if commands_dir.is_dir():
            for path in sorted(commands_dir.iterdir()):
                if path.is_file() and path.suffix in CONTENT_SUFFIXES:
                    self.commands[path.stem] = path

        self._apply_config()

    def _apply_config(self) -> None:
        """Entries declared in config.json override discovered files."""
        if not isinstance(self.config, dict):
            return
        for key, target in (
            ("guides", self.guides),
            ("docs", self.docs),
            ("commands", self.commands),
        ):
            for entry in self.config.get(key) or []:
                if not isinstance(entry, dict) or not entry.get("name"):
                    continue
                # URL-sourced content is left for the renderer to fetch.
                if entry.get("path"):
                    target[entry["name"]] = self.guides_dir / entry["path"]

    @property
    def mcp_servers(self) -> dict[str, Any]:
        if isinstance(self.config, dict):
            return dict(self.config.get("mcpServers") or {})
        return {}
