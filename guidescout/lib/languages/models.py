"""Uniform result shapes produced by every language adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNKNOWN = "unknown"


@dataclass
class PackageInfo:
    """One resolved dependency (or the workspace's own package)."""

    name: str
    dir: str
    package_version: str = UNKNOWN
    dependency_version: str = UNKNOWN
    guides: bool = False
    development: bool | None = None
    optional: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "dir": self.dir,
            "packageVersion": self.package_version,
            "dependencyVersion": self.dependency_version,
            "guides": self.guides,
        }
        if self.development is not None:
            data["development"] = self.development
        if self.optional is not None:
            data["optional"] = self.optional
        return data


@dataclass
class LanguageContext:
    """What one adapter found in one directory."""

    detected: bool
    name: str
    package_manager: str | None = None
    runtime: str | None = None
    runtime_version: str | None = None
    workspace_package: PackageInfo | None = None
    packages: list[PackageInfo] = field(default_factory=list)

    @classmethod
    def not_detected(cls, name: str) -> LanguageContext:
        return cls(detected=False, name=name)

    @property
    def packages_with_guides(self) -> list[PackageInfo]:
        return [p for p in self.packages if p.guides]

    def find(self, name: str) -> PackageInfo | None:
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"detected": self.detected, "name": self.name}
        if self.package_manager:
            data["packageManager"] = self.package_manager
        if self.runtime:
            data["runtime"] = self.runtime
        if self.runtime_version:
            data["runtimeVersion"] = self.runtime_version
        if self.workspace_package:
            data["workspacePackage"] = self.workspace_package.to_dict()
        data["packages"] = [p.to_dict() for p in self.packages]
        return data
