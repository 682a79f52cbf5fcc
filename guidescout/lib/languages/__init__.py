"""Language adapters and the ordered registry used for detection."""

from __future__ import annotations

from pathlib import Path

from guidescout.config import ScoutConfig
from guidescout.lib.cache.fetch import CachedFetcher
from guidescout.lib.languages.base import GuidesNotFoundError, LanguageAdapter
from guidescout.lib.languages.dart import DartLanguageAdapter
from guidescout.lib.languages.go import GoLanguageAdapter
from guidescout.lib.languages.javascript import JavascriptLanguageAdapter
from guidescout.lib.languages.models import UNKNOWN, LanguageContext, PackageInfo
from guidescout.lib.languages.python import PythonLanguageAdapter
from guidescout.lib.languages.swift import SwiftLanguageAdapter
from guidescout.lib.shell import CommandRunner

# Detection order; the first adapter that detects a directory claims it.
ADAPTER_CLASSES: list[type[LanguageAdapter]] = [
    JavascriptLanguageAdapter,
    DartLanguageAdapter,
    GoLanguageAdapter,
    PythonLanguageAdapter,
    SwiftLanguageAdapter,
]


def all_languages(
    config: ScoutConfig | None = None,
    runner: CommandRunner | None = None,
    fetcher: CachedFetcher | None = None,
) -> list[LanguageAdapter]:
    """Fresh adapter instances in detection order, sharing one config/runner/fetcher."""
    return [cls(config=config, runner=runner, fetcher=fetcher) for cls in ADAPTER_CLASSES]


async def detect_language(
    directory: str | Path,
    adapters: list[LanguageAdapter] | None = None,
) -> tuple[LanguageAdapter, LanguageContext] | tuple[None, None]:
    """First adapter that detects ``directory``, with its context."""
    for adapter in adapters if adapters is not None else all_languages():
        context = await adapter.discover(directory)
        if context.detected:
            return adapter, context
    return None, None


__all__ = [
    "ADAPTER_CLASSES",
    "UNKNOWN",
    "DartLanguageAdapter",
    "GoLanguageAdapter",
    "GuidesNotFoundError",
    "JavascriptLanguageAdapter",
    "LanguageAdapter",
    "LanguageContext",
    "PackageInfo",
    "PythonLanguageAdapter",
    "SwiftLanguageAdapter",
    "all_languages",
    "detect_language",
]
